#!/usr/bin/env python3
"""
LAB Reader Module
Decodes .lab skeletal animation files into a SkeletalAsset

The byte layout is documented in readers.lab_format. Every record is
validated as soon as it is read, so an error points at the offending byte
offset instead of surfacing later in the pipeline. The finished asset runs
the full SkeletalAsset invariant check before it is returned.
"""

import logging
import math
from typing import List, Optional

import numpy as np

from core.errors import (
    BadMagicError,
    DuplicateTrackError,
    InvalidBoneHierarchyError,
    InvalidMeshError,
    InvalidSkeletonError,
    InvalidTransformError,
    InvalidWeightsError,
    NonMonotonicKeyframesError,
    TruncatedInputError,
    UnsupportedKeyTypeError,
    UnsupportedVersionError,
)
from core.skeleton import (
    WEIGHT_TOLERANCE,
    AnimationClip,
    AnimationTrack,
    AssetMetadata,
    Bone,
    Dummy,
    Keyframe,
    MeshData,
    SkeletalAsset,
    Transform,
    VertexInfluence,
)
from core.transforms import row_vector_to_column

from . import lab_format as fmt
from .base_reader import BaseReader
from .binary_reader import BinaryReader

logger = logging.getLogger(__name__)


class LabDecoder:
    """Single-use decoder for one .lab byte buffer"""

    def __init__(self, data: bytes, name: str = "Skeleton", source_path: str = ""):
        self.reader = BinaryReader(data)
        self.name = name
        self.source_path = source_path
        self.version = 0
        self.bone_count = 0

    def decode(self) -> SkeletalAsset:
        version, bone_count, dummy_count, clip_count = self._read_header()
        self.version = version
        self.bone_count = bone_count
        logger.debug(
            "LAB v0x%04X: %d bones, %d dummies, %d clips",
            version, bone_count, dummy_count, clip_count,
        )

        bones = self._read_bones(bone_count)
        dummies = self._read_dummies(dummy_count)
        clips = [self._read_clip() for _ in range(clip_count)]
        mesh = self._read_mesh()

        if self.reader.remaining():
            logger.warning(
                "Ignoring %d trailing byte(s) at offset %d",
                self.reader.remaining(), self.reader.tell(),
            )

        metadata = AssetMetadata(
            name=self.name,
            source_path=self.source_path,
            format_version=version,
            up_axis="Z",
            unit_scale=1.0,
        )
        return SkeletalAsset(bones=bones, clips=clips, mesh=mesh, dummies=dummies, metadata=metadata)

    # === Helpers ===

    def _require_table(self, count: int, record_size: int, field: str) -> None:
        """Fail fast when a declared table cannot fit in the remaining bytes"""
        needed = count * record_size
        if needed > self.reader.remaining():
            raise TruncatedInputError(needed, self.reader.remaining(), self.reader.tell(), field)

    def _make_transform(self, translation, rotation, scale, offset: int, field: str) -> Transform:
        try:
            return Transform(translation=translation, rotation=rotation, scale=scale)
        except InvalidTransformError as e:
            raise e.with_context(offset, field)

    def _read_transform(self, field: str) -> Transform:
        """3f translation, 4f rotation stored x, y, z, w, 3f scale"""
        offset = self.reader.tell()
        translation = self.reader.read_floats(3, field)
        x, y, z, w = self.reader.read_floats(4, field)
        scale = self.reader.read_floats(3, field)
        return self._make_transform(translation, (w, x, y, z), scale, offset, field)

    # === Sections ===

    def _read_header(self):
        magic = self.reader.read_bytes(len(fmt.MAGIC), "magic")
        if magic != fmt.MAGIC:
            raise BadMagicError(magic, fmt.MAGIC)

        version = self.reader.read_u32("version")
        if version not in fmt.SUPPORTED_VERSIONS:
            raise UnsupportedVersionError(version, fmt.SUPPORTED_VERSIONS)

        bone_count = self.reader.read_u32("bone_count")
        dummy_count = self.reader.read_u32("dummy_count")
        clip_count = self.reader.read_u32("clip_count")
        return version, bone_count, dummy_count, clip_count

    def _read_bones(self, bone_count: int) -> List[Bone]:
        self._require_table(bone_count, fmt.BONE_RECORD_SIZE, "bones")

        bones = []
        names = set()
        for position in range(bone_count):
            record_offset = self.reader.tell()
            name = self.reader.read_fixed_string(fmt.BONE_NAME_SIZE, "bone.name")
            bone_id = self.reader.read_u32("bone.id")
            parent_id = self.reader.read_u32("bone.parent_id")
            parent_index = None if parent_id == fmt.NO_PARENT else parent_id

            if bone_id != position:
                raise InvalidBoneHierarchyError(
                    position, parent_index,
                    reason=f"record id {bone_id} does not match its position",
                    offset=record_offset,
                )
            if parent_index is not None and parent_index >= position:
                raise InvalidBoneHierarchyError(position, parent_index, offset=record_offset + fmt.BONE_NAME_SIZE + 4)
            if not name:
                raise InvalidSkeletonError(f"Bone {position} has an empty name", offset=record_offset, field="bone.name")
            if name in names:
                raise InvalidSkeletonError(f"Duplicate bone name '{name}'", offset=record_offset, field="bone.name")
            names.add(name)

            transform = self._read_transform("bone.bind_transform")
            bones.append(Bone(index=position, name=name, parent_index=parent_index, local_bind_transform=transform))
        return bones

    def _read_dummies(self, dummy_count: int) -> List[Dummy]:
        self._require_table(dummy_count, fmt.DUMMY_RECORD_SIZE, "dummies")

        dummies = []
        ids = set()
        for _ in range(dummy_count):
            record_offset = self.reader.tell()
            dummy_id = self.reader.read_u32("dummy.id")
            parent_bone = self.reader.read_u32("dummy.parent_bone_id")
            if parent_bone >= self.bone_count:
                raise InvalidSkeletonError(
                    f"Dummy {dummy_id} is attached to unknown bone {parent_bone}",
                    offset=record_offset, field="dummy.parent_bone_id",
                )
            if dummy_id in ids:
                raise InvalidSkeletonError(f"Duplicate dummy id {dummy_id}", offset=record_offset, field="dummy.id")
            ids.add(dummy_id)

            transform = self._read_transform("dummy.transform")
            dummies.append(Dummy(index=dummy_id, parent_bone_index=parent_bone, local_transform=transform))
        return dummies

    def _read_key(self, key_type: int) -> Transform:
        if key_type == fmt.KEY_TRS:
            return self._read_transform("key.trs")
        if key_type == fmt.KEY_QUAT:
            offset = self.reader.tell()
            translation = self.reader.read_floats(3, "key.quat")
            x, y, z, w = self.reader.read_floats(4, "key.quat")
            return self._make_transform(translation, (w, x, y, z), (1.0, 1.0, 1.0), offset, "key.quat")

        offset = self.reader.tell()
        if key_type == fmt.KEY_MAT44:
            values = self.reader.read_floats(16, "key.mat44")
            rows = np.array(values, dtype=np.float64).reshape(4, 4)
        else:
            values = self.reader.read_floats(12, "key.mat43")
            rows = np.array(values, dtype=np.float64).reshape(4, 3)
        try:
            return Transform.from_matrix(row_vector_to_column(rows))
        except InvalidTransformError as e:
            raise e.with_context(offset, "key.matrix")

    def _read_clip(self) -> AnimationClip:
        clip_offset = self.reader.tell()
        name = self.reader.read_cstring("clip.name")
        frame_rate = self.reader.read_f32("clip.frame_rate")
        if not math.isfinite(frame_rate) or frame_rate <= 0.0:
            raise InvalidSkeletonError(
                f"Clip '{name}' has invalid frame rate {frame_rate}",
                offset=self.reader.tell() - 4, field="clip.frame_rate",
            )

        if self.version == fmt.VERSION_1:
            key_type = fmt.KEY_TRS
        else:
            key_type = self.reader.read_u32("clip.key_type")
            if key_type not in fmt.KEY_PAYLOAD_SIZES:
                raise UnsupportedKeyTypeError(name, key_type, offset=self.reader.tell() - 4)
        key_size = 4 + fmt.KEY_PAYLOAD_SIZES[key_type]

        track_count = self.reader.read_u32("clip.track_count")
        if track_count == 0:
            raise InvalidSkeletonError(f"Clip '{name}' has no tracks", offset=clip_offset, field="clip.track_count")

        tracks = []
        seen = set()
        for _ in range(track_count):
            track_offset = self.reader.tell()
            bone_index = self.reader.read_u32("track.bone_index")
            if bone_index >= self.bone_count:
                raise InvalidSkeletonError(
                    f"Clip '{name}' has a track for unknown bone {bone_index}",
                    offset=track_offset, field="track.bone_index",
                )
            if bone_index in seen:
                raise DuplicateTrackError(name, bone_index, offset=track_offset)
            seen.add(bone_index)

            key_count = self.reader.read_u32("track.key_count")
            if key_count == 0:
                raise InvalidSkeletonError(
                    f"Clip '{name}' track for bone {bone_index} has no keyframes",
                    offset=track_offset + 4, field="track.key_count",
                )
            self._require_table(key_count, key_size, "track.keys")

            keyframes = []
            previous = None
            for _ in range(key_count):
                key_offset = self.reader.tell()
                time = self.reader.read_f32("key.time")
                if not math.isfinite(time) or time < 0.0 or (previous is not None and time <= previous):
                    raise NonMonotonicKeyframesError(name, bone_index, time, offset=key_offset)
                previous = time
                keyframes.append(Keyframe(time=time, transform=self._read_key(key_type)))

            tracks.append(AnimationTrack(bone_index=bone_index, keyframes=keyframes))

        logger.debug(
            "Clip '%s': %d tracks, %s keys at %g fps",
            name, len(tracks), fmt.KEY_TYPE_NAMES[key_type], frame_rate,
        )
        return AnimationClip(name=name, frame_rate=frame_rate, tracks=tracks)

    def _read_vectors(self, mesh_name, count, field):
        self._require_table(count, 12, field)
        vectors = []
        for vertex_index in range(count):
            offset = self.reader.tell()
            vector = self.reader.read_floats(3, field)
            if not all(math.isfinite(v) for v in vector):
                raise InvalidMeshError(
                    f"Mesh '{mesh_name}' vertex {vertex_index} has non-finite {field}: {vector}",
                    offset=offset, field=field,
                )
            vectors.append(vector)
        return vectors

    def _read_mesh(self) -> Optional[MeshData]:
        if self.reader.remaining() == 0:
            return None

        flags = self.reader.read_u32("mesh.flags")
        if not flags & fmt.MESH_PRESENT:
            return None

        name = self.reader.read_cstring("mesh.name") or "Mesh"
        vertex_count = self.reader.read_u32("mesh.vertex_count")
        index_count_offset = self.reader.tell()
        index_count = self.reader.read_u32("mesh.index_count")
        if index_count % 3 != 0:
            raise InvalidMeshError(
                f"Mesh '{name}' index count {index_count} is not a multiple of 3",
                offset=index_count_offset, field="mesh.index_count",
            )

        positions = self._read_vectors(name, vertex_count, "mesh.positions")

        normals = None
        if flags & fmt.MESH_HAS_NORMALS:
            normals = self._read_vectors(name, vertex_count, "mesh.normals")

        self._require_table(index_count, 4, "mesh.indices")
        indices = []
        for _ in range(index_count):
            offset = self.reader.tell()
            index = self.reader.read_u32("mesh.indices")
            if index >= vertex_count:
                raise InvalidMeshError(
                    f"Mesh '{name}' index {index} out of range (vertex count {vertex_count})",
                    offset=offset, field="mesh.indices",
                )
            indices.append(index)

        influence_size = fmt.INFLUENCES_PER_VERTEX * 5
        self._require_table(vertex_count, influence_size, "mesh.influences")
        influences = []
        for vertex_index in range(vertex_count):
            offset = self.reader.tell()
            bone_indices = tuple(self.reader.read_u8("mesh.bone_indices") for _ in range(fmt.INFLUENCES_PER_VERTEX))
            weights = self.reader.read_floats(fmt.INFLUENCES_PER_VERTEX, "mesh.weights")

            if not all(math.isfinite(w) and w >= 0.0 for w in weights):
                raise InvalidWeightsError(vertex_index, f"weights must be finite and >= 0, got {weights}", offset=offset)
            total = sum(weights)
            if abs(total - 1.0) > WEIGHT_TOLERANCE:
                raise InvalidWeightsError(vertex_index, f"weights sum to {total:.6f}, expected 1.0", offset=offset)
            for bone_index, weight in zip(bone_indices, weights):
                if weight > 0.0 and bone_index >= self.bone_count:
                    raise InvalidWeightsError(vertex_index, f"references unknown bone {bone_index}", offset=offset)
            influences.append(VertexInfluence(bone_indices=bone_indices, weights=weights))

        logger.debug("Mesh '%s': %d vertices, %d triangles", name, vertex_count, index_count // 3)
        return MeshData(name=name, positions=positions, indices=indices, normals=normals, influences=influences)


def decode(data: bytes, name: str = "Skeleton", source_path: str = "") -> SkeletalAsset:
    """Decode a .lab byte buffer into a validated SkeletalAsset

    Pure function of the bytes: no I/O, no shared state.

    Args:
        data: Complete .lab file contents
        name: Asset name recorded in the metadata
        source_path: Source path recorded in the metadata

    Returns:
        SkeletalAsset: Validated asset in the source coordinate convention

    Raises:
        DecodeError: Subclass describing the first problem found
    """
    return LabDecoder(data, name=name, source_path=source_path).decode()


class LabReader(BaseReader):
    """Reader for .lab skeletal animation files"""

    def get_format_name(self):
        return "LAB"

    def decode(self, data):
        asset = decode(
            data,
            name=self.file_path.stem or "Skeleton",
            source_path=str(self.file_path),
        )
        self.log(
            f"  Decoded {len(asset.bones)} bones, {len(asset.dummies)} dummies, "
            f"{len(asset.clips)} clip(s){', 1 mesh' if asset.mesh is not None else ''}"
        )
        return asset
