#!/usr/bin/env python3
"""
Skeleton Module
Format-agnostic data structures for skeletal animation assets.

This module defines the intermediate data structures that decouple the .lab
reader from the COLLADA exporter. The reader decodes into these structures,
the space converter produces new instances from them, and the exporter
consumes them without knowledge of the source format.

All structures are frozen. Invariants are enforced at construction and can be
re-checked with SkeletalAsset.validate().
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from .errors import (
    DuplicateTrackError,
    InvalidBoneHierarchyError,
    InvalidMeshError,
    InvalidSkeletonError,
    InvalidTransformError,
    InvalidWeightsError,
    NonMonotonicKeyframesError,
)
from .transforms import IDENTITY_QUAT, Quat, Vec3, compose_matrix, decompose_matrix, quat_norm

QUATERNION_TOLERANCE = 1e-4
WEIGHT_TOLERANCE = 1e-3
MAX_INFLUENCES = 4


def _all_finite(values) -> bool:
    return all(math.isfinite(v) for v in values)


@dataclass(frozen=True)
class Transform:
    """Local transform of a bone relative to its parent

    Attributes:
        translation: (x, y, z)
        rotation: Unit quaternion (w, x, y, z)
        scale: (sx, sy, sz), every component > 0
    """
    translation: Vec3 = (0.0, 0.0, 0.0)
    rotation: Quat = IDENTITY_QUAT
    scale: Vec3 = (1.0, 1.0, 1.0)

    def __post_init__(self):
        translation = tuple(float(v) for v in self.translation)
        rotation = tuple(float(v) for v in self.rotation)
        scale = tuple(float(v) for v in self.scale)

        if len(translation) != 3 or len(rotation) != 4 or len(scale) != 3:
            raise InvalidTransformError("Transform needs 3 translation, 4 rotation and 3 scale components")
        if not _all_finite(translation + rotation + scale):
            raise InvalidTransformError(f"Transform has non-finite components: {translation} {rotation} {scale}")
        norm = quat_norm(rotation)
        if abs(norm - 1.0) > QUATERNION_TOLERANCE:
            raise InvalidTransformError(f"Rotation quaternion {rotation} is not normalized (norm {norm:.6f})")
        if any(s <= 0.0 for s in scale):
            raise InvalidTransformError(f"Scale components must be positive, got {scale}")

        object.__setattr__(self, 'translation', translation)
        object.__setattr__(self, 'rotation', rotation)
        object.__setattr__(self, 'scale', scale)

    @classmethod
    def identity(cls) -> 'Transform':
        return cls()

    @classmethod
    def from_matrix(cls, matrix) -> 'Transform':
        """Decompose a column-vector 4x4 affine matrix into a Transform

        Raises:
            InvalidTransformError: If the basis is mirrored or degenerate
        """
        translation, rotation, scale, det = decompose_matrix(matrix)
        if det <= 0.0 or any(s <= 0.0 for s in scale):
            raise InvalidTransformError(
                f"Matrix basis is mirrored or degenerate (determinant {det:g}) "
                "and cannot be expressed as rotation and positive scale"
            )
        return cls(translation=translation, rotation=rotation, scale=scale)

    def to_matrix(self) -> np.ndarray:
        """Local-to-parent 4x4 matrix (T * R * S)"""
        return compose_matrix(self.translation, self.rotation, self.scale)

    def is_close(self, other: 'Transform', tolerance: float = 1e-5) -> bool:
        """Compare two transforms, treating q and -q as the same rotation"""
        def close(a, b):
            return all(abs(x - y) <= tolerance for x, y in zip(a, b))

        negated = tuple(-v for v in other.rotation)
        return (
            close(self.translation, other.translation)
            and close(self.scale, other.scale)
            and (close(self.rotation, other.rotation) or close(self.rotation, negated))
        )


@dataclass(frozen=True)
class Bone:
    """A joint of the skeleton

    Bones live in a flat, index-ordered sequence. parent_index always points
    at a lower index, so the hierarchy is a forest and absolute transforms
    can be computed in one forward pass.

    Attributes:
        index: Position of the bone in SkeletalAsset.bones
        name: Unique bone name
        parent_index: Index of the parent bone, None for roots
        local_bind_transform: Bind pose relative to the parent
    """
    index: int
    name: str
    parent_index: Optional[int]
    local_bind_transform: Transform = field(default_factory=Transform)

    def __post_init__(self):
        if self.index < 0:
            raise InvalidSkeletonError(f"Bone index must be >= 0, got {self.index}")
        if self.parent_index is not None and not 0 <= self.parent_index < self.index:
            raise InvalidBoneHierarchyError(self.index, self.parent_index)
        if not self.name:
            raise InvalidSkeletonError(f"Bone {self.index} has an empty name")

    @property
    def is_root(self) -> bool:
        return self.parent_index is None


@dataclass(frozen=True)
class Dummy:
    """Attachment point (weapon slot, effect anchor...) parented to a bone

    Attributes:
        index: Dummy id from the source file
        parent_bone_index: Bone the dummy is attached to
        local_transform: Transform relative to the parent bone
    """
    index: int
    parent_bone_index: int
    local_transform: Transform = field(default_factory=Transform)

    @property
    def name(self) -> str:
        return f"Dummy_{self.index}"


@dataclass(frozen=True)
class Keyframe:
    """Single animation sample

    Attributes:
        time: Time in seconds (>= 0)
        transform: Local transform of the bone at this time
    """
    time: float
    transform: Transform

    def __post_init__(self):
        object.__setattr__(self, 'time', float(self.time))


@dataclass(frozen=True)
class AnimationTrack:
    """Ordered samples for one bone within one clip

    Attributes:
        bone_index: Animated bone
        keyframes: Non-empty, strictly increasing in time
    """
    bone_index: int
    keyframes: Tuple[Keyframe, ...]

    def __post_init__(self):
        keyframes = tuple(self.keyframes)
        object.__setattr__(self, 'keyframes', keyframes)
        if not keyframes:
            raise InvalidSkeletonError(f"Track for bone {self.bone_index} has no keyframes")

        previous = None
        for key in keyframes:
            if not math.isfinite(key.time) or key.time < 0.0 or (previous is not None and key.time <= previous):
                raise NonMonotonicKeyframesError(None, self.bone_index, key.time)
            previous = key.time

    def times(self) -> List[float]:
        return [key.time for key in self.keyframes]


@dataclass(frozen=True)
class AnimationClip:
    """Named animation made of one track per animated bone

    Attributes:
        name: Clip name
        frame_rate: Sampling rate in frames per second (> 0)
        tracks: At most one track per bone_index
    """
    name: str
    frame_rate: float
    tracks: Tuple[AnimationTrack, ...]

    def __post_init__(self):
        tracks = tuple(self.tracks)
        object.__setattr__(self, 'tracks', tracks)
        if not math.isfinite(self.frame_rate) or self.frame_rate <= 0.0:
            raise InvalidSkeletonError(f"Clip '{self.name}' has invalid frame rate {self.frame_rate}")
        if not tracks:
            raise InvalidSkeletonError(f"Clip '{self.name}' has no tracks")

        seen = set()
        for track in tracks:
            if track.bone_index in seen:
                raise DuplicateTrackError(self.name, track.bone_index)
            seen.add(track.bone_index)

    def track_for(self, bone_index: int) -> Optional[AnimationTrack]:
        for track in self.tracks:
            if track.bone_index == bone_index:
                return track
        return None

    @property
    def start_time(self) -> float:
        return min(track.keyframes[0].time for track in self.tracks)

    @property
    def end_time(self) -> float:
        return max(track.keyframes[-1].time for track in self.tracks)

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def frame_count(self) -> int:
        """Number of frames spanned by the clip at its frame rate"""
        return int(round(self.duration * self.frame_rate)) + 1


@dataclass(frozen=True)
class VertexInfluence:
    """Bone weights of a single vertex

    Attributes:
        bone_indices: Up to 4 bone indices
        weights: Matching weights, summing to 1.0 within WEIGHT_TOLERANCE
    """
    bone_indices: Tuple[int, ...]
    weights: Tuple[float, ...]

    def active(self) -> List[Tuple[int, float]]:
        """(bone_index, weight) pairs with a non-zero weight"""
        return [(b, w) for b, w in zip(self.bone_indices, self.weights) if w > 0.0]


@dataclass(frozen=True)
class MeshData:
    """Optional skinned triangle mesh

    Population is best-effort: a .lab animation file usually carries none.

    Attributes:
        name: Mesh name
        positions: Vertex positions
        indices: Flat triangle list (3 indices per triangle)
        normals: Per-vertex normals, None if the source had none
        influences: Per-vertex bone weights (empty for an unskinned mesh)
    """
    name: str
    positions: Tuple[Vec3, ...]
    indices: Tuple[int, ...]
    normals: Optional[Tuple[Vec3, ...]] = None
    influences: Tuple[VertexInfluence, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'positions', tuple(tuple(float(v) for v in p) for p in self.positions))
        object.__setattr__(self, 'indices', tuple(int(i) for i in self.indices))
        if self.normals is not None:
            object.__setattr__(self, 'normals', tuple(tuple(float(v) for v in n) for n in self.normals))
        object.__setattr__(self, 'influences', tuple(self.influences))

        vertex_count = len(self.positions)
        for vertex_index, position in enumerate(self.positions):
            if len(position) != 3 or not _all_finite(position):
                raise InvalidMeshError(f"Mesh '{self.name}' vertex {vertex_index} has invalid position {position}")
        for vertex_index, normal in enumerate(self.normals or ()):
            if len(normal) != 3 or not _all_finite(normal):
                raise InvalidMeshError(f"Mesh '{self.name}' vertex {vertex_index} has invalid normal {normal}")
        if len(self.indices) % 3 != 0:
            raise InvalidMeshError(f"Mesh '{self.name}' index count {len(self.indices)} is not a multiple of 3")
        for i in self.indices:
            if not 0 <= i < vertex_count:
                raise InvalidMeshError(f"Mesh '{self.name}' index {i} out of range (vertex count {vertex_count})")
        if self.normals is not None and len(self.normals) != vertex_count:
            raise InvalidMeshError(f"Mesh '{self.name}' has {len(self.normals)} normals for {vertex_count} vertices")
        if self.influences and len(self.influences) != vertex_count:
            raise InvalidMeshError(
                f"Mesh '{self.name}' has {len(self.influences)} influences for {vertex_count} vertices"
            )

        for vertex_index, influence in enumerate(self.influences):
            if len(influence.bone_indices) != len(influence.weights) or len(influence.weights) > MAX_INFLUENCES:
                raise InvalidWeightsError(vertex_index, f"expected up to {MAX_INFLUENCES} index/weight pairs")
            if not _all_finite(influence.weights) or any(w < 0.0 for w in influence.weights):
                raise InvalidWeightsError(vertex_index, f"weights must be finite and >= 0, got {influence.weights}")
            total = sum(influence.weights)
            if abs(total - 1.0) > WEIGHT_TOLERANCE:
                raise InvalidWeightsError(vertex_index, f"weights sum to {total:.6f}, expected 1.0")

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3

    @property
    def is_skinned(self) -> bool:
        return bool(self.influences)


@dataclass(frozen=True)
class AssetMetadata:
    """Asset-level information

    Attributes:
        name: Asset name (usually the source file stem)
        source_path: Absolute path of the source file, empty for in-memory data
        format_version: .lab version the asset was decoded from
        up_axis: Up axis of the coordinate system the transforms are expressed in
        unit_scale: Scale already applied to distances relative to the source
    """
    name: str = "Skeleton"
    source_path: str = ""
    format_version: int = 0
    up_axis: str = "Z"
    unit_scale: float = 1.0


@dataclass(frozen=True)
class SkeletalAsset:
    """Complete skeletal asset: bones, clips, attachment points and optional mesh

    Attributes:
        bones: Bones ordered by index (bones[i].index == i)
        clips: Animation clips
        mesh: Optional skinned mesh
        dummies: Attachment points
        metadata: Asset-level information
    """
    bones: Tuple[Bone, ...]
    clips: Tuple[AnimationClip, ...] = ()
    mesh: Optional[MeshData] = None
    dummies: Tuple[Dummy, ...] = ()
    metadata: AssetMetadata = field(default_factory=AssetMetadata)

    def __post_init__(self):
        object.__setattr__(self, 'bones', tuple(self.bones))
        object.__setattr__(self, 'clips', tuple(self.clips))
        object.__setattr__(self, 'dummies', tuple(self.dummies))
        self.validate()

    def validate(self):
        """Check every cross-structure invariant

        Raises:
            ValidationError: Subclass describing the first violation found
        """
        names = set()
        for position, bone in enumerate(self.bones):
            if bone.index != position:
                raise InvalidSkeletonError(f"Bone '{bone.name}' has index {bone.index} at position {position}")
            if bone.parent_index is not None and not 0 <= bone.parent_index < bone.index:
                raise InvalidBoneHierarchyError(bone.index, bone.parent_index)
            if bone.name in names:
                raise InvalidSkeletonError(f"Duplicate bone name '{bone.name}'")
            names.add(bone.name)

        bone_count = len(self.bones)
        for clip in self.clips:
            if not clip.tracks:
                raise InvalidSkeletonError(f"Clip '{clip.name}' has no tracks")
            seen = set()
            for track in clip.tracks:
                if not 0 <= track.bone_index < bone_count:
                    raise InvalidSkeletonError(
                        f"Clip '{clip.name}' has a track for unknown bone {track.bone_index}"
                    )
                if track.bone_index in seen:
                    raise DuplicateTrackError(clip.name, track.bone_index)
                seen.add(track.bone_index)

        dummy_ids = set()
        for dummy in self.dummies:
            if not 0 <= dummy.parent_bone_index < bone_count:
                raise InvalidSkeletonError(
                    f"Dummy {dummy.index} is attached to unknown bone {dummy.parent_bone_index}"
                )
            if dummy.index in dummy_ids:
                raise InvalidSkeletonError(f"Duplicate dummy id {dummy.index}")
            dummy_ids.add(dummy.index)

        if self.mesh is not None:
            for vertex_index, influence in enumerate(self.mesh.influences):
                for bone_index, _ in influence.active():
                    if not 0 <= bone_index < bone_count:
                        raise InvalidWeightsError(vertex_index, f"references unknown bone {bone_index}")

    # === Lookups ===

    def bone_by_name(self, name: str) -> Optional[Bone]:
        """Find bone by name

        Args:
            name: Bone name to find

        Returns:
            Bone if found, None otherwise
        """
        for bone in self.bones:
            if bone.name == name:
                return bone
        return None

    def clip_by_name(self, name: str) -> Optional[AnimationClip]:
        for clip in self.clips:
            if clip.name == name:
                return clip
        return None

    def roots(self) -> List[Bone]:
        return [bone for bone in self.bones if bone.parent_index is None]

    def children_of(self, index: int) -> List[Bone]:
        return [bone for bone in self.bones if bone.parent_index == index]

    def dummies_of(self, bone_index: int) -> List[Dummy]:
        return [dummy for dummy in self.dummies if dummy.parent_bone_index == bone_index]

    # === Derived transforms ===

    def absolute_bind_matrices(self) -> List[np.ndarray]:
        """Model-space bind matrix of every bone

        Single forward pass: parents always precede their children.
        """
        absolute: List[np.ndarray] = []
        for bone in self.bones:
            local = bone.local_bind_transform.to_matrix()
            if bone.parent_index is None:
                absolute.append(local)
            else:
                absolute.append(absolute[bone.parent_index] @ local)
        return absolute

    def inverse_bind_matrices(self) -> List[np.ndarray]:
        """Inverse of every absolute bind matrix (model space -> bone space)"""
        return [np.linalg.inv(m) for m in self.absolute_bind_matrices()]

    def summary(self) -> Dict[str, object]:
        """Counts used for progress logging and --info output"""
        return {
            'name': self.metadata.name,
            'version': self.metadata.format_version,
            'bones': len(self.bones),
            'roots': len(self.roots()),
            'dummies': len(self.dummies),
            'clips': [
                {
                    'name': clip.name,
                    'frame_rate': clip.frame_rate,
                    'tracks': len(clip.tracks),
                    'frames': clip.frame_count,
                    'duration': clip.duration,
                }
                for clip in self.clips
            ],
            'mesh': None if self.mesh is None else {
                'name': self.mesh.name,
                'vertices': self.mesh.vertex_count,
                'triangles': self.mesh.triangle_count,
                'skinned': self.mesh.is_skinned,
            },
        }
