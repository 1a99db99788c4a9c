#!/usr/bin/env python3
"""
COLLADA Exporter Module
Serializes a converted SkeletalAsset into a COLLADA 1.4.1 (.dae) document.

Document layout:
  asset                     authoring tool, timestamps, unit, up axis
  library_geometries        only with mesh data
  library_controllers       only with a skinned mesh
  library_animations        one <animation> per (clip, animated bone)
  library_animation_clips   one <animation_clip> per clip
  library_visual_scenes     "Armature" node holding the JOINT hierarchy
  scene                     instance of the single visual scene

The exporter trusts its input: the asset was validated by the reader and
the space converter. Any lookup that still fails is a programming error and
raises SerializationInternalError.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List

import numpy as np

from core.errors import SerializationInternalError
from core.settings import INTERPOLATIONS, UpAxis
from core.skeleton import AnimationClip, MeshData, SkeletalAsset
from core.transforms import matrix_to_list

from .base_exporter import BaseExporter
from .collada_document import ColladaDocument, sub_element
from .xml_utils import IdAllocator, floats_to_str, format_float, ints_to_str

AUTHORING_TOOL = "lab2dae"
SCENE_ID = "Scene"
ARMATURE_ID = "Armature"

IDENTITY_MATRIX = np.identity(4)


def _matrix_text(matrix) -> str:
    return floats_to_str(matrix_to_list(matrix))


def compute_vertex_normals(positions, indices) -> List[tuple]:
    """Area-weighted per-vertex normals for a triangle list

    Each face contributes its unnormalized cross product (length = 2 * area)
    to its three vertices. Vertices with no usable face get (0, 0, 1).
    """
    points = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
    triangles = np.asarray(indices, dtype=np.int64).reshape(-1, 3)
    accumulated = np.zeros_like(points)

    if len(triangles):
        v0 = points[triangles[:, 0]]
        edge1 = points[triangles[:, 1]] - v0
        edge2 = points[triangles[:, 2]] - v0
        face_normals = np.cross(edge1, edge2)
        for corner in range(3):
            np.add.at(accumulated, triangles[:, corner], face_normals)

    normals = []
    for n in accumulated:
        length = float(np.linalg.norm(n))
        if length > 1e-12:
            normals.append((float(n[0] / length), float(n[1] / length), float(n[2] / length)))
        else:
            # Fallback for isolated or degenerate vertices
            normals.append((0.0, 0.0, 1.0))
    return normals


class _DocumentBuilder:
    """Per-call state for building one document"""

    def __init__(self, asset: SkeletalAsset, interpolation: str):
        self.asset = asset
        self.interpolation = interpolation
        self.document = ColladaDocument()
        self.ids = IdAllocator(reserved=(SCENE_ID, ARMATURE_ID))

        # Joint id doubles as sid; the skin's joint Name_array uses the same strings
        self.joint_ids = [self.ids.allocate(bone.name) for bone in asset.bones]
        self.dummy_ids = {dummy.index: self.ids.allocate(dummy.name) for dummy in asset.dummies}
        self.clip_ids = [self.ids.allocate(clip.name) for clip in asset.clips]

        self.geometry_id = None
        self.controller_id = None
        self.mesh_node_id = None
        if asset.mesh is not None:
            self.geometry_id = self.ids.allocate(f"{asset.mesh.name}-mesh")
            if asset.mesh.is_skinned:
                self.controller_id = self.ids.allocate(f"{asset.mesh.name}-skin")
            self.mesh_node_id = self.ids.allocate(asset.mesh.name)

        self.animation_ids: Dict[int, List[str]] = {}

    def joint_id(self, bone_index: int) -> str:
        if not 0 <= bone_index < len(self.joint_ids):
            raise SerializationInternalError(
                f"Bone index {bone_index} does not exist (skeleton has {len(self.joint_ids)} bones)"
            )
        return self.joint_ids[bone_index]

    def build(self) -> ColladaDocument:
        root = self.document.root
        self._build_asset(root)

        mesh = self.asset.mesh
        if mesh is not None:
            self._build_geometry(sub_element(root, 'library_geometries'), mesh)
            if mesh.is_skinned:
                self._build_controller(sub_element(root, 'library_controllers'), mesh)

        if self.asset.clips:
            self._build_animations(sub_element(root, 'library_animations'))
            self._build_animation_clips(sub_element(root, 'library_animation_clips'))

        self._build_visual_scene(sub_element(root, 'library_visual_scenes'))

        scene = sub_element(root, 'scene')
        sub_element(scene, 'instance_visual_scene', url=f"#{SCENE_ID}")
        return self.document

    # === Sources ===

    def _float_source(self, parent, source_id: str, values, stride: int, params):
        values = list(values)
        source = sub_element(parent, 'source', id=source_id)
        sub_element(source, 'float_array', floats_to_str(values), id=f"{source_id}-array", count=len(values))
        self._accessor(source, source_id, len(values), stride, params)
        return source

    def _name_source(self, parent, source_id: str, names, param):
        names = list(names)
        source = sub_element(parent, 'source', id=source_id)
        sub_element(source, 'Name_array', " ".join(names), id=f"{source_id}-array", count=len(names))
        self._accessor(source, source_id, len(names), 1, [(param, 'name')])
        return source

    def _accessor(self, source, source_id: str, value_count: int, stride: int, params):
        technique = sub_element(source, 'technique_common')
        accessor = sub_element(
            technique, 'accessor',
            source=f"#{source_id}-array", count=value_count // stride, stride=stride,
        )
        for name, param_type in params:
            sub_element(accessor, 'param', name=name, type=param_type)

    # === Asset ===

    def _build_asset(self, root):
        metadata = self.asset.metadata
        asset = sub_element(root, 'asset')

        contributor = sub_element(asset, 'contributor')
        sub_element(contributor, 'authoring_tool', AUTHORING_TOOL)
        if metadata.source_path:
            sub_element(contributor, 'source_data', Path(metadata.source_path).name)

        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        sub_element(asset, 'created', timestamp)
        sub_element(asset, 'modified', timestamp)
        sub_element(asset, 'unit', name="meter", meter="1")
        sub_element(asset, 'up_axis', UpAxis(metadata.up_axis).collada_name)

    # === Geometry and skin ===

    def _build_geometry(self, library, mesh: MeshData):
        geometry = sub_element(library, 'geometry', id=self.geometry_id, name=mesh.name)
        mesh_el = sub_element(geometry, 'mesh')

        positions_id = f"{self.geometry_id}-positions"
        normals_id = f"{self.geometry_id}-normals"
        vertices_id = f"{self.geometry_id}-vertices"

        normals = mesh.normals
        if normals is None:
            normals = compute_vertex_normals(mesh.positions, mesh.indices)

        xyz = [('X', 'float'), ('Y', 'float'), ('Z', 'float')]
        self._float_source(mesh_el, positions_id, (c for p in mesh.positions for c in p), 3, xyz)
        self._float_source(mesh_el, normals_id, (c for n in normals for c in n), 3, xyz)

        vertices = sub_element(mesh_el, 'vertices', id=vertices_id)
        sub_element(vertices, 'input', semantic='POSITION', source=f"#{positions_id}")

        triangles = sub_element(mesh_el, 'triangles', count=mesh.triangle_count)
        sub_element(triangles, 'input', semantic='VERTEX', source=f"#{vertices_id}", offset=0)
        sub_element(triangles, 'input', semantic='NORMAL', source=f"#{normals_id}", offset=0)
        sub_element(triangles, 'p', ints_to_str(mesh.indices))

    def _build_controller(self, library, mesh: MeshData):
        controller = sub_element(library, 'controller', id=self.controller_id, name=f"{mesh.name}-skin")
        skin = sub_element(controller, 'skin', source=f"#{self.geometry_id}")
        sub_element(skin, 'bind_shape_matrix', _matrix_text(IDENTITY_MATRIX))

        joints_id = f"{self.controller_id}-joints"
        bind_poses_id = f"{self.controller_id}-bind_poses"
        weights_id = f"{self.controller_id}-weights"

        self._name_source(skin, joints_id, self.joint_ids, 'JOINT')

        inverse_bind = self.asset.inverse_bind_matrices()
        self._float_source(
            skin, bind_poses_id,
            (v for m in inverse_bind for v in matrix_to_list(m)),
            16, [('TRANSFORM', 'float4x4')],
        )

        weights = []
        vcount = []
        v = []
        for vertex_index, influence in enumerate(mesh.influences):
            active = influence.active()
            vcount.append(len(active))
            for bone_index, weight in active:
                if not 0 <= bone_index < len(self.joint_ids):
                    raise SerializationInternalError(
                        f"Vertex {vertex_index} is weighted to missing bone {bone_index}"
                    )
                v.extend((bone_index, len(weights)))
                weights.append(weight)
        self._float_source(skin, weights_id, weights, 1, [('WEIGHT', 'float')])

        joints = sub_element(skin, 'joints')
        sub_element(joints, 'input', semantic='JOINT', source=f"#{joints_id}")
        sub_element(joints, 'input', semantic='INV_BIND_MATRIX', source=f"#{bind_poses_id}")

        vertex_weights = sub_element(skin, 'vertex_weights', count=len(vcount))
        sub_element(vertex_weights, 'input', semantic='JOINT', source=f"#{joints_id}", offset=0)
        sub_element(vertex_weights, 'input', semantic='WEIGHT', source=f"#{weights_id}", offset=1)
        sub_element(vertex_weights, 'vcount', ints_to_str(vcount))
        sub_element(vertex_weights, 'v', ints_to_str(v))

    # === Animation ===

    def _build_animations(self, library):
        for clip_number, clip in enumerate(self.asset.clips):
            clip_id = self.clip_ids[clip_number]
            self.animation_ids[clip_number] = [
                self._build_channel(library, clip, clip_id, track)
                for track in sorted(clip.tracks, key=lambda t: t.bone_index)
            ]

    def _build_channel(self, library, clip: AnimationClip, clip_id: str, track) -> str:
        joint_id = self.joint_id(track.bone_index)
        bone_name = self.asset.bones[track.bone_index].name
        animation_id = self.ids.allocate(f"{clip_id}-{joint_id}")
        animation = sub_element(library, 'animation', id=animation_id, name=f"{clip.name}/{bone_name}")

        input_id = f"{animation_id}-input"
        output_id = f"{animation_id}-output"
        interpolation_id = f"{animation_id}-interpolation"
        sampler_id = f"{animation_id}-sampler"

        keyframes = track.keyframes
        self._float_source(animation, input_id, track.times(), 1, [('TIME', 'float')])
        self._float_source(
            animation, output_id,
            (v for key in keyframes for v in matrix_to_list(key.transform.to_matrix())),
            16, [('TRANSFORM', 'float4x4')],
        )
        self._name_source(animation, interpolation_id, [self.interpolation] * len(keyframes), 'INTERPOLATION')

        sampler = sub_element(animation, 'sampler', id=sampler_id)
        sub_element(sampler, 'input', semantic='INPUT', source=f"#{input_id}")
        sub_element(sampler, 'input', semantic='OUTPUT', source=f"#{output_id}")
        sub_element(sampler, 'input', semantic='INTERPOLATION', source=f"#{interpolation_id}")

        sub_element(animation, 'channel', source=f"#{sampler_id}", target=f"{joint_id}/transform")
        return animation_id

    def _build_animation_clips(self, library):
        for clip_number, clip in enumerate(self.asset.clips):
            clip_el = sub_element(
                library, 'animation_clip',
                id=self.clip_ids[clip_number], name=clip.name,
                start=format_float(clip.start_time), end=format_float(clip.end_time),
            )
            for animation_id in self.animation_ids.get(clip_number, []):
                sub_element(clip_el, 'instance_animation', url=f"#{animation_id}")

    # === Visual scene ===

    def _build_visual_scene(self, library):
        visual_scene = sub_element(library, 'visual_scene', id=SCENE_ID, name=SCENE_ID)
        armature = sub_element(visual_scene, 'node', id=ARMATURE_ID, name=ARMATURE_ID, type='NODE')

        # Parents precede children, so every parent element exists when needed
        elements = {}
        for bone in self.asset.bones:
            if bone.parent_index is None:
                parent = armature
            elif bone.parent_index in elements:
                parent = elements[bone.parent_index]
            else:
                raise SerializationInternalError(
                    f"Bone '{bone.name}' references parent {bone.parent_index} before it was emitted"
                )

            joint_id = self.joint_id(bone.index)
            node = sub_element(parent, 'node', id=joint_id, sid=joint_id, name=bone.name, type='JOINT')
            sub_element(node, 'matrix', _matrix_text(bone.local_bind_transform.to_matrix()), sid='transform')
            elements[bone.index] = node

            for dummy in self.asset.dummies_of(bone.index):
                dummy_id = self.dummy_ids[dummy.index]
                dummy_node = sub_element(node, 'node', id=dummy_id, sid=dummy_id, name=dummy.name, type='NODE')
                sub_element(dummy_node, 'matrix', _matrix_text(dummy.local_transform.to_matrix()), sid='transform')

        mesh = self.asset.mesh
        if mesh is not None:
            mesh_node = sub_element(visual_scene, 'node', id=self.mesh_node_id, name=mesh.name, type='NODE')
            if self.controller_id is not None:
                instance = sub_element(mesh_node, 'instance_controller', url=f"#{self.controller_id}")
                for root_bone in self.asset.roots():
                    sub_element(instance, 'skeleton', f"#{self.joint_id(root_bone.index)}")
            else:
                sub_element(mesh_node, 'instance_geometry', url=f"#{self.geometry_id}")


class ColladaExporter(BaseExporter):
    """Export a SkeletalAsset as a COLLADA 1.4.1 document

    The .lab format stores no interpolation mode; every sampler uses the
    configured interpolation (LINEAR unless overridden).
    """

    def __init__(self, progress_callback=None, interpolation="LINEAR"):
        super().__init__(progress_callback)
        interpolation = interpolation.upper()
        if interpolation not in INTERPOLATIONS:
            raise ValueError(
                f"Unsupported interpolation '{interpolation}' "
                f"(expected one of: {', '.join(INTERPOLATIONS)})"
            )
        self.interpolation = interpolation

    def get_format_name(self):
        return "COLLADA"

    def get_file_extension(self):
        return "dae"

    def build(self, asset: SkeletalAsset) -> ColladaDocument:
        """Build the in-memory document for a validated asset

        Raises:
            SerializationInternalError: If the asset is internally inconsistent
        """
        document = _DocumentBuilder(asset, self.interpolation).build()
        channels = sum(len(clip.tracks) for clip in asset.clips)
        self.log(
            f"  Built COLLADA document: {len(asset.bones)} joints, "
            f"{len(asset.clips)} clip(s), {channels} channel(s)"
        )
        return document
