#!/usr/bin/env python3
"""
Space Converter Module
Reconciles the source engine's coordinate system and units with the target
convention declared in the exported COLLADA document.

The source engine is right-handed and Z-up. A single change of basis C is
applied uniformly to bind poses, attachment points, every keyframe and the
mesh, so skinning and playback stay consistent:

    translation' = unit_scale * C t
    rotation'    = q_C * q * conj(q_C)
    scale'       = |C| s          (C is a signed permutation: only reorders)
"""

import logging
from dataclasses import replace
from typing import Optional

import numpy as np

from .settings import ConversionSettings, UpAxis
from .skeleton import (
    AnimationClip,
    AnimationTrack,
    Keyframe,
    MeshData,
    SkeletalAsset,
    Transform,
)
from .transforms import matrix_to_quat, quat_conjugate, quat_multiply

logger = logging.getLogger(__name__)

SOURCE_UP_AXIS = UpAxis.Z

# Change-of-basis matrices from the source (Z-up) convention
_BASIS = {
    UpAxis.Z: np.identity(3),
    # -90 degrees about X: source +Z -> +Y, source +Y -> -Z
    UpAxis.Y: np.array([
        [1.0, 0.0, 0.0],
        [0.0, 0.0, 1.0],
        [0.0, -1.0, 0.0],
    ]),
}


class SpaceConverter:
    """Applies one change of basis and unit scale to a whole SkeletalAsset

    The converter is stateless between calls and never mutates its input:
    convert() builds a new, independently valid asset.
    """

    def __init__(self, settings: Optional[ConversionSettings] = None):
        self.settings = settings or ConversionSettings()
        self.basis = _BASIS[self.settings.up_axis]
        self.unit_scale = self.settings.unit_scale

        # Rotation part of the basis; a mirroring basis conjugates the same way as -C
        rotation_basis = self.basis if np.linalg.det(self.basis) > 0 else -self.basis
        self.basis_quat = matrix_to_quat(rotation_basis)
        self.basis_quat_conj = quat_conjugate(self.basis_quat)
        self.scale_permutation = np.abs(self.basis)

    @property
    def is_identity(self) -> bool:
        return bool(np.allclose(self.basis, np.identity(3))) and self.unit_scale == 1.0

    def convert(self, asset: SkeletalAsset) -> SkeletalAsset:
        """Return a converted copy of the asset

        Args:
            asset: Validated source asset

        Returns:
            SkeletalAsset: New asset expressed in the target convention
        """
        logger.debug(
            "Converting '%s' from %s-up to %s-up (unit scale %g, flip winding %s)",
            asset.metadata.name, SOURCE_UP_AXIS.value, self.settings.up_axis.value,
            self.unit_scale, self.settings.flip_winding,
        )

        bones = [
            replace(bone, local_bind_transform=self.convert_transform(bone.local_bind_transform))
            for bone in asset.bones
        ]
        dummies = [
            replace(dummy, local_transform=self.convert_transform(dummy.local_transform))
            for dummy in asset.dummies
        ]
        clips = [self._convert_clip(clip) for clip in asset.clips]
        mesh = self._convert_mesh(asset.mesh) if asset.mesh is not None else None
        metadata = replace(
            asset.metadata,
            up_axis=self.settings.up_axis.value,
            unit_scale=asset.metadata.unit_scale * self.unit_scale,
        )

        return SkeletalAsset(bones=bones, clips=clips, mesh=mesh, dummies=dummies, metadata=metadata)

    def convert_vector(self, v, scaled: bool = True):
        out = self.basis @ np.asarray(v, dtype=np.float64)
        if scaled:
            out = out * self.unit_scale
        return (float(out[0]), float(out[1]), float(out[2]))

    def convert_transform(self, transform: Transform) -> Transform:
        rotation = quat_multiply(quat_multiply(self.basis_quat, transform.rotation), self.basis_quat_conj)
        scale = self.scale_permutation @ np.asarray(transform.scale, dtype=np.float64)
        return Transform(
            translation=self.convert_vector(transform.translation),
            rotation=rotation,
            scale=(float(scale[0]), float(scale[1]), float(scale[2])),
        )

    def _convert_clip(self, clip: AnimationClip) -> AnimationClip:
        tracks = []
        for track in clip.tracks:
            keyframes = [
                Keyframe(time=key.time, transform=self.convert_transform(key.transform))
                for key in track.keyframes
            ]
            tracks.append(AnimationTrack(bone_index=track.bone_index, keyframes=keyframes))
        return AnimationClip(name=clip.name, frame_rate=clip.frame_rate, tracks=tracks)

    def _convert_mesh(self, mesh: MeshData) -> MeshData:
        positions = [self.convert_vector(p) for p in mesh.positions]
        normals = None
        if mesh.normals is not None:
            normals = [self.convert_vector(n, scaled=False) for n in mesh.normals]

        indices = list(mesh.indices)
        if self.settings.flip_winding:
            for i in range(0, len(indices), 3):
                indices[i + 1], indices[i + 2] = indices[i + 2], indices[i + 1]

        return MeshData(
            name=mesh.name,
            positions=positions,
            indices=indices,
            normals=normals,
            influences=mesh.influences,
        )


def convert_space(asset: SkeletalAsset, settings: Optional[ConversionSettings] = None) -> SkeletalAsset:
    """Convert an asset to the convention described by settings (defaults if None)"""
    return SpaceConverter(settings).convert(asset)
