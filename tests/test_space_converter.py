"""
Tests for coordinate/unit conversion and its settings.

The change of basis must be applied identically to bind poses, dummies,
keyframes and mesh data: a converted transform matrix equals C M C^-1.
"""

import math

import numpy as np
import pytest

from core.settings import ConversionSettings, UpAxis
from core.skeleton import Bone, Dummy, MeshData, SkeletalAsset, Transform, VertexInfluence
from core.space_converter import SpaceConverter, convert_space

HALF_SQRT2 = math.sqrt(0.5)

# Source Z-up -> Y-up basis, as a 4x4
C4 = np.array([
    [1.0, 0.0, 0.0, 0.0],
    [0.0, 0.0, 1.0, 0.0],
    [0.0, -1.0, 0.0, 0.0],
    [0.0, 0.0, 0.0, 1.0],
])


def all_transforms(asset):
    transforms = [b.local_bind_transform for b in asset.bones]
    transforms += [d.local_transform for d in asset.dummies]
    for clip in asset.clips:
        for track in clip.tracks:
            transforms += [k.transform for k in track.keyframes]
    return transforms


class TestSettings:
    """ConversionSettings defaults and validation."""

    def test_defaults(self):
        settings = ConversionSettings()
        assert settings.up_axis is UpAxis.Y
        assert settings.unit_scale == 1.0
        assert settings.flip_winding is False
        assert settings.interpolation == "LINEAR"

    def test_string_axis_and_interpolation_normalized(self):
        settings = ConversionSettings(up_axis="z", interpolation="step")
        assert settings.up_axis is UpAxis.Z
        assert settings.interpolation == "STEP"

    @pytest.mark.parametrize("unit_scale", [0.0, -1.0, float('nan'), float('inf')])
    def test_invalid_unit_scale(self, unit_scale):
        with pytest.raises(ValueError, match="unit_scale"):
            ConversionSettings(unit_scale=unit_scale)

    def test_invalid_interpolation(self):
        with pytest.raises(ValueError, match="interpolation"):
            ConversionSettings(interpolation="CUBIC")

    def test_invalid_axis(self):
        with pytest.raises(ValueError):
            ConversionSettings(up_axis="X")

    def test_collada_axis_names(self):
        assert UpAxis.Y.collada_name == "Y_UP"
        assert UpAxis.Z.collada_name == "Z_UP"


class TestIdentityConversion:
    """Z-up with unit scale 1 leaves every transform unchanged."""

    def test_round_trip_is_identity(self, posed_asset):
        settings = ConversionSettings(up_axis=UpAxis.Z, unit_scale=1.0)
        converter = SpaceConverter(settings)
        assert converter.is_identity

        converted = converter.convert(posed_asset)
        for before, after in zip(all_transforms(posed_asset), all_transforms(converted)):
            assert after.is_close(before, tolerance=1e-5)
        assert converted.mesh.positions == posed_asset.mesh.positions
        assert converted.mesh.indices == posed_asset.mesh.indices

    def test_default_is_not_identity(self):
        assert not SpaceConverter().is_identity


class TestYUpConversion:
    """Source Z-up mapped onto Y-up."""

    def test_up_translation_maps_to_y(self):
        asset = SkeletalAsset(bones=[Bone(0, "root", None, Transform((1.0, 2.0, 3.0)))])
        converted = convert_space(asset)
        assert converted.bones[0].local_bind_transform.translation == pytest.approx((1.0, 3.0, -2.0))

    def test_rotation_about_up_stays_about_up(self):
        """A yaw about source Z becomes a yaw about target Y."""
        asset = SkeletalAsset(bones=[Bone(0, "root", None, Transform(rotation=(HALF_SQRT2, 0.0, 0.0, HALF_SQRT2)))])
        rotation = convert_space(asset).bones[0].local_bind_transform
        assert rotation.is_close(Transform(rotation=(HALF_SQRT2, 0.0, HALF_SQRT2, 0.0)))

    def test_non_uniform_scale_is_permuted(self):
        asset = SkeletalAsset(bones=[Bone(0, "root", None, Transform(scale=(1.0, 2.0, 3.0)))])
        assert convert_space(asset).bones[0].local_bind_transform.scale == pytest.approx((1.0, 3.0, 2.0))

    def test_every_transform_is_conjugated_by_basis(self, posed_asset):
        """Bind poses and keyframes all satisfy M' = C M C^-1."""
        converted = convert_space(posed_asset)
        for before, after in zip(all_transforms(posed_asset), all_transforms(converted)):
            expected = C4 @ before.to_matrix() @ C4.T
            assert np.allclose(after.to_matrix(), expected, atol=1e-9)

    def test_absolute_binds_stay_consistent(self, posed_asset):
        converted = convert_space(posed_asset)
        for before, after in zip(posed_asset.absolute_bind_matrices(), converted.absolute_bind_matrices()):
            assert np.allclose(after, C4 @ before @ C4.T, atol=1e-9)

    def test_mesh_positions_and_normals(self):
        body = MeshData(
            "m",
            positions=[(0.0, 0.0, 2.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)],
            indices=[0, 1, 2],
            normals=[(0.0, 0.0, 1.0)] * 3,
            influences=[VertexInfluence((0,), (1.0,))] * 3,
        )
        asset = SkeletalAsset(bones=[Bone(0, "root", None)], mesh=body)
        converted = convert_space(asset, ConversionSettings(unit_scale=2.0))
        assert converted.mesh.positions[0] == pytest.approx((0.0, 4.0, 0.0))
        assert converted.mesh.positions[2] == pytest.approx((0.0, 0.0, -2.0))
        assert converted.mesh.normals[0] == pytest.approx((0.0, 1.0, 0.0))
        assert converted.mesh.influences == body.influences

    def test_metadata_records_target_convention(self, posed_asset):
        converted = convert_space(posed_asset, ConversionSettings(unit_scale=0.01))
        assert converted.metadata.up_axis == "Y"
        assert converted.metadata.unit_scale == pytest.approx(0.01)
        assert posed_asset.metadata.up_axis == "Z"


class TestUnitScaleAndWinding:

    def test_unit_scale_applies_to_translations_only(self):
        bind = Transform((1.0, 0.0, 0.0), scale=(2.0, 2.0, 2.0))
        asset = SkeletalAsset(
            bones=[Bone(0, "root", None, bind)],
            dummies=[Dummy(0, 0, Transform((0.0, 0.0, 5.0)))],
        )
        converted = convert_space(asset, ConversionSettings(up_axis="Z", unit_scale=0.5))
        assert converted.bones[0].local_bind_transform.translation == pytest.approx((0.5, 0.0, 0.0))
        assert converted.bones[0].local_bind_transform.scale == pytest.approx((2.0, 2.0, 2.0))
        assert converted.dummies[0].local_transform.translation == pytest.approx((0.0, 0.0, 2.5))

    def test_flip_winding(self, posed_asset):
        converted = convert_space(posed_asset, ConversionSettings(flip_winding=True))
        assert converted.mesh.indices == (0, 2, 1)

    def test_input_not_mutated(self, posed_asset):
        before = [t.translation for t in all_transforms(posed_asset)]
        converted = convert_space(posed_asset, ConversionSettings(unit_scale=3.0, flip_winding=True))
        assert converted is not posed_asset
        assert [t.translation for t in all_transforms(posed_asset)] == before
        assert posed_asset.mesh.indices == (0, 1, 2)

    def test_clip_structure_preserved(self, posed_asset):
        converted = convert_space(posed_asset)
        assert [c.name for c in converted.clips] == ["nod"]
        assert converted.clips[0].tracks[0].times() == posed_asset.clips[0].tracks[0].times()
        assert converted.clips[0].frame_rate == 30.0
