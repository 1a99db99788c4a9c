"""
Pytest configuration and fixtures for lab2dae tests.
"""

import math

import pytest

from core.skeleton import (
    AnimationClip,
    AnimationTrack,
    Bone,
    Keyframe,
    MeshData,
    SkeletalAsset,
    Transform,
    VertexInfluence,
)
from lab_fixtures import (
    bone,
    build_lab,
    clip,
    dummy,
    mesh,
    single_key_clip,
    three_bone_chain,
    trs_key,
)

HALF_SQRT2 = math.sqrt(0.5)


@pytest.fixture
def three_bone_lab():
    """Root, child, grandchild with identity binds and one key per bone at t=0."""
    return build_lab(three_bone_chain(), clips=[single_key_clip(3)])


@pytest.fixture
def animated_lab():
    """Two-bone arm with a two-key clip and a dummy, no mesh."""
    bones = [
        bone("Bip01", translation=(0.0, 0.0, 1.0)),
        bone("Bip01 Arm", parent=0, translation=(0.5, 0.0, 0.0),
             rotation=(HALF_SQRT2, 0.0, 0.0, HALF_SQRT2)),
    ]
    walk = clip("walk", [
        (0, [trs_key(0.0), trs_key(0.5, translation=(0.0, 1.0, 1.0))]),
        (1, [trs_key(0.0, translation=(0.5, 0.0, 0.0)),
             trs_key(0.25, translation=(0.5, 0.0, 0.0), rotation=(HALF_SQRT2, HALF_SQRT2, 0.0, 0.0))]),
    ], frame_rate=24.0)
    return build_lab(bones, clips=[walk], dummies=[dummy(7, 1, translation=(0.1, 0.0, 0.0))])


@pytest.fixture
def skinned_lab():
    """Two bones plus a weighted two-triangle quad."""
    bones = [bone("root"), bone("tip", parent=0, translation=(0.0, 0.0, 2.0))]
    quad = mesh(
        positions=[(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (1.0, 0.0, 2.0), (0.0, 0.0, 2.0)],
        indices=[0, 1, 2, 0, 2, 3],
        influences=[
            ((0, 0, 0, 0), (1.0, 0.0, 0.0, 0.0)),
            ((0, 0, 0, 0), (1.0, 0.0, 0.0, 0.0)),
            ((0, 1, 0, 0), (0.25, 0.75, 0.0, 0.0)),
            ((1, 0, 0, 0), (1.0, 0.0, 0.0, 0.0)),
        ],
    )
    return build_lab(bones, clips=[single_key_clip(2)], mesh_block=quad)


@pytest.fixture
def lab_file(tmp_path, three_bone_lab):
    """Three-bone chain buffer written to disk."""
    path = tmp_path / "chain.lab"
    path.write_bytes(three_bone_lab)
    return path


@pytest.fixture
def three_bone_asset():
    """Three-bone chain built directly from the data model."""
    bones = [
        Bone(0, "root", None),
        Bone(1, "child", 0),
        Bone(2, "grandchild", 1),
    ]
    tracks = [AnimationTrack(i, [Keyframe(0.0, Transform())]) for i in range(3)]
    return SkeletalAsset(bones=bones, clips=[AnimationClip("idle", 30.0, tracks)])


@pytest.fixture
def posed_asset():
    """Three bones with non-trivial binds, a clip and a skinned triangle."""
    bones = [
        Bone(0, "hips", None, Transform((0.0, 0.0, 1.0))),
        Bone(1, "spine", 0, Transform((0.0, 0.5, 0.2), (HALF_SQRT2, 0.0, 0.0, HALF_SQRT2), (1.0, 2.0, 1.0))),
        Bone(2, "head", 1, Transform((0.3, 0.0, 0.4), (HALF_SQRT2, HALF_SQRT2, 0.0, 0.0))),
    ]
    clip_ = AnimationClip("nod", 30.0, [
        AnimationTrack(2, [
            Keyframe(0.1, Transform((0.3, 0.0, 0.4))),
            Keyframe(0.6, Transform((0.3, 0.0, 0.4), (HALF_SQRT2, 0.0, HALF_SQRT2, 0.0))),
        ]),
    ])
    body = MeshData(
        name="Body",
        positions=[(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)],
        indices=[0, 1, 2],
        influences=[
            VertexInfluence((0, 0, 0, 0), (1.0, 0.0, 0.0, 0.0)),
            VertexInfluence((1, 2, 0, 0), (0.5, 0.5, 0.0, 0.0)),
            VertexInfluence((2, 0, 0, 0), (1.0, 0.0, 0.0, 0.0)),
        ],
    )
    return SkeletalAsset(bones=bones, clips=[clip_], mesh=body)
