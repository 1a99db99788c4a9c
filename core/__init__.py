#!/usr/bin/env python3
"""
Core Module
Format-agnostic skeletal data structures, coordinate conversion and errors.
"""

from .errors import (
    BadMagicError,
    ConversionError,
    ConversionStage,
    DecodeError,
    DuplicateTrackError,
    InvalidBoneHierarchyError,
    InvalidMeshError,
    InvalidSkeletonError,
    InvalidTransformError,
    InvalidWeightsError,
    LabError,
    NonMonotonicKeyframesError,
    OffsetOutOfRangeError,
    ReaderError,
    SerializationInternalError,
    TruncatedInputError,
    UnsupportedKeyTypeError,
    UnsupportedVersionError,
    ValidationError,
)
from .settings import INTERPOLATIONS, ConversionSettings, UpAxis
from .skeleton import (
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
from .space_converter import SpaceConverter, convert_space

__all__ = [
    # Data model
    'AnimationClip',
    'AnimationTrack',
    'AssetMetadata',
    'Bone',
    'Dummy',
    'Keyframe',
    'MeshData',
    'SkeletalAsset',
    'Transform',
    'VertexInfluence',
    # Conversion
    'ConversionSettings',
    'INTERPOLATIONS',
    'SpaceConverter',
    'UpAxis',
    'convert_space',
    # Errors
    'BadMagicError',
    'ConversionError',
    'ConversionStage',
    'DecodeError',
    'DuplicateTrackError',
    'InvalidBoneHierarchyError',
    'InvalidMeshError',
    'InvalidSkeletonError',
    'InvalidTransformError',
    'InvalidWeightsError',
    'LabError',
    'NonMonotonicKeyframesError',
    'OffsetOutOfRangeError',
    'ReaderError',
    'SerializationInternalError',
    'TruncatedInputError',
    'UnsupportedKeyTypeError',
    'UnsupportedVersionError',
    'ValidationError',
]
