#!/usr/bin/env python3
"""
Errors Module
Exception hierarchy shared by the reader, skeleton model, exporter and
orchestrator.

Every reader/decoder error is recoverable and carries enough context (byte
offset, field name, bone/clip/track index) to point at the offending record
of a malformed file. SerializationInternalError is the only fatal kind: it
means the exporter was handed an asset that should never have validated.
"""

from enum import Enum
from typing import Optional


class LabError(Exception):
    """Base class for every error raised while converting a .lab asset"""


class DecodeError(LabError):
    """A .lab byte stream could not be turned into a valid SkeletalAsset

    Attributes:
        offset: Byte offset the problem was detected at (None if unknown)
        field: Name of the field being decoded (None if unknown)
    """

    def __init__(self, message: str, offset: Optional[int] = None, field: Optional[str] = None):
        self.message = message
        self.offset = offset
        self.field = field
        super().__init__(self._format())

    def _format(self) -> str:
        context = []
        if self.field:
            context.append(f"field '{self.field}'")
        if self.offset is not None:
            context.append(f"offset {self.offset} (0x{self.offset:X})")
        if context:
            return f"{self.message} [{', '.join(context)}]"
        return self.message

    def with_context(self, offset: Optional[int] = None, field: Optional[str] = None):
        """Fill in location details that were unknown where the error was raised"""
        if self.offset is None:
            self.offset = offset
        if self.field is None:
            self.field = field
        self.args = (self._format(),)
        return self


# === Binary reader level ===

class ReaderError(DecodeError):
    """Low-level byte access failure"""


class TruncatedInputError(ReaderError):
    """Fewer bytes remain than a read requested"""

    def __init__(self, requested: int, available: int, offset: int, field: Optional[str] = None):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Truncated input: requested {requested} byte(s), {available} available",
            offset=offset,
            field=field,
        )


class OffsetOutOfRangeError(ReaderError):
    """A seek target lies outside the buffer"""

    def __init__(self, offset: int, length: int):
        self.length = length
        super().__init__(f"Offset {offset} is outside the buffer (length {length})", offset=offset)


# === Decoder level ===

class BadMagicError(DecodeError):
    def __init__(self, found: bytes, expected: bytes):
        self.found = found
        self.expected = expected
        super().__init__(f"Bad magic signature {found!r}, expected {expected!r}", offset=0, field="magic")


class UnsupportedVersionError(DecodeError):
    def __init__(self, version: int, supported):
        self.version = version
        self.supported = tuple(supported)
        supported_str = ", ".join(f"0x{v:04X}" for v in self.supported)
        super().__init__(
            f"Unsupported format version 0x{version:04X} (supported: {supported_str})",
            offset=4,
            field="version",
        )


class UnsupportedKeyTypeError(DecodeError):
    def __init__(self, clip: str, key_type: int, offset: Optional[int] = None):
        self.clip = clip
        self.key_type = key_type
        super().__init__(f"Clip '{clip}' uses unknown key type {key_type}", offset=offset, field="key_type")


# === Skeleton invariants ===

class ValidationError(DecodeError):
    """A decoded value violates a SkeletalAsset invariant"""


class InvalidBoneHierarchyError(ValidationError):
    def __init__(self, bone_index: int, parent_index: Optional[int], reason: str = "", offset: Optional[int] = None):
        self.bone_index = bone_index
        self.parent_index = parent_index
        reason = reason or "parent index must be strictly lower than the bone index"
        super().__init__(
            f"Invalid bone hierarchy at bone {bone_index} (parent {parent_index}): {reason}",
            offset=offset,
            field="parent_id",
        )


class NonMonotonicKeyframesError(ValidationError):
    def __init__(self, clip: Optional[str], bone_index: int, time: float, offset: Optional[int] = None):
        self.clip = clip
        self.bone_index = bone_index
        self.time = time
        where = f"clip '{clip}', " if clip is not None else ""
        super().__init__(
            f"Keyframe times must be >= 0 and strictly increasing ({where}bone {bone_index}, time {time:g})",
            offset=offset,
            field="time",
        )


class DuplicateTrackError(ValidationError):
    def __init__(self, clip: str, bone_index: int, offset: Optional[int] = None):
        self.clip = clip
        self.bone_index = bone_index
        super().__init__(
            f"Clip '{clip}' has more than one track for bone {bone_index}",
            offset=offset,
            field="bone_index",
        )


class InvalidWeightsError(ValidationError):
    def __init__(self, vertex_index: int, reason: str, offset: Optional[int] = None):
        self.vertex_index = vertex_index
        super().__init__(f"Invalid skin weights at vertex {vertex_index}: {reason}", offset=offset, field="weights")


class InvalidTransformError(ValidationError):
    """Non-normalized rotation, non-positive scale or non-finite component"""


class InvalidMeshError(ValidationError):
    """Mesh indices or attribute arrays are inconsistent"""


class InvalidSkeletonError(ValidationError):
    """Any other structural invariant (index gaps, unknown bones, empty clips...)"""


# === Exporter level ===

class SerializationInternalError(LabError):
    """The exporter met an inconsistency a validated asset cannot contain"""


# === Orchestrator level ===

class ConversionStage(Enum):
    """Pipeline stage a ConversionError originated from"""
    READ = "read"
    DECODE = "decode"
    CONVERT = "convert"
    BUILD = "build"
    WRITE = "write"


class ConversionError(LabError):
    """A conversion failed as a whole; wraps the originating stage error

    Attributes:
        stage: ConversionStage that failed
        source: Input file path
        cause: The original exception
    """

    def __init__(self, stage: ConversionStage, source: str, cause: BaseException):
        self.stage = stage
        self.source = source
        self.cause = cause
        super().__init__(f"{stage.value} failed for {source}: {cause}")
