#!/usr/bin/env python3
"""
Binary Reader Module
Bounds-checked little-endian cursor over an in-memory byte buffer.

Knows nothing about the .lab schema. Every read either returns a value or
raises TruncatedInputError; nothing is ever zero-filled.
"""

import struct
from typing import Optional, Tuple

from core.errors import OffsetOutOfRangeError, TruncatedInputError

_U8 = struct.Struct('<B')
_U16 = struct.Struct('<H')
_U32 = struct.Struct('<I')
_F32 = struct.Struct('<f')


class BinaryReader:
    """Cursor over a byte buffer

    Attributes:
        data: The wrapped buffer
        offset: Current cursor position (starts at 0)
    """

    def __init__(self, data: bytes):
        self.data = bytes(data)
        self.offset = 0

    @property
    def length(self) -> int:
        return len(self.data)

    def tell(self) -> int:
        return self.offset

    def remaining(self) -> int:
        return len(self.data) - self.offset

    def seek(self, offset: int) -> None:
        """Move the cursor to an absolute offset (the end of the buffer is allowed)"""
        if not 0 <= offset <= len(self.data):
            raise OffsetOutOfRangeError(offset, len(self.data))
        self.offset = offset

    def skip(self, count: int, field: Optional[str] = None) -> None:
        self._require(count, field)
        self.offset += count

    def _require(self, count: int, field: Optional[str] = None) -> None:
        if count < 0 or count > self.remaining():
            raise TruncatedInputError(count, self.remaining(), self.offset, field)

    def read_bytes(self, count: int, field: Optional[str] = None) -> bytes:
        self._require(count, field)
        start = self.offset
        self.offset += count
        return self.data[start:self.offset]

    def _unpack(self, fmt: struct.Struct, field: Optional[str]):
        self._require(fmt.size, field)
        value = fmt.unpack_from(self.data, self.offset)[0]
        self.offset += fmt.size
        return value

    def read_u8(self, field: Optional[str] = None) -> int:
        return self._unpack(_U8, field)

    def read_u16(self, field: Optional[str] = None) -> int:
        return self._unpack(_U16, field)

    def read_u32(self, field: Optional[str] = None) -> int:
        return self._unpack(_U32, field)

    def read_f32(self, field: Optional[str] = None) -> float:
        return self._unpack(_F32, field)

    def read_floats(self, count: int, field: Optional[str] = None) -> Tuple[float, ...]:
        """Read count consecutive f32 values"""
        size = 4 * count
        self._require(size, field)
        values = struct.unpack_from(f'<{count}f', self.data, self.offset)
        self.offset += size
        return values

    def read_fixed_string(self, size: int, field: Optional[str] = None) -> str:
        """Read a NUL-padded string stored in exactly size bytes"""
        raw = self.read_bytes(size, field)
        end = raw.find(b'\x00')
        if end != -1:
            raw = raw[:end]
        return raw.decode('utf-8', errors='replace')

    def read_cstring(self, field: Optional[str] = None) -> str:
        """Read a NUL-terminated string; stops at the end of the buffer if no NUL is found"""
        end = self.data.find(b'\x00', self.offset)
        if end == -1:
            raw = self.data[self.offset:]
            self.offset = len(self.data)
        else:
            raw = self.data[self.offset:end]
            self.offset = end + 1
        return raw.decode('utf-8', errors='replace')
