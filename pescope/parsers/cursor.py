"""
Byte Cursor
============

Random-access little-endian reader over a fixed-size, seekable byte
source.  Every decoder in :mod:`pescope.parsers` reads through a
:class:`ByteCursor`, so the same code runs against real files and
synthetic in-memory buffers.

Reads that would run past the end of the source raise
:class:`~pescope.core.exceptions.TruncatedDataError` instead of returning
short data.
"""

from __future__ import annotations

import io
import os
import struct
from contextlib import contextmanager
from typing import BinaryIO, Iterator

from pescope.core.exceptions import TruncatedDataError


#: Upper bound on any null-terminated string read.
MAX_STRING_LENGTH: int = 512

_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")


class ByteCursor:
    """Seekable little-endian reader.

    The cursor does not own *stream*; whoever opened it closes it.

    Usage::

        with open(path, "rb") as fh:
            cursor = ByteCursor(fh)
            cursor.seek(0x3C)
            pe_offset = cursor.read_u32()
    """

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self._size = stream.seek(0, os.SEEK_END)
        stream.seek(0, os.SEEK_SET)

    @classmethod
    def from_bytes(cls, data: bytes) -> ByteCursor:
        return cls(io.BytesIO(data))

    # ------------------------------------------------------------------ #
    #  Positioning
    # ------------------------------------------------------------------ #

    @property
    def size(self) -> int:
        return self._size

    def tell(self) -> int:
        return self._stream.tell()

    def seek(self, offset: int) -> None:
        """Move to absolute *offset*.

        Raises:
            TruncatedDataError: If *offset* lies outside ``[0, size]``.
        """
        if offset < 0 or offset > self._size:
            raise TruncatedDataError(offset, 0, max(self._size - max(offset, 0), 0))
        self._stream.seek(offset, os.SEEK_SET)

    @contextmanager
    def preserved_position(self) -> Iterator[ByteCursor]:
        """Restore the current position when the block exits.

        Used for nested seeks (string tables, lookup tables) that must not
        disturb an outer sequential scan.
        """
        saved = self._stream.tell()
        try:
            yield self
        finally:
            self._stream.seek(saved, os.SEEK_SET)

    # ------------------------------------------------------------------ #
    #  Fixed-width reads
    # ------------------------------------------------------------------ #

    def read_bytes(self, count: int) -> bytes:
        offset = self._stream.tell()
        data = self._stream.read(count)
        if len(data) != count:
            raise TruncatedDataError(offset, count, len(data))
        return data

    def read_u16(self) -> int:
        return _U16.unpack(self.read_bytes(2))[0]

    def read_u32(self) -> int:
        return _U32.unpack(self.read_bytes(4))[0]

    def read_u64(self) -> int:
        return _U64.unpack(self.read_bytes(8))[0]

    def read_struct(self, fmt: str) -> tuple[int, ...]:
        """Read and unpack one little-endian :mod:`struct` record."""
        layout = struct.Struct("<" + fmt.lstrip("<"))
        return layout.unpack(self.read_bytes(layout.size))

    def read_array(self, code: str, count: int) -> tuple[int, ...]:
        """Read *count* consecutive values of the struct type *code*."""
        if count <= 0:
            return ()
        layout = struct.Struct(f"<{count}{code}")
        return layout.unpack(self.read_bytes(layout.size))

    # ------------------------------------------------------------------ #
    #  Strings
    # ------------------------------------------------------------------ #

    def read_cstring(self, max_length: int = MAX_STRING_LENGTH) -> str:
        """Read a null-terminated ASCII string of at most *max_length* bytes.

        The read stops at the terminator, at the cap, or at end of data,
        whichever comes first.  Non-ASCII bytes decode as U+FFFD.
        """
        offset = self._stream.tell()
        chunk = self._stream.read(max_length)
        end = chunk.find(b"\x00")
        if end == -1:
            raw = chunk
            self._stream.seek(offset + len(chunk), os.SEEK_SET)
        else:
            raw = chunk[:end]
            self._stream.seek(offset + end + 1, os.SEEK_SET)
        return raw.decode("ascii", errors="replace")
