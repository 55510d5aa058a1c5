"""
PEScope Exceptions
===================

Exception hierarchy raised by the PE decoders.  Decoders raise; only the
analysis engine catches, and it never lets any of these escape its public
entry point.

    PEScopeError
    └── PEFormatError
        ├── SignatureError
        ├── TruncatedDataError
        └── UnresolvedRvaError
"""

from __future__ import annotations


class PEScopeError(Exception):
    """Base class for every PEScope error."""

    pass


class PEFormatError(PEScopeError):
    """The byte source is not a well-formed PE image."""

    pass


class SignatureError(PEFormatError):
    """A magic value (``MZ`` or ``PE\\0\\0``) did not match."""

    def __init__(self, what: str, expected: int, actual: int) -> None:
        super().__init__(
            f"Invalid {what} signature: expected 0x{expected:X}, got 0x{actual:X}"
        )
        self.what = what
        self.expected = expected
        self.actual = actual


class TruncatedDataError(PEFormatError):
    """A read or seek ran past the end of the byte source."""

    def __init__(self, offset: int, wanted: int, available: int) -> None:
        super().__init__(
            f"Truncated data at offset 0x{offset:X}: "
            f"wanted {wanted} bytes, {available} available"
        )
        self.offset = offset
        self.wanted = wanted
        self.available = available


class UnresolvedRvaError(PEFormatError):
    """An RVA inside a table does not fall within any section."""

    def __init__(self, what: str, rva: int) -> None:
        super().__init__(f"Unresolved {what} RVA 0x{rva:08X}")
        self.what = what
        self.rva = rva
