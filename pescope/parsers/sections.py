"""
Section Table Decoder and RVA Translation
==========================================

Each ``IMAGE_SECTION_HEADER`` is a fixed 40-byte record::

    0   Name[8]               ASCII, NUL-padded
    8   VirtualSize
    12  VirtualAddress
    16  SizeOfRawData
    20  PointerToRawData
    24  relocation / line-number pointers, counts, characteristics (unused)

Sections are kept in file order.  Overlap and ordering are not verified;
:func:`rva_to_file_offset` simply takes the first section that contains
the address.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from pescope.core.exceptions import UnresolvedRvaError
from pescope.parsers.cursor import MAX_STRING_LENGTH, ByteCursor


SECTION_HEADER_SIZE: int = 40
_SECTION_UNUSED_BYTES: int = 16

#: Returned by :func:`rva_to_file_offset` when no section contains the RVA.
UNRESOLVED: int = 0


@dataclass(frozen=True, slots=True)
class SectionDescriptor:
    """Location of one section in memory and on disk."""

    name: str
    virtual_address: int
    virtual_size: int
    file_pointer: int
    file_size: int

    def contains(self, rva: int) -> bool:
        return self.virtual_address <= rva < self.virtual_address + self.virtual_size


def read_section_table(
    cursor: ByteCursor, offset: int, count: int
) -> tuple[SectionDescriptor, ...]:
    """Read *count* section headers starting at file *offset*."""
    sections: list[SectionDescriptor] = []
    for index in range(count):
        cursor.seek(offset + index * SECTION_HEADER_SIZE)
        raw_name = cursor.read_bytes(8)
        virtual_size, virtual_address, size_of_raw_data, pointer_to_raw_data = (
            cursor.read_struct("IIII")
        )
        cursor.read_bytes(_SECTION_UNUSED_BYTES)
        sections.append(SectionDescriptor(
            name=raw_name.decode("ascii", errors="replace").rstrip("\x00"),
            virtual_address=virtual_address,
            virtual_size=virtual_size,
            file_pointer=pointer_to_raw_data,
            file_size=size_of_raw_data,
        ))
    return tuple(sections)


def rva_to_file_offset(rva: int, sections: Sequence[SectionDescriptor]) -> int:
    """Translate a Relative Virtual Address to a file offset.

    Args:
        rva: Relative Virtual Address.
        sections: Section table in file order.

    Returns:
        ``rva - virtual_address + file_pointer`` for the first section
        whose ``[virtual_address, virtual_address + virtual_size)`` range
        contains *rva*, otherwise :data:`UNRESOLVED`.
    """
    for section in sections:
        if section.contains(rva):
            return rva - section.virtual_address + section.file_pointer
    return UNRESOLVED


def require_file_offset(
    rva: int, sections: Sequence[SectionDescriptor], what: str
) -> int:
    """Like :func:`rva_to_file_offset` but raise when the RVA is unmapped.

    Raises:
        UnresolvedRvaError: If no section contains *rva*.
    """
    offset = rva_to_file_offset(rva, sections)
    if offset == UNRESOLVED:
        raise UnresolvedRvaError(what, rva)
    return offset


def read_string_at_rva(
    cursor: ByteCursor,
    rva: int,
    sections: Sequence[SectionDescriptor],
    max_length: int = MAX_STRING_LENGTH,
) -> str:
    """Read a capped null-terminated string at *rva*.

    Returns an empty string when the RVA is unmapped or its file offset
    lies past the end of the data.  The cursor position is left unchanged.
    """
    offset = rva_to_file_offset(rva, sections)
    if offset == UNRESOLVED or offset >= cursor.size:
        return ""
    with cursor.preserved_position():
        cursor.seek(offset)
        return cursor.read_cstring(max_length)
