"""
PE Header Decoder
==================

Validates the DOS and PE signatures, reads the COFF file header and
discriminates PE32 from PE32+ using the optional-header magic.  Only the
two data directories PEScope needs (export and import) are read from the
optional header; every other optional-header field is skipped.

Layout::

    0x00        DOS header, e_magic = "MZ"
    0x3C        e_lfanew -> offset of the PE signature
    e_lfanew    "PE\\0\\0"
    +4          COFF file header (20 bytes)
    +24         optional header (SizeOfOptionalHeader bytes)
      +0          magic (0x10B PE32, 0x20B PE32+)
      +96/+112    data directories (export, import, ...)
    ...         section table

References:
    - Microsoft. (2024). PE Format. Microsoft Learn.
      https://learn.microsoft.com/en-us/windows/win32/debug/pe-format
    - Pietrek, M. (1994). Peering Inside the PE: A Tour of the Win32
      Portable Executable File Format. Microsoft Systems Journal.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple

from pescope.core.exceptions import SignatureError
from pescope.parsers.cursor import ByteCursor


# ---------------------------------------------------------------------------
# PE Constants
# ---------------------------------------------------------------------------

MZ_SIGNATURE: int = 0x5A4D          # "MZ"
PE_SIGNATURE: int = 0x00004550      # "PE\0\0"
E_LFANEW_OFFSET: int = 0x3C

PE32_MAGIC: int = 0x10B
PE32PLUS_MAGIC: int = 0x20B

IMAGE_FILE_DLL: int = 0x2000

# Offset of the data-directory array from the start of the optional header
DATA_DIRECTORY_OFFSET_PE32: int = 96
DATA_DIRECTORY_OFFSET_PE32PLUS: int = 112

# Machine types
IMAGE_FILE_MACHINE_I386: int = 0x14C
IMAGE_FILE_MACHINE_IA64: int = 0x200
IMAGE_FILE_MACHINE_AMD64: int = 0x8664
IMAGE_FILE_MACHINE_ARM: int = 0x1C0
IMAGE_FILE_MACHINE_ARMNT: int = 0x1C4
IMAGE_FILE_MACHINE_ARM64: int = 0xAA64

_MACHINE_NAMES: dict[int, str] = {
    IMAGE_FILE_MACHINE_I386: "x86 (I386)",
    IMAGE_FILE_MACHINE_IA64: "IA64",
    IMAGE_FILE_MACHINE_AMD64: "x64 (AMD64)",
    IMAGE_FILE_MACHINE_ARM: "ARM",
    IMAGE_FILE_MACHINE_ARMNT: "ARMv7 Thumb-2",
    IMAGE_FILE_MACHINE_ARM64: "ARM64",
}


def machine_label(machine: int) -> str:
    """Return the display label for a COFF machine code.

    >>> machine_label(0x8664)
    'x64 (AMD64)'
    >>> machine_label(0x5032)
    'Unknown (0x5032)'
    """
    return _MACHINE_NAMES.get(machine, f"Unknown (0x{machine:04X})")


# ---------------------------------------------------------------------------
# Parsed structures
# ---------------------------------------------------------------------------

class DataDirectory(NamedTuple):
    """An (RVA, size) entry of the optional-header data-directory array."""

    rva: int = 0
    size: int = 0

    @property
    def is_present(self) -> bool:
        return self.rva != 0 and self.size != 0


@dataclass(frozen=True, slots=True)
class PEHeaders:
    """The header fields the export/import decoders depend on."""

    machine: int
    number_of_sections: int
    size_of_optional_header: int
    characteristics: int
    is_64bit: bool
    export_directory: DataDirectory
    import_directory: DataDirectory
    section_table_offset: int

    @property
    def is_dll(self) -> bool:
        return bool(self.characteristics & IMAGE_FILE_DLL)

    @property
    def has_optional_header(self) -> bool:
        return self.size_of_optional_header != 0

    @property
    def machine_label(self) -> str:
        return machine_label(self.machine)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def read_dos_header(cursor: ByteCursor) -> int:
    """Validate ``MZ`` and return ``e_lfanew``, the PE header offset."""
    cursor.seek(0)
    magic = cursor.read_u16()
    if magic != MZ_SIGNATURE:
        raise SignatureError("DOS", MZ_SIGNATURE, magic)
    cursor.seek(E_LFANEW_OFFSET)
    return cursor.read_u32()


def read_pe_headers(cursor: ByteCursor) -> PEHeaders:
    """Decode DOS, PE and COFF headers plus the export/import directories.

    When ``SizeOfOptionalHeader`` is zero the optional header is not read
    and both directories are reported empty.

    Raises:
        SignatureError: On a bad ``MZ`` or ``PE\\0\\0`` signature.
        TruncatedDataError: If any header runs past the end of the data.
    """
    pe_offset = read_dos_header(cursor)

    cursor.seek(pe_offset)
    signature = cursor.read_u32()
    if signature != PE_SIGNATURE:
        raise SignatureError("PE", PE_SIGNATURE, signature)

    (
        machine,
        number_of_sections,
        _time_date_stamp,
        _pointer_to_symbol_table,
        _number_of_symbols,
        size_of_optional_header,
        characteristics,
    ) = cursor.read_struct("HHIIIHH")

    optional_header_start = cursor.tell()
    is_64bit = False
    export_directory = import_directory = DataDirectory()

    if size_of_optional_header:
        is_64bit = cursor.read_u16() == PE32PLUS_MAGIC
        cursor.seek(
            optional_header_start
            + (DATA_DIRECTORY_OFFSET_PE32PLUS if is_64bit else DATA_DIRECTORY_OFFSET_PE32)
        )
        export_rva, export_size, import_rva, import_size = cursor.read_struct("IIII")
        export_directory = DataDirectory(export_rva, export_size)
        import_directory = DataDirectory(import_rva, import_size)

    return PEHeaders(
        machine=machine,
        number_of_sections=number_of_sections,
        size_of_optional_header=size_of_optional_header,
        characteristics=characteristics,
        is_64bit=is_64bit,
        export_directory=export_directory,
        import_directory=import_directory,
        section_table_offset=optional_header_start + size_of_optional_header,
    )
