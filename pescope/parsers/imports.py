"""
Import Directory Decoder
=========================

The import directory is an array of 20-byte ``IMAGE_IMPORT_DESCRIPTOR``
records terminated by an all-zero record::

    0   OriginalFirstThunk      RVA of the import lookup table (ILT)
    4   TimeDateStamp
    8   ForwarderChain
    12  Name                    RVA of the DLL name
    16  FirstThunk              RVA of the import address table (IAT)

Each lookup table is a zero-terminated array of thunks, 4 bytes wide in
PE32 and 8 bytes wide in PE32+.  A thunk with its top bit set imports by
ordinal (low 16 bits); otherwise its low 31/63 bits are the RVA of an
``IMAGE_IMPORT_BY_NAME`` entry: a 2-byte hint followed by the name.

Bound images may carry a zero ``OriginalFirstThunk``; the IAT then holds
the same thunks and is walked instead.

References:
    - Microsoft. (2024). PE Format, "The .idata Section". Microsoft Learn.
    - Pietrek, M. (2002). An In-Depth Look into the Win32 Portable
      Executable File Format, Part 2. MSDN Magazine.
"""

from __future__ import annotations

from typing import Iterator, NamedTuple, Sequence

from shared.logger import ScopeLogger

from pescope.core.models import ImportedFunction, ImportedModule
from pescope.parsers.cursor import MAX_STRING_LENGTH, ByteCursor
from pescope.parsers.headers import DataDirectory
from pescope.parsers.sections import (
    UNRESOLVED,
    SectionDescriptor,
    read_string_at_rva,
    require_file_offset,
    rva_to_file_offset,
)


IMPORT_DESCRIPTOR_FORMAT: str = "IIIII"

ORDINAL_FLAG_32: int = 0x80000000
ORDINAL_FLAG_64: int = 0x8000000000000000
ORDINAL_MASK: int = 0xFFFF

logger = ScopeLogger("parsers.imports", log_level="WARNING")


class ImportDescriptor(NamedTuple):
    """Raw ``IMAGE_IMPORT_DESCRIPTOR`` fields."""

    lookup_table_rva: int
    time_date_stamp: int
    forwarder_chain: int
    name_rva: int
    address_table_rva: int

    @property
    def is_terminator(self) -> bool:
        return self.lookup_table_rva == 0 and self.name_rva == 0

    @property
    def thunk_rva(self) -> int:
        """ILT RVA, falling back to the IAT when the ILT is omitted."""
        return self.lookup_table_rva or self.address_table_rva


def decode_thunk(
    entry: int,
    is_64bit: bool,
    cursor: ByteCursor,
    sections: Sequence[SectionDescriptor],
    max_string_length: int = MAX_STRING_LENGTH,
) -> ImportedFunction | None:
    """Turn one lookup-table entry into an :class:`ImportedFunction`.

    The ordinal/name decision is made here, once, from the entry's top
    bit.  Returns ``None`` when a by-name entry points outside every
    section or past the end of the data.
    """
    ordinal_flag = ORDINAL_FLAG_64 if is_64bit else ORDINAL_FLAG_32
    if entry & ordinal_flag:
        return ImportedFunction.by_ordinal(entry & ORDINAL_MASK)

    hint_name_offset = rva_to_file_offset(entry & (ordinal_flag - 1), sections)
    if hint_name_offset == UNRESOLVED or hint_name_offset + 2 > cursor.size:
        return None
    with cursor.preserved_position():
        cursor.seek(hint_name_offset)
        hint = cursor.read_u16()
        name = cursor.read_cstring(max_string_length)
    return ImportedFunction.by_name(name, hint)


def read_thunk_table(
    cursor: ByteCursor,
    sections: Sequence[SectionDescriptor],
    rva: int,
    is_64bit: bool,
    *,
    max_functions: int = 65_536,
    max_string_length: int = MAX_STRING_LENGTH,
    log: ScopeLogger | None = None,
) -> tuple[ImportedFunction, ...]:
    """Walk one zero-terminated lookup table.

    A table that is unmapped or starts past the end of the data yields no
    functions.  The caller's cursor position is preserved.
    """
    log = log or logger
    table_offset = rva_to_file_offset(rva, sections)
    if table_offset == UNRESOLVED or table_offset >= cursor.size:
        return ()

    read_entry = cursor.read_u64 if is_64bit else cursor.read_u32
    functions: list[ImportedFunction] = []
    with cursor.preserved_position():
        cursor.seek(table_offset)
        while True:
            entry = read_entry()
            if entry == 0:
                break
            if len(functions) >= max_functions:
                log.warning(
                    "Import lookup table at RVA 0x%08X capped at %d entries", rva, max_functions
                )
                break
            function = decode_thunk(entry, is_64bit, cursor, sections, max_string_length)
            if function is not None:
                functions.append(function)
    return tuple(functions)


def iter_imports(
    cursor: ByteCursor,
    sections: Sequence[SectionDescriptor],
    directory: DataDirectory,
    is_64bit: bool,
    *,
    max_modules: int = 4_096,
    max_functions: int = 65_536,
    max_string_length: int = MAX_STRING_LENGTH,
    log: ScopeLogger | None = None,
) -> Iterator[ImportedModule]:
    """Yield imported modules in descriptor order.

    Descriptors whose DLL name is empty are skipped.  Because modules are
    yielded as they are decoded, a failure part-way through leaves the
    caller with every module decoded before it.  Cap warnings go to *log*,
    or to this module's logger when none is given.

    Raises:
        UnresolvedRvaError: If the descriptor array itself is unmapped.
        TruncatedDataError: If a table runs past the end of the data.
    """
    if not directory.is_present:
        return

    log = log or logger
    cursor.seek(require_file_offset(directory.rva, sections, "import directory"))
    seen = 0
    while True:
        descriptor = ImportDescriptor(*cursor.read_struct(IMPORT_DESCRIPTOR_FORMAT))
        if descriptor.is_terminator:
            break
        if seen >= max_modules:
            log.warning("Import directory capped at %d descriptors", max_modules)
            break
        seen += 1

        name = read_string_at_rva(cursor, descriptor.name_rva, sections, max_string_length)
        if not name:
            continue

        yield ImportedModule(
            name=name,
            functions=read_thunk_table(
                cursor,
                sections,
                descriptor.thunk_rva,
                is_64bit,
                max_functions=max_functions,
                max_string_length=max_string_length,
                log=log,
            ),
        )
