"""
Export Directory Decoder
=========================

``IMAGE_EXPORT_DIRECTORY`` (40 bytes)::

    0   Characteristics
    4   TimeDateStamp
    8   MajorVersion, MinorVersion
    12  Name (RVA)
    16  Base                    ordinal of the first function slot
    20  NumberOfFunctions
    24  NumberOfNames
    28  AddressOfFunctions      RVA -> u32[NumberOfFunctions]
    32  AddressOfNames          RVA -> u32[NumberOfNames], string RVAs
    36  AddressOfNameOrdinals   RVA -> u16[NumberOfNames], function indices

The name and name-ordinal arrays are parallel; together they map a name
onto a slot of the function array.  Slots holding RVA 0 are unused
ordinals and are not reported.

Forwarder RVAs (slots pointing back inside the export directory) are not
special-cased and come out as ordinary exports.
"""

from __future__ import annotations

from typing import Iterator, Sequence

from shared.logger import ScopeLogger

from pescope.core.models import ExportedFunction
from pescope.parsers.cursor import MAX_STRING_LENGTH, ByteCursor
from pescope.parsers.headers import DataDirectory
from pescope.parsers.sections import (
    SectionDescriptor,
    read_string_at_rva,
    require_file_offset,
)


EXPORT_DIRECTORY_FORMAT: str = "IIHHIIIIIII"

logger = ScopeLogger("parsers.exports", log_level="WARNING")


def iter_exports(
    cursor: ByteCursor,
    sections: Sequence[SectionDescriptor],
    directory: DataDirectory,
    *,
    max_functions: int = 65_536,
    max_names: int = 65_536,
    max_string_length: int = MAX_STRING_LENGTH,
    log: ScopeLogger | None = None,
) -> Iterator[ExportedFunction]:
    """Yield exported functions in export-address-table order.

    Nothing is yielded when the directory is absent.  The three arrays are
    read in full before the first export is yielded, so an unmapped array
    aborts the whole export table.

    Args:
        cursor: Cursor over the image.
        sections: Section table used for RVA translation.
        directory: Export data-directory entry.
        max_functions: Cap on ``NumberOfFunctions``.
        max_names: Cap on ``NumberOfNames``.
        max_string_length: Cap on each exported name.
        log: Receives cap warnings.  Defaults to this module's logger.

    Raises:
        UnresolvedRvaError: If the directory or one of its arrays is unmapped.
        TruncatedDataError: If a table runs past the end of the data.
    """
    if not directory.is_present:
        return

    cursor.seek(require_file_offset(directory.rva, sections, "export directory"))
    (
        _characteristics,
        _time_date_stamp,
        _major_version,
        _minor_version,
        _name_rva,
        ordinal_base,
        number_of_functions,
        number_of_names,
        functions_rva,
        names_rva,
        name_ordinals_rva,
    ) = cursor.read_struct(EXPORT_DIRECTORY_FORMAT)

    if number_of_functions > max_functions:
        (log or logger).warning(
            "Export function count %d capped at %d", number_of_functions, max_functions
        )
        number_of_functions = max_functions
    number_of_names = min(number_of_names, max_names, number_of_functions)

    cursor.seek(require_file_offset(functions_rva, sections, "export address table"))
    function_rvas = cursor.read_array("I", number_of_functions)

    names_by_index: dict[int, str] = {}
    if number_of_names:
        cursor.seek(require_file_offset(names_rva, sections, "export name table"))
        name_rvas = cursor.read_array("I", number_of_names)
        cursor.seek(require_file_offset(name_ordinals_rva, sections, "export ordinal table"))
        name_ordinals = cursor.read_array("H", number_of_names)

        for name_rva, index in zip(name_rvas, name_ordinals):
            name = read_string_at_rva(cursor, name_rva, sections, max_string_length)
            if name:
                names_by_index[index] = name

    for index, rva in enumerate(function_rvas):
        if rva == 0:
            continue
        yield ExportedFunction(
            ordinal=ordinal_base + index,
            name=names_by_index.get(index),
            rva=rva,
        )
