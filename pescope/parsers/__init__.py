"""
PEScope Parsers
===============

Byte-level decoders for the parts of a PE image PEScope reads: headers,
section table, export directory and import directory.
"""

from pescope.parsers.cursor import ByteCursor
from pescope.parsers.exports import iter_exports
from pescope.parsers.headers import PEHeaders, machine_label, read_pe_headers
from pescope.parsers.imports import iter_imports
from pescope.parsers.sections import (
    UNRESOLVED,
    SectionDescriptor,
    read_section_table,
    rva_to_file_offset,
)

__all__ = [
    "ByteCursor",
    "PEHeaders",
    "SectionDescriptor",
    "UNRESOLVED",
    "iter_exports",
    "iter_imports",
    "machine_label",
    "read_pe_headers",
    "read_section_table",
    "rva_to_file_offset",
]
