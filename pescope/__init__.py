"""
PEScope -- PE Export/Import Inspector
======================================

PEScope statically inspects Windows Portable Executable images and
reports what they provide (the export table) and what they require (the
import table), without loading or executing them.  Decoding is pure
Python over :mod:`struct`, so it runs on any host.

Capabilities:
    - DOS/PE signature validation and PE32 / PE32+ discrimination
    - Section table decoding and RVA-to-file-offset translation
    - Export table decoding (named and ordinal-only exports)
    - Import table decoding (by-name with hint, and by-ordinal imports)
    - System-DLL classification and dependency summaries
    - Wildcard search over exported names
    - Rich console rendering and JSON reports

References:
    - Microsoft. (2024). PE Format. Microsoft Learn.
    - Pietrek, M. (1994). Peering Inside the PE.
"""

from pescope.core.engine import PEScopeEngine, analyze_pe_file
from pescope.core.models import (
    AnalysisResult,
    ExportedFunction,
    ImportedFunction,
    ImportedModule,
)

__version__ = "1.0.0"
__all__ = [
    "AnalysisResult",
    "ExportedFunction",
    "ImportedFunction",
    "ImportedModule",
    "PEScopeEngine",
    "analyze_pe_file",
]
