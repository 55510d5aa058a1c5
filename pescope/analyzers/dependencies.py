"""
Dependency Summary
===================

Splits an image's imported modules into well-known Windows system
libraries and everything else, and condenses export/import counts into a
single :class:`DependencySummary`.

System libraries are recognised by case-insensitive name prefix, so
``KERNEL32.dll``, ``msvcrt.dll``, ``msvcp140.dll`` and the
``api-ms-win-*`` API-set contracts all count as system DLLs.

References:
    - Microsoft. (2024). Windows API sets. Microsoft Learn.
      https://learn.microsoft.com/en-us/windows/win32/apiindex/windows-apisets
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from pescope.core.models import AnalysisResult


# ---------------------------------------------------------------------------
# System library prefixes
# ---------------------------------------------------------------------------

SYSTEM_DLL_PREFIXES: tuple[str, ...] = (
    "kernel32",
    "ntdll",
    "user32",
    "gdi32",
    "advapi32",
    "shell32",
    "ole32",
    "oleaut32",
    "msvc",
    "vcruntime",
    "ucrtbase",
    "api-ms-",
    "ext-ms-",
    "combase",
    "rpcrt4",
    "ws2_32",
    "crypt32",
    "secur32",
    "bcrypt",
    "shlwapi",
)


def is_system_dll(dll_name: str) -> bool:
    """Return ``True`` if *dll_name* is a well-known Windows system library."""
    return dll_name.lower().startswith(SYSTEM_DLL_PREFIXES)


class DependencySummary(BaseModel):
    """Counts and dependency split for one analysed image.

    Attributes:
        total_exports: Number of exported functions.
        named_exports: Exports that carry a name.
        ordinal_only_exports: Exports reachable only by ordinal.
        import_module_count: Number of imported modules.
        import_function_count: Imported functions across all modules.
        system_dlls: System library names, in import order.
        other_dlls: Remaining library names, in import order.
    """

    model_config = ConfigDict(frozen=True)

    total_exports: int = 0
    named_exports: int = 0
    ordinal_only_exports: int = 0
    import_module_count: int = 0
    import_function_count: int = 0
    system_dlls: list[str] = Field(default_factory=list)
    other_dlls: list[str] = Field(default_factory=list)


def summarize_dependencies(result: AnalysisResult) -> DependencySummary:
    """Build a :class:`DependencySummary` from an analysis result."""
    names = [module.name for module in result.imports]
    named = len(result.named_exports)
    return DependencySummary(
        total_exports=len(result.exports),
        named_exports=named,
        ordinal_only_exports=len(result.exports) - named,
        import_module_count=len(result.imports),
        import_function_count=result.import_function_count,
        system_dlls=[n for n in names if is_system_dll(n)],
        other_dlls=[n for n in names if not is_system_dll(n)],
    )
