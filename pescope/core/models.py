"""
PEScope Data Models
====================

Pydantic value objects describing what a PE image provides (exports) and
what it requires (imports).  Every model is frozen: a result is built
exactly once per analysis and never mutated afterwards.

References:
    - Microsoft. (2024). PE Format. Microsoft Learn.
      https://learn.microsoft.com/en-us/windows/win32/debug/pe-format
    - Pydantic v2 documentation. https://docs.pydantic.dev/latest/
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


_FROZEN = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Exports
# ---------------------------------------------------------------------------

class ExportedFunction(BaseModel):
    """A single slot of the export address table.

    Attributes:
        ordinal: Ordinal base plus the slot index.
        name: Exported name, or ``None`` for ordinal-only exports.
        rva: Relative virtual address of the exported code or data.
    """

    model_config = _FROZEN

    ordinal: int = Field(..., ge=0)
    name: Optional[str] = None
    rva: int = Field(..., ge=0)

    @property
    def is_named(self) -> bool:
        return self.name is not None

    def __str__(self) -> str:
        if self.name is not None:
            return f"{self.ordinal}: {self.name}"
        return f"{self.ordinal}: (ordinal only)"


# ---------------------------------------------------------------------------
# Imports
# ---------------------------------------------------------------------------

class ImportedFunction(BaseModel):
    """One entry of a module's import lookup table.

    Exactly one shape is populated, selected by *is_ordinal*:

    - ``is_ordinal=False``: *name* and *hint* are set, *ordinal* is ``None``.
    - ``is_ordinal=True``: *ordinal* is set, *name* and *hint* are ``None``.

    Use :meth:`by_name` and :meth:`by_ordinal` rather than the raw
    constructor.
    """

    model_config = _FROZEN

    is_ordinal: bool
    name: Optional[str] = None
    hint: Optional[int] = Field(default=None, ge=0, le=0xFFFF)
    ordinal: Optional[int] = Field(default=None, ge=0, le=0xFFFF)

    @model_validator(mode="after")
    def _check_shape(self) -> ImportedFunction:
        if self.is_ordinal:
            if self.ordinal is None or self.name is not None or self.hint is not None:
                raise ValueError("ordinal import must carry only an ordinal")
        elif self.name is None or self.hint is None or self.ordinal is not None:
            raise ValueError("named import must carry a name and a hint only")
        return self

    @classmethod
    def by_name(cls, name: str, hint: int) -> ImportedFunction:
        return cls(is_ordinal=False, name=name, hint=hint)

    @classmethod
    def by_ordinal(cls, ordinal: int) -> ImportedFunction:
        return cls(is_ordinal=True, ordinal=ordinal)

    def __str__(self) -> str:
        if self.is_ordinal:
            return f"@{self.ordinal}"
        return self.name or ""


class ImportedModule(BaseModel):
    """A DLL named by an import descriptor and the functions taken from it."""

    model_config = _FROZEN

    name: str = Field(..., min_length=1)
    functions: tuple[ImportedFunction, ...] = ()


# ---------------------------------------------------------------------------
# Aggregate result
# ---------------------------------------------------------------------------

class AnalysisResult(BaseModel):
    """Complete export/import analysis of one PE image.

    Attributes:
        file_path: Path the image was read from (``"<memory>"`` for buffers).
        file_name: Final path component of *file_path*.
        machine: Human-readable machine label, e.g. ``"x64 (AMD64)"``.
        is_64bit: ``True`` for PE32+ images.
        is_dll: ``True`` when the COFF ``IMAGE_FILE_DLL`` flag is set.
        exports: Exported functions in export-address-table order.
        imports: Imported modules in descriptor order.
    """

    model_config = _FROZEN

    file_path: str
    file_name: str
    machine: str
    is_64bit: bool = False
    is_dll: bool = False
    exports: tuple[ExportedFunction, ...] = ()
    imports: tuple[ImportedModule, ...] = ()

    @property
    def named_exports(self) -> list[ExportedFunction]:
        return [e for e in self.exports if e.is_named]

    @property
    def ordinal_only_exports(self) -> list[ExportedFunction]:
        return [e for e in self.exports if not e.is_named]

    @property
    def import_function_count(self) -> int:
        """Total number of imported functions across all modules."""
        return sum(len(m.functions) for m in self.imports)
