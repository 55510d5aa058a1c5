"""
PEScope Analysis Engine
========================

Drives the decoders over one PE image and assembles an immutable
:class:`~pescope.core.models.AnalysisResult`.

Decode stages::

    ReadDosHeader -> ValidateMzSignature -> LocatePeHeader
    -> ValidatePeSignature -> ReadCoffHeader -> ReadOptionalHeader
    -> ReadDataDirectories -> ReadSectionTable
    -> [ParseExports] -> [ParseImports] -> Done

Any failure up to and including the section table aborts the analysis
and the engine returns ``None``.  Failures inside the export or import
table are confined to that table: it comes back empty, or holds the
entries decoded before the failure, and the analysis still completes.
No exception escapes :meth:`PEScopeEngine.analyze`.

The engine keeps no state between calls, so one instance may analyse
many files, and separate instances may run concurrently.
"""

from __future__ import annotations

import enum
import io
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import BinaryIO, Callable, Iterator, Optional, TypeVar, Union

from shared.config import ScopeConfig
from shared.logger import ScopeLogger

from pescope.core.exceptions import PEFormatError
from pescope.core.models import AnalysisResult, ExportedFunction, ImportedModule
from pescope.parsers.cursor import ByteCursor
from pescope.parsers.exports import iter_exports
from pescope.parsers.headers import PEHeaders, read_pe_headers
from pescope.parsers.imports import iter_imports
from pescope.parsers.sections import SectionDescriptor, read_section_table


PESource = Union[str, Path, BinaryIO, bytes, bytearray]

_T = TypeVar("_T")

_MEMORY_PATH = "<memory>"
_STREAM_PATH = "<stream>"


class DecodeStage(str, enum.Enum):
    """Stages of a single analysis, in order."""
    HEADERS = "headers"
    SECTION_TABLE = "section_table"
    EXPORTS = "exports"
    IMPORTS = "imports"


def always_supported() -> bool:
    """Platform predicate for the pure-Python decoder: every platform."""
    return True


def windows_only() -> bool:
    """Platform predicate that only accepts Windows hosts."""
    return sys.platform == "win32"


# ---------------------------------------------------------------------------
# PEScopeEngine
# ---------------------------------------------------------------------------

class PEScopeEngine:
    """Export/import analysis of PE images.

    Usage::

        engine = PEScopeEngine()
        result = engine.analyze("C:/Windows/System32/kernel32.dll")
        if result is not None:
            print(result.machine, len(result.exports))

    Args:
        config: Decoder limits and platform policy.  Defaults are used if
            not provided.
        logger: Logger instance.  A new one is created if not provided.
        platform_supported: Capability predicate consulted before every
            analysis.  Defaults to :func:`windows_only` when
            ``config.pe.require_windows`` is set, else :func:`always_supported`.
    """

    def __init__(
        self,
        config: ScopeConfig | None = None,
        logger: ScopeLogger | None = None,
        platform_supported: Callable[[], bool] | None = None,
    ) -> None:
        self._config: ScopeConfig = config or ScopeConfig()
        self._logger: ScopeLogger = logger or ScopeLogger("engine")
        if platform_supported is None:
            platform_supported = (
                windows_only if self._config.pe.require_windows else always_supported
            )
        self._platform_supported = platform_supported

    @property
    def is_supported(self) -> bool:
        """Whether analysis is available on this host."""
        return self._platform_supported()

    # ------------------------------------------------------------------ #
    #  Public entry point
    # ------------------------------------------------------------------ #

    def analyze(self, source: PESource) -> Optional[AnalysisResult]:
        """Analyse a PE image.

        Args:
            source: A filesystem path, an open seekable binary handle
                (left open), or the raw image bytes.

        Returns:
            The analysis result, or ``None`` if the platform is
            unsupported, the file cannot be read, or it is not a valid
            PE image.
        """
        if not self.is_supported:
            self._logger.warning("PE analysis is not supported on this platform")
            return None

        try:
            with ExitStack() as stack:
                opened = self._open(source, stack)
                if opened is None:
                    return None
                stream, file_path = opened
                return self._decode(ByteCursor(stream), file_path)
        except OSError as exc:
            self._logger.error("Cannot read %s: %s", _describe(source), exc)
        except Exception:
            self._logger.exception("Unexpected failure analysing %s", _describe(source))
        return None

    # ------------------------------------------------------------------ #
    #  Source handling
    # ------------------------------------------------------------------ #

    def _open(
        self, source: PESource, stack: ExitStack
    ) -> tuple[BinaryIO, str] | None:
        """Resolve *source* to a seekable stream and a display path."""
        if isinstance(source, (bytes, bytearray)):
            return io.BytesIO(bytes(source)), _MEMORY_PATH

        if isinstance(source, (str, Path)):
            path = Path(source)
            if not str(source) or not path.is_file():
                self._logger.warning("File not found: %s", source)
                return None
            return stack.enter_context(open(path, "rb")), str(source)

        name = getattr(source, "name", None)
        return source, str(name) if isinstance(name, (str, Path)) else _STREAM_PATH

    # ------------------------------------------------------------------ #
    #  Stage pipeline
    # ------------------------------------------------------------------ #

    def _decode(self, cursor: ByteCursor, file_path: str) -> Optional[AnalysisResult]:
        pe = self._config.pe
        stage = DecodeStage.HEADERS

        with self._logger.timed(f"analysis of {file_path}"):
            try:
                headers = read_pe_headers(cursor)
                sections: tuple[SectionDescriptor, ...] = ()
                if headers.has_optional_header:
                    stage = DecodeStage.SECTION_TABLE
                    sections = read_section_table(
                        cursor, headers.section_table_offset, headers.number_of_sections
                    )
            except PEFormatError as exc:
                self._logger.warning(
                    "Not a valid PE image: %s", exc, path=file_path, stage=stage.value
                )
                return None

            exports: tuple[ExportedFunction, ...] = ()
            imports: tuple[ImportedModule, ...] = ()
            if headers.has_optional_header:
                exports = self._collect(
                    DecodeStage.EXPORTS,
                    file_path,
                    iter_exports(
                        cursor,
                        sections,
                        headers.export_directory,
                        max_functions=pe.max_export_functions,
                        max_names=pe.max_export_names,
                        max_string_length=pe.max_string_length,
                        log=self._logger,
                    ),
                )
                imports = self._collect(
                    DecodeStage.IMPORTS,
                    file_path,
                    iter_imports(
                        cursor,
                        sections,
                        headers.import_directory,
                        headers.is_64bit,
                        max_modules=pe.max_import_modules,
                        max_functions=pe.max_import_functions,
                        max_string_length=pe.max_string_length,
                        log=self._logger,
                    ),
                )

        result = _build_result(file_path, headers, exports, imports)
        self._logger.info(
            "Analysed %s: %s, %s, %d exports, %d import modules",
            result.file_name,
            result.machine,
            "DLL" if result.is_dll else "executable",
            len(result.exports),
            len(result.imports),
        )
        return result

    def _collect(
        self, stage: DecodeStage, file_path: str, entries: Iterator[_T]
    ) -> tuple[_T, ...]:
        """Drain a table decoder, keeping what was decoded before a failure."""
        collected: list[_T] = []
        with self._logger.operation(stage.value):
            try:
                for entry in entries:
                    collected.append(entry)
            except PEFormatError as exc:
                self._logger.warning(
                    "%s table damaged after %d entries: %s",
                    stage.value.capitalize(),
                    len(collected),
                    exc,
                    path=file_path,
                    stage=stage.value,
                )
        return tuple(collected)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _build_result(
    file_path: str,
    headers: PEHeaders,
    exports: tuple[ExportedFunction, ...],
    imports: tuple[ImportedModule, ...],
) -> AnalysisResult:
    return AnalysisResult(
        file_path=file_path,
        file_name=Path(file_path).name if file_path not in (_MEMORY_PATH, _STREAM_PATH) else file_path,
        machine=headers.machine_label,
        is_64bit=headers.is_64bit,
        is_dll=headers.is_dll,
        exports=exports,
        imports=imports,
    )


def _describe(source: PESource) -> str:
    if isinstance(source, (bytes, bytearray)):
        return f"{_MEMORY_PATH} ({len(source)} bytes)"
    if isinstance(source, (str, Path)):
        return str(source)
    return str(getattr(source, "name", _STREAM_PATH))


def analyze_pe_file(
    source: PESource,
    *,
    config: ScopeConfig | None = None,
    logger: ScopeLogger | None = None,
    platform_supported: Callable[[], bool] | None = None,
) -> Optional[AnalysisResult]:
    """Analyse one PE image with a throwaway :class:`PEScopeEngine`."""
    return PEScopeEngine(
        config=config, logger=logger, platform_supported=platform_supported
    ).analyze(source)
