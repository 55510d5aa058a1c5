"""
Shared fixtures: a byte-exact synthetic PE image builder.

Every image has the same fixed layout::

    0x000   DOS header ("MZ", e_lfanew = 0x80)
    0x080   "PE\\0\\0" + COFF header
    0x098   optional header (224 bytes PE32, 240 bytes PE32+)
    ...     section table: .text, .rdata
    0x400   .text raw data   (VA 0x1000)
    0x600   .rdata raw data  (VA 0x2000) -- every table lives here
"""

from __future__ import annotations

import struct
from typing import Union

import pytest

from shared.config import ScopeConfig
from shared.logger import ScopeLogger

from pescope.core.engine import PEScopeEngine


PE_OFFSET = 0x80
OPTIONAL_HEADER_OFFSET = PE_OFFSET + 24

TEXT_VA, TEXT_RAW, TEXT_SIZE = 0x1000, 0x400, 0x200
DATA_VA, DATA_RAW, DATA_SIZE = 0x2000, 0x600, 0x1000

IMPORT_BY_NAME = Union[str, tuple[str, int], int]


class PEImageBuilder:
    """Assemble a minimal two-section PE32 / PE32+ image in memory.

    Exports and imports are laid out in the ``.rdata`` section.  After
    :meth:`build`, ``export_directory_rva`` and ``import_directory_rva``
    point at the emitted directories so tests can corrupt them.
    """

    def __init__(
        self,
        *,
        is_64bit: bool = False,
        machine: int | None = None,
        characteristics: int = 0x0102,
        optional_header_size: int | None = None,
        magic: int | None = None,
    ) -> None:
        self.is_64bit = is_64bit
        self.machine = machine if machine is not None else (0x8664 if is_64bit else 0x14C)
        self.characteristics = characteristics
        self.optional_header_size = (
            (240 if is_64bit else 224) if optional_header_size is None else optional_header_size
        )
        self.magic = magic if magic is not None else (0x20B if is_64bit else 0x10B)
        self.dll_name = "sample.dll"
        self.ordinal_base = 1
        self.export_functions: list[int] = []
        self.export_names: list[tuple[str, int]] = []
        self.imports: list[tuple[str, list[IMPORT_BY_NAME], bool]] = []
        self.export_directory_rva = 0
        self.import_directory_rva = 0
        self._blob = bytearray()

    # ------------------------------------------------------------------ #
    #  Declaration
    # ------------------------------------------------------------------ #

    def add_export(self, rva: int, name: str | None = None) -> PEImageBuilder:
        index = len(self.export_functions)
        self.export_functions.append(rva)
        if name is not None:
            self.export_names.append((name, index))
        return self

    def add_import(
        self,
        module: str,
        functions: list[IMPORT_BY_NAME],
        *,
        iat_only: bool = False,
    ) -> PEImageBuilder:
        """Declare an imported module.

        *functions* items are a name (hint = position), a ``(name, hint)``
        pair, or an ``int`` ordinal.
        """
        self.imports.append((module, list(functions), iat_only))
        return self

    # ------------------------------------------------------------------ #
    #  Layout helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def file_offset(rva: int) -> int:
        return rva - DATA_VA + DATA_RAW

    def _alloc(self, data: bytes, align: int = 2) -> int:
        while len(self._blob) % align:
            self._blob.append(0)
        rva = DATA_VA + len(self._blob)
        self._blob += data
        return rva

    def _cstring(self, text: str) -> int:
        return self._alloc(text.encode("ascii") + b"\x00")

    def _build_exports(self) -> tuple[int, int]:
        functions_rva = self._alloc(
            b"".join(struct.pack("<I", rva) for rva in self.export_functions), 4
        )
        names_rva = ordinals_rva = 0
        if self.export_names:
            name_rvas = [self._cstring(name) for name, _ in self.export_names]
            names_rva = self._alloc(b"".join(struct.pack("<I", r) for r in name_rvas), 4)
            ordinals_rva = self._alloc(
                b"".join(struct.pack("<H", index) for _, index in self.export_names), 2
            )
        directory = struct.pack(
            "<IIHHIIIIIII",
            0, 0, 0, 0,
            self._cstring(self.dll_name),
            self.ordinal_base,
            len(self.export_functions),
            len(self.export_names),
            functions_rva,
            names_rva,
            ordinals_rva,
        )
        self.export_directory_rva = self._alloc(directory, 4)
        return self.export_directory_rva, len(directory)

    def _build_imports(self) -> tuple[int, int]:
        thunk = struct.Struct("<Q" if self.is_64bit else "<I")
        ordinal_flag = (1 << 63) if self.is_64bit else (1 << 31)

        descriptors: list[tuple[int, int, int, int, int]] = []
        for module, functions, iat_only in self.imports:
            entries: list[int] = []
            for position, function in enumerate(functions):
                if isinstance(function, int):
                    entries.append(ordinal_flag | function)
                    continue
                name, hint = function if isinstance(function, tuple) else (function, position)
                entries.append(
                    self._alloc(struct.pack("<H", hint) + name.encode("ascii") + b"\x00")
                )
            table = b"".join(thunk.pack(e) for e in entries) + thunk.pack(0)
            lookup_rva = self._alloc(table, 8)
            address_rva = self._alloc(table, 8)
            name_rva = self._cstring(module)
            descriptors.append((0 if iat_only else lookup_rva, 0, 0, name_rva, address_rva))

        block = b"".join(struct.pack("<IIIII", *d) for d in descriptors) + bytes(20)
        self.import_directory_rva = self._alloc(block, 4)
        return self.import_directory_rva, len(block)

    # ------------------------------------------------------------------ #
    #  Assembly
    # ------------------------------------------------------------------ #

    def build(self) -> bytes:
        self._blob = bytearray()
        export_dir = self._build_exports() if self.export_functions else (0, 0)
        import_dir = self._build_imports() if self.imports else (0, 0)
        assert len(self._blob) <= DATA_SIZE, "synthetic image overflowed .rdata"

        image = bytearray(DATA_RAW + DATA_SIZE)
        image[0:2] = b"MZ"
        struct.pack_into("<I", image, 0x3C, PE_OFFSET)
        image[PE_OFFSET:PE_OFFSET + 4] = b"PE\x00\x00"
        struct.pack_into(
            "<HHIIIHH", image, PE_OFFSET + 4,
            self.machine, 2, 0, 0, 0, self.optional_header_size, self.characteristics,
        )

        if self.optional_header_size:
            struct.pack_into("<H", image, OPTIONAL_HEADER_OFFSET, self.magic)
            directories = OPTIONAL_HEADER_OFFSET + (112 if self.magic == 0x20B else 96)
            struct.pack_into("<IIII", image, directories, *export_dir, *import_dir)

        section_table = OPTIONAL_HEADER_OFFSET + self.optional_header_size
        for index, (name, va, raw, size) in enumerate((
            (b".text", TEXT_VA, TEXT_RAW, TEXT_SIZE),
            (b".rdata", DATA_VA, DATA_RAW, DATA_SIZE),
        )):
            struct.pack_into(
                "<8sIIII", image, section_table + index * 40, name, size, va, size, raw,
            )

        image[DATA_RAW:DATA_RAW + len(self._blob)] = self._blob
        return bytes(image)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def pe_builder():
    """Factory returning a fresh :class:`PEImageBuilder`."""
    return PEImageBuilder


@pytest.fixture
def quiet_logger() -> ScopeLogger:
    return ScopeLogger("tests", log_level="DEBUG", console_output=False)


@pytest.fixture
def engine(quiet_logger: ScopeLogger) -> PEScopeEngine:
    return PEScopeEngine(config=ScopeConfig(), logger=quiet_logger)
