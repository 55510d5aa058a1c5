"""Tests for import directory decoding."""

import struct

import pytest

from pescope.core.exceptions import UnresolvedRvaError
from pescope.core.models import ImportedFunction, ImportedModule
from pescope.parsers.cursor import ByteCursor
from pescope.parsers.headers import read_pe_headers
from pescope.parsers.imports import (
    ORDINAL_FLAG_32,
    ORDINAL_FLAG_64,
    ImportDescriptor,
    decode_thunk,
    iter_imports,
)
from pescope.parsers.sections import SectionDescriptor, read_section_table

from tests.conftest import DATA_RAW, DATA_SIZE, DATA_VA, OPTIONAL_HEADER_OFFSET


def decode(data: bytes, **limits) -> list[ImportedModule]:
    cursor = ByteCursor.from_bytes(data)
    headers = read_pe_headers(cursor)
    sections = read_section_table(
        cursor, headers.section_table_offset, headers.number_of_sections
    )
    return list(
        iter_imports(cursor, sections, headers.import_directory, headers.is_64bit, **limits)
    )


@pytest.mark.parametrize("is_64bit", [False, True])
def test_named_and_ordinal_imports(pe_builder, is_64bit):
    builder = pe_builder(is_64bit=is_64bit)
    builder.add_import("KERNEL32.dll", [("GetLastError", 0x1F3), 17])

    modules = decode(builder.build())
    assert modules == [
        ImportedModule(
            name="KERNEL32.dll",
            functions=(
                ImportedFunction.by_name("GetLastError", 0x1F3),
                ImportedFunction.by_ordinal(17),
            ),
        )
    ]


def test_modules_keep_descriptor_order(pe_builder):
    builder = pe_builder()
    builder.add_import("USER32.dll", ["MessageBoxA"])
    builder.add_import("ADVAPI32.dll", ["RegOpenKeyExA", "RegCloseKey"])

    modules = decode(builder.build())
    assert [m.name for m in modules] == ["USER32.dll", "ADVAPI32.dll"]
    assert [str(f) for f in modules[1].functions] == ["RegOpenKeyExA", "RegCloseKey"]
    assert [f.hint for f in modules[1].functions] == [0, 1]


def test_address_table_used_when_lookup_table_missing(pe_builder):
    builder = pe_builder().add_import("bound.dll", ["Alpha", 3], iat_only=True)
    modules = decode(builder.build())
    assert [str(f) for f in modules[0].functions] == ["Alpha", "@3"]


def test_empty_module_name_is_skipped(pe_builder):
    builder = pe_builder()
    builder.add_import("", ["Hidden"])
    builder.add_import("msvcrt.dll", ["printf"])

    modules = decode(builder.build())
    assert [m.name for m in modules] == ["msvcrt.dll"]


def test_module_with_no_functions(pe_builder):
    modules = decode(pe_builder().add_import("empty.dll", []).build())
    assert modules == [ImportedModule(name="empty.dll")]


def test_unresolved_lookup_table_gives_empty_module(pe_builder):
    builder = pe_builder().add_import("KERNEL32.dll", ["ExitProcess"])
    data = bytearray(builder.build())
    struct.pack_into("<I", data, builder.file_offset(builder.import_directory_rva), 0x9000)

    modules = decode(bytes(data))
    assert modules == [ImportedModule(name="KERNEL32.dll", functions=())]


def test_unresolved_hint_name_entry_is_dropped(pe_builder):
    builder = pe_builder().add_import("KERNEL32.dll", ["Lost", "Kept"])
    data = bytearray(builder.build())
    lookup_rva = struct.unpack_from("<I", data, builder.file_offset(builder.import_directory_rva))[0]
    struct.pack_into("<I", data, builder.file_offset(lookup_rva), 0x7000)

    modules = decode(bytes(data))
    assert [str(f) for f in modules[0].functions] == ["Kept"]


def test_unresolved_descriptor_array_raises(pe_builder):
    data = bytearray(pe_builder().add_import("KERNEL32.dll", ["ExitProcess"]).build())
    struct.pack_into("<I", data, OPTIONAL_HEADER_OFFSET + 104, 0x9000)

    with pytest.raises(UnresolvedRvaError):
        decode(bytes(data))


def test_module_count_is_capped(pe_builder):
    builder = pe_builder()
    for index in range(4):
        builder.add_import(f"lib{index}.dll", ["f"])
    assert [m.name for m in decode(builder.build(), max_modules=2)] == ["lib0.dll", "lib1.dll"]


def test_function_count_is_capped(pe_builder):
    builder = pe_builder().add_import("big.dll", [f"f{i}" for i in range(6)])
    modules = decode(builder.build(), max_functions=4)
    assert len(modules[0].functions) == 4


def test_no_import_directory(pe_builder):
    assert decode(pe_builder().add_export(0x1010, "Foo").build()) == []


class TestDecodeThunk:
    SECTIONS = (SectionDescriptor(".rdata", DATA_VA, DATA_SIZE, DATA_RAW, DATA_SIZE),)

    def cursor_with_hint_name(self, hint: int, name: str) -> ByteCursor:
        data = bytearray(DATA_RAW + DATA_SIZE)
        entry = struct.pack("<H", hint) + name.encode("ascii") + b"\x00"
        data[DATA_RAW + 0x40:DATA_RAW + 0x40 + len(entry)] = entry
        return ByteCursor.from_bytes(bytes(data))

    @pytest.mark.parametrize(
        "entry, is_64bit, ordinal",
        [
            (ORDINAL_FLAG_32 | 5, False, 5),
            (ORDINAL_FLAG_32 | 0x1_FFFF, False, 0xFFFF),
            (ORDINAL_FLAG_64 | 0x2A, True, 0x2A),
        ],
    )
    def test_ordinal_entries(self, entry, is_64bit, ordinal):
        function = decode_thunk(entry, is_64bit, ByteCursor.from_bytes(b""), ())
        assert function == ImportedFunction.by_ordinal(ordinal)

    @pytest.mark.parametrize("is_64bit", [False, True])
    def test_named_entry_preserves_position(self, is_64bit):
        cursor = self.cursor_with_hint_name(0x42, "CreateFileW")
        cursor.seek(9)
        function = decode_thunk(DATA_VA + 0x40, is_64bit, cursor, self.SECTIONS)

        assert function == ImportedFunction.by_name("CreateFileW", 0x42)
        assert cursor.tell() == 9

    def test_bit_31_is_not_an_ordinal_flag_in_pe32plus(self):
        cursor = self.cursor_with_hint_name(1, "Name")
        function = decode_thunk(ORDINAL_FLAG_32 | (DATA_VA + 0x40), True, cursor, self.SECTIONS)
        # masked to 63 bits the RVA keeps bit 31 and falls outside every section
        assert function is None

    def test_unresolved_name_entry(self):
        assert decode_thunk(0x9000, False, ByteCursor.from_bytes(b""), self.SECTIONS) is None


def test_descriptor_helpers():
    assert ImportDescriptor(0, 0, 0, 0, 0).is_terminator
    assert not ImportDescriptor(0, 0, 0, 0x2000, 0x2100).is_terminator
    assert ImportDescriptor(0, 0, 0, 0x2000, 0x2100).thunk_rva == 0x2100
    assert ImportDescriptor(0x2200, 0, 0, 0x2000, 0x2100).thunk_rva == 0x2200


class TestTruncatedImage:
    """Tables inside ``.rdata`` whose file offsets lie past a truncated end."""

    PAST_END = 0x2F00
    SIZE = 0xE00

    def test_module_name_past_end_is_skipped(self, pe_builder):
        builder = pe_builder()
        builder.add_import("kernel32.dll", ["ExitProcess"])
        builder.add_import("user32.dll", ["MessageBoxA"])
        data = bytearray(builder.build())
        descriptor = builder.file_offset(builder.import_directory_rva)
        struct.pack_into("<I", data, descriptor + 12, self.PAST_END)

        modules = decode(bytes(data[:self.SIZE]))
        assert [m.name for m in modules] == ["user32.dll"]

    def test_hint_name_entry_past_end_is_dropped(self, pe_builder):
        builder = pe_builder().add_import("KERNEL32.dll", ["Lost", "Kept"])
        data = bytearray(builder.build())
        lookup_rva = struct.unpack_from(
            "<I", data, builder.file_offset(builder.import_directory_rva)
        )[0]
        struct.pack_into("<I", data, builder.file_offset(lookup_rva), self.PAST_END)

        modules = decode(bytes(data[:self.SIZE]))
        assert [str(f) for f in modules[0].functions] == ["Kept"]

    def test_lookup_table_past_end_gives_empty_module(self, pe_builder):
        builder = pe_builder()
        builder.add_import("KERNEL32.dll", ["ExitProcess"])
        builder.add_import("user32.dll", ["MessageBoxA"])
        data = bytearray(builder.build())
        descriptor = builder.file_offset(builder.import_directory_rva)
        struct.pack_into("<I", data, descriptor, self.PAST_END)

        modules = decode(bytes(data[:self.SIZE]))
        assert modules[0] == ImportedModule(name="KERNEL32.dll", functions=())
        assert [str(f) for f in modules[1].functions] == ["MessageBoxA"]
