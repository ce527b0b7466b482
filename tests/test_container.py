from __future__ import annotations

import struct

import pytest

from largomap.container import (
    VIGNETTE_SIZE,
    build_ptr_table,
    pack_container,
    pack_pbt,
    parse_ptr_table,
    unpack_container,
    unpack_pbt,
)
from memdump.address_space import RelocationEntry
from memdump.errors import CorruptArchiveError, FormatError


def test_container_header_fields() -> None:
    raw = bytes(200) + b"level data" * 20
    blob = pack_container(raw, vignette="jungle.bmp")
    _unknown, compressed, decompressed = struct.unpack_from("<3I", blob)
    assert decompressed == len(raw)
    assert len(blob) == 12 + VIGNETTE_SIZE + 4 + compressed

    container = unpack_container(blob)
    assert container.data == raw
    assert container.vignette == "jungle.bmp"
    assert container.compressed_size == compressed


def test_big_endian_container() -> None:
    raw = b"\x01\x02\x03" * 10
    blob = pack_container(raw, little_endian=False)
    assert struct.unpack_from(">I", blob, 8)[0] == len(raw)
    assert unpack_container(blob, little_endian=False).data == raw


def test_truncated_container_is_corrupt() -> None:
    blob = pack_container(b"abcdefgh" * 8)
    with pytest.raises(CorruptArchiveError):
        unpack_container(blob[:-3])


def test_short_header_is_format_error() -> None:
    with pytest.raises(FormatError):
        unpack_container(b"\x00" * 8)


def test_side_table() -> None:
    raw = bytes(range(64)) * 3
    blob = pack_pbt(raw)
    decompressed, compressed = struct.unpack_from("<2I", blob)
    assert decompressed == len(raw)
    assert compressed == len(blob) - 8
    assert unpack_pbt(blob) == raw


def test_relocation_table() -> None:
    regions = ("fix", "lvl")
    blob = build_ptr_table(
        [RelocationEntry(offset=0x10, target="lvl"), RelocationEntry(offset=0x24, target="fix")],
        regions,
    )
    assert struct.unpack("<5I", blob) == (2, 1, 0x10, 0, 0x24)

    table = parse_ptr_table(blob, regions)
    assert len(table) == 2
    assert table[0x10].target == "lvl"
    assert table[0x24].target == "fix"


def test_relocation_to_unknown_region_index() -> None:
    blob = struct.pack("<3I", 1, 5, 0x10)
    with pytest.raises(FormatError, match="region index 5"):
        parse_ptr_table(blob, ("fix", "lvl"))
