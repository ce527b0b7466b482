from __future__ import annotations

import struct

import pytest

from memdump.address_space import AddressSpace, Reference, RelocationEntry, RelocationTable
from memdump.errors import (
    DuplicateRegionError,
    FormatError,
    OutOfBoundsError,
    RegionOverlapError,
    UnmappedAddressError,
)


def _space() -> AddressSpace:
    space = AddressSpace()
    fix = struct.pack("<4I", 0, 0x00800004, 0x00400008, 0x12345678)
    lvl = struct.pack("<4I", 0x00400000, 0, 0, 0)
    space.register_region("fix", fix, 0x00400000)
    space.register_region("lvl", lvl, 0x00800000)
    return space


def test_reference_renders_region_and_offset() -> None:
    assert str(Reference("lvl", 0x10)) == "lvl|0x00000010"
    assert Reference("fix", 4) + 8 == Reference("fix", 12)


def test_resolve_by_containment() -> None:
    space = _space()
    assert space.resolve(0x00400004) == Reference("fix", 4)
    assert space.resolve(0x0080000C) == Reference("lvl", 12)
    with pytest.raises(UnmappedAddressError) as excinfo:
        space.resolve(0x00900000)
    assert excinfo.value.address == 0x00900000


def test_duplicate_region_rejected() -> None:
    space = _space()
    with pytest.raises(DuplicateRegionError):
        space.register_region("fix", b"", 0)


def test_overlapping_regions_rejected() -> None:
    space = _space()
    with pytest.raises(RegionOverlapError, match="overlaps 'lvl'"):
        space.register_region("extra", b"\x00" * 8, 0x00800008)
    # Empty regions take no address range.
    space.register_region("empty", b"", 0x00800000)

    # Growing a region into its neighbour is rejected too.
    with pytest.raises(RegionOverlapError):
        space.replace_data("fix", b"\x00" * 0x00400004)
    assert len(space.region("fix")) == 16
    assert space.resolve(0x00800000) == Reference("lvl", 0)


def test_pointer_without_table_uses_zero_as_null() -> None:
    space = _space()
    assert space.read_pointer(Reference("fix", 0)) is None
    assert space.read_pointer(Reference("fix", 4)) == Reference("lvl", 4)
    assert space.read_pointer(Reference("fix", 8)) == Reference("fix", 8)
    with pytest.raises(UnmappedAddressError):
        space.read_pointer(Reference("fix", 12))


def test_pointer_with_table_only_honours_listed_fields() -> None:
    space = _space()
    space.apply_relocation("fix", RelocationTable([RelocationEntry(offset=4, target="lvl")]))

    assert space.read_pointer(Reference("fix", 4)) == Reference("lvl", 4)
    # Unlisted fields are plain integers even when they look like addresses.
    assert space.read_pointer(Reference("fix", 8)) is None
    assert space.read_pointer(Reference("fix", 12)) is None


def test_relocation_normalizes_against_target_region() -> None:
    space = _space()
    space.apply_relocation("fix", RelocationTable([RelocationEntry(offset=8, target="lvl")]))
    with pytest.raises(UnmappedAddressError):
        space.read_pointer(Reference("fix", 8))


def test_read_past_region_end_raises() -> None:
    space = _space()
    with pytest.raises(OutOfBoundsError):
        space.read_at(Reference("lvl", 14), 4)


def test_replace_data_keeps_origin() -> None:
    space = _space()
    region = space.replace_data("lvl", bytes(0x40))
    assert region.origin == 0x00800000
    assert space.resolve(0x0080003C) == Reference("lvl", 0x3C)


def test_cursor_reads_sequentially() -> None:
    space = AddressSpace()
    space.register_region("lvl", struct.pack("<HhI3f", 7, -2, 9, 1.0, 2.0, 3.0) + b"abc\x00", 0x1000)
    cur = space.cursor(Reference("lvl", 0))
    assert cur.u16() == 7
    assert cur.i16() == -2
    assert cur.u32() == 9
    vec = cur.vec3()
    # Stored as (x, z, y).
    assert (vec.x, vec.y, vec.z) == (1.0, 3.0, 2.0)
    assert cur.cstring() == "abc"
    assert cur.remaining == 0


@pytest.mark.parametrize("count", [9, -1])
def test_cursor_rejects_declared_counts_past_the_region(count: int) -> None:
    space = AddressSpace()
    space.register_region("lvl", bytes(16), 0x1000)
    cur = space.cursor(Reference("lvl", 0))
    with pytest.raises(FormatError, match="declared count"):
        cur.i16_array(count)
    with pytest.raises(FormatError, match="declared count"):
        cur.pointers(count)
    with pytest.raises(FormatError, match="declared count"):
        cur.vec3_array(count)
    assert cur.offset == 0
    assert cur.i16_array(8) == [0] * 8
