from __future__ import annotations

"""
Addressable memory made of independently loaded regions.

Every pointer found in a dump is turned into a `Reference` (region id + byte
offset into that region's buffer). The null pointer is `None`.

Two ways to interpret a 32-bit field as a pointer:
  - relocation table installed for the region: only listed fields are
    pointers, normalized against the entry's target region
  - no table: 0 is null, anything else is resolved by region containment
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, replace
import struct
from typing import TYPE_CHECKING

from .errors import DuplicateRegionError, OutOfBoundsError, RegionOverlapError, UnmappedAddressError

if TYPE_CHECKING:
    from .reader import Cursor


@dataclass(frozen=True, slots=True)
class Reference:
    region: str
    offset: int

    def __add__(self, delta: int) -> Reference:
        return Reference(self.region, self.offset + int(delta))

    def __str__(self) -> str:
        return f"{self.region}|0x{self.offset:08X}"


@dataclass(frozen=True, slots=True)
class Region:
    id: str
    data: bytes
    origin: int = 0

    def __len__(self) -> int:
        return len(self.data)

    def contains(self, address: int) -> bool:
        return self.origin <= address < self.origin + len(self.data)

    def overlaps(self, other: Region) -> bool:
        if not self.data or not other.data:
            return False
        return self.origin < other.origin + len(other.data) and other.origin < self.origin + len(self.data)


@dataclass(frozen=True, slots=True)
class RelocationEntry:
    offset: int
    target: str | None = None


class RelocationTable(Mapping[int, RelocationEntry]):
    """Field offsets of one region that hold addresses."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Iterable[RelocationEntry] = ()) -> None:
        self._entries: dict[int, RelocationEntry] = {}
        for entry in entries:
            self._entries[int(entry.offset)] = entry

    def __getitem__(self, offset: int) -> RelocationEntry:
        return self._entries[offset]

    def __iter__(self) -> Iterator[int]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"RelocationTable({len(self._entries)} entries)"


class AddressSpace:
    def __init__(self, *, little_endian: bool = True) -> None:
        self.little_endian = bool(little_endian)
        self._u32 = struct.Struct("<I" if self.little_endian else ">I")
        self._regions: dict[str, Region] = {}
        self._relocations: dict[str, RelocationTable] = {}

    @property
    def regions(self) -> tuple[Region, ...]:
        return tuple(self._regions.values())

    def __contains__(self, region_id: object) -> bool:
        return region_id in self._regions

    def register_region(self, region_id: str, data: bytes, origin: int = 0) -> Region:
        if region_id in self._regions:
            raise DuplicateRegionError(f"region already registered: {region_id!r}")
        region = Region(id=str(region_id), data=bytes(data), origin=int(origin))
        self._check_overlap(region)
        self._regions[region.id] = region
        return region

    def _check_overlap(self, region: Region) -> None:
        for other in self._regions.values():
            if other.id != region.id and region.overlaps(other):
                raise RegionOverlapError(
                    f"region {region.id!r} [0x{region.origin:08X}, 0x{region.origin + len(region):08X}) overlaps "
                    f"{other.id!r} [0x{other.origin:08X}, 0x{other.origin + len(other):08X})"
                )

    def region(self, region_id: str) -> Region:
        try:
            return self._regions[region_id]
        except KeyError:
            raise UnmappedAddressError(0, f"unknown region: {region_id!r}") from None

    def replace_data(self, region_id: str, data: bytes) -> Region:
        region = replace(self.region(region_id), data=bytes(data))
        self._check_overlap(region)
        self._regions[region_id] = region
        return region

    def resolve(self, address: int) -> Reference:
        address = int(address)
        for region in self._regions.values():
            if region.contains(address):
                return Reference(region.id, address - region.origin)
        raise UnmappedAddressError(address)

    def normalize(self, address: int, region_id: str) -> Reference:
        region = self.region(region_id)
        if not region.contains(address):
            raise UnmappedAddressError(
                address,
                f"address 0x{address:08X} is outside region {region_id!r} "
                f"[0x{region.origin:08X}, 0x{region.origin + len(region):08X})",
            )
        return Reference(region.id, address - region.origin)

    def read_at(self, ref: Reference, size: int) -> bytes:
        region = self.region(ref.region)
        if size < 0 or ref.offset < 0 or ref.offset + size > len(region.data):
            raise OutOfBoundsError(f"read of {size} bytes at {ref} exceeds region size 0x{len(region.data):X}")
        return region.data[ref.offset : ref.offset + size]

    def apply_relocation(self, region_id: str, table: RelocationTable) -> None:
        self.region(region_id)
        self._relocations[region_id] = table

    def relocation(self, region_id: str) -> RelocationTable | None:
        return self._relocations.get(region_id)

    def read_u32(self, ref: Reference) -> int:
        return self._u32.unpack(self.read_at(ref, 4))[0]

    def read_pointer(self, ref: Reference) -> Reference | None:
        raw = self.read_u32(ref)
        table = self._relocations.get(ref.region)
        if table is None:
            if raw == 0:
                return None
            return self.resolve(raw)
        entry = table.get(ref.offset)
        if entry is None:
            return None
        if entry.target is None:
            return self.resolve(raw)
        return self.normalize(raw, entry.target)

    def cursor(self, ref: Reference) -> Cursor:
        from .reader import Cursor

        return Cursor(self, ref)


__all__ = [
    "AddressSpace",
    "Reference",
    "Region",
    "RelocationEntry",
    "RelocationTable",
]
