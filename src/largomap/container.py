from __future__ import annotations

"""
Archive components.

Level container (`*.lvl`):
  - u32 unknown
  - u32 compressed size (fill byte included)
  - u32 decompressed size
  - char[0x104] vignette (loading screen image name)
  - u32 unknown
  - Largo stream

Side table (`*.pbt`):
  - u32 decompressed size
  - u32 compressed size
  - Largo stream

Relocation table (`*.ptr`):
  - u32 count
  - count x (u32 target region index, u32 field offset)
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from functools import lru_cache

from construct import Array, Bytes, Construct, Int32ub, Int32ul, Struct, this
from construct.core import ConstructError

from memdump import largo
from memdump.address_space import RelocationEntry, RelocationTable
from memdump.errors import CorruptArchiveError, FormatError

VIGNETTE_SIZE = 0x104


@lru_cache(maxsize=None)
def _layouts(little_endian: bool) -> dict[str, Construct]:
    u32 = Int32ul if little_endian else Int32ub
    entry = Struct(
        "region_index" / u32,
        "field_offset" / u32,
    )
    return {
        "container": Struct(
            "unknown_00" / u32,
            "compressed_size" / u32,
            "decompressed_size" / u32,
            "vignette" / Bytes(VIGNETTE_SIZE),
            "unknown_110" / u32,
        ),
        "pbt": Struct(
            "decompressed_size" / u32,
            "compressed_size" / u32,
        ),
        "ptr": Struct(
            "count" / u32,
            "entries" / Array(this.count, entry),
        ),
    }


def _parse(name: str, data: bytes, little_endian: bool):
    try:
        return _layouts(little_endian)[name].parse(data)
    except ConstructError as exc:
        raise FormatError(f"failed to parse {name} header: {exc}") from exc


@dataclass(frozen=True, slots=True)
class LevelContainer:
    vignette: str
    compressed_size: int
    decompressed_size: int
    data: bytes


def unpack_container(blob: bytes, *, little_endian: bool = True) -> LevelContainer:
    layout = _layouts(little_endian)["container"]
    header = _parse("container", blob, little_endian)
    start = layout.sizeof()
    compressed = int(header.compressed_size)
    if start + compressed > len(blob):
        raise CorruptArchiveError(
            f"container declares {compressed} compressed bytes, only {len(blob) - start} present"
        )
    data = largo.decompress(memoryview(blob)[start:], compressed, int(header.decompressed_size))
    vignette = bytes(header.vignette).split(b"\x00", 1)[0].decode("latin-1")
    return LevelContainer(
        vignette=vignette,
        compressed_size=compressed,
        decompressed_size=int(header.decompressed_size),
        data=data,
    )


def pack_container(raw: bytes, *, vignette: str = "", little_endian: bool = True) -> bytes:
    stream = largo.compress(raw)
    header = _layouts(little_endian)["container"].build(
        {
            "unknown_00": 0,
            "compressed_size": len(stream),
            "decompressed_size": len(raw),
            "vignette": vignette.encode("latin-1")[: VIGNETTE_SIZE - 1].ljust(VIGNETTE_SIZE, b"\x00"),
            "unknown_110": 0,
        }
    )
    return header + stream


def unpack_pbt(blob: bytes, *, little_endian: bool = True) -> bytes:
    layout = _layouts(little_endian)["pbt"]
    header = _parse("pbt", blob, little_endian)
    start = layout.sizeof()
    compressed = int(header.compressed_size)
    if start + compressed > len(blob):
        raise CorruptArchiveError(f"side table declares {compressed} compressed bytes, only {len(blob) - start} present")
    return largo.decompress(memoryview(blob)[start:], compressed, int(header.decompressed_size))


def pack_pbt(raw: bytes, *, little_endian: bool = True) -> bytes:
    stream = largo.compress(raw)
    header = _layouts(little_endian)["pbt"].build({"decompressed_size": len(raw), "compressed_size": len(stream)})
    return header + stream


def parse_ptr_table(blob: bytes, region_ids: Sequence[str], *, little_endian: bool = True) -> RelocationTable:
    table = _parse("ptr", blob, little_endian)
    entries: list[RelocationEntry] = []
    for entry in table.entries:
        index = int(entry.region_index)
        if not 0 <= index < len(region_ids):
            raise FormatError(f"relocation entry targets unknown region index {index}")
        entries.append(RelocationEntry(offset=int(entry.field_offset), target=region_ids[index]))
    return RelocationTable(entries)


def build_ptr_table(entries: Iterable[RelocationEntry], region_ids: Sequence[str], *, little_endian: bool = True) -> bytes:
    rows = []
    for entry in entries:
        if entry.target is None:
            raise ValueError(f"relocation entry at 0x{entry.offset:X} has no target region")
        rows.append({"region_index": list(region_ids).index(entry.target), "field_offset": entry.offset})
    try:
        return _layouts(little_endian)["ptr"].build({"count": len(rows), "entries": rows})
    except ConstructError as exc:
        raise FormatError(f"failed to build relocation table: {exc}") from exc


__all__ = [
    "LevelContainer",
    "VIGNETTE_SIZE",
    "build_ptr_table",
    "pack_container",
    "pack_pbt",
    "parse_ptr_table",
    "unpack_container",
    "unpack_pbt",
]
