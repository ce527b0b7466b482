from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
import struct

from .address_space import Reference, RelocationEntry
from .geom import Vec2, Vec3, Vec4


class ImageWriter:
    """Lays out a memory image for one region and records its pointer fields."""

    def __init__(self, region: str, *, little_endian: bool = True, origins: Mapping[str, int] | None = None) -> None:
        self.region = str(region)
        self.little_endian = bool(little_endian)
        self.origins = dict(origins or {})
        self._prefix = "<" if self.little_endian else ">"
        self._buf = bytearray()
        self._pos = 0
        self._relocations: dict[int, RelocationEntry] = {}

    def __len__(self) -> int:
        return len(self._buf)

    def tell(self) -> int:
        return self._pos

    def here(self) -> Reference:
        return Reference(self.region, self._pos)

    def seek(self, offset: int) -> None:
        if offset > len(self._buf):
            self._buf.extend(bytes(offset - len(self._buf)))
        self._pos = int(offset)

    @contextmanager
    def at(self, ref: Reference) -> Iterator[ImageWriter]:
        if ref.region != self.region:
            raise ValueError(f"{ref} is not in region {self.region!r}")
        saved = self._pos
        self.seek(ref.offset)
        try:
            yield self
        finally:
            self._pos = saved

    def alloc(self, size: int, *, align: int = 4) -> Reference:
        """Reserve zeroed space at the end of the image without moving the write position."""
        start = len(self._buf)
        start += (-start) % align
        self._buf.extend(bytes(start + size - len(self._buf)))
        return Reference(self.region, start)

    def write(self, data: bytes) -> Reference:
        ref = self.here()
        end = self._pos + len(data)
        if end > len(self._buf):
            self._buf.extend(bytes(end - len(self._buf)))
        self._buf[self._pos : end] = data
        self._pos = end
        return ref

    def _pack(self, fmt: str, *values: object) -> Reference:
        return self.write(struct.pack(self._prefix + fmt, *values))

    def zeros(self, size: int) -> Reference:
        return self.write(bytes(size))

    def u8(self, value: int) -> Reference:
        return self._pack("B", value)

    def u16(self, value: int) -> Reference:
        return self._pack("H", value)

    def i16(self, value: int) -> Reference:
        return self._pack("h", value)

    def u32(self, value: int) -> Reference:
        return self._pack("I", value & 0xFFFFFFFF)

    def i32(self, value: int) -> Reference:
        return self._pack("i", value)

    def f32(self, value: float) -> Reference:
        return self._pack("f", value)

    def vec2(self, value: Vec2 | tuple[float, float]) -> Reference:
        x, y = value.to_tuple() if isinstance(value, Vec2) else value
        return self._pack("2f", x, y)

    def vec3(self, value: Vec3 | tuple[float, float, float]) -> Reference:
        x, y, z = value.to_tuple() if isinstance(value, Vec3) else value
        return self._pack("3f", x, z, y)

    def vec4(self, value: Vec4 | tuple[float, float, float, float]) -> Reference:
        x, y, z, w = value.to_tuple() if isinstance(value, Vec4) else value
        return self._pack("4f", x, y, z, w)

    def fixed_string(self, text: str, size: int, encoding: str = "latin-1") -> Reference:
        raw = text.encode(encoding)[: size - 1]
        return self.write(raw.ljust(size, b"\x00"))

    def cstring(self, text: str, encoding: str = "latin-1") -> Reference:
        return self.write(text.encode(encoding) + b"\x00")

    def address_of(self, target: Reference) -> int:
        return self.origins.get(target.region, 0) + target.offset

    def pointer(self, target: Reference | None) -> Reference:
        field = self._pos
        if target is None:
            self._relocations.pop(field, None)
            return self.u32(0)
        self._relocations[field] = RelocationEntry(offset=field, target=target.region)
        return self.u32(self.address_of(target))

    def relocations(self) -> list[RelocationEntry]:
        return [self._relocations[offset] for offset in sorted(self._relocations)]

    def getvalue(self) -> bytes:
        return bytes(self._buf)


__all__ = ["ImageWriter"]
