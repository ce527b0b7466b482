from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import struct
from typing import TYPE_CHECKING, Any

from construct import Construct
from construct.core import ConstructError

from .errors import FormatError, OutOfBoundsError
from .geom import Box, Vec2, Vec3, Vec4

if TYPE_CHECKING:
    from .address_space import AddressSpace, Reference


class Cursor:
    """Sequential reader over one region of an `AddressSpace`."""

    __slots__ = ("space", "region", "offset", "_prefix")

    def __init__(self, space: AddressSpace, ref: Reference) -> None:
        self.space = space
        self.region = ref.region
        self.offset = int(ref.offset)
        self._prefix = "<" if space.little_endian else ">"

    @property
    def ref(self) -> Reference:
        from .address_space import Reference

        return Reference(self.region, self.offset)

    @property
    def remaining(self) -> int:
        return len(self.space.region(self.region)) - self.offset

    def seek(self, ref: Reference) -> None:
        self.region = ref.region
        self.offset = int(ref.offset)

    def skip(self, size: int) -> None:
        if self.offset + size > len(self.space.region(self.region)):
            raise OutOfBoundsError(f"skip of {size} bytes at {self.ref} runs past the region end")
        self.offset += int(size)

    @contextmanager
    def at(self, ref: Reference) -> Iterator[Cursor]:
        saved_region, saved_offset = self.region, self.offset
        self.seek(ref)
        try:
            yield self
        finally:
            self.region, self.offset = saved_region, saved_offset

    def read(self, size: int) -> bytes:
        data = self.space.read_at(self.ref, size)
        self.offset += size
        return data

    def _unpack(self, fmt: str) -> tuple[Any, ...]:
        size = struct.calcsize(fmt)
        return struct.unpack(self._prefix + fmt, self.read(size))

    def u8(self) -> int:
        return self.read(1)[0]

    def u16(self) -> int:
        return self._unpack("H")[0]

    def i16(self) -> int:
        return self._unpack("h")[0]

    def u32(self) -> int:
        return self._unpack("I")[0]

    def i32(self) -> int:
        return self._unpack("i")[0]

    def f32(self) -> float:
        return self._unpack("f")[0]

    def _check_count(self, count: int, item_size: int, what: str) -> int:
        count = int(count)
        if count < 0 or count * item_size > self.remaining:
            raise FormatError(
                f"declared count {count} of {what} at {self.ref} needs {count * item_size} bytes, "
                f"{max(self.remaining, 0)} remain in the region"
            )
        return count

    def i16_array(self, count: int) -> list[int]:
        count = self._check_count(count, 2, "i16 values")
        return list(self._unpack(f"{count}h"))

    def vec2_array(self, count: int) -> list[Vec2]:
        count = self._check_count(count, 8, "vec2 values")
        return [self.vec2() for _ in range(count)]

    def vec3_array(self, count: int) -> list[Vec3]:
        count = self._check_count(count, 12, "vec3 values")
        return [self.vec3() for _ in range(count)]

    def vec2(self) -> Vec2:
        x, y = self._unpack("2f")
        return Vec2(x, y)

    def vec3(self) -> Vec3:
        # Stored as (x, z, y).
        x, z, y = self._unpack("3f")
        return Vec3(x, y, z)

    def vec4(self) -> Vec4:
        x, y, z, w = self._unpack("4f")
        return Vec4(x, y, z, w)

    def box(self) -> Box:
        lo = self.vec3()
        hi = self.vec3()
        return Box(lo, hi)

    def fixed_string(self, size: int, encoding: str = "latin-1") -> str:
        raw = self.read(size)
        return raw.split(b"\x00", 1)[0].decode(encoding)

    def cstring(self, encoding: str = "latin-1") -> str:
        region = self.space.region(self.region)
        end = region.data.find(b"\x00", self.offset)
        if end < 0:
            raise OutOfBoundsError(f"unterminated string at {self.ref}")
        raw = self.read(end - self.offset)
        self.offset += 1
        return raw.decode(encoding)

    def pointer(self) -> Reference | None:
        ptr = self.space.read_pointer(self.ref)
        self.offset += 4
        return ptr

    def pointers(self, count: int) -> list[Reference | None]:
        count = self._check_count(count, 4, "pointers")
        return [self.pointer() for _ in range(count)]

    def parse(self, layout: Construct) -> Any:
        size = layout.sizeof()
        data = self.read(size)
        try:
            return layout.parse(data)
        except ConstructError as exc:
            raise FormatError(f"failed to parse {size}-byte record at 0x{self.offset - size:08X}: {exc}") from exc


__all__ = ["Cursor"]
