from __future__ import annotations

"""
Largo block codec.

Stream layout:
  - u8 fill byte (used by fill runs)
  - instructions until `compressed_size` bytes (fill byte included) are consumed

Instruction byte `b`: class = b >> 5, arg = b & 0x3F.
  class 0-1  literal: copy arg+1 bytes from the stream
  class 2-3  back copy: len = (arg & 3) + 2, dist = (arg >> 2) + 1
  class 4    fill: (arg & 0x1F) + 2 fill bytes
  class 5    +1 byte, 13-bit arg: len = (arg & 0xF) + 3,   dist = (arg >> 4) + 1
  class 6    +2 bytes, 21-bit arg: len = (arg & 0x7F) + 4,  dist = (arg >> 7) + 1
  class 7    +3 bytes, 29-bit arg: len = (arg & 0x1FF) + 5, dist = (arg >> 9) + 1

Back copies go one byte at a time; source and destination may overlap.
"""

from collections import Counter
from dataclasses import dataclass

from .errors import CorruptArchiveError

MAX_LITERAL = 0x40
MAX_FILL = 0x1F + 2


@dataclass(frozen=True, slots=True)
class _CopyClass:
    code: int
    extra: int
    len_bits: int
    min_len: int
    dist_bits: int

    @property
    def max_len(self) -> int:
        return self.min_len + (1 << self.len_bits) - 1

    @property
    def max_dist(self) -> int:
        return 1 << self.dist_bits


# Ordered cheapest first.
_COPY_CLASSES = (
    _CopyClass(code=2, extra=0, len_bits=2, min_len=2, dist_bits=4),
    _CopyClass(code=5, extra=1, len_bits=4, min_len=3, dist_bits=9),
    _CopyClass(code=6, extra=2, len_bits=7, min_len=4, dist_bits=14),
    _CopyClass(code=7, extra=3, len_bits=9, min_len=5, dist_bits=20),
)
_MAX_MATCH = _COPY_CLASSES[-1].max_len
_MAX_DIST = _COPY_CLASSES[-1].max_dist
_CHAIN_LIMIT = 48


def decompress(data: bytes | bytearray | memoryview, compressed_size: int, decompressed_size: int) -> bytes:
    src = memoryview(data)
    if compressed_size > len(src):
        raise CorruptArchiveError(f"compressed size {compressed_size} exceeds input length {len(src)}")
    out = bytearray(decompressed_size)
    if compressed_size <= 0:
        if decompressed_size:
            raise CorruptArchiveError("empty stream for non-empty output")
        return bytes(out)

    fill = src[0]
    pos = 1
    dst = 0

    def take(count: int) -> memoryview:
        nonlocal pos
        if pos + count > compressed_size:
            raise CorruptArchiveError(f"instruction at 0x{pos:X} reads past the compressed stream")
        chunk = src[pos : pos + count]
        pos += count
        return chunk

    def back_copy(length: int, dist: int) -> None:
        nonlocal dst
        start = dst - dist
        if start < 0:
            raise CorruptArchiveError(f"back reference {dist} before output start at 0x{dst:X}")
        if dst + length > decompressed_size:
            raise CorruptArchiveError(f"back copy of {length} bytes overruns output at 0x{dst:X}")
        for i in range(length):
            out[dst + i] = out[start + i]
        dst += length

    while pos < compressed_size:
        instruction = take(1)[0]
        cls = instruction >> 5
        arg = instruction & 0x3F
        if cls <= 1:
            length = arg + 1
            if dst + length > decompressed_size:
                raise CorruptArchiveError(f"literal of {length} bytes overruns output at 0x{dst:X}")
            out[dst : dst + length] = take(length)
            dst += length
        elif cls <= 3:
            back_copy((arg & 3) + 2, (arg >> 2) + 1)
        elif cls == 4:
            length = (arg & 0x1F) + 2
            if dst + length > decompressed_size:
                raise CorruptArchiveError(f"fill of {length} bytes overruns output at 0x{dst:X}")
            out[dst : dst + length] = bytes([fill]) * length
            dst += length
        else:
            copy_class = _COPY_CLASSES[cls - 4]
            value = arg & 0x1F
            for b in take(copy_class.extra):
                value = (value << 8) | b
            length = (value & ((1 << copy_class.len_bits) - 1)) + copy_class.min_len
            back_copy(length, (value >> copy_class.len_bits) + 1)

    if dst != decompressed_size:
        raise CorruptArchiveError(f"stream produced {dst} bytes, expected {decompressed_size}")
    return bytes(out)


def _match_length(data: bytes, src: int, dst: int, limit: int) -> int:
    length = 0
    while length < limit and data[src + length] == data[dst + length]:
        length += 1
    return length


def _encode_copy(length: int, dist: int) -> bytes | None:
    for copy_class in _COPY_CLASSES:
        if copy_class.min_len <= length <= copy_class.max_len and dist <= copy_class.max_dist:
            value = ((dist - 1) << copy_class.len_bits) | (length - copy_class.min_len)
            if copy_class.code == 2:
                return bytes([0x40 | value])
            head = (copy_class.code << 5) | (value >> (8 * copy_class.extra))
            tail = (value & ((1 << (8 * copy_class.extra)) - 1)).to_bytes(copy_class.extra, "big")
            return bytes([head]) + tail
    return None


def _best_copy(length: int, dist: int) -> tuple[int, bytes] | None:
    # Shrink the match until some class can encode it at this distance.
    while length >= 2:
        encoded = _encode_copy(length, dist)
        if encoded is not None:
            return length, encoded
        if length > _MAX_MATCH:
            length = _MAX_MATCH
        else:
            length -= 1
    return None


def compress(data: bytes | bytearray) -> bytes:
    """Greedy encoder producing streams `decompress` reads back byte-exactly."""

    data = bytes(data)
    n = len(data)
    fill = Counter(data).most_common(1)[0][0] if data else 0
    out = bytearray([fill])
    literals = bytearray()
    chains: dict[bytes, list[int]] = {}

    def flush() -> None:
        while literals:
            chunk = literals[:MAX_LITERAL]
            out.append(len(chunk) - 1)
            out.extend(chunk)
            del literals[:MAX_LITERAL]

    def index(pos: int) -> None:
        if pos + 3 <= n:
            bucket = chains.setdefault(data[pos : pos + 3], [])
            bucket.append(pos)
            if len(bucket) > _CHAIN_LIMIT * 2:
                del bucket[:_CHAIN_LIMIT]

    i = 0
    while i < n:
        limit = min(_MAX_MATCH, n - i)

        run = 0
        while run < min(MAX_FILL, limit) and data[i + run] == fill:
            run += 1

        best_len, best_dist = 0, 0
        # Short distances first, class 2/3 can encode 2-byte matches.
        for dist in range(1, min(16, i) + 1):
            length = _match_length(data, i - dist, i, limit)
            if length > best_len:
                best_len, best_dist = length, dist
        if limit >= 3:
            for cand in reversed(chains.get(data[i : i + 3], ())[-_CHAIN_LIMIT:]):
                dist = i - cand
                if dist > _MAX_DIST:
                    break
                length = _match_length(data, cand, i, limit)
                if length > best_len:
                    best_len, best_dist = length, dist
                    if length == limit:
                        break

        copy = _best_copy(best_len, best_dist) if best_len >= 2 else None
        copy_gain = copy[0] - len(copy[1]) if copy is not None else 0

        if run >= 2 and run - 1 >= copy_gain:
            flush()
            out.append(0x80 | (run - 2))
            step = run
        elif copy is not None and copy_gain > 0:
            flush()
            out.extend(copy[1])
            step = copy[0]
        else:
            literals.append(data[i])
            step = 1

        for pos in range(i, i + step):
            index(pos)
        i += step

    flush()
    return bytes(out)


__all__ = ["compress", "decompress"]
