from __future__ import annotations

import enum
from dataclasses import dataclass

from memdump.address_space import AddressSpace, Reference
from memdump.debug_log import load_debug_log
from memdump.errors import FormatError
from memdump.reader import Cursor


class ListKind(enum.Enum):
    SINGLE = "single"
    DOUBLE = "double"


@dataclass(frozen=True, slots=True)
class ListHeader:
    first: Reference | None
    last: Reference | None
    count: int
    kind: ListKind = ListKind.DOUBLE


@dataclass(frozen=True, slots=True)
class ListWalk:
    header: ListHeader
    nodes: tuple[Reference, ...]

    @property
    def declared_count(self) -> int:
        return self.header.count

    @property
    def count_mismatch(self) -> bool:
        return len(self.nodes) != self.header.count

    def __iter__(self):
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)


def read_list_header(cursor: Cursor, kind: ListKind = ListKind.DOUBLE) -> ListHeader:
    first = cursor.pointer()
    last = cursor.pointer() if kind is ListKind.DOUBLE else None
    count = cursor.u32()
    return ListHeader(first=first, last=last, count=count, kind=kind)


def walk_list(space: AddressSpace, header: ListHeader, *, next_offset: int = 0, name: str = "list") -> ListWalk:
    """Follow `next` pointers from `first`.

    The walk stops after the declared `last` node or at a null `next`, whichever
    comes first; the declared count does not drive iteration.
    """

    nodes: list[Reference] = []
    seen: set[Reference] = set()
    node = header.first
    while node is not None:
        if node in seen:
            raise FormatError(f"{name}: next chain loops back to {node} after {len(nodes)} nodes")
        seen.add(node)
        nodes.append(node)
        if header.last is not None and node == header.last:
            break
        node = space.read_pointer(node + next_offset)

    walk = ListWalk(header=header, nodes=tuple(nodes))
    if walk.count_mismatch:
        load_debug_log(
            "list_count_mismatch",
            list=name,
            declared=header.count,
            walked=len(nodes),
            first=header.first,
            last=header.last,
        )
    return walk


__all__ = ["ListHeader", "ListKind", "ListWalk", "read_list_header", "walk_list"]
