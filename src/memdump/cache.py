from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

from .address_space import Reference


class Referencable(Protocol):
    def __init__(self, offset: Reference) -> None: ...


T = TypeVar("T", bound=Referencable)


@dataclass(slots=True)
class CacheSlot:
    value: Any
    loading: bool = True


class ObjectCache:
    """At most one instance per (type, reference).

    `get_or_load` stores an empty `kind(ref)` placeholder before filling it, so a
    reentrant request for the same key (a reference cycle) gets the object that is
    still being built. The finished object is that same placeholder.

    When a fill fails, its placeholder and every entry created while it was being
    filled are evicted together: those entries may hold the half-built object.
    """

    def __init__(self) -> None:
        self._slots: dict[type, dict[Reference, CacheSlot]] = {}
        # Keys inserted since the outermost pending fill started.
        self._journal: list[tuple[type, Reference]] = []
        self._depth = 0

    def get_or_load(self, kind: type[T], ref: Reference, fill: Callable[[T], None]) -> T:
        table = self._slots.setdefault(kind, {})
        slot = table.get(ref)
        if slot is not None:
            return slot.value
        value = kind(ref)
        slot = CacheSlot(value=value)
        table[ref] = slot
        mark = len(self._journal)
        self._journal.append((kind, ref))
        self._depth += 1
        try:
            fill(value)
        except BaseException:
            self._evict_since(mark)
            raise
        finally:
            self._depth -= 1
        slot.loading = False
        if self._depth == 0:
            self._journal.clear()
        return value

    def _evict_since(self, mark: int) -> None:
        for kind, ref in self._journal[mark:]:
            self._slots.get(kind, {}).pop(ref, None)
        del self._journal[mark:]

    def get(self, kind: type[T], ref: Reference | None) -> T | None:
        if ref is None:
            return None
        slot = self._slots.get(kind, {}).get(ref)
        return None if slot is None else slot.value

    def is_loading(self, kind: type, ref: Reference) -> bool:
        slot = self._slots.get(kind, {}).get(ref)
        return slot is not None and slot.loading

    def values(self, kind: type[T]) -> list[T]:
        return [slot.value for slot in self._slots.get(kind, {}).values()]

    def kinds(self) -> Iterator[type]:
        return iter(tuple(self._slots))

    def clear(self) -> None:
        self._slots.clear()
        self._journal.clear()

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        kind, ref = key
        return ref in self._slots.get(kind, {})

    def __len__(self) -> int:
        return sum(len(table) for table in self._slots.values())


__all__ = ["CacheSlot", "ObjectCache", "Referencable"]
