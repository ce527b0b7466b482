from __future__ import annotations

from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from memdump.address_space import AddressSpace, Reference
from memdump.cache import ObjectCache, Referencable
from memdump.debug_log import load_debug_log
from memdump.reader import Cursor

from .settings import LoadSettings
from .tables import ScriptTables

T = TypeVar("T", bound=Referencable)

Reader = Callable[["LoadContext", T], None]


@dataclass(slots=True)
class LoadContext:
    """Load-scoped state handed to every decode routine."""

    settings: LoadSettings
    space: AddressSpace
    cache: ObjectCache = field(default_factory=ObjectCache)
    tables: ScriptTables | None = None
    strings: dict[Reference, str] = field(default_factory=dict)
    _deferred: deque[Callable[[], None]] = field(default_factory=deque)

    @classmethod
    def create(cls, settings: LoadSettings, tables: ScriptTables | None = None) -> LoadContext:
        return cls(settings=settings, space=AddressSpace(little_endian=settings.little_endian), tables=tables)

    def cursor(self, ref: Reference) -> Cursor:
        return self.space.cursor(ref)

    def load(self, kind: type[T], ref: Reference | None, read: Reader[T]) -> T | None:
        if ref is None:
            return None
        return self.cache.get_or_load(kind, ref, lambda obj: read(self, obj))

    def get(self, kind: type[T], ref: Reference | None) -> T | None:
        return self.cache.get(kind, ref)

    def read_string(self, ref: Reference | None) -> str | None:
        if ref is None:
            return None
        text = self.strings.get(ref)
        if text is None:
            text = self.cursor(ref).cstring()
            self.strings[ref] = text
        return text

    def defer(self, fixup: Callable[[], None]) -> None:
        self._deferred.append(fixup)

    @property
    def pending(self) -> int:
        return len(self._deferred)

    def resolve_deferred(self) -> int:
        """Run queued fix-ups, including ones queued while running, until none are left."""
        count = 0
        while self._deferred:
            fixup = self._deferred.popleft()
            fixup()
            count += 1
        load_debug_log("deferred", resolved=count)
        return count

    def release(self) -> None:
        self.space = AddressSpace(little_endian=self.settings.little_endian)
        self.cache.clear()
        self.strings.clear()
        self._deferred.clear()


__all__ = ["LoadContext", "Reader"]
