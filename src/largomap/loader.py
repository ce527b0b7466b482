from __future__ import annotations

"""Staged loader: archive components in, object graph out.

`GraphLoader.steps()` yields after every state transition so a host can
interleave other work or stop early; `close()` drops buffers and cache entries.
Any failure inside a step surfaces as a single `LoadError` naming the
transition that was being attempted.
"""

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
import enum

from memdump.address_space import Reference
from memdump.debug_log import load_debug_log
from memdump.errors import DumpError, FormatError

from . import provider as files
from .container import parse_ptr_table, unpack_container, unpack_pbt
from .context import LoadContext
from .header import FixHeader, LevelHeader, read_fix_header, read_level_header
from .hierarchy import load_families, load_perso_list, load_super_object
from .objects import Family, Perso, Script, SuperObject
from .provider import FileProvider
from .settings import LoadSettings
from .tables import ScriptTables
from .visual import VisualMaterial

REGION_FIX = "fix"
REGION_LVL = "lvl"
# Relocation tables address regions by index in this order.
REGION_IDS = (REGION_FIX, REGION_LVL)

_COMPONENTS = {
    REGION_FIX: (files.FIX_LVL, files.FIX_PTR, files.FIX_PBT),
    REGION_LVL: (files.LVL_LVL, files.LVL_PTR, files.LVL_PBT),
}


class LoadState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    REGIONS_LOADED = "regions_loaded"
    DECOMPRESSED = "decompressed"
    HEADER_PARSED = "header_parsed"
    FAMILIES_LOADED = "families_loaded"
    HIERARCHY_LOADED = "hierarchy_loaded"
    ALWAYS_LIST_LOADED = "always_list_loaded"
    CROSS_REFERENCED = "cross_referenced"
    READY = "ready"


class LoadError(DumpError):
    def __init__(self, state: LoadState, cause: BaseException) -> None:
        self.state = state
        self.cause = cause
        super().__init__(f"load failed during {state.value}: {cause}")


@dataclass(slots=True)
class Scene:
    settings: LoadSettings
    fix_header: FixHeader
    level_header: LevelHeader
    actual_world: SuperObject | None = None
    father_sector: SuperObject | None = None
    dynamic_world: SuperObject | None = None
    families: list[Family] = field(default_factory=list)
    always_active: list[Perso] = field(default_factory=list)
    spawnable_persos: list[Perso] = field(default_factory=list)
    side_tables: dict[str, bytes] = field(default_factory=dict)
    vignettes: dict[str, str] = field(default_factory=dict)
    objects: dict[type, list[object]] = field(default_factory=dict)

    def roots(self) -> list[SuperObject]:
        return [so for so in (self.actual_world, self.father_sector, self.dynamic_world) if so is not None]

    def persos(self) -> list[Perso]:
        return list(self.objects.get(Perso, []))

    def scripts(self) -> list[Script]:
        return list(self.objects.get(Script, []))

    def materials(self) -> list[VisualMaterial]:
        return list(self.objects.get(VisualMaterial, []))


class GraphLoader:
    def __init__(self, provider: FileProvider, settings: LoadSettings, tables: ScriptTables | None = None) -> None:
        self.provider = provider
        self.settings = settings
        self.ctx = LoadContext.create(settings, tables)
        self.state = LoadState.UNINITIALIZED
        self.scene: Scene | None = None
        self._blobs: dict[str, bytes | None] = {}
        self._side_tables: dict[str, bytes] = {}
        self._vignettes: dict[str, str] = {}
        self._fix_header: FixHeader | None = None
        self._level_header: LevelHeader | None = None
        self._families: list[Family] = []
        self._roots: dict[str, SuperObject | None] = {}
        self._always: list[Perso] = []
        self._spawnable: list[Perso] = []
        self._failed = False
        self._closed = False

    def _plan(self) -> list[tuple[LoadState, Callable[[], None]]]:
        return [
            (LoadState.REGIONS_LOADED, self._load_regions),
            (LoadState.DECOMPRESSED, self._decompress),
            (LoadState.HEADER_PARSED, self._parse_headers),
            (LoadState.FAMILIES_LOADED, self._load_families),
            (LoadState.HIERARCHY_LOADED, self._load_hierarchy),
            (LoadState.ALWAYS_LIST_LOADED, self._load_always),
            (LoadState.CROSS_REFERENCED, self._cross_reference),
            (LoadState.READY, self._finish),
        ]

    def steps(self) -> Iterator[LoadState]:
        if self._closed:
            raise RuntimeError("loader is closed")
        if self._failed:
            raise RuntimeError("loader failed; create a new one")
        if self.state is not LoadState.UNINITIALIZED:
            raise RuntimeError(f"loader already started (state={self.state.value})")
        for target, step in self._plan():
            if self._closed:
                return
            try:
                step()
            except Exception as exc:
                self._failed = True
                load_debug_log("load_failed", state=target.value, error=f"{type(exc).__name__}: {exc}")
                raise LoadError(target, exc) from exc
            self.state = target
            load_debug_log("state", state=target.value)
            yield target

    def load(self) -> Scene:
        for _state in self.steps():
            pass
        if self.scene is None:
            raise RuntimeError("load was closed before completion")
        return self.scene

    def close(self) -> None:
        self._closed = True
        self._blobs.clear()
        self.ctx.release()

    def _read(self, name: str) -> bytes | None:
        data = self.provider.read(name)
        return None if data is None else bytes(data)

    def _load_regions(self) -> None:
        for region_id in REGION_IDS:
            lvl_name, ptr_name, pbt_name = _COMPONENTS[region_id]
            data = self._read(lvl_name)
            if data is None:
                raise FormatError(f"missing archive component {lvl_name!r}")
            self.ctx.space.register_region(region_id, data, self.settings.origin(region_id))
            self._blobs[ptr_name] = self._read(ptr_name)
            self._blobs[pbt_name] = self._read(pbt_name)

    def _decompress(self) -> None:
        space = self.ctx.space
        little_endian = self.settings.little_endian
        for region_id in REGION_IDS:
            container = unpack_container(space.region(region_id).data, little_endian=little_endian)
            space.replace_data(region_id, container.data)
            self._vignettes[region_id] = container.vignette
            load_debug_log(
                "decompressed",
                region=region_id,
                compressed=container.compressed_size,
                decompressed=container.decompressed_size,
                vignette=container.vignette,
            )
        for region_id in REGION_IDS:
            _, ptr_name, pbt_name = _COMPONENTS[region_id]
            ptr_blob = self._blobs.get(ptr_name)
            if ptr_blob is not None:
                table = parse_ptr_table(ptr_blob, REGION_IDS, little_endian=little_endian)
                space.apply_relocation(region_id, table)
                load_debug_log("relocation", region=region_id, entries=len(table))
            pbt_blob = self._blobs.get(pbt_name)
            if pbt_blob is not None:
                self._side_tables[region_id] = unpack_pbt(pbt_blob, little_endian=little_endian)

    def _parse_headers(self) -> None:
        self._fix_header = read_fix_header(self.ctx, Reference(REGION_FIX, 0))
        self._level_header = read_level_header(self.ctx, Reference(REGION_LVL, 0))

    def _headers(self) -> tuple[FixHeader, LevelHeader]:
        if self._fix_header is None or self._level_header is None:
            raise FormatError(f"archive headers are not parsed (state={self.state.value})")
        return self._fix_header, self._level_header

    def _load_families(self) -> None:
        _, header = self._headers()
        if header.families is not None:
            self._families = load_families(self.ctx, header.families)

    def _load_hierarchy(self) -> None:
        _, header = self._headers()
        self._roots = {
            "actual_world": load_super_object(self.ctx, header.off_actual_world),
            "father_sector": load_super_object(self.ctx, header.off_father_sector),
            "dynamic_world": load_super_object(self.ctx, header.off_dynamic_world),
        }

    def _load_always(self) -> None:
        _, header = self._headers()
        if header.always_active is not None:
            self._always = load_perso_list(self.ctx, header.always_active, name="always_active")
        if header.spawnable_persos is not None:
            self._spawnable = load_perso_list(self.ctx, header.spawnable_persos, name="spawnable_persos")

    def _cross_reference(self) -> None:
        self.ctx.resolve_deferred()

    def _finish(self) -> None:
        fix_header, level_header = self._headers()
        cache = self.ctx.cache
        self.scene = Scene(
            settings=self.settings,
            fix_header=fix_header,
            level_header=level_header,
            actual_world=self._roots.get("actual_world"),
            father_sector=self._roots.get("father_sector"),
            dynamic_world=self._roots.get("dynamic_world"),
            families=list(self._families),
            always_active=list(self._always),
            spawnable_persos=list(self._spawnable),
            side_tables=dict(self._side_tables),
            vignettes=dict(self._vignettes),
            objects={kind: list(cache.values(kind)) for kind in cache.kinds()},
        )


def load_scene(provider: FileProvider, settings: LoadSettings, tables: ScriptTables | None = None) -> Scene:
    loader = GraphLoader(provider, settings, tables)
    try:
        return loader.load()
    finally:
        loader.close()


__all__ = [
    "GraphLoader",
    "LoadError",
    "LoadState",
    "REGION_FIX",
    "REGION_IDS",
    "REGION_LVL",
    "Scene",
    "load_scene",
]
