from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path

import pytest


def pytest_configure(config: pytest.Config) -> None:
    # Ensure the local `src/` tree wins over any other editable install that may exist
    # (e.g. a different git worktree pointing at the same project).
    src_dir = Path(__file__).resolve().parents[1] / "src"
    src_str = str(src_dir)
    if src_str not in sys.path:
        sys.path.insert(0, src_str)


ORIGINS = {"fix": 0x00400000, "lvl": 0x00800000}


@dataclass(frozen=True, slots=True)
class SyntheticArchive:
    """Two-region level: 1 family, 1 actor (also always active), one 3-node script."""

    files: dict[str, bytes]
    settings: object
    tables: object
    expected_script: tuple[str, ...]


def _cstring(w, text: str):
    ref = w.alloc(len(text) + 1)
    with w.at(ref):
        w.cstring(text)
    return ref


def _write_fix(w) -> None:
    from largomap.header import INPUT_NAME_BLOCK_SIZE, LANGUAGE_NAME_SIZE, LEVEL_NAME_SIZE

    w.u32(0)
    w.u8(1)
    w.zeros(3)
    w.fixed_string("LEVEL01", LEVEL_NAME_SIZE)
    w.zeros(2 * LEVEL_NAME_SIZE)
    w.fixed_string("LEVEL01", LEVEL_NAME_SIZE)
    w.u8(1)
    w.u8(1)
    w.zeros(2)
    off_subtitles = w.pointer(None)
    off_voice = w.pointer(None)
    w.zeros(0xC0)
    w.u16(0)
    w.u16(0)
    w.zeros(4 * INPUT_NAME_BLOCK_SIZE)
    w.u32(1)
    off_entry_actions = w.pointer(None)
    w.zeros(3 * 4 + 2 * 2)
    for _ in range(4):
        w.pointer(None)
    w.u8(0)
    w.u8(0)
    w.zeros(2)
    for _ in range(5):
        w.pointer(None)
    w.zeros(2 * 4 + 0xC8 + 2 * 2 + 4)
    for _ in range(4):
        w.pointer(None)
    w.zeros(10 * 0xCC)

    subtitles = w.alloc(LANGUAGE_NAME_SIZE)
    with w.at(subtitles):
        w.fixed_string("English", LANGUAGE_NAME_SIZE)
    voice = w.alloc(LANGUAGE_NAME_SIZE)
    with w.at(voice):
        w.fixed_string("Francais", LANGUAGE_NAME_SIZE)
    action = w.alloc(0x10)
    action_name = _cstring(w, "Action_Jump")
    with w.at(action):
        w.pointer(None)
        w.u32(0)
        w.pointer(action_name)
        w.u8(1)

    for slot, target in ((off_subtitles, subtitles), (off_voice, voice), (off_entry_actions, action)):
        with w.at(slot):
            w.pointer(target)


def _list_header(w, first, last, count: int) -> None:
    w.pointer(first)
    w.pointer(last)
    w.u32(count)


def _write_lvl(w, tables) -> None:
    from largomap.header import LEVEL_NAME_SIZE
    from largomap.tables import NodeType

    w.zeros(4 * 4)
    w.pointer(None)
    w.pointer(None)
    w.zeros(2 * LEVEL_NAME_SIZE)
    off_actual_world = w.pointer(None)
    for _ in range(3):
        w.pointer(None)
    w.u32(0)
    _list_header(w, None, None, 0)
    for _ in range(4 + 3 + 2):
        w.pointer(None)
    _list_header(w, None, None, 0)
    families_slot = w.here()
    _list_header(w, None, None, 1)
    always_slot = w.here()
    _list_header(w, None, None, 1)
    w.pointer(None)
    w.u32(0)
    w.pointer(None)
    w.u32(0)
    w.zeros(4)
    w.pointer(None)
    _list_header(w, None, None, 0)
    w.pointer(None)
    w.u32(0)
    w.pointer(None)
    w.zeros(4 * 9)
    w.vec3((-1.0, -2.0, -3.0))
    w.vec3((1.0, 2.0, 3.0))
    w.zeros(2 * 2 + 4 * 4)
    w.zeros(0x30)
    w.u32(0)
    w.zeros(0x10D8)
    w.zeros(2 * (4 + 21 * 4))
    w.u16(1)
    w.u16(0)
    w.pointer(None)
    w.zeros(2 * 2 + 4 + 4 + 4 + 4 + 2 * 4 + 3 * 4)

    family = w.alloc(0x1C)
    state = w.alloc(0x14)
    world = w.alloc(0x2C)
    actor_so = w.alloc(0x2C)
    perso = w.alloc(0x24)
    std_game = w.alloc(0x10)
    data_3d = w.alloc(0x4)
    brain = w.alloc(0x4)
    mind = w.alloc(0x10)
    model = w.alloc(0x10)
    behaviors = w.alloc(0x8)
    behavior = w.alloc(0xC)
    script = w.alloc(0x4)
    nodes = w.alloc(3 * 8)
    always_entry = w.alloc(0x10)
    state_name = _cstring(w, "Idle")
    hello = _cstring(w, "hello")

    with w.at(family):
        w.pointer(None)
        w.pointer(None)
        w.pointer(None)
        w.u32(0)
        _list_header(w, state, state, 1)
    with w.at(state):
        w.pointer(None)
        w.pointer(None)
        w.pointer(None)
        w.pointer(state_name)
        w.u8(30)
    with w.at(world):
        w.u32(0x1)
        w.pointer(None)
        _list_header(w, actor_so, actor_so, 1)
        w.pointer(None)
        w.pointer(None)
        w.pointer(None)
        w.pointer(None)
        w.u32(0)
        w.u32(0)
    with w.at(actor_so):
        w.u32(0x2)
        w.pointer(perso)
        _list_header(w, None, None, 0)
        w.pointer(None)
        w.pointer(None)
        w.pointer(world)
        w.pointer(None)
        w.u32(0)
        w.u32(0)
    with w.at(perso):
        w.pointer(data_3d)
        w.pointer(std_game)
        w.pointer(None)
        w.pointer(brain)
        for _ in range(5):
            w.pointer(None)
    with w.at(std_game):
        w.u32(0)
        w.u32(3)
        w.u32(7)
        w.pointer(actor_so)
    with w.at(data_3d):
        w.pointer(family)
    with w.at(brain):
        w.pointer(mind)
    with w.at(mind):
        w.pointer(model)
    with w.at(model):
        w.pointer(behaviors)
    with w.at(behaviors):
        w.pointer(behavior)
        w.u8(1)
    with w.at(behavior):
        w.pointer(script)
        w.pointer(None)
        w.u8(1)
    with w.at(script):
        w.pointer(nodes)
    with w.at(nodes):
        for param, indent, node_type in (
            (0, 1, NodeType.KEYWORD),
            (0x3F800000, 2, NodeType.REAL),
            (None, 0, NodeType.STRING),
        ):
            if param is None:
                w.pointer(hello)
            else:
                w.u32(param)
            w.zeros(2)
            w.u8(indent)
            w.u8(tables.opcode_of(node_type))
    with w.at(always_entry):
        w.pointer(None)
        w.pointer(None)
        w.pointer(None)
        w.pointer(perso)

    with w.at(off_actual_world):
        w.pointer(world)
    with w.at(families_slot):
        w.pointer(family)
        w.pointer(family)
    with w.at(always_slot):
        w.pointer(always_entry)
        w.pointer(always_entry)


def build_synthetic_archive() -> SyntheticArchive:
    from largomap.container import build_ptr_table, pack_container
    from largomap.loader import REGION_IDS
    from largomap.settings import LoadSettings
    from largomap.tables import NodeType, ScriptTables
    from memdump.writer import ImageWriter

    settings = LoadSettings(region_origins=dict(ORIGINS))
    tables = ScriptTables(
        node_types=[NodeType.KEYWORD, NodeType.REAL, NodeType.STRING, NodeType.PERSO_REF],
        keywords=["If", "Then"],
    )

    fix = ImageWriter("fix", origins=ORIGINS)
    _write_fix(fix)
    lvl = ImageWriter("lvl", origins=ORIGINS)
    _write_lvl(lvl, tables)

    files = {
        "fix.lvl": pack_container(fix.getvalue(), vignette="fix_load.bmp"),
        "fix.ptr": build_ptr_table(fix.relocations(), REGION_IDS),
        "lvl.lvl": pack_container(lvl.getvalue(), vignette="level01.bmp"),
        "lvl.ptr": build_ptr_table(lvl.relocations(), REGION_IDS),
    }
    return SyntheticArchive(
        files=files,
        settings=settings,
        tables=tables,
        expected_script=("If", "1", '"hello"'),
    )


@pytest.fixture(scope="session")
def synthetic_archive() -> SyntheticArchive:
    return build_synthetic_archive()


def context_for(*writers, settings=None, tables=None, relocate: bool = True):
    """LoadContext over the images laid out by `writers` (already decompressed)."""
    from largomap.context import LoadContext
    from largomap.settings import LoadSettings
    from memdump.address_space import RelocationTable

    if settings is None:
        settings = LoadSettings(region_origins=dict(ORIGINS))
    ctx = LoadContext.create(settings, tables)
    for w in writers:
        ctx.space.register_region(w.region, w.getvalue(), settings.origin(w.region))
        if relocate:
            ctx.space.apply_relocation(w.region, RelocationTable(w.relocations()))
    return ctx
