from __future__ import annotations

from pathlib import Path

import pytest

from largomap.settings import (
    DEFAULT_REGION_ORIGINS,
    PRESETS,
    CollideLayout,
    EngineVersion,
    Game,
    LoadSettings,
    Platform,
    ScriptNodeLayout,
    SettingsError,
    load_settings,
    load_settings_file,
    settings_for,
)
from largomap.tables import NodeType, ScriptTables, dump_tables, load_tables, load_tables_file
from memdump.address_space import Reference
from memdump.errors import FormatError
from memdump.writer import ImageWriter

from conftest import context_for


def test_presets_derive_layouts() -> None:
    largo = settings_for("largo_pc")
    assert largo.script_node_layout is ScriptNodeLayout.STANDARD
    assert largo.collide_layout is CollideLayout.PRE_R3
    assert largo.r2_material_layout
    assert largo.has_pc_level_name_slots

    assert settings_for("r2_dc").script_node_layout is ScriptNodeLayout.DREAMCAST
    assert settings_for("r2_revolution_ps2").collide_layout is CollideLayout.REVOLUTION
    r3_gc = settings_for("r3_gc")
    assert r3_gc.script_node_layout is ScriptNodeLayout.SPLIT
    assert r3_gc.collide_layout is CollideLayout.R3
    assert not r3_gc.little_endian
    assert not r3_gc.r2_material_layout


def test_presets_place_regions_apart() -> None:
    for name, settings in PRESETS.items():
        assert settings.origin("fix") != settings.origin("lvl"), name


def test_default_origins_keep_level_pointers_in_the_level_region() -> None:
    fix = ImageWriter("fix", origins=DEFAULT_REGION_ORIGINS)
    fix.zeros(16)
    lvl = ImageWriter("lvl", origins=DEFAULT_REGION_ORIGINS)
    field = lvl.alloc(4)
    target = lvl.alloc(4)
    with lvl.at(field):
        lvl.pointer(target)
    ctx = context_for(fix, lvl, settings=LoadSettings(), relocate=False)

    assert ctx.space.read_pointer(field) == Reference("lvl", 4)


def test_unknown_preset() -> None:
    with pytest.raises(SettingsError, match="largo_pc"):
        settings_for("nope")
    assert "largo_pc" in PRESETS


def test_settings_from_json(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(
        '{"engine_version": 3, "game": "r3", "platform": "gc", "little_endian": false,'
        ' "region_origins": {"fix": 4096}, "level_file_case": "lower"}',
        encoding="utf-8",
    )
    settings = load_settings_file(path)
    assert settings.engine_version is EngineVersion.R3
    assert settings.game is Game.R3
    assert settings.platform is Platform.GC
    assert settings.origin("fix") == 4096
    assert settings.origin("lvl") == DEFAULT_REGION_ORIGINS["lvl"]
    assert settings.origin("other") == 0


def test_settings_reject_unknown_fields() -> None:
    with pytest.raises(SettingsError):
        load_settings('{"engine": "r2"}')


def test_tables_lookup() -> None:
    tables = ScriptTables(node_types=[NodeType.KEYWORD, NodeType.STRING])
    assert tables.node_type(1) is NodeType.STRING
    assert tables.node_type(99) is NodeType.UNKNOWN
    assert tables.opcode_of(NodeType.STRING) == 1
    assert NodeType.STRING.is_reference
    assert not NodeType.KEYWORD.is_variable
    assert NodeType.REAL.is_variable


def test_tables_json_roundtrip(tmp_path: Path) -> None:
    tables = ScriptTables(node_types=[NodeType.KEYWORD, NodeType.REAL], keywords=["If"], functions=["Func_Sinus"])
    path = tmp_path / "tables.json"
    path.write_bytes(dump_tables(tables))
    loaded = load_tables_file(path)
    assert loaded.node_types == [NodeType.KEYWORD, NodeType.REAL]
    assert loaded.functions == ["Func_Sinus"]


def test_invalid_tables() -> None:
    with pytest.raises(FormatError):
        load_tables('{"node_types": ["NotAType"]}')
