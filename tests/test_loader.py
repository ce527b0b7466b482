from __future__ import annotations

import pytest

from largomap.loader import GraphLoader, LoadError, LoadState, load_scene
from largomap.objects import Family, Perso, Script, SuperObjectType
from largomap.provider import LVL_PTR, MemoryProvider
from largomap.script import decode_script
from memdump.debug_log import capture_load_events
from memdump.errors import FormatError
from memdump.geom import Vec3

from conftest import SyntheticArchive


def _loader(archive: SyntheticArchive, files: dict[str, bytes] | None = None) -> GraphLoader:
    return GraphLoader(MemoryProvider(archive.files if files is None else files), archive.settings, archive.tables)


def test_steps_visit_every_state_in_order(synthetic_archive: SyntheticArchive) -> None:
    loader = _loader(synthetic_archive)
    with capture_load_events() as events:
        states = list(loader.steps())
    assert states == [
        LoadState.REGIONS_LOADED,
        LoadState.DECOMPRESSED,
        LoadState.HEADER_PARSED,
        LoadState.FAMILIES_LOADED,
        LoadState.HIERARCHY_LOADED,
        LoadState.ALWAYS_LIST_LOADED,
        LoadState.CROSS_REFERENCED,
        LoadState.READY,
    ]
    assert loader.state is LoadState.READY
    assert [e.fields["state"] for e in events if e.event == "state"] == [s.value for s in states]
    assert not [e for e in events if e.event == "list_count_mismatch"]

    with pytest.raises(RuntimeError):
        next(loader.steps())
    loader.close()


def test_headers(synthetic_archive: SyntheticArchive) -> None:
    loader = _loader(synthetic_archive)
    scene = loader.load()

    fix = scene.fix_header
    assert fix.level_names == ["LEVEL01"]
    assert fix.first_map_name == "LEVEL01"
    assert fix.subtitle_languages == ["English"]
    assert fix.voice_languages == ["Francais"]
    assert [action.name for action in fix.entry_actions] == ["Action_Jump"]
    assert fix.entry_actions[0].active

    level = scene.level_header
    assert level.families.count == 1
    assert level.font.num_languages == 1
    assert level.bounding_box.max.to_tuple() == (1.0, 2.0, 3.0)
    assert level.bounding_box.contains(Vec3(0.0, 0.0, 0.0))
    assert not level.bounding_box.contains(Vec3(0.0, 5.0, 0.0))
    assert scene.vignettes == {"fix": "fix_load.bmp", "lvl": "level01.bmp"}
    loader.close()


def test_object_graph(synthetic_archive: SyntheticArchive) -> None:
    loader = _loader(synthetic_archive)
    scene = loader.load()

    (family,) = scene.families
    assert [state.name for state in family.states] == ["Idle"]
    assert family.states[0].family is family
    assert family.states[0].speed == 30

    world = scene.actual_world
    assert world is not None
    assert world.type is SuperObjectType.WORLD
    assert scene.roots() == [world]
    (actor_so,) = world.children
    assert actor_so.parent is world

    (perso,) = scene.persos()
    assert actor_so.data is perso
    assert perso.super_object is actor_so
    assert perso.family is family
    assert (perso.family_index, perso.model_index, perso.instance_index) == (0, 3, 7)
    assert perso.full_name == "[Family_0] Model_3 | Perso_7"
    # The always-active list points at the same record as the hierarchy.
    assert scene.always_active == [perso]
    assert scene.spawnable_persos == []
    assert len(scene.objects[Family]) == 1
    assert len(scene.objects[Perso]) == 1
    loader.close()


def test_scripts_decode(synthetic_archive: SyntheticArchive) -> None:
    loader = _loader(synthetic_archive)
    scene = loader.load()
    (perso,) = scene.persos()
    model = perso.mind.ai_model
    (script,) = model.scripts()
    assert scene.scripts() == [script]
    assert script.owner.short_name == "Intelligence[0]"
    assert script.owner.model is model

    rendered = decode_script(loader.ctx, script, perso)
    assert tuple(node.text for node in rendered) == synthetic_archive.expected_script
    assert [node.indent for node in rendered] == [1, 2, 0]
    loader.close()


def test_close_releases_buffers_but_keeps_scene(synthetic_archive: SyntheticArchive) -> None:
    loader = _loader(synthetic_archive)
    scene = loader.load()
    loader.close()
    assert len(loader.ctx.cache) == 0
    assert loader.ctx.space.regions == ()
    assert len(scene.persos()) == 1
    with pytest.raises(RuntimeError, match="closed"):
        next(loader.steps())


def test_load_scene_helper(synthetic_archive: SyntheticArchive) -> None:
    scene = load_scene(MemoryProvider(synthetic_archive.files), synthetic_archive.settings, synthetic_archive.tables)
    assert len(scene.scripts()) == 1
    assert isinstance(scene.scripts()[0], Script)


def test_missing_level_component_fails_in_region_step(synthetic_archive: SyntheticArchive) -> None:
    files = dict(synthetic_archive.files)
    del files["lvl.lvl"]
    loader = _loader(synthetic_archive, files)
    with capture_load_events() as events:
        with pytest.raises(LoadError) as excinfo:
            loader.load()
    assert excinfo.value.state is LoadState.REGIONS_LOADED
    assert isinstance(excinfo.value.cause, FormatError)
    assert "lvl.lvl" in str(excinfo.value)
    assert [e.fields["state"] for e in events if e.event == "load_failed"] == ["regions_loaded"]
    with pytest.raises(RuntimeError, match="failed"):
        next(loader.steps())


def test_corrupt_container_fails_in_decompress(synthetic_archive: SyntheticArchive) -> None:
    files = dict(synthetic_archive.files)
    files["fix.lvl"] = files["fix.lvl"][:-16]
    with pytest.raises(LoadError) as excinfo:
        _loader(synthetic_archive, files).load()
    assert excinfo.value.state is LoadState.DECOMPRESSED


def test_without_relocation_tables_pointers_resolve_by_containment(synthetic_archive: SyntheticArchive) -> None:
    files = dict(synthetic_archive.files)
    del files[LVL_PTR]
    del files["fix.ptr"]
    loader = _loader(synthetic_archive, files)
    scene = loader.load()
    (perso,) = scene.persos()
    assert perso.family is scene.families[0]
    loader.close()


def test_graph_steps_require_parsed_headers(synthetic_archive: SyntheticArchive) -> None:
    loader = _loader(synthetic_archive)
    for step in (loader._load_families, loader._load_hierarchy, loader._load_always, loader._finish):
        with pytest.raises(FormatError, match="headers are not parsed"):
            step()
    assert loader.scene is None
