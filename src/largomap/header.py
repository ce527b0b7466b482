from __future__ import annotations

"""Fixed and level memory headers.

Both headers sit at offset 0 of their decompressed region and are read
sequentially; unnamed fields are skipped with their exact widths so the
cursor stays aligned with the layout below.
"""

from dataclasses import dataclass, field

from memdump.address_space import Reference
from memdump.geom import Box
from memdump.reader import Cursor

from .context import LoadContext
from .hierarchy import read_entry_actions
from .linked_list import ListHeader, ListKind, read_list_header
from .objects import EntryAction

LEVEL_NAME_SIZE = 0x1E
LANGUAGE_NAME_SIZE = 0x14
ENTRY_ACTION_BLOCK_SIZE = 0xC0
INPUT_NAME_BLOCK_SIZE = 0x101
FIX_TAIL_BLOCK_SIZE = 0xCC
FIX_TAIL_BLOCK_COUNT = 10
LEVEL_ZERO_BLOCK_SIZE = 0x10D8
SHADOW_TABLE_SIZE = 21


@dataclass(slots=True)
class InputStructure:
    num_entry_actions: int = 0
    off_entry_actions: Reference | None = None
    entry_actions: list[EntryAction] = field(default_factory=list)


@dataclass(slots=True)
class FixHeader:
    level_names: list[str] = field(default_factory=list)
    first_map_name: str = ""
    subtitle_languages: list[str] = field(default_factory=list)
    voice_languages: list[str] = field(default_factory=list)
    num_matrices: int = 0
    input: InputStructure = field(default_factory=InputStructure)
    off_entry_actions: Reference | None = None
    font_bitmaps: list[Reference | None] = field(default_factory=list)
    num_fonts: int = 0
    off_font_define: Reference | None = None
    off_matrices: Reference | None = None
    off_special_entry_action: Reference | None = None
    off_identity_matrix: Reference | None = None
    off_halo_texture: Reference | None = None
    off_material1: Reference | None = None
    off_material2: Reference | None = None

    @property
    def entry_actions(self) -> list[EntryAction]:
        return self.input.entry_actions


@dataclass(slots=True)
class FontStructure:
    num_languages: int = 0
    off_text_tables: Reference | None = None


@dataclass(slots=True)
class LevelHeader:
    off_actual_world: Reference | None = None
    off_dynamic_world: Reference | None = None
    off_father_sector: Reference | None = None
    off_first_submap_position: Reference | None = None
    num_always: int = 0
    spawnable_persos: ListHeader | None = None
    off_always_reusable_so: Reference | None = None
    families: ListHeader | None = None
    always_active: ListHeader | None = None
    off_camera: Reference | None = None
    num_textures: int = 0
    off_textures: Reference | None = None
    num_sound_materials: int = 0
    off_sound_materials: Reference | None = None
    bounding_box: Box = Box()
    num_ipo: int = 0
    off_ipo: Reference | None = None
    num_shadow_dq: int = 0
    shadows_dq: list[Reference | None] = field(default_factory=list)
    num_shadow_hq: int = 0
    shadows_hq: list[Reference | None] = field(default_factory=list)
    font: FontStructure = field(default_factory=FontStructure)


def _names(cur: Cursor, ref: Reference | None, count: int, size: int) -> list[str]:
    if ref is None:
        return []
    with cur.at(ref):
        return [cur.fixed_string(size) for _ in range(count)]


def read_input_structure(ctx: LoadContext, cur: Cursor) -> InputStructure:
    """`u32 entry_action_count, entry_actions` followed by the pointed-to records."""
    inp = InputStructure()
    inp.num_entry_actions = cur.u32()
    inp.off_entry_actions = cur.pointer()
    inp.entry_actions = read_entry_actions(ctx, inp.off_entry_actions, inp.num_entry_actions)
    return inp


def read_fix_header(ctx: LoadContext, ref: Reference) -> FixHeader:
    cur = ctx.cursor(ref)
    header = FixHeader()

    cur.u32()
    num_level_names = cur.u8()
    cur.skip(3)
    header.level_names = [cur.fixed_string(LEVEL_NAME_SIZE) for _ in range(num_level_names)]
    if ctx.settings.has_pc_level_name_slots:
        cur.skip(2 * LEVEL_NAME_SIZE)
    header.first_map_name = cur.fixed_string(LEVEL_NAME_SIZE)

    num_subtitles = cur.u8()
    num_voice = cur.u8()
    cur.skip(2)
    off_subtitles = cur.pointer()
    off_voice = cur.pointer()
    header.subtitle_languages = _names(cur, off_subtitles, num_subtitles, LANGUAGE_NAME_SIZE)
    header.voice_languages = _names(cur, off_voice, num_voice, LANGUAGE_NAME_SIZE)

    cur.skip(ENTRY_ACTION_BLOCK_SIZE)
    cur.u16()
    header.num_matrices = cur.u16()
    cur.skip(4 * INPUT_NAME_BLOCK_SIZE)

    header.input = read_input_structure(ctx, cur)

    cur.skip(3 * 4)
    cur.u16()  # num_unk2
    cur.u16()
    cur.pointer()
    header.off_entry_actions = cur.pointer()
    cur.pointers(2)

    num_font_bitmaps = cur.u8()
    header.num_fonts = cur.u8()
    cur.skip(2)
    header.font_bitmaps = cur.pointers(num_font_bitmaps)
    header.off_font_define = cur.pointer()

    header.off_matrices = cur.pointer()
    header.off_special_entry_action = cur.pointer()
    header.off_identity_matrix = cur.pointer()
    cur.pointer()
    cur.skip(2 * 4 + 0xC8 + 2 * 2 + 4)
    cur.pointer()
    header.off_halo_texture = cur.pointer()
    header.off_material1 = cur.pointer()
    header.off_material2 = cur.pointer()
    cur.skip(FIX_TAIL_BLOCK_COUNT * FIX_TAIL_BLOCK_SIZE)
    return header


def read_level_header(ctx: LoadContext, ref: Reference) -> LevelHeader:
    cur = ctx.cursor(ref)
    header = LevelHeader()

    cur.skip(4 * 4)
    cur.pointers(2)
    cur.skip(2 * LEVEL_NAME_SIZE)

    header.off_actual_world = cur.pointer()
    header.off_dynamic_world = cur.pointer()
    header.off_father_sector = cur.pointer()
    header.off_first_submap_position = cur.pointer()

    header.num_always = cur.u32()
    header.spawnable_persos = read_list_header(cur, ListKind.DOUBLE)
    cur.pointer()
    header.off_always_reusable_so = cur.pointer()
    cur.pointers(2)

    cur.pointers(3)
    cur.pointers(2)
    read_list_header(cur, ListKind.DOUBLE)

    header.families = read_list_header(cur, ListKind.DOUBLE)
    header.always_active = read_list_header(cur, ListKind.DOUBLE)

    cur.pointer()
    cur.u32()
    header.off_camera = cur.pointer()
    cur.u32()
    cur.skip(4)

    cur.pointer()
    read_list_header(cur, ListKind.DOUBLE)
    cur.pointer()

    header.num_textures = cur.u32()
    header.off_textures = cur.pointer()

    cur.pointer()
    cur.u32()
    cur.pointer()
    header.num_sound_materials = cur.u32()
    header.off_sound_materials = cur.pointer()
    cur.pointer()
    cur.u32()
    cur.pointer()
    cur.u32()
    header.bounding_box = cur.box()
    cur.skip(2 * 2)
    cur.pointer()
    cur.u32()
    header.num_ipo = cur.u32()
    header.off_ipo = cur.pointer()
    cur.skip(0x30)
    num_unk_ptrs = cur.u32()
    cur.pointers(num_unk_ptrs)
    cur.skip(LEVEL_ZERO_BLOCK_SIZE)

    header.num_shadow_dq = cur.u32()
    header.shadows_dq = cur.pointers(SHADOW_TABLE_SIZE)
    header.num_shadow_hq = cur.u32()
    header.shadows_hq = cur.pointers(SHADOW_TABLE_SIZE)

    header.font = FontStructure(num_languages=cur.u16())
    cur.u16()
    header.font.off_text_tables = cur.pointer()

    cur.skip(2 * 2 + 4)
    cur.u32()
    cur.pointer()
    cur.skip(4 + 2 * 4)
    cur.pointers(3)
    return header


__all__ = [
    "FixHeader",
    "FontStructure",
    "InputStructure",
    "LANGUAGE_NAME_SIZE",
    "LEVEL_NAME_SIZE",
    "LevelHeader",
    "read_fix_header",
    "read_input_structure",
    "read_level_header",
]
