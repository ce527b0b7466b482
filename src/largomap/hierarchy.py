from __future__ import annotations

"""Readers for the scene hierarchy records.

Record layouts (all pointers relocation-aware, `u32` unless noted):

  Family         next, prev, header, index, states: (first, last, count)
  State          next, prev, header, name (char*), speed u8, pad[3]
  SuperObject    type, data, child_first, child_last, child_count,
                 brother_next, brother_prev, parent, matrix, draw_flags, flags
  Perso          3dData, stdGame, dynam, brain, camera, collideSet, msWay,
                 msLight, sectorInfo
  stdGame        family_index, model_index, instance_index, super_object
  3dData         family, ...
  Brain          mind, ...
  PhysicalObject visual, collide
  WayPoint       position vec3, radius f32, super_object
  EntryAction    keywords, keyword_count, name (char*), active u8, pad[3]
  list entry     next, prev, header, perso   (always-active/spawnable lists)
"""

from memdump.address_space import Reference

from .ai import read_brain
from .context import LoadContext
from .geometry import CollideMesh, GeometricObject, read_collide_mesh, read_geometric_object
from .linked_list import ListHeader, ListKind, read_list_header, walk_list
from .objects import EntryAction, Family, Perso, PhysicalObject, State, SuperObject, SuperObjectType, WayPoint

SUPER_OBJECT_BROTHER_NEXT = 0x14
ENTRY_ACTION_SIZE = 0x10
PERSO_LIST_ENTRY_PERSO = 0x0C


def read_state(ctx: LoadContext, state: State) -> None:
    cur = ctx.cursor(state.offset)
    state.off_next = cur.pointer()
    state.off_prev = cur.pointer()
    state.off_header = cur.pointer()
    state.name = ctx.read_string(cur.pointer()) or ""
    state.speed = cur.u8()


def read_family(ctx: LoadContext, family: Family) -> None:
    cur = ctx.cursor(family.offset)
    family.off_next = cur.pointer()
    family.off_prev = cur.pointer()
    family.off_header = cur.pointer()
    family.index = cur.u32()
    states = read_list_header(cur, ListKind.DOUBLE)
    family.declared_states = states.count

    for ref in walk_list(ctx.space, states, name=f"{family.name}.states"):
        state = ctx.load(State, ref, read_state)
        state.family = family
        family.states.append(state)


def load_families(ctx: LoadContext, header: ListHeader) -> list[Family]:
    return [ctx.load(Family, ref, read_family) for ref in walk_list(ctx.space, header, name="families")]


def read_entry_action(ctx: LoadContext, action: EntryAction) -> None:
    cur = ctx.cursor(action.offset)
    action.off_keywords = cur.pointer()
    action.num_keywords = cur.u32()
    action.name = ctx.read_string(cur.pointer()) or ""
    action.active = cur.u8() != 0


def read_entry_actions(ctx: LoadContext, ref: Reference | None, count: int) -> list[EntryAction]:
    if ref is None:
        return []
    return [ctx.load(EntryAction, ref + i * ENTRY_ACTION_SIZE, read_entry_action) for i in range(count)]


def read_waypoint(ctx: LoadContext, waypoint: WayPoint) -> None:
    cur = ctx.cursor(waypoint.offset)
    waypoint.position = cur.vec3()
    waypoint.radius = cur.f32()
    waypoint.off_super_object = cur.pointer()

    def link() -> None:
        waypoint.super_object = ctx.get(SuperObject, waypoint.off_super_object)

    if waypoint.off_super_object is not None:
        ctx.defer(link)


def read_physical_object(ctx: LoadContext, obj: PhysicalObject) -> None:
    cur = ctx.cursor(obj.offset)
    obj.off_visual = cur.pointer()
    obj.off_collide = cur.pointer()
    obj.visual = ctx.load(GeometricObject, obj.off_visual, read_geometric_object)
    obj.collide = ctx.load(CollideMesh, obj.off_collide, read_collide_mesh)


def read_perso(ctx: LoadContext, perso: Perso) -> None:
    cur = ctx.cursor(perso.offset)
    perso.off_3d_data = cur.pointer()
    perso.off_std_game = cur.pointer()
    perso.off_dynam = cur.pointer()
    perso.off_brain = cur.pointer()
    perso.off_camera = cur.pointer()
    perso.off_collide_set = cur.pointer()
    perso.off_ms_way = cur.pointer()
    perso.off_ms_light = cur.pointer()
    perso.off_sector_info = cur.pointer()

    if perso.off_std_game is not None:
        with cur.at(perso.off_std_game):
            perso.family_index = cur.u32()
            perso.model_index = cur.u32()
            perso.instance_index = cur.u32()
            perso.off_super_object = cur.pointer()

    if perso.off_3d_data is not None:
        with cur.at(perso.off_3d_data):
            perso.off_family = cur.pointer()

    if perso.off_brain is not None:
        perso.mind = read_brain(ctx, perso.off_brain)

    def link() -> None:
        if perso.family is None and perso.off_family is not None:
            perso.family = ctx.load(Family, perso.off_family, read_family)
        if perso.super_object is None:
            perso.super_object = ctx.get(SuperObject, perso.off_super_object)

    ctx.defer(link)


def read_super_object(ctx: LoadContext, so: SuperObject) -> None:
    cur = ctx.cursor(so.offset)
    so.raw_type = cur.u32()
    so.off_data = cur.pointer()
    so.off_child_first = cur.pointer()
    so.off_child_last = cur.pointer()
    so.declared_children = cur.u32()
    so.off_brother_next = cur.pointer()
    so.off_brother_prev = cur.pointer()
    so.off_parent = cur.pointer()
    so.off_matrix = cur.pointer()
    so.draw_flags = cur.u32()
    so.flags = cur.u32()

    if so.type is SuperObjectType.PERSO:
        perso = ctx.load(Perso, so.off_data, read_perso)
        if perso is not None:
            perso.super_object = so
        so.data = perso
    elif so.type is SuperObjectType.PHYSICAL_OBJECT:
        so.data = ctx.load(PhysicalObject, so.off_data, read_physical_object)

    children = ListHeader(first=so.off_child_first, last=so.off_child_last, count=so.declared_children)
    walk = walk_list(ctx.space, children, next_offset=SUPER_OBJECT_BROTHER_NEXT, name=f"children of {so.offset}")
    for ref in walk:
        child = ctx.load(SuperObject, ref, read_super_object)
        child.parent = so
        so.children.append(child)

    def link() -> None:
        if so.parent is None:
            so.parent = ctx.get(SuperObject, so.off_parent)

    if so.off_parent is not None:
        ctx.defer(link)


def load_super_object(ctx: LoadContext, ref: Reference | None) -> SuperObject | None:
    return ctx.load(SuperObject, ref, read_super_object)


def load_perso_list(ctx: LoadContext, header: ListHeader, *, name: str) -> list[Perso]:
    """Walk a list of `(next, prev, header, perso)` entries."""
    persos: list[Perso] = []
    for entry in walk_list(ctx.space, header, name=name):
        perso = ctx.load(Perso, ctx.space.read_pointer(entry + PERSO_LIST_ENTRY_PERSO), read_perso)
        if perso is not None:
            persos.append(perso)
    return persos


__all__ = [
    "ENTRY_ACTION_SIZE",
    "PERSO_LIST_ENTRY_PERSO",
    "SUPER_OBJECT_BROTHER_NEXT",
    "load_families",
    "load_perso_list",
    "load_super_object",
    "read_entry_action",
    "read_entry_actions",
    "read_family",
    "read_perso",
    "read_physical_object",
    "read_state",
    "read_super_object",
    "read_waypoint",
]
