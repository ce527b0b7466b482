from __future__ import annotations

"""Script bytecode: fixed-width tokens of (param, indent, opcode).

Token layouts:

  standard   u32 param, u8, u8, u8 indent, u8 type
  dreamcast  u32 param, u32, u8, u8, u8 indent, u8 type
  split      u32 param, u8, u8, u8, u8 type, u8, u8, u8 indent, u8   (R3 GameCube)

A script ends with (and includes) the first token whose indent is 0.
Rendering is a pure projection of the decoded nodes: it can run any number of
times, plain or advanced, without re-reading the dump.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from functools import lru_cache
import math
import struct

from construct import Construct, Int8ul, Int32ub, Int32ul, Padding, Struct

from memdump.address_space import Reference
from memdump.debug_log import load_debug_log

from .context import LoadContext
from .objects import (
    AIModel,
    Behavior,
    EntryAction,
    Family,
    Macro,
    Perso,
    Script,
    ScriptNode,
    State,
    SuperObject,
    WayPoint,
)
from .settings import ScriptNodeLayout
from .tables import NodeType, ScriptTables

ERR_STRING = "ERR_STRING_NOTFOUND"
ERR_PERSO = "ERR_PERSO_NOTFOUND"
ERR_STATE = "ERR_STATE_NOTFOUND"
ERR_ENTRY_ACTION = "ERR_ENTRYACTION_NOTFOUND"


@lru_cache(maxsize=None)
def token_layout(layout: ScriptNodeLayout, little_endian: bool) -> Construct:
    u32 = Int32ul if little_endian else Int32ub
    if layout is ScriptNodeLayout.SPLIT:
        return Struct(
            "param" / u32,
            Padding(3),
            "type" / Int8ul,
            Padding(2),
            "indent" / Int8ul,
            Padding(1),
        )
    fields = ["param" / u32]
    if layout is ScriptNodeLayout.DREAMCAST:
        fields.append(Padding(4))
    fields += [Padding(2), "indent" / Int8ul, "type" / Int8ul]
    return Struct(*fields)


def _tables(ctx: LoadContext) -> ScriptTables:
    return ctx.tables if ctx.tables is not None else ScriptTables()


def _resolve_reference(ctx: LoadContext, node: ScriptNode) -> None:
    from .hierarchy import read_entry_action, read_waypoint
    from .visual import GameMaterial, VisualMaterial, read_game_material, read_visual_material

    ref = node.param_ptr
    if ref is None:
        return
    if node.node_type is NodeType.STRING:
        ctx.read_string(ref)
    elif node.node_type is NodeType.WAY_POINT_REF:
        ctx.load(WayPoint, ref, read_waypoint)
    elif node.node_type is NodeType.BUTTON:
        ctx.load(EntryAction, ref, read_entry_action)
    elif node.node_type is NodeType.VISUAL_MATERIAL:
        ctx.defer(lambda: ctx.load(VisualMaterial, ref, read_visual_material))
    elif node.node_type is NodeType.GAME_MATERIAL_REF:
        ctx.defer(lambda: ctx.load(GameMaterial, ref, read_game_material))


def read_script_nodes(
    ctx: LoadContext,
    ref: Reference,
    *,
    script: Script | None = None,
    count: int | None = None,
) -> list[ScriptNode]:
    """Read tokens from `ref`: `count` of them, or up to the first indent-0 token."""

    layout = token_layout(ctx.settings.script_node_layout, ctx.space.little_endian)
    tables = _tables(ctx)
    cur = ctx.cursor(ref)
    nodes: list[ScriptNode] = []
    while count is None or len(nodes) < count:
        node = ScriptNode(cur.ref, script=script)
        token = cur.parse(layout)
        node.param = int(token.param)
        node.opcode = int(token.type)
        node.indent = int(token.indent)
        node.node_type = tables.node_type(node.opcode)
        if node.node_type.is_reference:
            node.param_ptr = ctx.space.read_pointer(node.offset)
            _resolve_reference(ctx, node)
        nodes.append(node)
        if count is None and node.indent == 0:
            break
    return nodes


def format_real(value: float) -> str:
    """Shortest general form with 7 significant digits: `1.0 -> "1"`, `1e-05 -> "1E-05"`."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    text = f"{value:.7g}"
    if text == "-0":
        text = "0"
    return text.replace("e", "E")


def _as_i32(param: int) -> int:
    return struct.unpack("<i", struct.pack("<I", param & 0xFFFFFFFF))[0]


def _as_f32(param: int) -> float:
    return struct.unpack("<f", struct.pack("<I", param & 0xFFFFFFFF))[0]


def _ptr(ref: Reference | None) -> str:
    return "null" if ref is None else str(ref)


def _name(table: Sequence[str], param: int, unknown: str) -> str:
    if param < len(table):
        return table[param]
    return f"{unknown}_{param}"


def _unresolved(node: ScriptNode, what: str) -> None:
    load_debug_log(
        "unresolved_reference",
        node=node.offset,
        type=node.node_type.value,
        target=_ptr(node.param_ptr),
        missing=what,
    )


def render_node(ctx: LoadContext, node: ScriptNode, perso: Perso | None = None, *, advanced: bool = False) -> str:
    tables = _tables(ctx)
    param = node.param
    ptr = node.param_ptr
    kind = node.node_type

    if kind is NodeType.KEYWORD:
        return _name(tables.keywords, param, "UnknownKeyword")
    if kind is NodeType.CONDITION:
        return _name(tables.conditions, param, "UnknownCondition")
    if kind is NodeType.OPERATOR:
        if advanced and param < len(tables.operators):
            return f"{tables.operators[param]} ({param})"
        return _name(tables.operators, param, "UnknownOperator")
    if kind is NodeType.FUNCTION:
        return _name(tables.functions, param, "UnknownFunction")
    if kind is NodeType.PROCEDURE:
        return _name(tables.procedures, param, "UnknownProcedure")
    if kind is NodeType.META_ACTION:
        return _name(tables.meta_actions, param, "UnknownMetaAction")
    if kind is NodeType.BEGIN_MACRO:
        return "BeginMacro"
    if kind is NodeType.END_MACRO:
        return "EndMacro"
    if kind is NodeType.FIELD:
        return _name(tables.fields, param, "UnknownField")
    if kind is NodeType.DSG_VAR_REF:
        if perso is not None and perso.mind is not None:
            infos = perso.mind.dsg_var_infos()
            if param < len(infos):
                return infos[param].nice_name(tables.dsg_var_types)
        return f"dsgVar_{param}"
    if kind is NodeType.CONSTANT:
        return f"Constant: {_as_i32(param)}" if advanced else str(_as_i32(param))
    if kind is NodeType.REAL:
        text = format_real(_as_f32(param))
        return f"Real: {text}" if advanced else text
    if kind is NodeType.BUTTON:
        action = ctx.get(EntryAction, ptr)
        if action is None:
            _unresolved(node, "entry_action")
            label = ERR_ENTRY_ACTION
        else:
            label = str(action) if advanced else action.basic_string()
        return f"Button: {label}({_ptr(ptr)})" if advanced else label
    if kind is NodeType.CONSTANT_VECTOR:
        return f"Constant Vector: 0x{param:08x}"
    if kind is NodeType.VECTOR:
        return "new Vector3"
    if kind is NodeType.MASK:
        mask = param & 0xFFFF
        return f"Mask: {mask:04x}" if advanced else f"Mask({mask:04x})"
    if kind is NodeType.MODULE_REF:
        return f"ModuleRef: 0x{param:08x}" if advanced else f"Module({_as_i32(param)})"
    if kind is NodeType.DSG_VAR_ID:
        return f"DsgVarId: 0x{param:08x}" if advanced else f"DsgVarId({param})"
    if kind is NodeType.STRING:
        text = ctx.strings.get(ptr) if ptr is not None else None
        if text is None:
            _unresolved(node, "string")
            text = ERR_STRING
        return f"String: {_ptr(ptr)} ({text})" if advanced else f'"{text}"'
    if kind is NodeType.LIPS_SYNCHRO_REF:
        return f"LipsSynchroRef: {_ptr(ptr)}"
    if kind is NodeType.FAMILY_REF:
        if advanced:
            return f"FamilyRef: {_ptr(ptr)}"
        family = ctx.get(Family, ptr)
        if family is None:
            return f"Family.FromOffset({_ptr(ptr)})"
        return f'GetFamily("{family.name}")'
    if kind is NodeType.PERSO_REF:
        target = ctx.get(Perso, ptr)
        if target is not None and perso is not None and target is perso:
            return "PersoRef: this" if advanced else "this"
        if target is None:
            _unresolved(node, "perso")
        if advanced:
            full_name = ERR_PERSO if target is None else target.full_name
            return f"PersoRef: {_ptr(ptr)} ({full_name})"
        return f'GetPerso("{ERR_PERSO if target is None else target.name_perso}")'
    if kind is NodeType.ACTION_REF:
        state = ctx.get(State, ptr)
        if state is None:
            _unresolved(node, "state")
        state_name = ERR_STATE if state is None else state.short_name
        return f"ActionRef: {_ptr(ptr)} {state_name}" if advanced else state_name
    if kind is NodeType.SUPER_OBJECT_REF:
        if advanced:
            return f"SuperObjectRef: {_ptr(ptr)}"
        so = ctx.get(SuperObject, ptr)
        if so is None:
            return f"SuperObject.FromOffset({_ptr(ptr)})"
        return f'GetSuperObject("{so.name}")'
    if kind is NodeType.WAY_POINT_REF:
        return f"WayPointRef: {_ptr(ptr)}" if advanced else f"WayPoint.FromOffset({_ptr(ptr)})"
    if kind is NodeType.TEXT_REF:
        return "TextRef"
    if kind is NodeType.COMPORT_REF:
        behavior = ctx.get(Behavior, ptr)
        if behavior is None:
            return f"ComportRef: {_ptr(ptr)} (null)" if advanced else "null"
        return behavior.short_name
    if kind is NodeType.SOUND_EVENT_REF:
        return f"SoundEventRef: {_as_i32(param)}" if advanced else f"SoundEvent({_as_i32(param)})"
    if kind is NodeType.OBJECT_TABLE_REF:
        return f"ObjectTableRef: {_ptr(ptr)}" if advanced else f"ObjectTable.FromOffset({_ptr(ptr)})"
    if kind is NodeType.GAME_MATERIAL_REF:
        return f"GameMaterialRef: {_ptr(ptr)}" if advanced else f"GameMaterial.FromOffset({_ptr(ptr)})"
    if kind is NodeType.PARTICLE_GENERATOR:
        return f"ParticleGenerator: 0x{param:08x}"
    if kind is NodeType.VISUAL_MATERIAL:
        return f"VisualMaterial: {_ptr(ptr)}" if advanced else f"VisualMaterial.FromOffset({_ptr(ptr)})"
    if kind is NodeType.MODEL_REF:
        if advanced:
            return f"AIModel: {_ptr(ptr)}"
        model = ctx.get(AIModel, ptr)
        return "null" if model is None else model.name
    if kind is NodeType.DATA_TYPE_42:
        return f"EvalDataType42: 0x{param:08x}" if advanced else f"EvalDataType42(0x{param:08x})"
    if kind is NodeType.CUSTOM_BITS:
        return f"CustomBits: 0x{param:08x}" if advanced else f"CustomBits(0x{param:08x})"
    if kind is NodeType.CAPS:
        return f"Caps: 0x{param:08x}" if advanced else f"Caps(0x{param:08x})"
    if kind is NodeType.SUB_ROUTINE:
        if advanced:
            return f"Eval SubRoutine: {_ptr(ptr)}"
        macro = ctx.get(Macro, ptr)
        return "null" if macro is None else f"evalMacro({macro.short_name});"
    if kind is NodeType.NULL:
        return "null"
    if kind is NodeType.GRAPH_REF:
        return f"Graph: 0x{param:08x}" if advanced else f"Graph.FromOffset({_ptr(ptr)})"
    return "unknown"


@dataclass(frozen=True, slots=True)
class RenderedNode:
    offset: Reference
    indent: int
    node_type: NodeType
    text: str


def render_nodes(
    ctx: LoadContext,
    nodes: Iterable[ScriptNode],
    perso: Perso | None = None,
    *,
    advanced: bool = False,
) -> list[RenderedNode]:
    return [
        RenderedNode(
            offset=node.offset,
            indent=node.indent,
            node_type=node.node_type,
            text=render_node(ctx, node, perso, advanced=advanced),
        )
        for node in nodes
    ]


def decode(
    ctx: LoadContext,
    ref: Reference,
    count: int | None = None,
    *,
    perso: Perso | None = None,
    advanced: bool = False,
) -> list[RenderedNode]:
    return render_nodes(ctx, read_script_nodes(ctx, ref, count=count), perso, advanced=advanced)


def decode_script(ctx: LoadContext, script: Script, perso: Perso | None = None, *, advanced: bool = False) -> list[RenderedNode]:
    return render_nodes(ctx, script.nodes, perso, advanced=advanced)


def script_to_text(rendered: Iterable[RenderedNode], indent: str = "    ") -> str:
    return "\n".join(f"{indent * max(node.indent - 1, 0)}{node.text}" for node in rendered)


__all__ = [
    "ERR_ENTRY_ACTION",
    "ERR_PERSO",
    "ERR_STATE",
    "ERR_STRING",
    "RenderedNode",
    "decode",
    "decode_script",
    "format_real",
    "read_script_nodes",
    "render_node",
    "render_nodes",
    "script_to_text",
    "token_layout",
]
