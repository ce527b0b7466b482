from __future__ import annotations

import enum
from pathlib import Path

import msgspec

from memdump.errors import FormatError


class NodeType(enum.Enum):
    UNKNOWN = "Unknown"
    KEYWORD = "KeyWord"
    CONDITION = "Condition"
    OPERATOR = "Operator"
    FUNCTION = "Function"
    PROCEDURE = "Procedure"
    META_ACTION = "MetaAction"
    BEGIN_MACRO = "BeginMacro"
    END_MACRO = "EndMacro"
    FIELD = "Field"
    DSG_VAR_REF = "DsgVarRef"
    CONSTANT = "Constant"
    REAL = "Real"
    BUTTON = "Button"
    CONSTANT_VECTOR = "ConstantVector"
    VECTOR = "Vector"
    MASK = "Mask"
    MODULE_REF = "ModuleRef"
    DSG_VAR_ID = "DsgVarId"
    STRING = "String"
    LIPS_SYNCHRO_REF = "LipsSynchroRef"
    FAMILY_REF = "FamilyRef"
    PERSO_REF = "PersoRef"
    ACTION_REF = "ActionRef"
    SUPER_OBJECT_REF = "SuperObjectRef"
    WAY_POINT_REF = "WayPointRef"
    TEXT_REF = "TextRef"
    COMPORT_REF = "ComportRef"
    SOUND_EVENT_REF = "SoundEventRef"
    OBJECT_TABLE_REF = "ObjectTableRef"
    GAME_MATERIAL_REF = "GameMaterialRef"
    PARTICLE_GENERATOR = "ParticleGenerator"
    VISUAL_MATERIAL = "VisualMaterial"
    MODEL_REF = "ModelRef"
    DATA_TYPE_42 = "DataType42"
    CUSTOM_BITS = "CustomBits"
    CAPS = "Caps"
    SUB_ROUTINE = "SubRoutine"
    NULL = "Null"
    GRAPH_REF = "GraphRef"
    # Pre-R2 engines.
    CONSTANT_REF = "ConstantRef"
    REAL_REF = "RealRef"
    SURFACE_REF = "SurfaceRef"
    WAY = "Way"
    DSG_VAR = "DsgVar"
    SECTOR_REF = "SectorRef"
    ENVIRONMENT_REF = "EnvironmentRef"
    FONT_REF = "FontRef"
    COLOR = "Color"
    MODULE = "Module"

    @property
    def is_variable(self) -> bool:
        return self not in _NON_VARIABLE

    @property
    def is_reference(self) -> bool:
        return self in _REFERENCE_TYPES


_NON_VARIABLE = frozenset(
    {
        NodeType.UNKNOWN,
        NodeType.KEYWORD,
        NodeType.CONDITION,
        NodeType.OPERATOR,
        NodeType.FUNCTION,
        NodeType.PROCEDURE,
        NodeType.META_ACTION,
        NodeType.BEGIN_MACRO,
        NodeType.END_MACRO,
        NodeType.SUB_ROUTINE,
    }
)

# Node types whose parameter holds an address.
_REFERENCE_TYPES = frozenset(
    {
        NodeType.BUTTON,
        NodeType.STRING,
        NodeType.LIPS_SYNCHRO_REF,
        NodeType.FAMILY_REF,
        NodeType.PERSO_REF,
        NodeType.ACTION_REF,
        NodeType.SUPER_OBJECT_REF,
        NodeType.WAY_POINT_REF,
        NodeType.COMPORT_REF,
        NodeType.OBJECT_TABLE_REF,
        NodeType.GAME_MATERIAL_REF,
        NodeType.VISUAL_MATERIAL,
        NodeType.MODEL_REF,
        NodeType.SUB_ROUTINE,
        NodeType.GRAPH_REF,
    }
)


class ScriptTables(msgspec.Struct, forbid_unknown_fields=True):
    """Per-version opcode and name tables, indexed by opcode byte / parameter."""

    node_types: list[NodeType] = msgspec.field(default_factory=list)
    keywords: list[str] = msgspec.field(default_factory=list)
    conditions: list[str] = msgspec.field(default_factory=list)
    operators: list[str] = msgspec.field(default_factory=list)
    functions: list[str] = msgspec.field(default_factory=list)
    procedures: list[str] = msgspec.field(default_factory=list)
    meta_actions: list[str] = msgspec.field(default_factory=list)
    fields: list[str] = msgspec.field(default_factory=list)
    # dsgVar type names, indexed by the type id stored in each variable declaration.
    dsg_var_types: list[str] = msgspec.field(default_factory=list)

    def node_type(self, opcode: int) -> NodeType:
        if 0 <= opcode < len(self.node_types):
            return self.node_types[opcode]
        return NodeType.UNKNOWN

    def opcode_of(self, node_type: NodeType) -> int:
        return self.node_types.index(node_type)


def load_tables(data: bytes | str) -> ScriptTables:
    try:
        return msgspec.json.decode(data, type=ScriptTables)
    except (msgspec.ValidationError, msgspec.DecodeError) as exc:
        raise FormatError(f"invalid script tables: {exc}") from exc


def load_tables_file(path: str | Path) -> ScriptTables:
    return load_tables(Path(path).read_bytes())


def dump_tables(tables: ScriptTables) -> bytes:
    return msgspec.json.encode(tables)


__all__ = [
    "NodeType",
    "ScriptTables",
    "dump_tables",
    "load_tables",
    "load_tables_file",
]
