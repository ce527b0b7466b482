from __future__ import annotations

from collections.abc import Iterator, Sequence
import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from memdump.address_space import Reference
from memdump.geom import Vec3

from .tables import NodeType

if TYPE_CHECKING:
    from .geometry import CollideMesh, GeometricObject


class SuperObjectType(enum.IntEnum):
    UNKNOWN = 0x0
    WORLD = 0x1
    PERSO = 0x2
    SECTOR = 0x4
    PHYSICAL_OBJECT = 0x8
    IPO = 0x20
    IPO_2 = 0x40
    GEOMETRIC_OBJECT = 0x400

    @classmethod
    def from_raw(cls, value: int) -> SuperObjectType:
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class BehaviorType(enum.Enum):
    INTELLIGENCE = "Intelligence"
    REFLEX = "Reflex"


@dataclass(eq=False, slots=True)
class State:
    offset: Reference
    off_next: Reference | None = None
    off_prev: Reference | None = None
    off_header: Reference | None = None
    name: str = ""
    speed: int = 0
    family: Family | None = None

    @property
    def short_name(self) -> str:
        return self.name or f"State @ {self.offset}"


@dataclass(eq=False, slots=True)
class Family:
    offset: Reference
    off_next: Reference | None = None
    off_prev: Reference | None = None
    off_header: Reference | None = None
    index: int = 0
    declared_states: int = 0
    states: list[State] = field(default_factory=list)

    @property
    def name(self) -> str:
        return f"Family_{self.index}"


@dataclass(eq=False, slots=True)
class EntryAction:
    offset: Reference
    off_keywords: Reference | None = None
    num_keywords: int = 0
    name: str = ""
    active: bool = False

    def basic_string(self) -> str:
        return self.name or f"EntryAction @ {self.offset}"

    def __str__(self) -> str:
        state = "active" if self.active else "inactive"
        return f"{self.basic_string()} ({self.num_keywords} keywords, {state})"


@dataclass(eq=False, slots=True)
class WayPoint:
    offset: Reference
    position: Vec3 = Vec3()
    radius: float = 0.0
    off_super_object: Reference | None = None
    super_object: SuperObject | None = None


@dataclass(eq=False, slots=True)
class ScriptNode:
    offset: Reference
    param: int = 0
    opcode: int = 0
    indent: int = 0
    node_type: NodeType = NodeType.UNKNOWN
    param_ptr: Reference | None = None
    script: Script | None = None

    def content_equals(self, other: ScriptNode | None) -> bool:
        if other is None:
            return False
        return (
            self.param == other.param
            and self.param_ptr == other.param_ptr
            and self.opcode == other.opcode
            and self.indent == other.indent
        )


@dataclass(eq=False, slots=True)
class Script:
    offset: Reference
    nodes: list[ScriptNode] = field(default_factory=list)
    owner: Behavior | Macro | None = None


@dataclass(eq=False, slots=True)
class Behavior:
    offset: Reference
    type: BehaviorType = BehaviorType.INTELLIGENCE
    index: int = 0
    off_scripts: Reference | None = None
    off_first_script: Reference | None = None
    scripts: list[Script] = field(default_factory=list)
    first_script: Script | None = None
    model: AIModel | None = None

    @property
    def short_name(self) -> str:
        return f"{self.type.value}[{self.index}]"


@dataclass(eq=False, slots=True)
class Macro:
    offset: Reference
    index: int = 0
    off_script: Reference | None = None
    off_script_initial: Reference | None = None
    script: Script | None = None
    script_initial: Script | None = None
    model: AIModel | None = None

    @property
    def short_name(self) -> str:
        return f"Macro[{self.index}]"


@dataclass(frozen=True, slots=True)
class DsgVarInfo:
    index: int
    offset_in_buffer: int
    type_id: int
    save_type: int = 0
    init_type: int = 0

    def nice_name(self, type_names: Sequence[str] = ()) -> str:
        if 0 <= self.type_id < len(type_names):
            return f"{type_names[self.type_id]}_{self.index}"
        return f"dsgVar_{self.index}"


@dataclass(eq=False, slots=True)
class DsgVar:
    offset: Reference
    off_mem_buffer: Reference | None = None
    off_infos: Reference | None = None
    mem_buffer_length: int = 0
    infos: list[DsgVarInfo] = field(default_factory=list)


@dataclass(eq=False, slots=True)
class AIModel:
    offset: Reference
    off_behaviors_normal: Reference | None = None
    off_behaviors_reflex: Reference | None = None
    off_dsg_var: Reference | None = None
    off_macros: Reference | None = None
    normal_behaviors: list[Behavior] = field(default_factory=list)
    reflex_behaviors: list[Behavior] = field(default_factory=list)
    macros: list[Macro] = field(default_factory=list)
    dsg_var: DsgVar | None = None

    @property
    def name(self) -> str:
        return f"AIModel_{self.offset.offset:08X}"

    def behaviors(self) -> list[Behavior]:
        return [*self.normal_behaviors, *self.reflex_behaviors]

    def scripts(self) -> list[Script]:
        out: list[Script] = []
        for behavior in self.behaviors():
            out.extend(behavior.scripts)
            if behavior.first_script is not None and behavior.first_script not in behavior.scripts:
                out.append(behavior.first_script)
        for macro in self.macros:
            for script in (macro.script_initial, macro.script):
                if script is not None:
                    out.append(script)
        return out


@dataclass(eq=False, slots=True)
class Mind:
    offset: Reference
    off_ai_model: Reference | None = None
    off_intelligence_normal: Reference | None = None
    off_intelligence_reflex: Reference | None = None
    off_dsg_mem: Reference | None = None
    ai_model: AIModel | None = None
    # The variables of this instance; the model's declaration applies when absent.
    dsg_var: DsgVar | None = None

    def dsg_var_infos(self) -> list[DsgVarInfo]:
        if self.dsg_var is not None:
            return self.dsg_var.infos
        if self.ai_model is not None and self.ai_model.dsg_var is not None:
            return self.ai_model.dsg_var.infos
        return []


@dataclass(eq=False, slots=True)
class Perso:
    offset: Reference
    off_3d_data: Reference | None = None
    off_std_game: Reference | None = None
    off_dynam: Reference | None = None
    off_brain: Reference | None = None
    off_camera: Reference | None = None
    off_collide_set: Reference | None = None
    off_ms_way: Reference | None = None
    off_ms_light: Reference | None = None
    off_sector_info: Reference | None = None
    off_family: Reference | None = None
    off_super_object: Reference | None = None
    family_index: int = 0
    model_index: int = 0
    instance_index: int = 0
    family: Family | None = None
    super_object: SuperObject | None = None
    mind: Mind | None = None

    @property
    def name_family(self) -> str:
        return self.family.name if self.family is not None else f"Family_{self.family_index}"

    @property
    def name_model(self) -> str:
        return f"Model_{self.model_index}"

    @property
    def name_perso(self) -> str:
        return f"Perso_{self.instance_index}"

    @property
    def full_name(self) -> str:
        return f"[{self.name_family}] {self.name_model} | {self.name_perso}"


@dataclass(eq=False, slots=True)
class PhysicalObject:
    offset: Reference
    off_visual: Reference | None = None
    off_collide: Reference | None = None
    visual: GeometricObject | None = None
    collide: CollideMesh | None = None


@dataclass(eq=False, slots=True)
class SuperObject:
    offset: Reference
    raw_type: int = 0
    off_data: Reference | None = None
    off_child_first: Reference | None = None
    off_child_last: Reference | None = None
    declared_children: int = 0
    off_brother_next: Reference | None = None
    off_brother_prev: Reference | None = None
    off_parent: Reference | None = None
    off_matrix: Reference | None = None
    draw_flags: int = 0
    flags: int = 0
    children: list[SuperObject] = field(default_factory=list)
    parent: SuperObject | None = None
    data: Perso | PhysicalObject | None = None

    @property
    def type(self) -> SuperObjectType:
        return SuperObjectType.from_raw(self.raw_type)

    @property
    def name(self) -> str:
        if isinstance(self.data, Perso):
            return self.data.full_name
        return f"{self.type.name.title().replace('_', '')} @ {self.offset}"

    def walk(self) -> Iterator[SuperObject]:
        """Depth-first, each node once even if the dump links a node twice."""
        seen: set[int] = set()
        stack: list[SuperObject] = [self]
        while stack:
            node = stack.pop()
            if id(node) in seen:
                continue
            seen.add(id(node))
            yield node
            stack.extend(reversed(node.children))


__all__ = [
    "AIModel",
    "Behavior",
    "BehaviorType",
    "DsgVar",
    "DsgVarInfo",
    "EntryAction",
    "Family",
    "Macro",
    "Mind",
    "Perso",
    "PhysicalObject",
    "Script",
    "ScriptNode",
    "State",
    "SuperObject",
    "SuperObjectType",
    "WayPoint",
]
