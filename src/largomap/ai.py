from __future__ import annotations

"""AI records: Brain -> Mind -> AIModel -> behaviors/macros -> scripts.

  Brain      mind, ...
  Mind       ai_model, intelligence_normal, intelligence_reflex, dsg_mem
  AIModel    behaviors_normal, behaviors_reflex, dsg_var, macros
  array      entries, count u8, pad[3]       (behavior and macro arrays)
  Behavior   scripts, first_script, script_count u8, pad[3]     (0xC bytes)
  Macro      script, script_initial                             (0x8 bytes)
  Script     nodes                                              (0x4 bytes)
  DsgMem     -> dsg_var (pointer to a pointer), buffer_initial, buffer_current
  DsgVar     mem_buffer, infos, mem_buffer_length u32, info_count u8, pad[3]
  info       offset_in_buffer u32, type u32, save_type u32, init_type u32  (0x10 bytes)
"""

from memdump.address_space import Reference

from .context import LoadContext
from .objects import AIModel, Behavior, BehaviorType, DsgVar, DsgVarInfo, Macro, Mind, Script
from .script import read_script_nodes

BEHAVIOR_SIZE = 0xC
MACRO_SIZE = 0x8
SCRIPT_SIZE = 0x4
DSG_VAR_INFO_SIZE = 0x10


def read_script(ctx: LoadContext, script: Script) -> None:
    off_nodes = ctx.space.read_pointer(script.offset)
    if off_nodes is not None:
        script.nodes = read_script_nodes(ctx, off_nodes, script=script)


def _read_array(ctx: LoadContext, ref: Reference | None) -> tuple[Reference | None, int]:
    if ref is None:
        return None, 0
    cur = ctx.cursor(ref)
    entries = cur.pointer()
    count = cur.u8()
    return entries, count


def _load_behaviors(ctx: LoadContext, model: AIModel, ref: Reference | None, kind: BehaviorType) -> list[Behavior]:
    entries, count = _read_array(ctx, ref)
    behaviors: list[Behavior] = []
    if entries is None:
        return behaviors
    for index in range(count):

        def fill(ctx: LoadContext, behavior: Behavior, index: int = index) -> None:
            behavior.type = kind
            behavior.index = index
            behavior.model = model
            read_behavior(ctx, behavior)

        behaviors.append(ctx.load(Behavior, entries + index * BEHAVIOR_SIZE, fill))
    return behaviors


def read_behavior(ctx: LoadContext, behavior: Behavior) -> None:
    cur = ctx.cursor(behavior.offset)
    behavior.off_scripts = cur.pointer()
    behavior.off_first_script = cur.pointer()
    num_scripts = cur.u8()

    if behavior.off_scripts is not None:
        for i in range(num_scripts):
            script = ctx.load(Script, behavior.off_scripts + i * SCRIPT_SIZE, read_script)
            script.owner = behavior
            behavior.scripts.append(script)
    if behavior.off_first_script is not None:
        behavior.first_script = ctx.load(Script, behavior.off_first_script, read_script)
        if behavior.first_script.owner is None:
            behavior.first_script.owner = behavior


def read_macro(ctx: LoadContext, macro: Macro) -> None:
    cur = ctx.cursor(macro.offset)
    macro.off_script = cur.pointer()
    macro.off_script_initial = cur.pointer()
    for attr, ref in (("script", macro.off_script), ("script_initial", macro.off_script_initial)):
        script = ctx.load(Script, ref, read_script)
        if script is not None:
            script.owner = macro
        setattr(macro, attr, script)


def _load_macros(ctx: LoadContext, model: AIModel) -> list[Macro]:
    entries, count = _read_array(ctx, model.off_macros)
    macros: list[Macro] = []
    if entries is None:
        return macros
    for index in range(count):

        def fill(ctx: LoadContext, macro: Macro, index: int = index) -> None:
            macro.index = index
            macro.model = model
            read_macro(ctx, macro)

        macros.append(ctx.load(Macro, entries + index * MACRO_SIZE, fill))
    return macros


def read_dsg_var(ctx: LoadContext, dsg_var: DsgVar) -> None:
    cur = ctx.cursor(dsg_var.offset)
    dsg_var.off_mem_buffer = cur.pointer()
    dsg_var.off_infos = cur.pointer()
    dsg_var.mem_buffer_length = cur.u32()
    count = cur.u8()
    if dsg_var.off_infos is None:
        return
    for index in range(count):
        with cur.at(dsg_var.off_infos + index * DSG_VAR_INFO_SIZE):
            offset_in_buffer = cur.u32()
            type_id = cur.u32()
            save_type = cur.u32()
            init_type = cur.u32()
        dsg_var.infos.append(DsgVarInfo(index, offset_in_buffer, type_id, save_type, init_type))


def read_ai_model(ctx: LoadContext, model: AIModel) -> None:
    cur = ctx.cursor(model.offset)
    model.off_behaviors_normal = cur.pointer()
    model.off_behaviors_reflex = cur.pointer()
    model.off_dsg_var = cur.pointer()
    model.off_macros = cur.pointer()

    model.normal_behaviors = _load_behaviors(ctx, model, model.off_behaviors_normal, BehaviorType.INTELLIGENCE)
    model.reflex_behaviors = _load_behaviors(ctx, model, model.off_behaviors_reflex, BehaviorType.REFLEX)
    model.macros = _load_macros(ctx, model)
    model.dsg_var = ctx.load(DsgVar, model.off_dsg_var, read_dsg_var)


def read_mind(ctx: LoadContext, mind: Mind) -> None:
    cur = ctx.cursor(mind.offset)
    mind.off_ai_model = cur.pointer()
    mind.off_intelligence_normal = cur.pointer()
    mind.off_intelligence_reflex = cur.pointer()
    mind.off_dsg_mem = cur.pointer()
    mind.ai_model = ctx.load(AIModel, mind.off_ai_model, read_ai_model)
    if mind.off_dsg_mem is not None:
        off_slot = ctx.space.read_pointer(mind.off_dsg_mem)
        if off_slot is not None:
            mind.dsg_var = ctx.load(DsgVar, ctx.space.read_pointer(off_slot), read_dsg_var)


def read_brain(ctx: LoadContext, ref: Reference) -> Mind | None:
    return ctx.load(Mind, ctx.space.read_pointer(ref), read_mind)


__all__ = [
    "BEHAVIOR_SIZE",
    "DSG_VAR_INFO_SIZE",
    "MACRO_SIZE",
    "SCRIPT_SIZE",
    "read_ai_model",
    "read_behavior",
    "read_brain",
    "read_dsg_var",
    "read_macro",
    "read_mind",
    "read_script",
]
