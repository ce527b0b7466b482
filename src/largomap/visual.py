from __future__ import annotations

"""Materials.

VisualMaterial starts with `flags u32`, four colour vec4s (ambient, diffuse,
specular, colour) and a `u32`; the rest depends on the engine mode:

  R2      texture, type i32, i32, scroll_x f32, scroll_y f32, scrolling u32, i32,
          anim_first, anim_current, anim_count u16, u16, u32, properties u8, pad[3]
  other   anim_first, anim_current, anim_count u16, u16, u32,
          u8, u8, properties u8, u8, u32 x3,
          texture1, u8 x3, scroll_byte1 u8, type1 i32, i32, i32,
          scroll_x f32, scroll_y f32, pad[0x2C],
          texture2, u8 x3, scroll_byte2 u8, type2 i32

Animated texture frames are a chain of `(texture, time f32, next)` nodes.

  GameMaterial     mechanics, sound_material u32, collide_material
  CollideMaterial  type u16, identifier u16
"""

from dataclasses import dataclass, field
from functools import lru_cache

from construct import Construct, Float32b, Float32l, Int32ub, Int32ul, Struct

from memdump.address_space import Reference
from memdump.geom import Vec4
from memdump.reader import Cursor

from .context import LoadContext

FLAG_TRANSPARENT = 1 << 3
FLAG_BACKFACE_CULLING = 1 << 10
FLAG_CHROMED = 1 << 22

PROPERTY_RECEIVE_SHADOWS = 2
PROPERTY_SPRITE_GENERATOR = 4
PROPERTY_ANIMATED_SPRITE_GENERATOR = 12
PROPERTY_WATER = 0x1000
PROPERTY_GRASS = 0x2000

# Scroll byte bits for X and Y scrolling.
SCROLL_MASK = 6


@lru_cache(maxsize=None)
def _colour_block(little_endian: bool) -> Construct:
    u32 = Int32ul if little_endian else Int32ub
    f32 = Float32l if little_endian else Float32b
    colour = f32[4]
    return Struct(
        "flags" / u32,
        "ambient" / colour,
        "diffuse" / colour,
        "specular" / colour,
        "color" / colour,
        "specular_exponent" / u32,
    )


@dataclass(frozen=True, slots=True)
class AnimatedTexture:
    off_texture: Reference | None
    time: float


@dataclass(eq=False, slots=True)
class VisualMaterial:
    offset: Reference
    flags: int = 0
    ambient: Vec4 = Vec4()
    diffuse: Vec4 = Vec4()
    specular: Vec4 = Vec4()
    color: Vec4 = Vec4()
    properties: int = 0
    off_textures: list[Reference] = field(default_factory=list)
    texture_types: list[int] = field(default_factory=list)
    scrolling_enabled: bool = False
    scroll_x: float = 0.0
    scroll_y: float = 0.0
    off_anim_textures_first: Reference | None = None
    off_anim_textures_current: Reference | None = None
    num_anim_textures: int = 0
    anim_textures: list[AnimatedTexture] = field(default_factory=list)
    current_anim_texture: int = 0

    def is_transparent_flag(self) -> bool:
        return bool(self.flags & FLAG_TRANSPARENT)

    def backface_culling(self) -> bool:
        return (self.flags & FLAG_BACKFACE_CULLING) == FLAG_BACKFACE_CULLING

    def is_chromed(self) -> bool:
        return bool(self.flags & FLAG_CHROMED)

    def receive_shadows(self) -> bool:
        return bool(self.properties & PROPERTY_RECEIVE_SHADOWS)

    def is_sprite_generator(self) -> bool:
        return bool(self.properties & PROPERTY_SPRITE_GENERATOR)

    def is_animated_sprite_generator(self) -> bool:
        return (self.properties & PROPERTY_ANIMATED_SPRITE_GENERATOR) == PROPERTY_ANIMATED_SPRITE_GENERATOR

    def is_grass(self) -> bool:
        return bool(self.properties & PROPERTY_GRASS)

    def is_water(self) -> bool:
        return bool(self.properties & PROPERTY_WATER)

    def is_locked_animated_texture(self) -> bool:
        return (self.properties & 1) == 1


@dataclass(eq=False, slots=True)
class CollideMaterial:
    offset: Reference
    type: int = 0
    identifier: int = 0


@dataclass(eq=False, slots=True)
class GameMaterial:
    offset: Reference
    off_mechanics: Reference | None = None
    sound_material: int = 0
    off_collide_material: Reference | None = None
    collide_material: CollideMaterial | None = None


def _add_texture(material: VisualMaterial, ref: Reference | None, texture_type: int) -> None:
    if ref is not None:
        material.off_textures.append(ref)
        material.texture_types.append(texture_type)


def _read_r2_layout(cur: Cursor, material: VisualMaterial) -> None:
    off_texture = cur.pointer()
    texture_type = cur.i32()
    _add_texture(material, off_texture, texture_type)
    cur.i32()
    scroll_x = cur.f32()
    scroll_y = cur.f32()
    material.scrolling_enabled = cur.u32() != 0
    if material.scrolling_enabled:
        material.scroll_x = scroll_x
        material.scroll_y = scroll_y
    cur.i32()
    material.off_anim_textures_first = cur.pointer()
    material.off_anim_textures_current = cur.pointer()
    material.num_anim_textures = cur.u16()
    cur.skip(2 + 4)
    material.properties = cur.u8()
    cur.skip(3)


def _read_two_slot_layout(cur: Cursor, material: VisualMaterial) -> None:
    material.off_anim_textures_first = cur.pointer()
    material.off_anim_textures_current = cur.pointer()
    material.num_anim_textures = cur.u16()
    cur.skip(2 + 4 + 2)
    material.properties = cur.u8()
    cur.skip(1 + 3 * 4)

    off_texture1 = cur.pointer()
    cur.skip(3)
    scroll_byte1 = cur.u8()
    material.scrolling_enabled = (scroll_byte1 & SCROLL_MASK) != 0
    texture_type1 = cur.i32()
    cur.skip(8)
    material.scroll_x = cur.f32()
    material.scroll_y = cur.f32()
    cur.skip(0x2C)
    off_texture2 = cur.pointer()
    cur.skip(3)
    cur.u8()
    texture_type2 = cur.i32()

    _add_texture(material, off_texture1, texture_type1)
    _add_texture(material, off_texture2, texture_type2)


def _read_anim_textures(ctx: LoadContext, material: VisualMaterial) -> None:
    if material.num_anim_textures == 0 or material.off_anim_textures_first is None:
        return
    node: Reference | None = material.off_anim_textures_first
    cur = ctx.cursor(node)
    for i in range(material.num_anim_textures):
        if node == material.off_anim_textures_current:
            material.current_anim_texture = i
        off_texture = cur.pointer()
        time = cur.f32()
        material.anim_textures.append(AnimatedTexture(off_texture=off_texture, time=time))
        off_next = cur.pointer()
        if off_next is not None:
            node = off_next
            cur.seek(off_next)


def read_visual_material(ctx: LoadContext, material: VisualMaterial) -> None:
    cur = ctx.cursor(material.offset)
    block = cur.parse(_colour_block(ctx.space.little_endian))
    material.flags = int(block.flags)
    material.ambient = Vec4(*block.ambient)
    material.diffuse = Vec4(*block.diffuse)
    material.specular = Vec4(*block.specular)
    material.color = Vec4(*block.color)

    if ctx.settings.r2_material_layout:
        _read_r2_layout(cur, material)
    else:
        _read_two_slot_layout(cur, material)
    _read_anim_textures(ctx, material)


def read_collide_material(ctx: LoadContext, material: CollideMaterial) -> None:
    cur = ctx.cursor(material.offset)
    material.type = cur.u16()
    material.identifier = cur.u16()


def read_game_material(ctx: LoadContext, material: GameMaterial) -> None:
    cur = ctx.cursor(material.offset)
    material.off_mechanics = cur.pointer()
    material.sound_material = cur.u32()
    material.off_collide_material = cur.pointer()
    material.collide_material = ctx.load(CollideMaterial, material.off_collide_material, read_collide_material)


__all__ = [
    "AnimatedTexture",
    "CollideMaterial",
    "FLAG_BACKFACE_CULLING",
    "FLAG_CHROMED",
    "FLAG_TRANSPARENT",
    "GameMaterial",
    "PROPERTY_GRASS",
    "PROPERTY_RECEIVE_SHADOWS",
    "PROPERTY_SPRITE_GENERATOR",
    "PROPERTY_WATER",
    "VisualMaterial",
    "read_collide_material",
    "read_game_material",
    "read_visual_material",
]
