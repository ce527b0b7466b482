from __future__ import annotations

"""Collision and render meshes.

  CollideMesh      vertex_count u16, element_count u16, vertices, element_types, elements
  GeometricObject  vertex_count u16, element_count u16, vertices, normals,
                   element_types, elements

`element_types` is an i16 array; elements of type 1 are indexed triangle
meshes, other element kinds (spheres, boxes, sprites) keep only their type.

Collide mesh element, after `material`:

  revolution  triangle_count u16, u16, triangles
  pre-R3      triangle_count u16, mapping_count u16, triangles, mapping, normals,
              uvs, [u32 on Montreal], [unk table, u16, u16 unless TTSE]
  R3          triangles, normals, triangle_count u16, u16, u32, mapping, unk, unk2,
              mapping_count u16, u16

Render mesh element:

  pre-R3      material, triangle_count u16, uv_count u16, uv_map_count u16, u16,
              triangles, uvs, uv_maps (array of uv_map_count mapping tables), normals
  R3          material, triangles, uvs, mapping, normals, triangle_count u16, uv_count u16

Triangles are `3 x i16` per face and mapping tables are per-corner i16 indices
into the UV pool. Output triangles use the reversed winding (0, 2, 1).
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from memdump.address_space import Reference
from memdump.geom import Vec2, Vec3
from memdump.reader import Cursor

from .context import LoadContext
from .settings import CollideLayout, EngineVersion, Game
from .visual import GameMaterial, VisualMaterial, read_game_material, read_visual_material

ELEMENT_INDEXED_TRIANGLES = 1


def reverse_winding(triangles: Sequence[int]) -> list[int]:
    """Swap the last two corners of every face: `[a, b, c] -> [a, c, b]`."""
    out: list[int] = []
    for i in range(0, len(triangles) - len(triangles) % 3, 3):
        out.extend((triangles[i], triangles[i + 2], triangles[i + 1]))
    return out


@dataclass(frozen=True, slots=True)
class MeshBuffers:
    """Per-corner buffers: corner `j` of face `f` is entry `3 * f + j`."""

    vertices: list[Vec3]
    normals: list[Vec3] | None
    uvs: list[Vec2] | None
    triangles: list[int]


def unroll(
    vertices: Sequence[Vec3],
    triangles: Sequence[int],
    *,
    face_normals: Sequence[Vec3] | None = None,
    uvs: Sequence[Vec2] | None = None,
    mapping: Sequence[int] | None = None,
) -> MeshBuffers:
    corners = len(triangles) - len(triangles) % 3
    use_uvs = uvs is not None and mapping is not None
    out_vertices = [vertices[triangles[j]] for j in range(corners)]
    out_normals = [face_normals[j // 3] for j in range(corners)] if face_normals is not None else None
    out_uvs = [uvs[mapping[j]] for j in range(corners)] if use_uvs else None
    return MeshBuffers(
        vertices=out_vertices,
        normals=out_normals,
        uvs=out_uvs,
        triangles=reverse_winding(range(corners)),
    )


def _vec3_array(cur: Cursor, ref: Reference | None, count: int) -> list[Vec3] | None:
    if ref is None:
        return None
    with cur.at(ref):
        return cur.vec3_array(count)


def _vec2_array(cur: Cursor, ref: Reference | None, count: int) -> list[Vec2] | None:
    if ref is None:
        return None
    with cur.at(ref):
        return cur.vec2_array(count)


def _i16_array(cur: Cursor, ref: Reference | None, count: int) -> list[int] | None:
    if ref is None:
        return None
    with cur.at(ref):
        return cur.i16_array(count)


@dataclass(eq=False, slots=True)
class CollideMeshElement:
    offset: Reference
    mesh: CollideMesh | None = None
    off_material: Reference | None = None
    off_triangles: Reference | None = None
    off_mapping: Reference | None = None
    off_normals: Reference | None = None
    off_uvs: Reference | None = None
    off_unk: Reference | None = None
    off_unk2: Reference | None = None
    num_triangles: int = 0
    num_mapping: int = 0
    game_material: GameMaterial | None = None
    triangles: list[int] = field(default_factory=list)
    normals: list[Vec3] | None = None
    mapping: list[int] | None = None
    uvs: list[Vec2] | None = None

    def triangle_indices(self) -> list[int]:
        return reverse_winding(self.triangles)

    def buffers(self) -> MeshBuffers:
        vertices = self.mesh.vertices if self.mesh is not None else []
        return unroll(vertices, self.triangles, face_normals=self.normals, uvs=self.uvs, mapping=self.mapping)


def _collide_revolution(ctx: LoadContext, cur: Cursor, el: CollideMeshElement) -> None:
    el.num_triangles = cur.u16()
    cur.u16()
    el.off_triangles = cur.pointer()


def _collide_pre_r3(ctx: LoadContext, cur: Cursor, el: CollideMeshElement) -> None:
    el.num_triangles = cur.u16()
    el.num_mapping = cur.u16()
    el.off_triangles = cur.pointer()
    el.off_mapping = cur.pointer()
    el.off_normals = cur.pointer()
    el.off_uvs = cur.pointer()
    if ctx.settings.engine_version is EngineVersion.MONTREAL:
        cur.u32()
    if ctx.settings.game is not Game.TTSE:
        cur.pointer()
        cur.u16()
        cur.u16()


def _collide_r3(ctx: LoadContext, cur: Cursor, el: CollideMeshElement) -> None:
    el.off_triangles = cur.pointer()
    el.off_normals = cur.pointer()
    el.num_triangles = cur.u16()
    cur.u16()
    cur.u32()
    el.off_mapping = cur.pointer()
    el.off_unk = cur.pointer()
    el.off_unk2 = cur.pointer()
    el.num_mapping = cur.u16()
    cur.u16()


_COLLIDE_ELEMENT_LAYOUTS: dict[CollideLayout, Callable[[LoadContext, Cursor, CollideMeshElement], None]] = {
    CollideLayout.REVOLUTION: _collide_revolution,
    CollideLayout.PRE_R3: _collide_pre_r3,
    CollideLayout.R3: _collide_r3,
}


def read_collide_element(ctx: LoadContext, el: CollideMeshElement) -> None:
    cur = ctx.cursor(el.offset)
    el.off_material = cur.pointer()
    _COLLIDE_ELEMENT_LAYOUTS[ctx.settings.collide_layout](ctx, cur, el)

    el.game_material = ctx.load(GameMaterial, el.off_material, read_game_material)
    el.triangles = _i16_array(cur, el.off_triangles, el.num_triangles * 3) or []
    el.normals = _vec3_array(cur, el.off_normals, el.num_triangles)
    if el.num_mapping > 0 and el.off_mapping is not None:
        el.mapping = _i16_array(cur, el.off_mapping, el.num_triangles * 3)
        el.uvs = _vec2_array(cur, el.off_uvs, el.num_mapping)


@dataclass(eq=False, slots=True)
class CollideMesh:
    offset: Reference
    num_vertices: int = 0
    num_elements: int = 0
    off_vertices: Reference | None = None
    off_element_types: Reference | None = None
    off_elements: Reference | None = None
    vertices: list[Vec3] = field(default_factory=list)
    element_types: list[int] = field(default_factory=list)
    elements: list[CollideMeshElement | None] = field(default_factory=list)


def read_collide_mesh(ctx: LoadContext, mesh: CollideMesh) -> None:
    cur = ctx.cursor(mesh.offset)
    mesh.num_vertices = cur.u16()
    mesh.num_elements = cur.u16()
    mesh.off_vertices = cur.pointer()
    mesh.off_element_types = cur.pointer()
    mesh.off_elements = cur.pointer()

    mesh.vertices = _vec3_array(cur, mesh.off_vertices, mesh.num_vertices) or []
    mesh.element_types = _i16_array(cur, mesh.off_element_types, mesh.num_elements) or []
    if mesh.off_elements is None:
        return
    with cur.at(mesh.off_elements):
        off_elements = cur.pointers(mesh.num_elements)
    for element_type, ref in zip(mesh.element_types, off_elements):
        if element_type != ELEMENT_INDEXED_TRIANGLES:
            mesh.elements.append(None)
            continue

        def fill(ctx: LoadContext, el: CollideMeshElement) -> None:
            el.mesh = mesh
            read_collide_element(ctx, el)

        mesh.elements.append(ctx.load(CollideMeshElement, ref, fill))


@dataclass(eq=False, slots=True)
class MeshElement:
    offset: Reference
    geo: GeometricObject | None = None
    off_material: Reference | None = None
    off_triangles: Reference | None = None
    off_uvs: Reference | None = None
    off_normals: Reference | None = None
    off_mapping: list[Reference | None] = field(default_factory=list)
    num_triangles: int = 0
    num_uvs: int = 0
    visual_material: VisualMaterial | None = None
    triangles: list[int] = field(default_factory=list)
    uvs: list[Vec2] | None = None
    mapping: list[list[int]] = field(default_factory=list)
    normals: list[Vec3] | None = None

    def triangle_indices(self) -> list[int]:
        return reverse_winding(self.triangles)

    def buffers(self, uv_map: int = 0) -> MeshBuffers:
        vertices = self.geo.vertices if self.geo is not None else []
        mapping = self.mapping[uv_map] if uv_map < len(self.mapping) else None
        return unroll(vertices, self.triangles, face_normals=self.normals, uvs=self.uvs, mapping=mapping)


def _mesh_element_pre_r3(ctx: LoadContext, cur: Cursor, el: MeshElement) -> None:
    el.num_triangles = cur.u16()
    el.num_uvs = cur.u16()
    num_uv_maps = cur.u16()
    cur.u16()
    el.off_triangles = cur.pointer()
    el.off_uvs = cur.pointer()
    off_uv_maps = cur.pointer()
    el.off_normals = cur.pointer()
    if off_uv_maps is not None:
        with cur.at(off_uv_maps):
            el.off_mapping = cur.pointers(num_uv_maps)


def _mesh_element_r3(ctx: LoadContext, cur: Cursor, el: MeshElement) -> None:
    el.off_triangles = cur.pointer()
    el.off_uvs = cur.pointer()
    el.off_mapping = [cur.pointer()]
    el.off_normals = cur.pointer()
    el.num_triangles = cur.u16()
    el.num_uvs = cur.u16()


def read_mesh_element(ctx: LoadContext, el: MeshElement) -> None:
    cur = ctx.cursor(el.offset)
    el.off_material = cur.pointer()
    if ctx.settings.engine_version < EngineVersion.R3:
        _mesh_element_pre_r3(ctx, cur, el)
    else:
        _mesh_element_r3(ctx, cur, el)

    el.visual_material = ctx.load(VisualMaterial, el.off_material, read_visual_material)
    el.triangles = _i16_array(cur, el.off_triangles, el.num_triangles * 3) or []
    el.uvs = _vec2_array(cur, el.off_uvs, el.num_uvs)
    el.normals = _vec3_array(cur, el.off_normals, el.num_triangles)
    for ref in el.off_mapping:
        table = _i16_array(cur, ref, el.num_triangles * 3)
        if table is not None:
            el.mapping.append(table)


@dataclass(eq=False, slots=True)
class GeometricObject:
    offset: Reference
    num_vertices: int = 0
    num_elements: int = 0
    off_vertices: Reference | None = None
    off_normals: Reference | None = None
    off_element_types: Reference | None = None
    off_elements: Reference | None = None
    vertices: list[Vec3] = field(default_factory=list)
    normals: list[Vec3] | None = None
    element_types: list[int] = field(default_factory=list)
    elements: list[MeshElement | None] = field(default_factory=list)

    def materials(self) -> list[VisualMaterial]:
        return [el.visual_material for el in self.elements if el is not None and el.visual_material is not None]


def read_geometric_object(ctx: LoadContext, geo: GeometricObject) -> None:
    cur = ctx.cursor(geo.offset)
    geo.num_vertices = cur.u16()
    geo.num_elements = cur.u16()
    geo.off_vertices = cur.pointer()
    geo.off_normals = cur.pointer()
    geo.off_element_types = cur.pointer()
    geo.off_elements = cur.pointer()

    geo.vertices = _vec3_array(cur, geo.off_vertices, geo.num_vertices) or []
    geo.normals = _vec3_array(cur, geo.off_normals, geo.num_vertices)
    geo.element_types = _i16_array(cur, geo.off_element_types, geo.num_elements) or []
    if geo.off_elements is None:
        return
    with cur.at(geo.off_elements):
        off_elements = cur.pointers(geo.num_elements)
    for element_type, ref in zip(geo.element_types, off_elements):
        if element_type != ELEMENT_INDEXED_TRIANGLES:
            geo.elements.append(None)
            continue

        def fill(ctx: LoadContext, el: MeshElement) -> None:
            el.geo = geo
            read_mesh_element(ctx, el)

        geo.elements.append(ctx.load(MeshElement, ref, fill))


__all__ = [
    "CollideMesh",
    "CollideMeshElement",
    "ELEMENT_INDEXED_TRIANGLES",
    "GeometricObject",
    "MeshBuffers",
    "MeshElement",
    "read_collide_element",
    "read_collide_mesh",
    "read_geometric_object",
    "read_mesh_element",
    "reverse_winding",
    "unroll",
]
