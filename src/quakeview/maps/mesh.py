"""Textured triangle soups handed to the renderer.

Both level formats end up here: convex face polygons with per-vertex UVs are
fan-triangulated into one :class:`Mesh` per texture name, so every
:class:`MeshBatch` is a single draw call.  Meshes are plain data; the upload
step copies them and the core keeps no GPU handles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from PIL import Image

from quakeview.common.aabb import AABB
from quakeview.maps.geometry import ZERO, Vec2, Vec3, negate, newell_normal, triangle_normal


@dataclass(frozen=True)
class TextureImage:
    """Decoded RGB8 texture (mip level 0)."""

    name: str
    width: int
    height: int
    rgb: bytes  # width*height*3

    def to_image(self) -> Image.Image:
        return Image.frombytes("RGB", (self.width, self.height), self.rgb)

    def save_png(self, dst: Path) -> None:
        dst.parent.mkdir(parents=True, exist_ok=True)
        self.to_image().save(dst)


@dataclass
class Mesh:
    """Non-indexed triangle list with flat per-triangle normals."""

    positions: list[float] = field(default_factory=list)  # 3 floats per vertex
    uvs: list[float] = field(default_factory=list)        # 2 floats per vertex
    normals: list[float] = field(default_factory=list)    # 3 floats per vertex

    @property
    def vertex_count(self) -> int:
        return len(self.positions) // 3

    @property
    def triangle_count(self) -> int:
        return self.vertex_count // 3

    def add_triangle(
        self,
        corners: Sequence[Vec3],
        uvs: Sequence[Vec2],
        fallback_normal: Vec3 = ZERO,
    ) -> None:
        """Append one triangle.

        Zero-area triangles (repeated polygon corners) have no normal of their
        own and take *fallback_normal* instead.
        """

        a, b, c = corners
        n = triangle_normal(a, b, c)
        if n == ZERO:
            n = fallback_normal
        for p, uv in zip(corners, uvs):
            self.positions.extend(p)
            self.uvs.extend(uv)
            self.normals.extend(n)

    def vertex(self, index: int) -> Vec3:
        o = index * 3
        return (self.positions[o], self.positions[o + 1], self.positions[o + 2])

    def triangles(self) -> list[tuple[Vec3, Vec3, Vec3]]:
        return [
            (self.vertex(t * 3), self.vertex(t * 3 + 1), self.vertex(t * 3 + 2))
            for t in range(self.triangle_count)
        ]

    def bounds(self) -> AABB | None:
        return AABB.from_points(self.vertex(i) for i in range(self.vertex_count))


@dataclass
class MeshBatch:
    """One draw call: a mesh and the texture it samples."""

    texture: TextureImage
    mesh: Mesh = field(default_factory=Mesh)
    face_count: int = 0

    @property
    def name(self) -> str:
        return self.texture.name


def fan_triangulate(count: int, *, reverse: bool = False) -> list[tuple[int, int, int]]:
    """Index triples for a fan over a convex polygon of *count* vertices.

    The forward fan ``(0, i, i + 1)`` keeps the polygon's winding.  The reverse
    fan ``(last, i, i - 1)`` for ``i`` from ``count - 2`` down to ``1`` flips
    it, which turns BSP edge loops into counter-clockwise triangles.
    Either way ``count - 2`` triangles are produced.
    """

    if count < 3:
        return []
    if reverse:
        last = count - 1
        return [(last, i, i - 1) for i in range(count - 2, 0, -1)]
    return [(0, i, i + 1) for i in range(1, count - 1)]


class MeshBuilder:
    """Collects textured convex polygons into one batch per texture name.

    Batches come out in the order their texture names were first seen; faces
    inside a batch keep insertion order.  Polygons with fewer than three
    corners add nothing and are not counted.
    """

    def __init__(self, *, reverse_fan: bool = False) -> None:
        self._reverse_fan = reverse_fan
        self._batches: dict[str, MeshBatch] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._batches

    def add_polygon(
        self,
        texture: TextureImage,
        positions: Sequence[Vec3],
        uvs: Sequence[Vec2],
    ) -> None:
        tris = fan_triangulate(len(positions), reverse=self._reverse_fan)
        if not tris:
            return

        batch = self._batches.get(texture.name)
        if batch is None:
            batch = MeshBatch(texture=texture)
            self._batches[texture.name] = batch

        # The reverse fan flips the polygon's winding, so its face normal too.
        face_normal = newell_normal(positions)
        if self._reverse_fan:
            face_normal = negate(face_normal)
        for tri in tris:
            batch.mesh.add_triangle(
                [positions[i] for i in tri],
                [uvs[i] for i in tri],
                face_normal,
            )
        batch.face_count += 1

    def batches(self) -> list[MeshBatch]:
        return list(self._batches.values())
