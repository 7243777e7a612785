"""Panda3D scene-graph upload for mesh batches.

Each :class:`~quakeview.maps.mesh.MeshBatch` becomes one ``GeomNode`` with a
V3N3T2 vertex table and its own ``Texture``.  Batches hang under a root node
pitched by 90 degrees, which turns the Y-up mesh space into Panda3D's Z-up
world.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from panda3d.core import (
    Filename,
    Geom,
    GeomNode,
    GeomTriangles,
    GeomVertexData,
    GeomVertexFormat,
    GeomVertexWriter,
    NodePath,
    Texture,
)

from quakeview.maps.mesh import MeshBatch, TextureImage

logger = logging.getLogger(__name__)


def make_texture(image: TextureImage) -> Texture:
    tex = Texture(image.name)
    tex.setup2dTexture(image.width, image.height, Texture.T_unsigned_byte, Texture.F_rgb)
    # Row 0 of the RAM image is sampled at v = 0, which matches the level's
    # top-down texture rows and UVs.  setRamImageAs reorders RGB into BGR.
    tex.setRamImageAs(image.rgb, "RGB")
    tex.setWrapU(Texture.WM_repeat)
    tex.setWrapV(Texture.WM_repeat)
    tex.setMinfilter(Texture.FT_linear_mipmap_linear)
    tex.setMagfilter(Texture.FT_nearest)
    return tex


def make_geom_node(batch: MeshBatch) -> GeomNode:
    mesh = batch.mesh
    vdata = GeomVertexData(f"{batch.name}-vdata", GeomVertexFormat.getV3n3t2(), Geom.UHStatic)
    vdata.setNumRows(mesh.vertex_count)
    vertex_writer = GeomVertexWriter(vdata, "vertex")
    normal_writer = GeomVertexWriter(vdata, "normal")
    uv_writer = GeomVertexWriter(vdata, "texcoord")

    for i in range(mesh.vertex_count):
        p, n, t = i * 3, i * 3, i * 2
        vertex_writer.addData3f(mesh.positions[p], mesh.positions[p + 1], mesh.positions[p + 2])
        normal_writer.addData3f(mesh.normals[n], mesh.normals[n + 1], mesh.normals[n + 2])
        uv_writer.addData2f(mesh.uvs[t], mesh.uvs[t + 1])

    prim = GeomTriangles(Geom.UHStatic)
    for tri in range(mesh.triangle_count):
        base = tri * 3
        prim.addVertices(base, base + 1, base + 2)

    geom = Geom(vdata)
    geom.addPrimitive(prim)
    node = GeomNode(f"{batch.name}-geom")
    node.addGeom(geom)
    return node


def upload(batch: MeshBatch, parent: NodePath) -> NodePath:
    """Attach *batch* under *parent* as a textured node and return it."""

    np = parent.attachNewNode(make_geom_node(batch))
    np.setTexture(make_texture(batch.texture), 1)
    logger.debug("Uploaded batch %s: %d triangles", batch.name, batch.mesh.triangle_count)
    return np


def release(np: NodePath) -> None:
    np.removeNode()


def make_scene_root(name: str = "level") -> NodePath:
    root = NodePath(name)
    # Y-up mesh space to Z-up world.
    root.setP(90)
    return root


def attach_batches(parent: NodePath, batches: Iterable[MeshBatch]) -> list[NodePath]:
    return [upload(b, parent) for b in batches]


def write_bam(root: NodePath, dst: Path) -> None:
    dst.parent.mkdir(parents=True, exist_ok=True)
    if not root.writeBamFile(Filename.fromOsSpecific(str(dst))):
        raise OSError(f"failed to write {dst}")
