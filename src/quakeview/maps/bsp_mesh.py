"""World-model mesh assembly from a compiled BSP.

Walks the node tree of model 0 to find its leaves, collects the faces each
leaf lists, groups them by texture name and fan-triangulates every face into
that texture's batch.  Vertex positions and texture axes are remapped into the
Y-up output space as they are read.
"""

from __future__ import annotations

import logging
from typing import Iterable

from quakeview.common.errors import ReadFailedError
from quakeview.maps.bsp import BspFace, BspFile
from quakeview.maps.geometry import Vec2, Vec3, dot, remap_position
from quakeview.maps.mesh import MeshBatch, MeshBuilder, TextureImage
from quakeview.maps.palette import QUAKE_PALETTE, checker_rgb

logger = logging.getLogger(__name__)

#: Size of the placeholder used for miptex slots without embedded pixels.
PLACEHOLDER_SIZE = 64


def collect_world_leaves(bsp: BspFile, model_index: int = 0) -> list[int]:
    """Leaf indices reachable from the head node of *model_index*.

    Depth-first with an explicit stack; children are pushed front then back,
    so back subtrees are visited first.  Leaves are de-duplicated and keep
    the order they were first reached.
    """

    root = bsp.model(model_index).node_id
    stack = [root]
    leaves: dict[int, None] = {}
    while stack:
        node = bsp.node(stack.pop())
        for child in (node.front, node.back):
            if child > 0:
                stack.append(child)
            else:
                leaves.setdefault(~child, None)
    return list(leaves)


def leaf_faces(bsp: BspFile, leaves: Iterable[int]) -> list[int]:
    """Face indices listed by *leaves*, in order and with repeats."""

    out: list[int] = []
    for leaf_id in leaves:
        leaf = bsp.leaf(leaf_id)
        for i in range(leaf.listface_num):
            out.append(bsp.listface(leaf.listface_id + i))
    return out


def face_polygon(bsp: BspFile, face: BspFace) -> list[Vec3]:
    """Boundary vertices of *face* in level space, following its edge list.

    A non-negative edge reference contributes the edge's start vertex, a
    negative one the end vertex of edge ``-ref``.
    """

    verts: list[Vec3] = []
    for i in range(face.ledge_num):
        ref = bsp.listedge(face.ledge_id + i)
        edge = bsp.edge(abs(ref))
        verts.append(bsp.vertex(edge.vs if ref >= 0 else edge.ve))
    return verts


def face_texture_name(bsp: BspFile, face: BspFace) -> str:
    texinfo = bsp.texinfo(face.texinfo_id)
    header = bsp.miptex(texinfo.miptex_id)
    if header is None:
        return f"__missing_{texinfo.miptex_id}"
    return header.name


def group_faces_by_texture(bsp: BspFile, faces: Iterable[int]) -> dict[str, list[int]]:
    """Face indices keyed by texture name, names in first-seen order."""

    groups: dict[str, list[int]] = {}
    for face_id in faces:
        name = face_texture_name(bsp, bsp.face(face_id))
        groups.setdefault(name, []).append(face_id)
    return groups


def project_bsp_uv(
    vertex: Vec3,
    u_axis: Vec3,
    u_offset: float,
    v_axis: Vec3,
    v_offset: float,
    size: tuple[int, int],
) -> Vec2:
    return ((dot(vertex, u_axis) + u_offset) / size[0], (dot(vertex, v_axis) + v_offset) / size[1])


def _texture_for(bsp: BspFile, miptex_id: int, name: str, palette: bytes) -> TextureImage:
    header = bsp.miptex(miptex_id)
    if header is None:
        logger.warning("BSP miptex %d has no embedded texture, using a placeholder", miptex_id)
        return TextureImage(
            name=name,
            width=PLACEHOLDER_SIZE,
            height=PLACEHOLDER_SIZE,
            rgb=checker_rgb(PLACEHOLDER_SIZE, PLACEHOLDER_SIZE),
        )
    if header.width <= 0 or header.height <= 0:
        raise ReadFailedError(f"miptex {header.name!r}: invalid size {header.width}x{header.height}")
    logger.debug("Decoding BSP texture %s (%dx%d)", header.name, header.width, header.height)
    return bsp.miptex_image(miptex_id, palette=palette)


def build_bsp_batches(
    bsp: BspFile,
    *,
    palette: bytes = QUAKE_PALETTE,
    skip_textures: frozenset[str] = frozenset(),
) -> list[MeshBatch]:
    """Assemble one textured batch per distinct texture of the world model.

    Faces whose texture name (case-folded) is in *skip_textures* are left out.
    """

    leaves = collect_world_leaves(bsp)
    groups = group_faces_by_texture(bsp, leaf_faces(bsp, leaves))
    logger.debug("BSP world: %d leaves, %d texture groups", len(leaves), len(groups))

    builder = MeshBuilder(reverse_fan=True)
    for name, face_ids in groups.items():
        if name.casefold() in skip_textures:
            logger.debug("Skipping %d faces textured %s", len(face_ids), name)
            continue
        texture: TextureImage | None = None
        for face_id in face_ids:
            face = bsp.face(face_id)
            texinfo = bsp.texinfo(face.texinfo_id)
            if texture is None:
                texture = _texture_for(bsp, texinfo.miptex_id, name, palette)
            header = bsp.miptex(texinfo.miptex_id)
            size = (header.width, header.height) if header is not None else (texture.width, texture.height)

            u_axis = remap_position(texinfo.u_axis)
            v_axis = remap_position(texinfo.v_axis)
            positions = [remap_position(p) for p in face_polygon(bsp, face)]
            uvs = [
                project_bsp_uv(p, u_axis, texinfo.u_offset, v_axis, texinfo.v_offset, size)
                for p in positions
            ]
            builder.add_polygon(texture, positions, uvs)

    return builder.batches()
