from __future__ import annotations

import struct
from pathlib import Path
from typing import Callable

import pytest

from quakeview.maps.bsp import BSP_VERSION, Lump

# ---------------------------------------------------------------------------
# Binary builders
# ---------------------------------------------------------------------------


def build_miptex(*, name: str, width: int, height: int, indices: bytes | None = None) -> bytes:
    """MipTexture record with all four mip levels; mip 0 is *indices* (default zeros)."""

    if indices is None:
        indices = bytes(width * height)
    assert len(indices) == width * height

    name_raw = name.encode("ascii")[:16].ljust(16, b"\x00")
    header_size = 16 + 4 + 4 + 16
    sizes = [(width >> lvl) * (height >> lvl) for lvl in range(4)]
    offsets = []
    off = header_size
    for s in sizes:
        offsets.append(off)
        off += s
    hdr = name_raw + struct.pack("<II", width, height) + struct.pack("<4I", *offsets)
    mips = indices + b"".join(bytes([lvl]) * sizes[lvl] for lvl in range(1, 4))
    return hdr + mips


def build_miptex_lump(records: list[bytes | None]) -> bytes:
    """Miptex lump: count, relative offsets (-1 for ``None``), then records."""

    table_size = 4 + 4 * len(records)
    offsets: list[int] = []
    body = b""
    for rec in records:
        if rec is None:
            offsets.append(-1)
            continue
        offsets.append(table_size + len(body))
        body += rec
    return struct.pack("<i", len(records)) + struct.pack(f"<{len(records)}i", *offsets) + body


def build_bsp(lumps: dict[Lump, bytes], *, version: int = BSP_VERSION) -> bytes:
    header_size = 4 + len(Lump) * 8
    directory: list[int] = []
    body = b""
    for lump in Lump:
        data = lumps.get(lump, b"")
        directory.extend([header_size + len(body), len(data)])
        body += data
    return struct.pack(f"<i{len(Lump) * 2}i", version, *directory) + body


def build_wad(entries: list[tuple[str, int, bytes]]) -> bytes:
    """WAD2 file from ``(name, type, data)`` entries in directory order."""

    body = b""
    directory = b""
    for name, lump_type, data in entries:
        offset = 12 + len(body)
        body += data
        name_raw = name.encode("ascii")[:16].ljust(16, b"\x00")
        directory += struct.pack("<iiiBBH16s", offset, len(data), len(data), lump_type, 0, 0, name_raw)
    return b"WAD2" + struct.pack("<ii", len(entries), 12 + len(body)) + body + directory


def pack_vertices(verts: list[tuple[float, float, float]]) -> bytes:
    return b"".join(struct.pack("<3f", *v) for v in verts)


def pack_edges(edges: list[tuple[int, int]]) -> bytes:
    return b"".join(struct.pack("<HH", *e) for e in edges)


def pack_listedges(refs: list[int]) -> bytes:
    return struct.pack(f"<{len(refs)}i", *refs)


def pack_listfaces(faces: list[int]) -> bytes:
    return struct.pack(f"<{len(faces)}H", *faces)


def pack_plane(normal: tuple[float, float, float], dist: float, kind: int = 0) -> bytes:
    return struct.pack("<4fi", *normal, dist, kind)


def pack_texinfo(
    u_axis: tuple[float, float, float],
    u_offset: float,
    v_axis: tuple[float, float, float],
    v_offset: float,
    miptex_id: int,
) -> bytes:
    return struct.pack("<4f4fII", *u_axis, u_offset, *v_axis, v_offset, miptex_id, 0)


def pack_face(*, plane_id: int, ledge_id: int, ledge_num: int, texinfo_id: int, side: int = 0) -> bytes:
    return struct.pack("<HHiHHBBBBI", plane_id, side, ledge_id, ledge_num, texinfo_id, 0, 0, 0, 0, 0)


def pack_node(*, plane_id: int, front: int, back: int, face_id: int = 0, face_num: int = 0) -> bytes:
    return struct.pack("<Ihh3h3hHH", plane_id, front, back, 0, 0, 0, 0, 0, 0, face_id, face_num)


def pack_leaf(*, listface_id: int = 0, listface_num: int = 0, kind: int = -1) -> bytes:
    return struct.pack("<ii3h3hHH4B", kind, -1, 0, 0, 0, 0, 0, 0, listface_id, listface_num, 0, 0, 0, 0)


def pack_model(*, node_id: int, face_id: int = 0, face_num: int = 0) -> bytes:
    return struct.pack("<9f7i", *([0.0] * 9), node_id, 0, 0, 0, 1, face_id, face_num)


# ---------------------------------------------------------------------------
# A one-face world
# ---------------------------------------------------------------------------

FLOOR_ENTITIES = (
    b'{\n"classname" "worldspawn"\n"message" "floor test"\n}\n'
    b'{\n"classname" "info_player_start"\n"origin" "16 32 24"\n}\n\x00'
)


def floor_bsp_lumps(*, miptex: bytes | None = None) -> dict[Lump, bytes]:
    """A 64x64 floor quad at z=0 inside leaf 1, textured "floor" (16x16, index 5).

    The edge list walks the quad clockwise seen from above through negative
    edge references: v0, v3, v2, v1.
    """

    if miptex is None:
        miptex = build_miptex_lump([build_miptex(name="floor", width=16, height=16, indices=bytes([5]) * 256)])
    return {
        Lump.ENTITIES: FLOOR_ENTITIES,
        Lump.PLANES: pack_plane((0.0, 0.0, 1.0), 0.0),
        Lump.MIPTEX: miptex,
        Lump.VERTICES: pack_vertices([(0, 0, 0), (64, 0, 0), (64, 64, 0), (0, 64, 0)]),
        Lump.NODES: pack_node(plane_id=0, front=~1, back=~0),
        Lump.TEXINFOS: pack_texinfo((1, 0, 0), 0.0, (0, -1, 0), 0.0, 0),
        Lump.FACES: pack_face(plane_id=0, ledge_id=0, ledge_num=4, texinfo_id=0),
        Lump.LEAVES: pack_leaf() + pack_leaf(listface_id=0, listface_num=1),
        Lump.LISTFACES: pack_listfaces([0]),
        Lump.EDGES: pack_edges([(0, 0), (0, 1), (1, 2), (2, 3), (3, 0)]),
        Lump.LISTEDGES: pack_listedges([-4, -3, -2, -1]),
        Lump.MODELS: pack_model(node_id=0, face_id=0, face_num=1),
    }


# ---------------------------------------------------------------------------
# MAP text
# ---------------------------------------------------------------------------


def box_brush(x0: float, y0: float, z0: float, x1: float, y1: float, z1: float, texture: str = "wall") -> str:
    """Axis-aligned box brush in the standard face format.

    Points are listed the way level editors write them, so each face plane
    faces out of the box.  Faces come in the order -X, -Y, -Z, +Z, +Y, +X.
    """

    t = f"{texture} 0 0 0 1 1"
    lo = f"( {x0} {y0} {z0} )"
    hi = f"( {x1} {y1} {z1} )"
    return "\n".join(
        [
            "{",
            f"{lo} ( {x0} {y0 + 1} {z0} ) ( {x0} {y0} {z0 + 1} ) {t}",
            f"{lo} ( {x0} {y0} {z0 + 1} ) ( {x0 + 1} {y0} {z0} ) {t}",
            f"{lo} ( {x0 + 1} {y0} {z0} ) ( {x0} {y0 + 1} {z0} ) {t}",
            f"{hi} ( {x1} {y1 + 1} {z1} ) ( {x1 + 1} {y1} {z1} ) {t}",
            f"{hi} ( {x1 + 1} {y1} {z1} ) ( {x1} {y1} {z1 + 1} ) {t}",
            f"{hi} ( {x1} {y1} {z1 + 1} ) ( {x1} {y1 + 1} {z1} ) {t}",
            "}",
        ]
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def floor_bsp_bytes() -> bytes:
    return build_bsp(floor_bsp_lumps())


@pytest.fixture
def floor_bsp_path(tmp_path: Path, floor_bsp_bytes: bytes) -> Path:
    p = tmp_path / "floor.bsp"
    p.write_bytes(floor_bsp_bytes)
    return p


@pytest.fixture
def wall_wad_bytes() -> bytes:
    return build_wad([("WALL", 0x44, build_miptex(name="WALL", width=64, height=32))])


@pytest.fixture
def write_map(tmp_path: Path) -> Callable[[str], Path]:
    def _write(text: str, name: str = "test.map") -> Path:
        p = tmp_path / name
        p.write_text(text, encoding="ascii")
        return p

    return _write
