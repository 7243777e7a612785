"""Quake BSP (version 23 / 0x17) reader.

The file opens with a version number and a directory of 15 lumps.  Fixed-size
record lumps are read lazily by index straight from the file blob; nothing is
materialised up front, so a reader costs only the header parse.

Lump layout (all little-endian, tightly packed)::

    ENTITIES    ASCII "key" "value" blocks
    PLANES      20 bytes  normal[3] f32, dist f32, type i32
    MIPTEX      i32 count, i32 offsets[count], MipTexture records
    VERTICES    12 bytes  x, y, z f32
    VISIBILITY  RLE bit rows (not decoded here)
    NODES       24 bytes
    TEXINFOS    40 bytes
    FACES       20 bytes
    LIGHTMAPS   raw bytes (not decoded here)
    CLIPNODES   8 bytes
    LEAVES      28 bytes
    LISTFACES   u16 face index
    EDGES       4 bytes   u16 start, u16 end
    LISTEDGES   i32 signed edge index
    MODELS      64 bytes
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Any, Callable, Iterator

from quakeview.common.errors import (
    IndexOutOfRangeError,
    InvalidBspVersionError,
    LumpSizeMismatchError,
    ReadFailedError,
)
from quakeview.maps.geometry import Vec3
from quakeview.maps.mesh import TextureImage
from quakeview.maps.miptex import MIPTEX_HEADER, MipTexture, mip_level_indices, parse_miptex_header
from quakeview.maps.palette import QUAKE_PALETTE, decode_indexed

BSP_VERSION = 23


class Lump(IntEnum):
    ENTITIES = 0
    PLANES = 1
    MIPTEX = 2
    VERTICES = 3
    VISIBILITY = 4
    NODES = 5
    TEXINFOS = 6
    FACES = 7
    LIGHTMAPS = 8
    CLIPNODES = 9
    LEAVES = 10
    LISTFACES = 11
    EDGES = 12
    LISTEDGES = 13
    MODELS = 14


HEADER_LUMPS = len(Lump)
_HEADER = struct.Struct(f"<i{HEADER_LUMPS * 2}i")


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LumpEntry:
    offset: int
    size: int


@dataclass(frozen=True)
class BspPlane:
    normal: Vec3
    dist: float
    type: int


@dataclass(frozen=True)
class BspEdge:
    vs: int  # start vertex
    ve: int  # end vertex


@dataclass(frozen=True)
class BspTexInfo:
    u_axis: Vec3
    u_offset: float
    v_axis: Vec3
    v_offset: float
    miptex_id: int
    animated: int


@dataclass(frozen=True)
class BspFace:
    plane_id: int
    side: int        # 1: face uses the reversed plane normal
    ledge_id: int    # first LISTEDGES entry
    ledge_num: int   # number of LISTEDGES entries
    texinfo_id: int
    typelight: int
    baselight: int
    light: tuple[int, int]
    lightmap: int


@dataclass(frozen=True)
class BspNode:
    plane_id: int
    # > 0: node index, <= 0: ~leaf index
    front: int
    back: int
    bbmin: tuple[int, int, int]
    bbmax: tuple[int, int, int]
    face_id: int
    face_num: int


@dataclass(frozen=True)
class BspLeaf:
    type: int
    vis_id: int
    bbmin: tuple[int, int, int]
    bbmax: tuple[int, int, int]
    listface_id: int
    listface_num: int
    ambient: tuple[int, int, int, int]  # water, sky, slime, lava


@dataclass(frozen=True)
class BspClipnode:
    plane_id: int
    front: int
    back: int


@dataclass(frozen=True)
class BspModel:
    bbmin: Vec3
    bbmax: Vec3
    origin: Vec3
    node_id: int
    clipnode1_id: int
    clipnode2_id: int
    dummy_id: int
    numleafs: int
    face_id: int
    face_num: int


def _plane(v: tuple) -> BspPlane:
    return BspPlane(normal=(v[0], v[1], v[2]), dist=v[3], type=v[4])


def _texinfo(v: tuple) -> BspTexInfo:
    return BspTexInfo(
        u_axis=(v[0], v[1], v[2]),
        u_offset=v[3],
        v_axis=(v[4], v[5], v[6]),
        v_offset=v[7],
        miptex_id=v[8],
        animated=v[9],
    )


def _face(v: tuple) -> BspFace:
    return BspFace(
        plane_id=v[0],
        side=v[1],
        ledge_id=v[2],
        ledge_num=v[3],
        texinfo_id=v[4],
        typelight=v[5],
        baselight=v[6],
        light=(v[7], v[8]),
        lightmap=v[9],
    )


def _node(v: tuple) -> BspNode:
    return BspNode(
        plane_id=v[0],
        front=v[1],
        back=v[2],
        bbmin=(v[3], v[4], v[5]),
        bbmax=(v[6], v[7], v[8]),
        face_id=v[9],
        face_num=v[10],
    )


def _leaf(v: tuple) -> BspLeaf:
    return BspLeaf(
        type=v[0],
        vis_id=v[1],
        bbmin=(v[2], v[3], v[4]),
        bbmax=(v[5], v[6], v[7]),
        listface_id=v[8],
        listface_num=v[9],
        ambient=(v[10], v[11], v[12], v[13]),
    )


def _model(v: tuple) -> BspModel:
    return BspModel(
        bbmin=(v[0], v[1], v[2]),
        bbmax=(v[3], v[4], v[5]),
        origin=(v[6], v[7], v[8]),
        node_id=v[9],
        clipnode1_id=v[10],
        clipnode2_id=v[11],
        dummy_id=v[12],
        numleafs=v[13],
        face_id=v[14],
        face_num=v[15],
    )


#: Fixed-size record layout and decoder per lump.
RECORDS: dict[Lump, tuple[struct.Struct, Callable[[tuple], Any]]] = {
    Lump.PLANES: (struct.Struct("<4fi"), _plane),
    Lump.VERTICES: (struct.Struct("<3f"), lambda v: (v[0], v[1], v[2])),
    Lump.NODES: (struct.Struct("<Ihh3h3hHH"), _node),
    Lump.TEXINFOS: (struct.Struct("<4f4fII"), _texinfo),
    Lump.FACES: (struct.Struct("<HHiHHBBBBI"), _face),
    Lump.CLIPNODES: (struct.Struct("<Ihh"), lambda v: BspClipnode(plane_id=v[0], front=v[1], back=v[2])),
    Lump.LEAVES: (struct.Struct("<ii3h3hHH4B"), _leaf),
    Lump.LISTFACES: (struct.Struct("<H"), lambda v: v[0]),
    Lump.EDGES: (struct.Struct("<HH"), lambda v: BspEdge(vs=v[0], ve=v[1])),
    Lump.LISTEDGES: (struct.Struct("<i"), lambda v: v[0]),
    Lump.MODELS: (struct.Struct("<9f7i"), _model),
}


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------

class BspFile:
    def __init__(self, blob: bytes, *, path: Path | None = None) -> None:
        self.path = path
        self._blob = blob
        if len(blob) < 4:
            raise ReadFailedError("file too small for a BSP header")
        (version,) = struct.unpack_from("<i", blob, 0)
        if version != BSP_VERSION:
            raise InvalidBspVersionError(version, expected=BSP_VERSION)
        if len(blob) < _HEADER.size:
            raise ReadFailedError("truncated BSP lump directory")

        raw = _HEADER.unpack_from(blob, 0)
        self.version = raw[0]
        self.lumps: dict[Lump, LumpEntry] = {}
        for lump in Lump:
            off, size = raw[1 + lump * 2], raw[2 + lump * 2]
            if off < 0 or size < 0 or off + size > len(blob):
                raise ReadFailedError(f"lump {lump.name} [{off}, {off + size}) exceeds file size {len(blob)}")
            self.lumps[lump] = LumpEntry(offset=off, size=size)
        self._counts: dict[Lump, int] = {}

    @staticmethod
    def load(path: Path) -> BspFile:
        try:
            blob = Path(path).read_bytes()
        except OSError as exc:
            raise ReadFailedError(f"cannot read BSP {path}: {exc}") from exc
        return BspFile(blob, path=Path(path))

    # -- generic access ----------------------------------------------------

    def lump_bytes(self, lump: Lump) -> bytes:
        e = self.lumps[lump]
        return self._blob[e.offset : e.offset + e.size]

    def count(self, lump: Lump) -> int:
        cached = self._counts.get(lump)
        if cached is not None:
            return cached
        fmt, _ = RECORDS[lump]
        size = self.lumps[lump].size
        if size % fmt.size != 0:
            raise LumpSizeMismatchError(lump=lump.name, size=size, record_size=fmt.size)
        n = size // fmt.size
        self._counts[lump] = n
        return n

    def read(self, lump: Lump, index: int) -> Any:
        """Decode record *index* of a fixed-size record lump."""

        n = self.count(lump)
        if not 0 <= index < n:
            raise IndexOutOfRangeError(lump=lump.name, index=index, count=n)
        fmt, decode = RECORDS[lump]
        return decode(fmt.unpack_from(self._blob, self.lumps[lump].offset + index * fmt.size))

    def iter(self, lump: Lump) -> Iterator[Any]:
        for i in range(self.count(lump)):
            yield self.read(lump, i)

    # -- typed access ------------------------------------------------------

    def plane(self, index: int) -> BspPlane:
        return self.read(Lump.PLANES, index)

    def vertex(self, index: int) -> Vec3:
        return self.read(Lump.VERTICES, index)

    def node(self, index: int) -> BspNode:
        return self.read(Lump.NODES, index)

    def texinfo(self, index: int) -> BspTexInfo:
        return self.read(Lump.TEXINFOS, index)

    def face(self, index: int) -> BspFace:
        return self.read(Lump.FACES, index)

    def clipnode(self, index: int) -> BspClipnode:
        return self.read(Lump.CLIPNODES, index)

    def leaf(self, index: int) -> BspLeaf:
        return self.read(Lump.LEAVES, index)

    def listface(self, index: int) -> int:
        return self.read(Lump.LISTFACES, index)

    def edge(self, index: int) -> BspEdge:
        return self.read(Lump.EDGES, index)

    def listedge(self, index: int) -> int:
        return self.read(Lump.LISTEDGES, index)

    def model(self, index: int) -> BspModel:
        return self.read(Lump.MODELS, index)

    def nodes(self) -> Iterator[BspNode]:
        return self.iter(Lump.NODES)

    def leaves(self) -> Iterator[BspLeaf]:
        return self.iter(Lump.LEAVES)

    def faces(self) -> Iterator[BspFace]:
        return self.iter(Lump.FACES)

    def models(self) -> Iterator[BspModel]:
        return self.iter(Lump.MODELS)

    # -- variable-length lumps ---------------------------------------------

    def entities(self) -> list[dict[str, str]]:
        from quakeview.maps.map_parser import parse_map

        text = self.lump_bytes(Lump.ENTITIES).decode("ascii", errors="replace")
        text = text.split("\x00", 1)[0]
        return [ent.properties for ent in parse_map(text)]

    def miptex_count(self) -> int:
        e = self.lumps[Lump.MIPTEX]
        if e.size == 0:
            return 0
        if e.size < 4:
            raise ReadFailedError("miptex lump too small")
        (n,) = struct.unpack_from("<i", self._blob, e.offset)
        if n < 0 or 4 + n * 4 > e.size:
            raise ReadFailedError(f"miptex directory of {n} entries exceeds lump")
        return n

    def miptex_offset(self, index: int) -> int:
        """Offset of miptex *index* relative to the miptex lump, -1 if absent."""

        n = self.miptex_count()
        if not 0 <= index < n:
            raise IndexOutOfRangeError(lump=Lump.MIPTEX.name, index=index, count=n)
        (off,) = struct.unpack_from("<i", self._blob, self.lumps[Lump.MIPTEX].offset + 4 + index * 4)
        return off

    def miptex(self, index: int) -> MipTexture | None:
        """MipTexture header, or ``None`` for slots with no embedded texture."""

        off = self.miptex_offset(index)
        if off < 0:
            return None
        e = self.lumps[Lump.MIPTEX]
        if off + MIPTEX_HEADER.size > e.size:
            raise ReadFailedError(f"miptex {index} offset {off} outside miptex lump")
        return parse_miptex_header(self._blob, e.offset + off)

    def miptex_pixels(self, index: int, level: int = 0) -> bytes:
        """Palette indices of mip *level* of texture *index*."""

        header = self.miptex(index)
        if header is None:
            raise ReadFailedError(f"miptex {index} has no embedded pixels")
        base = self.lumps[Lump.MIPTEX].offset + self.miptex_offset(index)
        return mip_level_indices(self._blob, base, header, level)

    def miptex_image(self, index: int, *, palette: bytes = QUAKE_PALETTE, level: int = 0) -> TextureImage:
        header = self.miptex(index)
        if header is None:
            raise ReadFailedError(f"miptex {index} has no embedded pixels")
        w, h = header.level_size(level)
        return TextureImage(
            name=header.name,
            width=w,
            height=h,
            rgb=decode_indexed(self.miptex_pixels(index, level), palette),
        )
