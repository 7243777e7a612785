from __future__ import annotations

import struct
from dataclasses import dataclass

from quakeview.common.errors import ReadFailedError
from quakeview.maps.mesh import TextureImage
from quakeview.maps.palette import QUAKE_PALETTE, decode_indexed

MIP_LEVELS = 4

# name[16], width(u32), height(u32), offsets[4](u32)
MIPTEX_HEADER = struct.Struct("<16sII4I")


@dataclass(frozen=True)
class MipTexture:
    name: str
    width: int
    height: int
    offsets: tuple[int, int, int, int]  # relative to the start of this record

    def level_size(self, level: int) -> tuple[int, int]:
        return (self.width >> level, self.height >> level)


def read_cstr(raw: bytes) -> str:
    if b"\x00" in raw:
        raw = raw.split(b"\x00", 1)[0]
    return raw.decode("ascii", errors="ignore")


def parse_miptex_header(data: bytes, offset: int = 0) -> MipTexture:
    """
    Parse a MIPTEX header at *offset* in *data*.

    Layout (little-endian):
    - name[16], width(u32), height(u32), offsets[4](u32)
    - pixel data for mip 0..3 at the given offsets, w*h, w*h/4, w*h/16, w*h/64 bytes
    """
    if offset < 0 or offset + MIPTEX_HEADER.size > len(data):
        raise ReadFailedError("miptex header out of bounds")
    raw_name, width, height, o0, o1, o2, o3 = MIPTEX_HEADER.unpack_from(data, offset)
    return MipTexture(
        name=read_cstr(raw_name),
        width=int(width),
        height=int(height),
        offsets=(int(o0), int(o1), int(o2), int(o3)),
    )


def mip_level_indices(data: bytes, offset: int, header: MipTexture, level: int = 0) -> bytes:
    """Palette indices of one mip level of the record at *offset*."""

    if not 0 <= level < MIP_LEVELS:
        raise ValueError(f"mip level must be in [0, {MIP_LEVELS}), got {level}")
    w, h = header.level_size(level)
    start = offset + header.offsets[level]
    end = start + w * h
    if header.offsets[level] <= 0 or end > len(data):
        raise ReadFailedError(f"miptex {header.name!r}: mip {level} pixels out of bounds")
    return bytes(data[start:end])


def decode_miptex(
    data: bytes,
    offset: int = 0,
    *,
    palette: bytes = QUAKE_PALETTE,
    level: int = 0,
) -> TextureImage:
    """Decode one mip level of a MIPTEX record to an RGB8 :class:`TextureImage`."""

    header = parse_miptex_header(data, offset)
    if header.width <= 0 or header.height <= 0:
        raise ReadFailedError(f"invalid texture dimensions: {header.width}x{header.height}")
    indices = mip_level_indices(data, offset, header, level)
    w, h = header.level_size(level)
    return TextureImage(name=header.name, width=w, height=h, rgb=decode_indexed(indices, palette))
