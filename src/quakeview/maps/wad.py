from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from pathlib import Path

from quakeview.common.errors import (
    InvalidWadHeaderError,
    MissingTextureError,
    ReadFailedError,
    UnknownWadEntryTypeError,
)
from quakeview.maps.mesh import TextureImage
from quakeview.maps.miptex import MipTexture, decode_miptex, parse_miptex_header, read_cstr
from quakeview.maps.palette import PALETTE_SIZE, QUAKE_PALETTE, palette_from_bytes

logger = logging.getLogger(__name__)

WAD2_MAGIC = b"WAD2"

LUMP_PALETTE = 0x40
LUMP_STATUS_BAR = 0x42
LUMP_MIPTEX = 0x44
LUMP_CONSOLE_PIC = 0x45

KNOWN_LUMP_TYPES = frozenset({LUMP_PALETTE, LUMP_STATUS_BAR, LUMP_MIPTEX, LUMP_CONSOLE_PIC})

# magic[4], count(i32), dir_offset(i32)
_HEADER = struct.Struct("<4sii")
# offset(i32), disk_size(i32), size(i32), type(u8), compression(u8), pad(u16), name[16]
_DIR_ENTRY = struct.Struct("<iiiBBH16s")


@dataclass(frozen=True)
class WadDirEntry:
    offset: int
    disk_size: int
    size: int
    lump_type: int
    compression: int
    name: str


@dataclass(frozen=True)
class _TextureSlot:
    entry: WadDirEntry
    header: MipTexture
    palette: bytes


class Wad2:
    """Random-access WAD2 texture archive.

    Entries are scanned in directory order.  A palette lump (``0x40``) replaces
    the palette used for every mip texture that follows it.  Texture lookup is
    by case-folded name; pixels are decoded on first access.
    """

    def __init__(
        self,
        path: Path | None,
        entries: list[WadDirEntry],
        blob: bytes,
        *,
        palette: bytes = QUAKE_PALETTE,
    ) -> None:
        self.path = path
        self.entries = entries
        self._blob = blob
        self._slots: dict[str, _TextureSlot] = {}
        self._decoded: dict[str, TextureImage] = {}
        self._index(palette)

    @staticmethod
    def load(path: Path, *, palette: bytes = QUAKE_PALETTE) -> Wad2:
        try:
            blob = Path(path).read_bytes()
        except OSError as exc:
            raise ReadFailedError(f"cannot read WAD {path}: {exc}") from exc
        return Wad2.from_bytes(blob, path=Path(path), palette=palette)

    @staticmethod
    def from_bytes(blob: bytes, *, path: Path | None = None, palette: bytes = QUAKE_PALETTE) -> Wad2:
        if len(blob) < _HEADER.size:
            raise InvalidWadHeaderError("file too small")
        magic, num, dir_off = _HEADER.unpack_from(blob, 0)
        if magic != WAD2_MAGIC:
            raise InvalidWadHeaderError(f"unsupported magic: {magic!r}")
        if num < 0 or dir_off < _HEADER.size or dir_off + num * _DIR_ENTRY.size > len(blob):
            raise InvalidWadHeaderError("directory out of bounds")

        entries: list[WadDirEntry] = []
        for i in range(num):
            e_off, disk_size, size, lump_type, compression, _pad, raw_name = _DIR_ENTRY.unpack_from(
                blob, dir_off + i * _DIR_ENTRY.size
            )
            name = read_cstr(raw_name)
            if lump_type not in KNOWN_LUMP_TYPES:
                raise UnknownWadEntryTypeError(name=name, lump_type=lump_type)
            if e_off < 0 or e_off + disk_size > len(blob):
                raise InvalidWadHeaderError(f"entry {name!r} out of bounds")
            entries.append(
                WadDirEntry(
                    offset=int(e_off),
                    disk_size=int(disk_size),
                    size=int(size),
                    lump_type=int(lump_type),
                    compression=int(compression),
                    name=name,
                )
            )
        return Wad2(path=path, entries=entries, blob=blob, palette=palette)

    def _index(self, palette: bytes) -> None:
        current = palette
        for e in self.entries:
            if e.lump_type == LUMP_PALETTE:
                current = palette_from_bytes(self._blob[e.offset : e.offset + max(e.disk_size, PALETTE_SIZE)])
                continue
            if e.lump_type != LUMP_MIPTEX:
                continue
            header = parse_miptex_header(self._blob, e.offset)
            key = (header.name or e.name).casefold()
            # Later entries with the same name replace earlier ones.
            self._slots[key] = _TextureSlot(entry=e, header=header, palette=current)

    def texture_names(self) -> list[str]:
        return [slot.header.name or slot.entry.name for slot in self._slots.values()]

    def __contains__(self, name: str) -> bool:
        return name.casefold() in self._slots

    def texture_size(self, name: str) -> tuple[int, int]:
        slot = self._slot(name)
        return (slot.header.width, slot.header.height)

    def texture(self, name: str) -> TextureImage:
        key = name.casefold()
        cached = self._decoded.get(key)
        if cached is not None:
            return cached
        slot = self._slot(name)
        logger.debug("Decoding WAD texture %s", slot.header.name)
        tex = decode_miptex(self._blob, slot.entry.offset, palette=slot.palette)
        self._decoded[key] = tex
        return tex

    def _slot(self, name: str) -> _TextureSlot:
        slot = self._slots.get(name.casefold())
        if slot is None:
            raise MissingTextureError(name)
        return slot


class WadCollection:
    """Several WADs searched in order; the first WAD holding a name wins."""

    def __init__(self, wads: list[Wad2]) -> None:
        self.wads = list(wads)

    def __contains__(self, name: str) -> bool:
        return any(name in w for w in self.wads)

    def texture(self, name: str) -> TextureImage:
        for w in self.wads:
            if name in w:
                return w.texture(name)
        raise MissingTextureError(name)
