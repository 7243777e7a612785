"""Convert a ``.map`` file into textured mesh batches.

Pipeline:

1. Parse the map text (:mod:`quakeview.maps.map_parser`).
2. Resolve the WAD files named by the first entity's ``wad`` key.
3. Polygonise every brush of every entity; degenerate brushes are skipped
   with a warning.
4. Project texture coordinates and fan-triangulate faces into one batch per
   texture name.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from quakeview.common.aabb import AABB
from quakeview.common.errors import DegenerateBrushError, ReadFailedError, UnexpectedEndOfInputError
from quakeview.maps.brush_geometry import polygonise_brush, polygons_bounds, project_map_uv
from quakeview.maps.map_parser import MapEntity, parse_map
from quakeview.maps.mesh import MeshBatch, MeshBuilder, TextureImage
from quakeview.maps.palette import QUAKE_PALETTE
from quakeview.maps.wad import Wad2, WadCollection

logger = logging.getLogger(__name__)


class TextureSource(Protocol):
    def __contains__(self, name: str) -> bool: ...

    def texture(self, name: str) -> TextureImage: ...


@dataclass
class MapConvertResult:
    """Result of converting a ``.map`` file."""

    batches: list[MeshBatch] = field(default_factory=list)
    entities: list[MapEntity] = field(default_factory=list)
    wad_files: list[Path] = field(default_factory=list)
    brush_count: int = 0
    skipped_brushes: int = 0
    # Union of every non-degenerate brush's bounds (output space).
    bounds: AABB | None = None


# ---------------------------------------------------------------------------
# WAD path resolution
# ---------------------------------------------------------------------------

def parse_wad_paths(wad_value: str) -> list[str]:
    """Split a ``wad`` key into individual path strings.

    The value is semicolon-separated and may use Windows back-slashes.
    Empty segments are ignored.
    """

    raw_paths: list[str] = []
    for segment in wad_value.replace("\\", "/").split(";"):
        segment = segment.strip()
        if segment:
            raw_paths.append(segment)
    return raw_paths


def resolve_wad_files(
    raw_paths: list[str],
    *,
    map_dir: Path,
    wad_search_dirs: list[Path],
) -> list[Path]:
    """Resolve WAD path strings to files on disk.

    Resolution order for each path:
    1. Relative to the ``.map`` file's directory.
    2. Relative to each *wad_search_dir*.
    3. Basename only, in each *wad_search_dir*.
    """

    found: list[Path] = []

    for raw in raw_paths:
        p = Path(raw)
        resolved: Path | None = None

        candidate = (map_dir / p).resolve()
        if candidate.is_file():
            resolved = candidate
        else:
            for sd in wad_search_dirs:
                candidate = (sd / p).resolve()
                if candidate.is_file():
                    resolved = candidate
                    break

        if resolved is None:
            for sd in wad_search_dirs:
                candidate = (sd / p.name).resolve()
                if candidate.is_file():
                    resolved = candidate
                    break

        if resolved is not None:
            if resolved not in found:
                found.append(resolved)
        else:
            logger.warning("WAD not found: %s", raw)

    return found


def load_wads(paths: list[Path], *, palette: bytes = QUAKE_PALETTE) -> WadCollection:
    wads: list[Wad2] = []
    for path in paths:
        logger.info("Loading WAD: %s", path)
        wads.append(Wad2.load(path, palette=palette))
    return WadCollection(wads)


# ---------------------------------------------------------------------------
# Mesh assembly
# ---------------------------------------------------------------------------

def build_map_batches(
    entities: list[MapEntity],
    textures: TextureSource,
    *,
    skip_textures: frozenset[str] = frozenset(),
) -> MapConvertResult:
    """Polygonise and texture every brush of *entities*.

    Raises :class:`~quakeview.common.errors.MissingTextureError` when a face
    names a texture *textures* cannot supply.
    """

    result = MapConvertResult(entities=entities)
    builder = MeshBuilder()

    for ent_index, ent in enumerate(entities):
        for brush_index, brush in enumerate(ent.brushes):
            result.brush_count += 1
            for face in brush.faces:
                if face.plane.is_degenerate:
                    logger.debug("Degenerate face plane at line %d ignored", face.line)
            try:
                polygons = polygonise_brush(brush)
            except DegenerateBrushError as exc:
                result.skipped_brushes += 1
                logger.warning("Skipping entity %d brush %d: %s", ent_index, brush_index, exc)
                continue

            for poly in polygons:
                if poly.face.texture.casefold() in skip_textures:
                    continue
                tex = textures.texture(poly.face.texture)
                uvs = [project_map_uv(v, poly.face, tex.width, tex.height) for v in poly.vertices]
                builder.add_polygon(tex, poly.vertices, uvs)

            bb = polygons_bounds(polygons)
            if bb is not None:
                result.bounds = bb if result.bounds is None else result.bounds.union(bb)

    result.batches = builder.batches()
    return result


def convert_map_file(
    map_path: Path,
    *,
    wad_search_dirs: list[Path] | None = None,
    palette: bytes = QUAKE_PALETTE,
    skip_textures: frozenset[str] = frozenset(),
) -> MapConvertResult:
    """Convert a ``.map`` file into mesh batches.

    Parameters
    ----------
    map_path:
        Path to the ``.map`` file.
    wad_search_dirs:
        Directories searched for the WAD files named by the first entity.
    palette:
        Starting palette for every WAD.
    skip_textures:
        Case-folded texture names whose faces are dropped.
    """

    map_path = Path(map_path).resolve()
    wad_dirs = [Path(d).resolve() for d in (wad_search_dirs or [])]

    logger.info("Parsing map: %s", map_path)
    try:
        map_text = map_path.read_text(encoding="ascii", errors="replace")
    except OSError as exc:
        raise ReadFailedError(f"cannot read map {map_path}: {exc}") from exc
    entities = parse_map(map_text)
    if not entities:
        raise UnexpectedEndOfInputError(inside="map", line=1)

    raw_wad_paths = parse_wad_paths(entities[0].properties.get("wad", ""))
    wad_files = resolve_wad_files(raw_wad_paths, map_dir=map_path.parent, wad_search_dirs=wad_dirs)
    if raw_wad_paths:
        logger.info("Resolved %d of %d WAD files", len(wad_files), len(raw_wad_paths))

    textures = load_wads(wad_files, palette=palette)
    result = build_map_batches(entities, textures, skip_textures=skip_textures)
    result.wad_files = wad_files
    return result
