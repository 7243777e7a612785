"""Level loading entry point and reload policy.

:func:`load_level` never raises for level data problems: it returns a
:class:`LoadResult` holding either the mesh batches or the error that stopped
the load.  :class:`LevelSession` keeps the currently shown scene and swaps it
only when a reload succeeds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

from quakeview.app_config import LoadConfig
from quakeview.common.aabb import AABB
from quakeview.common.error_log import ErrorLog
from quakeview.common.errors import LevelLoadError, ReadFailedError
from quakeview.maps.bsp import BspFile
from quakeview.maps.bsp_mesh import build_bsp_batches
from quakeview.maps.geometry import Vec3, remap_position
from quakeview.maps.map_converter import convert_map_file
from quakeview.maps.mesh import MeshBatch, TextureImage
from quakeview.maps.palette import QUAKE_PALETTE, load_palette

logger = logging.getLogger(__name__)

SPAWN_CLASSNAMES: tuple[str, ...] = (
    "info_player_start",
    "info_player_deathmatch",
)


@dataclass
class LoadResult:
    """Outcome of one load: batches on success, ``error`` on failure."""

    source: Path
    batches: list[MeshBatch] = field(default_factory=list)
    entities: list[dict[str, str]] = field(default_factory=list)
    spawn: Vec3 | None = None
    bounds: AABB | None = None
    error: LevelLoadError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def textures(self) -> list[TextureImage]:
        """Distinct textures referenced by the batches, in batch order."""

        seen: dict[str, TextureImage] = {}
        for b in self.batches:
            seen.setdefault(b.name, b.texture)
        return list(seen.values())

    @property
    def triangle_count(self) -> int:
        return sum(b.mesh.triangle_count for b in self.batches)


def find_spawn(entities: Sequence[Mapping[str, str]]) -> Vec3 | None:
    """Origin of the first player spawn entity, remapped to output space."""

    for ent in entities:
        if ent.get("classname", "").lower() not in SPAWN_CLASSNAMES:
            continue
        parts = ent.get("origin", "").split()
        if len(parts) != 3:
            continue
        try:
            x, y, z = float(parts[0]), float(parts[1]), float(parts[2])
        except ValueError:
            continue
        return remap_position((x, y, z))
    return None


def _batches_bounds(batches: list[MeshBatch]) -> AABB | None:
    out: AABB | None = None
    for b in batches:
        bb = b.mesh.bounds()
        if bb is not None:
            out = bb if out is None else out.union(bb)
    return out


def _load(path: Path, config: LoadConfig) -> LoadResult:
    palette = load_palette(Path(config.palette_path)) if config.palette_path else QUAKE_PALETTE
    suffix = path.suffix.lower()

    if suffix == ".bsp":
        bsp = BspFile.load(path)
        batches = build_bsp_batches(bsp, palette=palette, skip_textures=config.skip_textures)
        entities = bsp.entities()
        return LoadResult(
            source=path,
            batches=batches,
            entities=entities,
            spawn=find_spawn(entities),
            bounds=_batches_bounds(batches),
        )

    if suffix == ".map":
        converted = convert_map_file(
            path,
            wad_search_dirs=[Path(d) for d in config.wad_search_dirs],
            palette=palette,
            skip_textures=config.skip_textures,
        )
        entities = [ent.properties for ent in converted.entities]
        return LoadResult(
            source=path,
            batches=converted.batches,
            entities=entities,
            spawn=find_spawn(entities),
            bounds=converted.bounds,
        )

    raise ReadFailedError(f"unsupported level file type: {path.suffix or path.name}")


def load_level(path: Path | str, config: LoadConfig | None = None) -> LoadResult:
    """Load a ``.map`` or ``.bsp`` file.

    Level data errors and I/O failures are returned in ``LoadResult.error``;
    no partial batches are returned alongside an error.
    """

    path = Path(path)
    config = config or LoadConfig()
    logger.info("Loading level: %s", path)
    try:
        result = _load(path, config)
    except LevelLoadError as exc:
        logger.debug("Load of %s failed", path, exc_info=True)
        return LoadResult(source=path, error=exc)
    except OSError as exc:
        err = ReadFailedError(f"{path}: {exc}")
        err.__cause__ = exc
        return LoadResult(source=path, error=err)

    logger.info(
        "Loaded %s: %d batches, %d triangles, %d textures",
        path.name,
        len(result.batches),
        result.triangle_count,
        len(result.textures()),
    )
    return result


class LevelSession:
    """Holds the scene currently handed to the renderer.

    ``upload`` receives each batch of a successful load and returns a handle;
    ``release`` receives every handle of the previous scene before the new
    one is uploaded.  A failed load leaves the current scene untouched.
    """

    def __init__(
        self,
        *,
        upload: Callable[[MeshBatch], Any],
        release: Callable[[Any], None],
        config: LoadConfig | None = None,
        error_log: ErrorLog | None = None,
    ) -> None:
        self._upload = upload
        self._release = release
        self.config = config or LoadConfig()
        self.error_log = error_log or ErrorLog()
        self.current: LoadResult | None = None
        self.handles: list[Any] = []

    def reload(self, path: Path | str) -> LoadResult:
        result = load_level(path, self.config)
        if result.error is not None:
            self.error_log.log_exception(context="load", exc=result.error)
            return result

        self.clear()
        self.handles = [self._upload(b) for b in result.batches]
        self.current = result
        return result

    def clear(self) -> None:
        for handle in self.handles:
            self._release(handle)
        self.handles = []
        self.current = None
