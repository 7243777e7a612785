from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path

from quakeview.app_config import WAD_PATH_ENV, LoadConfig
from quakeview.loader import LoadResult, load_level

logger = logging.getLogger(__name__)


def _print_summary(result: LoadResult) -> None:
    print(f"{result.source}: {len(result.batches)} batches, {result.triangle_count} triangles")
    for batch in result.batches:
        print(
            f"  {batch.name:<16} {batch.texture.width}x{batch.texture.height}"
            f"  faces={batch.face_count} triangles={batch.mesh.triangle_count}"
        )
    if result.bounds is not None:
        print(f"bounds: {result.bounds.minimum} .. {result.bounds.maximum}")
    if result.spawn is not None:
        print(f"spawn: {result.spawn}")


def _export_textures(result: LoadResult, dst: Path) -> int:
    count = 0
    for tex in result.textures():
        # Quake texture names may start with '*' or '+'.
        safe = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in tex.name) or "unnamed"
        tex.save_png(dst / f"{safe}.png")
        count += 1
    return count


def _write_bam(result: LoadResult, dst: Path) -> None:
    from quakeview.render.upload import attach_batches, make_scene_root, write_bam

    root = make_scene_root(result.source.stem)
    attach_batches(root, result.batches)
    write_bam(root, dst)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="quakeview",
        description="Build textured meshes from a Quake .map or .bsp (v23) level.",
    )
    parser.add_argument("level", help="Path to a .map or .bsp file.")
    parser.add_argument(
        "--wad-dir",
        action="append",
        default=[],
        help=f"Extra directory searched for WAD files (repeatable). Also read from ${WAD_PATH_ENV}.",
    )
    parser.add_argument(
        "--palette",
        default=None,
        help="Optional 768-byte palette.lmp replacing the built-in palette.",
    )
    parser.add_argument(
        "--skip-texture",
        action="append",
        default=[],
        help="Texture name whose faces are not emitted (repeatable, case-insensitive). Example: clip",
    )
    parser.add_argument(
        "--export-textures",
        default=None,
        help="Write every texture of the level as PNG into this directory.",
    )
    parser.add_argument(
        "--bam",
        default=None,
        help="Write the uploaded Panda3D scene graph to this .bam file.",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("QUAKEVIEW_LOG_LEVEL", "WARNING"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: WARNING).",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    env_config = LoadConfig.from_env()
    config = LoadConfig(
        wad_search_dirs=tuple(args.wad_dir) + env_config.wad_search_dirs,
        palette_path=args.palette,
        skip_textures=frozenset(name.casefold() for name in args.skip_texture),
    )

    result = load_level(Path(args.level), config)
    if result.error is not None:
        print(f"error [{result.error.kind.value}]: {result.error}")
        return 1

    _print_summary(result)
    if args.export_textures:
        n = _export_textures(result, Path(args.export_textures))
        logger.info("Exported %d textures to %s", n, args.export_textures)
    if args.bam:
        try:
            _write_bam(result, Path(args.bam))
        except OSError as exc:
            print(f"error: {exc}")
            return 1
        logger.info("Wrote %s", args.bam)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
