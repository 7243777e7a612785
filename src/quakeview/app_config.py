from __future__ import annotations

import os
from dataclasses import dataclass, field

# Extra WAD directories, os.pathsep separated (like PATH).
WAD_PATH_ENV = "QUAKEVIEW_WAD_PATH"


@dataclass(frozen=True)
class LoadConfig:
    # Extra directories searched for the WADs named by the world entity's "wad" key.
    # Lookup order: next to the .map file, relative to each dir, then basename in each dir.
    wad_search_dirs: tuple[str, ...] = ()
    # Optional 768-byte palette.lmp replacing the built-in id palette.
    # Used for BSP textures and as the starting palette of every WAD.
    palette_path: str | None = None
    # Case-folded texture names whose faces are not emitted (editor tool textures).
    skip_textures: frozenset[str] = field(default_factory=frozenset)

    @staticmethod
    def from_env(environ: dict[str, str] | None = None) -> LoadConfig:
        env = os.environ if environ is None else environ
        raw = env.get(WAD_PATH_ENV, "")
        dirs = tuple(d for d in raw.split(os.pathsep) if d.strip())
        return LoadConfig(wad_search_dirs=dirs)
