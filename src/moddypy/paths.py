"""
moddypy.paths
-------------

Platform-aware path utilities and an EnginePaths dataclass used by the sources,
the registry, the installer and the NXM queue.

Responsibilities
- Derive every engine-owned location from two roots: the engine's own directory
  (where it runs from, and where its cache/registry live) and the packages directory
  (the host's ``Mods`` folder that packages are installed into).
- Resolve the fixed per-user NXM queue directory shared with the external URL helper.
- Create required directories on demand.

Usage
-----
from pathlib import Path
from moddypy.paths import EnginePaths

paths = EnginePaths.from_game_dir(Path("/games/stardew"), engine_dir=Path("/games/stardew/Mods/Moddy"))
paths.ensure_dirs()
"""

from __future__ import annotations

import os
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import *

APP_DIR_NAME = "Moddy"
QUEUE_DIR_NAME = "nxm_queue"
QUEUE_FILE_SUFFIX = ".nxmurl"


def _ensure_dir(path: Path, mode: int = 0o755) -> Path:
    """
    Ensure directory exists. Creates parents if necessary.
    Returns the Path for chaining.
    """
    path = Path(path)
    path.mkdir(mode=mode, parents=True, exist_ok=True)
    return path


def default_queue_dir() -> Path:
    """
    Return the per-user directory the URL helper drops ``*.nxmurl`` files into.

    Windows: %LOCALAPPDATA%\\Moddy\\nxm_queue
    macOS / Linux: $XDG_DATA_HOME/Moddy/nxm_queue (default ~/.local/share/Moddy/nxm_queue)

    The macOS helper hard-codes ~/.local/share, so XDG_DATA_HOME is only honoured on Linux.
    """
    system = platform.system()
    home = Path.home()
    if system == "Windows":
        local = os.getenv("LOCALAPPDATA")
        base = Path(local) if local else home / "AppData" / "Local"
    elif system == "Darwin":
        base = home / ".local" / "share"
    else:
        xdg = os.getenv("XDG_DATA_HOME")
        base = Path(xdg) if xdg else home / ".local" / "share"
    return base / APP_DIR_NAME / QUEUE_DIR_NAME


@dataclass
class EnginePaths:
    """
    Container for the engine's filesystem layout.

    Attributes
    ----------
    engine_dir : pathlib.Path
        Directory the engine runs from. Installing into this directory is a self-update.
    mods_dir : pathlib.Path
        Packages directory; each installed package is one folder directly under it.
    cache_dir : pathlib.Path
        Durable cache of the repository/release source (``<engine>/cache``).
    nexus_cache_dir : pathlib.Path
        Durable cache of the endorsement/file source (``<engine>/cache/nexus``).
    registry_path : pathlib.Path
        The installation registry document.
    config_path : pathlib.Path
        The host configuration document.
    queue_dir : pathlib.Path
        Cross-process NXM request queue.
    """

    engine_dir: Path
    mods_dir: Path
    cache_dir: Path
    nexus_cache_dir: Path
    registry_path: Path
    config_path: Path
    queue_dir: Path

    @classmethod
    def from_dirs(cls, engine_dir: Path, mods_dir: Path, *, queue_dir: Optional[Path] = None) -> "EnginePaths":
        """
        Build EnginePaths from an explicit engine directory and packages directory.

        Parameters
        ----------
        engine_dir : Path
            The engine's own directory.
        mods_dir : Path
            The packages directory.
        queue_dir : Optional[Path]
            Override for the NXM queue (tests); defaults to :func:`default_queue_dir`.
        """
        engine_dir = Path(engine_dir).expanduser().resolve()
        mods_dir = Path(mods_dir).expanduser().resolve()
        cache_dir = engine_dir / "cache"
        return cls(
            engine_dir=engine_dir,
            mods_dir=mods_dir,
            cache_dir=cache_dir,
            nexus_cache_dir=cache_dir / "nexus",
            registry_path=engine_dir / "registry.json",
            config_path=engine_dir / "config.json",
            queue_dir=Path(queue_dir) if queue_dir else default_queue_dir(),
        )

    @classmethod
    def from_game_dir(cls, game_dir: Path, *, engine_dir: Path, queue_dir: Optional[Path] = None) -> "EnginePaths":
        """Packages directory is ``<game_dir>/Mods``."""
        return cls.from_dirs(engine_dir, Path(game_dir) / "Mods", queue_dir=queue_dir)

    def ensure_dirs(self, *, mode: int = 0o755) -> None:
        """Create the engine-owned directories. The packages directory is created too if missing."""
        _ensure_dir(self.mods_dir, mode=mode)
        _ensure_dir(self.cache_dir, mode=mode)
        _ensure_dir(self.nexus_cache_dir, mode=mode)

    @property
    def catalog_dirs(self) -> List[Path]:
        """Catalog documents live in ``<engine>/Data/`` with ``<engine>/`` as fallback."""
        return [self.engine_dir / "Data", self.engine_dir]

    def package_dir(self, folder_name: str) -> Path:
        """Return the install location for a package folder name (a single path component)."""
        name = Path(folder_name.replace("\\", "/")).name
        if not name or name in (".", ".."):
            raise ValueError(f"Invalid package folder name {folder_name!r}")
        return self.mods_dir / name

    def __repr__(self) -> str:
        return f"<EnginePaths engine={str(self.engine_dir)!r} mods={str(self.mods_dir)!r}>"


def normalize_dir(path: Union[str, Path]) -> str:
    """
    Absolute, case-folded form of a directory path with trailing separators removed.

    Used to decide whether an install target is the engine's own directory.
    """
    full = os.path.abspath(os.fspath(path))
    full = full.rstrip("/\\") or full
    return os.path.normcase(full).casefold()


def is_same_dir(a: Union[str, Path], b: Union[str, Path]) -> bool:
    try:
        return normalize_dir(a) == normalize_dir(b)
    except (OSError, ValueError):
        return False
