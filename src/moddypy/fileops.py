"""
moddypy.fileops
---------------

File operations used by the installer, the registry and engine startup:

- atomic_write: write bytes to a file through a temp file + os.replace
- safe_remove: remove a file or directory with retries
- safe_member_path: map an archive member onto a destination without escaping it
- write_member: plain overwrite of one extracted file
- extract_with_rename: overwrite a file that may be locked by the running process,
  renaming the locked original aside with the ``.old`` suffix first
- sweep_old_files: delete renamed-aside files left behind by a previous self-update

Notes:
- Renamed-aside files cannot be deleted while the process that holds them is alive,
  so they are only swept on the next startup, before anything else is initialized.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import time
from pathlib import Path, PurePosixPath
from typing import *

from .exceptions import InstallError

logger = logging.getLogger(__name__)

OLD_SUFFIX = ".old"
JUNK_SEGMENT = "__MACOSX"

Writer = Callable[[Path, bytes], None]


def _fsync_fileobj(fp) -> None:
    try:
        fp.flush()
        os.fsync(fp.fileno())
    except (OSError, AttributeError, ValueError):
        pass


def atomic_write(dest_path: Path, data: bytes, *, tmp_suffix: str = ".tmp") -> Path:
    """
    Atomically write `data` to `dest_path`.

    Behavior:
      - Creates destination directory if missing.
      - Writes to a temporary file in the same directory (so os.replace is atomic).
      - Flushes and fsyncs before replacing.

    Parameters
    ----------
    dest_path : Path
        Final destination path for the file.
    data : bytes
        Whole file content.
    tmp_suffix : str
        Suffix of the temporary file.

    Returns
    -------
    Path
        The final destination path.

    Raises
    ------
    OSError
        On I/O errors during write or replace. The temporary file is removed first.
    """
    dest_path = Path(dest_path)
    dest_dir = dest_path.parent
    dest_dir.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(dir=str(dest_dir), prefix=dest_path.name + ".", suffix=tmp_suffix)
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            _fsync_fileobj(f)
        os.replace(str(tmp), str(dest_path))
        return dest_path
    except OSError:
        try:
            if tmp.exists():
                tmp.unlink()
        except OSError:
            pass
        raise


def safe_remove(path: Path, *, retries: int = 3, delay: float = 0.2) -> None:
    """
    Safely remove a file or directory. Retries on transient errors.

    Parameters
    ----------
    path : Path
        File or directory to remove. A missing path is not an error.
    retries : int
        Number of extra attempts on error (default 3).
    delay : float
        Seconds to wait between attempts.

    Raises
    ------
    OSError
        If removal fails after retries.
    """
    path = Path(path)
    attempt = 0
    while True:
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            elif path.exists() or path.is_symlink():
                path.unlink()
            return
        except FileNotFoundError:
            return
        except OSError:
            attempt += 1
            if attempt > retries:
                raise
            time.sleep(delay)


def is_junk_member(name: str) -> bool:
    """Archive entries under a ``__MACOSX`` folder are resource-fork noise."""
    return JUNK_SEGMENT in name.replace("\\", "/")


def safe_member_path(root: Path, relative: str) -> Path:
    """
    Join an archive member name onto `root`, refusing names that escape it.

    Raises
    ------
    InstallError
        For absolute names or names containing ``..`` segments.
    """
    parts = PurePosixPath(relative.replace("\\", "/")).parts
    if not parts or parts[0] == "/" or ".." in parts or ":" in parts[0]:
        raise InstallError(f"Refusing unsafe archive entry {relative!r}")
    return Path(root).joinpath(*parts)


def write_member(dest: Path, data: bytes) -> None:
    """Create parent folders and overwrite `dest` with `data`."""
    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    with open(dest, "wb") as f:
        f.write(data)


def extract_with_rename(dest: Path, data: bytes, *, writer: Writer = write_member) -> bool:
    """
    Write `data` to `dest`; if the existing file is locked, move it aside and retry.

    The locked original is renamed to ``<dest>.old`` (a stale ``.old`` from an earlier
    update is deleted first) and the write is repeated at the original path.

    Parameters
    ----------
    dest : Path
        Destination file.
    data : bytes
        New file content.
    writer : Callable[[Path, bytes], None]
        Function performing the write.

    Returns
    -------
    bool
        True when the original had to be renamed aside.

    Raises
    ------
    InstallError
        When the locked file cannot be renamed, or the retried write fails.
    """
    dest = Path(dest)
    try:
        writer(dest, data)
        return False
    except OSError as first:
        if not dest.exists():
            raise InstallError(f"Failed to write {dest.name}: {first}") from first
        aside = dest.with_name(dest.name + OLD_SUFFIX)
        try:
            if aside.exists():
                aside.unlink()
            os.replace(str(dest), str(aside))
        except OSError as exc:
            logger.warning("Failed to rename locked file %s: %s", dest.name, exc)
            raise InstallError(f"Locked file {dest.name} could not be renamed aside: {exc}") from exc
        logger.debug("Renamed locked file: %s -> %s", dest.name, aside.name)

    try:
        writer(dest, data)
    except OSError as exc:
        raise InstallError(f"Failed to write {dest.name} after renaming it aside: {exc}") from exc
    return True


def sweep_old_files(root: Path) -> int:
    """
    Delete every ``*.old`` file under `root` (recursively). Returns how many were removed.

    Files still locked by another process are skipped and left for the next sweep.
    """
    root = Path(root)
    if not root.is_dir():
        return 0
    removed = 0
    for old in root.rglob(f"*{OLD_SUFFIX}"):
        if not old.is_file():
            continue
        try:
            old.unlink()
            removed += 1
        except OSError as exc:
            logger.debug("Could not delete %s: %s", old, exc)
    if removed:
        logger.info("Cleaned up %d .old file(s) from previous update", removed)
    return removed
