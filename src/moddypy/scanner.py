"""
moddypy.scanner
---------------

Discovers packages already present in the packages directory by reading the
``manifest.json`` of each direct subfolder. Folders without a manifest, or with an
unreadable one or one lacking a ``UniqueID``, are skipped.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import *

from .types_models import ScannedMod
from .utils import safe_json

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"


def _str_field(data: Dict[str, Any], name: str) -> str:
    value = data.get(name)
    return value if isinstance(value, str) else ""


def read_manifest(folder: Path) -> Optional[Dict[str, Any]]:
    """Parse ``<folder>/manifest.json``; None when absent or malformed."""
    path = Path(folder) / MANIFEST_NAME
    if not path.is_file():
        return None
    try:
        data = safe_json(path.read_bytes())
    except Exception as exc:
        logger.debug("Failed to read manifest in %s: %s", Path(folder).name, exc)
        return None
    return data if isinstance(data, dict) else None


class InstalledModScanner:
    """
    Folder-per-package manifest scan.

    Results are keyed by ``UniqueID`` folded to lower case, so lookups are
    case-insensitive.
    """

    def __init__(self, mods_dir: Union[Path, str]):
        self.mods_dir = Path(mods_dir)
        self._last: Dict[str, ScannedMod] = {}

    def scan(self) -> Dict[str, ScannedMod]:
        result: Dict[str, ScannedMod] = {}
        if not self.mods_dir.is_dir():
            self._last = result
            return result

        for folder in sorted(p for p in self.mods_dir.iterdir() if p.is_dir()):
            manifest = read_manifest(folder)
            if manifest is None:
                continue
            unique_id = _str_field(manifest, "UniqueID")
            if not unique_id:
                continue
            result[unique_id.casefold()] = ScannedMod(
                unique_id=unique_id,
                version=_str_field(manifest, "Version"),
                name=_str_field(manifest, "Name"),
                folder_name=folder.name,
                author=_str_field(manifest, "Author"),
                description=_str_field(manifest, "Description"),
            )

        self._last = result
        logger.debug("Found %d installed mod(s) in %s", len(result), self.mods_dir)
        return result

    @property
    def last_scan(self) -> Dict[str, ScannedMod]:
        return self._last

    def find(self, unique_id: str) -> Optional[ScannedMod]:
        """Look up a package from the most recent scan."""
        if not unique_id:
            return None
        return self._last.get(unique_id.casefold())

    def is_installed(self, unique_id: str) -> bool:
        return self.find(unique_id) is not None
