"""
moddypy.registry
----------------

Durable record of the packages installed by the engine.

The document (``<engine>/registry.json``) is an indented JSON object keyed by catalog
key; each value is an :class:`InstalledModInfo` record. Every mutation is followed by a
full rewrite of the file.

Writers are expected to be serialized by the caller (the engine mutates the registry
only from its foreground tick). The internal re-entrant lock additionally keeps an
accidental second writer from interleaving a mutation with a save.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import *

from .fileops import atomic_write
from .types_models import InstalledModInfo
from .utils import safe_json

logger = logging.getLogger(__name__)

REGISTRY_FILE_NAME = "registry.json"


class ModRegistry:
    """
    Installed-package registry.

    Parameters
    ----------
    path : Path | str
        Registry document. A directory is accepted too; ``registry.json`` is used inside it.
    autoload : bool
        Call :meth:`load` immediately.

    Examples
    --------
    >>> reg = ModRegistry(paths.registry_path)
    >>> reg.register("Pathoschild/SMAPI", info)
    >>> reg.get("Pathoschild/SMAPI").installed_version
    '4.0.8'
    """

    def __init__(self, path: Union[Path, str], *, autoload: bool = True):
        path = Path(path)
        self.path = path / REGISTRY_FILE_NAME if path.is_dir() else path
        self._mods: Dict[str, InstalledModInfo] = {}
        self._lock = threading.RLock()
        if autoload:
            self.load()

    @property
    def mods(self) -> Dict[str, InstalledModInfo]:
        """Snapshot copy of the mapping."""
        with self._lock:
            return dict(self._mods)

    def load(self) -> bool:
        """
        Repopulate the in-memory mapping from disk.

        A missing file leaves the registry empty. A corrupt file is logged and the
        previous in-memory state is kept.

        Returns
        -------
        bool
            True when a document was read successfully.
        """
        if not self.path.exists():
            return False
        try:
            data = safe_json(self.path.read_bytes())
            if not isinstance(data, dict):
                raise ValueError("registry root is not an object")
            loaded = {}
            for key, value in data.items():
                if not isinstance(value, dict):
                    logger.warning("Skipping malformed registry record %r", key)
                    continue
                info = InstalledModInfo.from_dict(value)
                if not info.catalog_key:
                    info.catalog_key = key
                loaded[key] = info
        except Exception as exc:
            logger.warning("Failed to load registry %s: %s", self.path, exc)
            return False
        with self._lock:
            self._mods = loaded
        logger.debug("Loaded %d registry record(s)", len(loaded))
        return True

    def save(self) -> bool:
        """
        Rewrite the whole document. Failures are logged and non-fatal; the in-memory
        mapping stays authoritative for the rest of the session.
        """
        with self._lock:
            payload = {key: info.to_dict() for key, info in self._mods.items()}
            try:
                atomic_write(self.path, json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8"))
                return True
            except OSError as exc:
                logger.error("Failed to save registry %s: %s", self.path, exc)
                return False

    def register(self, key: str, info: InstalledModInfo) -> None:
        """Upsert `info` under `key` and persist."""
        with self._lock:
            info.catalog_key = key
            self._mods[key] = info
            self.save()

    def unregister(self, key: str) -> bool:
        """Remove `key` and persist. Returns False when there was nothing to remove."""
        with self._lock:
            if self._mods.pop(key, None) is None:
                return False
            self.save()
            return True

    def get(self, key: str) -> Optional[InstalledModInfo]:
        with self._lock:
            return self._mods.get(key)

    def set_auto_update(self, key: str, enabled: bool) -> bool:
        """Set the auto-update flag of `key` and persist. False when `key` is unknown."""
        with self._lock:
            info = self._mods.get(key)
            if info is None:
                return False
            info.auto_update = bool(enabled)
            self.save()
            return True

    def toggle_version_lock(self, key: str) -> Optional[str]:
        """
        Lock `key` at its installed version, or unlock it if already locked.

        Returns
        -------
        Optional[str]
            The new locked version (None when unlocked or when `key` is unknown).
        """
        with self._lock:
            info = self._mods.get(key)
            if info is None:
                return None
            info.locked_version = None if info.locked_version else (info.installed_version or None)
            self.save()
            return info.locked_version

    def find_by_unique_id(self, unique_id: str) -> Optional[InstalledModInfo]:
        """Case-insensitive lookup by package unique id."""
        if not unique_id:
            return None
        needle = unique_id.casefold()
        with self._lock:
            return next((i for i in self._mods.values() if i.unique_id.casefold() == needle), None)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._mods)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._mods

    def __len__(self) -> int:
        with self._lock:
            return len(self._mods)

    def __repr__(self) -> str:
        return f"<ModRegistry path={str(self.path)!r} records={len(self)}>"
