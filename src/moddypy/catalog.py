"""
moddypy.catalog
---------------

Curated, read-only list of installable packages.

Sources
- ``catalog.json``: repository-hosted entries (source forced to GitHub).
- ``nexus_catalog.json``: Nexus-hosted entries, loaded only when Nexus browsing is enabled.
  A missing file degrades gracefully.
- Packages found on disk but absent from both documents are merged in as read-only
  ``Local`` entries.

Both documents are looked up in ``<engine>/Data/`` first, then ``<engine>/``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import *

from .types_models import CatalogEntry, ModSource, ScannedMod
from .utils import safe_json

logger = logging.getLogger(__name__)

CATALOG_FILE = "catalog.json"
NEXUS_CATALOG_FILE = "nexus_catalog.json"
LOCAL_DESCRIPTION = "Manually installed mod."


def _first_existing(candidates: Iterable[Path]) -> Optional[Path]:
    return next((p for p in candidates if p.is_file()), None)


def load_catalog_file(path: Path, *, source: Optional[ModSource] = None) -> List[CatalogEntry]:
    """
    Read one catalog document (a JSON array of entry objects).

    Raises
    ------
    InvalidResponseError / OSError / ValueError
        When the file cannot be read or is not an array.
    """
    data = safe_json(Path(path).read_bytes())
    if not isinstance(data, list):
        raise ValueError(f"{Path(path).name} is not a JSON array")
    return [CatalogEntry.from_dict(d, source=source) for d in data if isinstance(d, dict)]


class Catalog:
    """
    Parameters
    ----------
    search_dirs : Sequence[Path]
        Directories searched in order for each catalog document.
    nexus_enabled : bool
        Load ``nexus_catalog.json`` as well.

    Examples
    --------
    >>> catalog = Catalog([paths.engine_dir / "Data", paths.engine_dir])
    >>> catalog.load()
    >>> catalog.merge_installed(scanner.scan())
    >>> [e.display_name for e in catalog.filter("lookup", source=ModSource.GitHub)]
    """

    def __init__(self, search_dirs: Sequence[Union[Path, str]], *, nexus_enabled: bool = True):
        self.search_dirs = [Path(d) for d in search_dirs]
        self.nexus_enabled = nexus_enabled
        self.entries: List[CatalogEntry] = []

    def _find(self, file_name: str) -> Optional[Path]:
        return _first_existing(d / file_name for d in self.search_dirs)

    def load(self) -> List[CatalogEntry]:
        """Reload both documents from disk, replacing the current entries."""
        entries: List[CatalogEntry] = []

        path = self._find(CATALOG_FILE)
        if path is None:
            logger.warning("%s not found", CATALOG_FILE)
        else:
            try:
                entries.extend(load_catalog_file(path, source=ModSource.GitHub))
            except Exception as exc:
                logger.error("Failed to load GitHub catalog %s: %s", path, exc)

        if self.nexus_enabled:
            path = self._find(NEXUS_CATALOG_FILE)
            if path is not None:
                try:
                    entries.extend(load_catalog_file(path, source=ModSource.Nexus))
                except Exception as exc:
                    logger.error("Failed to load Nexus catalog %s: %s", path, exc)

        self.entries = entries
        self.sort()
        logger.debug("Loaded %d catalog entries", len(entries))
        return self.entries

    def sort(self) -> None:
        """Popularity descending (stars for GitHub, endorsements for Nexus); stable."""
        self.entries.sort(key=lambda e: e.popularity, reverse=True)

    def merge_installed(self, installed: Mapping[str, ScannedMod]) -> int:
        """
        Append a read-only ``Local`` entry for every scanned package whose unique id is
        not already in the catalog (compared case-insensitively). Returns how many were added.
        """
        known = {e.unique_id.casefold() for e in self.entries if e.unique_id}
        added = 0
        for mod in installed.values():
            if not mod.unique_id or mod.unique_id.casefold() in known:
                continue
            self.entries.append(CatalogEntry(
                source=ModSource.Local,
                owner=mod.author or "Local",
                repo="",
                display_name=mod.name or mod.folder_name,
                description=mod.description or LOCAL_DESCRIPTION,
                unique_id=mod.unique_id,
                stars=-1,
                is_from_catalog=False,
            ))
            known.add(mod.unique_id.casefold())
            added += 1
        return added

    def filter(self, query: str = "", *, source: Optional[ModSource] = None) -> List[CatalogEntry]:
        """Entries whose name or description contains `query` (case-insensitive), optionally of one source."""
        needle = (query or "").strip().casefold()
        result = []
        for entry in self.entries:
            if source is not None and entry.source != source:
                continue
            if needle and needle not in entry.display_name.casefold() and needle not in entry.description.casefold():
                continue
            result.append(entry)
        return result

    def find_by_nexus_id(self, mod_id: int) -> Optional[CatalogEntry]:
        return next((e for e in self.entries if e.source == ModSource.Nexus and e.nexus_mod_id == mod_id), None)

    def find_by_key(self, key: str) -> Optional[CatalogEntry]:
        return next((e for e in self.entries if e.is_from_catalog and e.catalog_key == key), None)

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __repr__(self) -> str:
        return f"<Catalog entries={len(self.entries)} nexus={self.nexus_enabled}>"
