"""
moddypy.updates
---------------

Update detection for registered packages.

For every registry record with auto-update on and no version lock, the matching source
is asked for its newest eligible version:

- ``nexus:<id>`` keys: the first MAIN file (skipped when the Nexus source is not validated,
  or when no MAIN file exists);
- ``owner/repo`` keys: the first release that is neither a draft nor a prerelease.

Results are kept per catalog key so the UI can query them without re-fetching.
"""

from __future__ import annotations

import logging
import threading
from typing import *

from .registry import ModRegistry
from .types_models import NEXUS_KEY_PREFIX, GitHubRelease, InstalledModInfo
from .utils import is_newer_version

if TYPE_CHECKING:
    from .github import GitHubSource
    from .nexus import NexusSource

logger = logging.getLogger(__name__)


def nexus_mod_id(catalog_key: str) -> Optional[int]:
    """``nexus:2400`` -> 2400; None for other keys."""
    if not catalog_key.startswith(NEXUS_KEY_PREFIX):
        return None
    rest = catalog_key[len(NEXUS_KEY_PREFIX):]
    return int(rest) if rest.isascii() and rest.isdigit() else None


class UpdateChecker:
    """
    Parameters
    ----------
    registry : ModRegistry
        Records to check.
    github : GitHubSource
        Source for ``owner/repo`` keys.
    nexus : Optional[NexusSource]
        Source for ``nexus:`` keys; those entries are skipped without it.
    """

    def __init__(self, registry: ModRegistry, github: "GitHubSource", nexus: Optional["NexusSource"] = None):
        self.registry = registry
        self.github = github
        self.nexus = nexus
        self._lock = threading.Lock()
        self.latest_releases: Dict[str, GitHubRelease] = {}
        self.latest_nexus_versions: Dict[str, str] = {}

    def check_all(self) -> Dict[str, str]:
        """
        Check every eligible record.

        Returns
        -------
        Dict[str, str]
            Catalog key -> newer version, for the records that have an update.
        """
        updates: Dict[str, str] = {}
        for key, info in self.registry.mods.items():
            if not info.is_update_eligible:
                continue
            try:
                latest = self.check_entry(key, info)
            except Exception as exc:
                logger.warning("Update check failed for %s: %s", key, exc)
                continue
            if latest is not None:
                updates[key] = latest
        logger.debug("Update check finished: %d update(s) available", len(updates))
        return updates

    def check_entry(self, key: str, info: InstalledModInfo) -> Optional[str]:
        """Refresh the cached latest version of one record; return it when newer than installed."""
        if key.startswith(NEXUS_KEY_PREFIX):
            latest = self._latest_nexus(key)
        else:
            latest = self._latest_github(key)
        if latest is None:
            return None
        if is_newer_version(latest, info.installed_version):
            logger.info("Update available for %s: %s -> %s", key, info.installed_version, latest)
            return latest
        return None

    def _latest_nexus(self, key: str) -> Optional[str]:
        if self.nexus is None or not self.nexus.is_validated:
            return None
        mod_id = nexus_mod_id(key)
        if mod_id is None:
            return None
        main = self.nexus.get_main_file(mod_id)
        if main is None:
            return None
        with self._lock:
            self.latest_nexus_versions[key] = main.version
        return main.version

    def _latest_github(self, key: str) -> Optional[str]:
        parts = key.split("/")
        if len(parts) != 2 or not all(parts):
            return None
        latest = self.github.latest_stable_release(parts[0], parts[1])
        if latest is None:
            return None
        with self._lock:
            self.latest_releases[key] = latest
        return latest.tag_name

    # Queries
    def latest_release(self, key: str) -> Optional[GitHubRelease]:
        with self._lock:
            return self.latest_releases.get(key)

    def latest_nexus_version(self, key: str) -> Optional[str]:
        with self._lock:
            return self.latest_nexus_versions.get(key)

    def latest_version(self, key: str) -> Optional[str]:
        if key.startswith(NEXUS_KEY_PREFIX):
            return self.latest_nexus_version(key)
        release = self.latest_release(key)
        return release.tag_name if release else None

    def is_update_available(self, key: str, installed_version: str) -> bool:
        """True only when a cached latest version exists and is strictly newer (both must parse)."""
        return is_newer_version(self.latest_version(key), installed_version)

    def __repr__(self) -> str:
        return f"<UpdateChecker releases={len(self.latest_releases)} nexus={len(self.latest_nexus_versions)}>"
