"""
moddypy.config
--------------

Host configuration for the engine.

The on-disk document uses the host's PascalCase key names:

    {
      "CheckForUpdatesOnLaunch": true,
      "CacheMinutes": 15,
      "NexusApiKey": null,
      "NexusBrowsingEnabled": true
    }

A missing file yields defaults; a malformed file yields defaults and a warning.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import *

from .fileops import atomic_write
from .utils import safe_json

logger = logging.getLogger(__name__)

DEFAULT_CACHE_MINUTES = 15
DEFAULT_GAME_DOMAIN = "stardewvalley"


@dataclass
class ModConfig:
    """
    Attributes
    ----------
    check_for_updates_on_launch : bool
        Run the update checker in the background at startup.
    cache_minutes : int
        Freshness window of both remote caches, in minutes.
    nexus_api_key : Optional[str]
        Personal API key for the endorsement/file source.
    nexus_browsing_enabled : bool
        Whether the Nexus catalog is loaded into the browser.
    nexus_game_domain : str
        Game domain used in Nexus URLs and accepted as the ``nxm://`` host.
    """
    check_for_updates_on_launch: bool = True
    cache_minutes: int = DEFAULT_CACHE_MINUTES
    nexus_api_key: Optional[str] = None
    nexus_browsing_enabled: bool = True
    nexus_game_domain: str = DEFAULT_GAME_DOMAIN

    @property
    def cache_ttl_seconds(self) -> int:
        return max(0, int(self.cache_minutes)) * 60

    @property
    def has_nexus_key(self) -> bool:
        return bool(self.nexus_api_key and self.nexus_api_key.strip())

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ModConfig":
        d = d or {}
        cache_minutes = d.get("CacheMinutes", DEFAULT_CACHE_MINUTES)
        try:
            cache_minutes = int(cache_minutes)
        except (TypeError, ValueError):
            logger.warning("Invalid CacheMinutes %r; using %d", cache_minutes, DEFAULT_CACHE_MINUTES)
            cache_minutes = DEFAULT_CACHE_MINUTES
        return cls(
            check_for_updates_on_launch=bool(d.get("CheckForUpdatesOnLaunch", True)),
            cache_minutes=cache_minutes,
            nexus_api_key=d.get("NexusApiKey") or None,
            nexus_browsing_enabled=bool(d.get("NexusBrowsingEnabled", True)),
            nexus_game_domain=d.get("NexusGameDomain") or DEFAULT_GAME_DOMAIN,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "CheckForUpdatesOnLaunch": self.check_for_updates_on_launch,
            "CacheMinutes": self.cache_minutes,
            "NexusApiKey": self.nexus_api_key,
            "NexusBrowsingEnabled": self.nexus_browsing_enabled,
        }
        if self.nexus_game_domain != DEFAULT_GAME_DOMAIN:
            data["NexusGameDomain"] = self.nexus_game_domain
        return data

    @classmethod
    def load(cls, path: Union[str, Path]) -> "ModConfig":
        """
        Read the configuration document at `path`.

        Returns defaults when the file is missing, unreadable or not a JSON object.
        """
        path = Path(path)
        if not path.exists():
            return cls()
        try:
            data = safe_json(path.read_bytes())
        except Exception as exc:
            logger.warning("Failed to read config %s: %s; using defaults", path, exc)
            return cls()
        if not isinstance(data, dict):
            logger.warning("Config %s is not a JSON object; using defaults", path)
            return cls()
        return cls.from_dict(data)

    def save(self, path: Union[str, Path]) -> None:
        """Write the configuration as indented JSON. Failures are logged."""
        try:
            atomic_write(Path(path), json.dumps(self.to_dict(), indent=2).encode("utf-8"))
        except OSError as exc:
            logger.warning("Failed to save config %s: %s", path, exc)

    def __repr__(self) -> str:
        return (f"<ModConfig updates_on_launch={self.check_for_updates_on_launch} "
                f"cache_minutes={self.cache_minutes} nexus_key_set={self.has_nexus_key}>")
