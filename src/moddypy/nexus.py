"""
moddypy.nexus
-------------

Endorsement/file source backed by the Nexus Mods public API (v1).

- Authenticated through the ``apikey`` header; :meth:`NexusSource.validate` must succeed
  before premium-gated behavior (direct installs, update checks, queue draining) is trusted.
- Two independent quotas, reported through ``x-rl-daily-remaining`` and
  ``x-rl-hourly-remaining``. Either at or below the low-water mark blocks network calls
  until the matching ``x-rl-*-reset`` time passes.
- Durable copies live in ``<engine>/cache/nexus/<key>.json`` and hold the raw response.
  For file listings that is the ``{"files": [...]}`` wrapper, unwrapped again on read.
- Downloads come from pre-signed CDN URLs and use a separate, long-timeout session
  that carries no credentials.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import timezone
from typing import *

import dateutil.parser
import requests

from .client import RemoteSource
from .download import ProgressCallback
from .exceptions import InvalidResponseError
from .types_models import NexusDownloadLink, NexusFileInfo, NexusModInfo, NexusUser
from .utils import DEFAULT_USER_AGENT, session_factory

logger = logging.getLogger(__name__)

NEXUS_API_URL = "https://api.nexusmods.com/v1"
DEFAULT_GAME_DOMAIN = "stardewvalley"
VALIDATE_PATH = "users/validate.json"
MOD_PATH = "games/{domain}/mods/{mod_id}.json"
FILES_PATH = "games/{domain}/mods/{mod_id}/files.json"
DOWNLOAD_LINK_PATH = "games/{domain}/mods/{mod_id}/files/{file_id}/download_link.json"

INITIAL_DAILY_LIMIT = 2500
INITIAL_HOURLY_LIMIT = 100
RATE_LIMIT_LOW_WATER = 1


def _parse_reset(value: Optional[str]) -> Optional[float]:
    """Reset header as epoch seconds. Accepts a timestamp string or plain epoch seconds."""
    if not value:
        return None
    value = value.strip()
    if value.isascii() and value.isdigit():
        return float(int(value))
    try:
        dt = dateutil.parser.parse(value)
    except (ValueError, OverflowError):
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc).timestamp()
    return dt.timestamp()


def _parse_mod_info(raw: Any) -> Optional[NexusModInfo]:
    if not isinstance(raw, dict):
        return None
    return NexusModInfo.from_dict(raw)


def _parse_files(raw: Any) -> Optional[List[NexusFileInfo]]:
    """Accepts the ``{"files": [...]}`` wrapper; a bare list is tolerated for older cache files."""
    if isinstance(raw, dict):
        files = raw.get("files")
    else:
        files = raw
    if not isinstance(files, list):
        return None
    return [NexusFileInfo.from_dict(f) for f in files if isinstance(f, dict)]


class NexusSource(RemoteSource):
    """
    Mod metadata, file listings, download links and key validation for Nexus-hosted packages.

    Parameters
    ----------
    api_key : Optional[str]
        Personal API key. Can be set later via :meth:`set_api_key`.
    game_domain : str
        Game segment of every endpoint.
    clock : Callable[[], float]
        Epoch-seconds source compared against the quota reset times.
    **kwargs
        Forwarded to :class:`moddypy.client.RemoteSource`.

    Examples
    --------
    >>> nx = NexusSource(api_key="KEY", cache_dir=paths.nexus_cache_dir)
    >>> nx.validate()
    True
    >>> [f.version for f in nx.get_mod_files(2400) or [] if f.is_main]
    """

    name = "Nexus"

    def __init__(self,
                 api_key: Optional[str] = None,
                 *,
                 base_url: str = NEXUS_API_URL,
                 game_domain: str = DEFAULT_GAME_DOMAIN,
                 user_agent: str = DEFAULT_USER_AGENT,
                 download_session: Optional[requests.Session] = None,
                 clock: Callable[[], float] = time.time,
                 **kwargs):
        super().__init__(
            base_url,
            user_agent=user_agent,
            download_session=download_session or session_factory(user_agent),
            **kwargs,
        )
        self.game_domain = game_domain
        self._clock = clock
        self._quota_lock = threading.Lock()
        self.daily_remaining: int = INITIAL_DAILY_LIMIT
        self.hourly_remaining: int = INITIAL_HOURLY_LIMIT
        self.daily_reset: float = 0.0
        self.hourly_reset: float = 0.0
        self.user: Optional[NexusUser] = None
        self._validated = False
        self.set_api_key(api_key)

    # Credentials / validation
    def set_api_key(self, api_key: Optional[str]) -> None:
        """
        Replace the ``apikey`` header and reset validation state.

        Parameters
        ----------
        api_key : Optional[str]
            Key string, or None / blank to remove it.
        """
        if api_key and api_key.strip():
            self.session.headers["apikey"] = api_key.strip()
        else:
            self.session.headers.pop("apikey", None)
        self._validated = False
        self.user = None

    @property
    def has_api_key(self) -> bool:
        return bool(self.session.headers.get("apikey"))

    @property
    def is_validated(self) -> bool:
        return self._validated

    @property
    def is_premium(self) -> bool:
        return bool(self._validated and self.user and self.user.is_premium)

    @property
    def is_supporter(self) -> bool:
        return bool(self._validated and self.user and self.user.is_supporter)

    def validate(self) -> bool:
        """
        Check the current key against ``users/validate.json``.

        Returns
        -------
        bool
            True when the key is accepted. Premium/supporter flags are recorded on success;
            on any failure validation stays False and a warning is logged.
        """
        self._validated = False
        self.user = None
        if not self.has_api_key:
            logger.warning("Nexus API key validation skipped: no key set")
            return False
        try:
            raw = self._request(VALIDATE_PATH)
            if not isinstance(raw, dict):
                raise InvalidResponseError("validate.json did not return an object")
            self.user = NexusUser.from_dict(raw)
            self._validated = True
            logger.info("Nexus API key validated (premium: %s)", self.user.is_premium)
            return True
        except Exception as exc:
            logger.warning("Nexus API key validation failed: %s", exc)
            return False

    # Quota hooks
    def _update_quota(self, headers: Mapping[str, str]) -> None:
        with self._quota_lock:
            for window in ("daily", "hourly"):
                remaining = headers.get(f"x-rl-{window}-remaining")
                if remaining is not None:
                    try:
                        setattr(self, f"{window}_remaining", int(remaining))
                    except ValueError:
                        pass
                reset = _parse_reset(headers.get(f"x-rl-{window}-reset"))
                if reset is not None:
                    setattr(self, f"{window}_reset", reset)

    def _quota_exhausted(self) -> bool:
        """
        A window blocks while its counter is at or below the low-water mark, until its
        reset time passes. A window whose reset time was never reported stays blocked.
        """
        now = self._clock()
        with self._quota_lock:
            windows = ((self.daily_remaining, self.daily_reset), (self.hourly_remaining, self.hourly_reset))
            return any(remaining <= RATE_LIMIT_LOW_WATER and not (reset and now >= reset)
                       for remaining, reset in windows)

    # Metadata
    def get_mod_info(self, mod_id: int) -> Optional[NexusModInfo]:
        """Mod metadata; fresh, cached or stale. None when nothing is available."""
        return self._cached_fetch(
            f"mod_{int(mod_id)}",
            MOD_PATH,
            _parse_mod_info,
            path_params={"domain": self.game_domain, "mod_id": int(mod_id)},
        )

    def get_mod_files(self, mod_id: int) -> Optional[List[NexusFileInfo]]:
        """
        All files of a mod (MAIN, UPDATE, OPTIONAL, OLD_VERSION, ...).

        Returns
        -------
        Optional[List[NexusFileInfo]]
            Fresh, cached or stale listing; None when nothing is available.
        """
        return self._cached_fetch(
            f"files_{int(mod_id)}",
            FILES_PATH,
            _parse_files,
            path_params={"domain": self.game_domain, "mod_id": int(mod_id)},
        )

    def get_main_file(self, mod_id: int) -> Optional[NexusFileInfo]:
        """First file whose category is MAIN (case-insensitive)."""
        return next((f for f in self.get_mod_files(mod_id) or [] if f.is_main), None)

    def get_download_links(self,
                           mod_id: int,
                           file_id: int,
                           key: Optional[str] = None,
                           expires: Optional[int] = None) -> Optional[List[NexusDownloadLink]]:
        """
        Resolve CDN mirrors for one file. Not cached: links are short-lived.

        Parameters
        ----------
        mod_id, file_id : int
            Target file.
        key, expires : Optional
            Pre-authorization pair from an ``nxm://`` link. Sent only when both are present;
            without them the call needs a premium key.

        Returns
        -------
        Optional[List[NexusDownloadLink]]
            Mirrors in API order, or None on any failure.
        """
        params = None
        if key and expires is not None:
            params = {"key": key, "expires": int(expires)}
        try:
            raw = self._request(
                DOWNLOAD_LINK_PATH,
                params=params,
                path_params={"domain": self.game_domain, "mod_id": int(mod_id), "file_id": int(file_id)},
            )
            if not isinstance(raw, list):
                raise InvalidResponseError("download_link.json did not return an array")
            return [NexusDownloadLink.from_dict(d) for d in raw if isinstance(d, dict)]
        except Exception as exc:
            logger.warning("Nexus download link error for mod %s file %s: %s", mod_id, file_id, exc)
            return None

    def download_file(self, cdn_url: str, *, progress_cb: Optional[ProgressCallback] = None) -> Optional[bytes]:
        """Fetch an archive from a CDN mirror (long timeout, no credentials). None on failure."""
        return self.download(cdn_url, progress_cb=progress_cb)

    def __repr__(self) -> str:
        return (f"<NexusSource validated={self._validated} premium={self.is_premium} "
                f"daily={self.daily_remaining} hourly={self.hourly_remaining}>")
