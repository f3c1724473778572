"""
moddypy.github
--------------

Repository/release source backed by the public GitHub REST API.

- Unauthenticated: 60 requests per hour per IP, signalled through the
  ``X-RateLimit-Remaining`` / ``X-RateLimit-Reset`` (epoch seconds) headers.
- Releases are cached per ``owner/repo``; the durable copy lives in
  ``<engine>/cache/<owner>_<repo>.json`` and holds the raw release array.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import *

from .client import RemoteSource
from .download import ProgressCallback
from .types_models import GitHubRelease

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
RELEASES_PATH = "/repos/{owner}/{repo}/releases"
DEFAULT_PER_PAGE = 5
INITIAL_RATE_LIMIT = 60
RATE_LIMIT_LOW_WATER = 1


def _parse_releases(raw: Any) -> Optional[List[GitHubRelease]]:
    if not isinstance(raw, list):
        return None
    return [GitHubRelease.from_dict(item) for item in raw if isinstance(item, dict)]


class GitHubSource(RemoteSource):
    """
    Release listing and asset download for repository-hosted packages.

    Parameters
    ----------
    clock : Callable[[], float]
        Epoch-seconds time source used for the rate-limit reset check.
    **kwargs
        Forwarded to :class:`moddypy.client.RemoteSource`.

    Examples
    --------
    >>> gh = GitHubSource(cache_dir=paths.cache_dir, cache_ttl=config.cache_ttl_seconds)
    >>> releases = gh.get_releases("Pathoschild", "SMAPI")
    >>> releases[0].tag_name if releases else None
    """

    name = "GitHub"

    def __init__(self, *, base_url: str = GITHUB_API_URL, clock: Callable[[], float] = time.time, **kwargs):
        super().__init__(base_url, **kwargs)
        self._clock = clock
        self._quota_lock = threading.Lock()
        self.rate_limit_remaining: int = INITIAL_RATE_LIMIT
        self.rate_limit_reset: float = 0.0

    def _update_quota(self, headers: Mapping[str, str]) -> None:
        remaining = headers.get("X-RateLimit-Remaining")
        reset = headers.get("X-RateLimit-Reset")
        with self._quota_lock:
            if remaining is not None:
                try:
                    self.rate_limit_remaining = int(remaining)
                except ValueError:
                    pass
            if reset is not None:
                try:
                    self.rate_limit_reset = float(int(reset))
                except ValueError:
                    pass

    def _quota_exhausted(self) -> bool:
        with self._quota_lock:
            return self.rate_limit_remaining <= RATE_LIMIT_LOW_WATER and self._clock() < self.rate_limit_reset

    def get_releases(self, owner: str, repo: str, per_page: int = DEFAULT_PER_PAGE) -> Optional[List[GitHubRelease]]:
        """
        Return the newest releases of ``owner/repo`` (newest first, as the API orders them).

        Parameters
        ----------
        owner : str
            Repository owner.
        repo : str
            Repository name.
        per_page : int
            Page size requested from the API.

        Returns
        -------
        Optional[List[GitHubRelease]]
            Fresh, cached or stale releases; None when nothing is available.
        """
        key = f"{owner}/{repo}"
        return self._cached_fetch(
            key,
            RELEASES_PATH,
            _parse_releases,
            params={"per_page": int(per_page)},
            path_params={"owner": owner, "repo": repo},
        )

    def latest_stable_release(self, owner: str, repo: str) -> Optional[GitHubRelease]:
        """First release that is neither a draft nor a prerelease."""
        releases = self.get_releases(owner, repo) or []
        return next((r for r in releases if r.is_stable), None)

    def download_asset(self, url: str, *, progress_cb: Optional[ProgressCallback] = None) -> Optional[bytes]:
        """Fetch a release asset's bytes; None on failure."""
        return self.download(url, progress_cb=progress_cb)

    def __repr__(self) -> str:
        return f"<GitHubSource remaining={self.rate_limit_remaining} reset={self.rate_limit_reset:.0f}>"
