"""
client.py - Remote source base class (request layer, quota bookkeeping, cached fetch)

Both remote sources (the repository/release source and the endorsement/file source)
derive from RemoteSource. The base owns the HTTP sessions, the two-tier cache and the
generic fetch pipeline; subclasses supply endpoints, response parsing and their own
rate-limit signalling through two hooks.

Fetch pipeline (`_cached_fetch`):
    1. fresh memory hit            -> return it, regardless of quota state
    2. quota known to be exhausted -> serve the fallback, no network call
    3. network request             -> quota headers recorded whatever the outcome;
                                      on success store memory + durable copy
    4. any failure                 -> warning, serve the fallback

The fallback is the durable copy, else the stale memory copy, else None. Public
operations never raise.

Usage example:
    from moddypy.github import GitHubSource
    gh = GitHubSource(cache_dir="cache")
    releases = gh.get_releases("Pathoschild", "SMAPI")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import *

import requests

from .cache import TwoTierCache
from .download import ByteFetcher, ProgressCallback
from .exceptions import (
    InvalidResponseError,
    NetworkError,
    map_http_status,
)
from .utils import DEFAULT_USER_AGENT, safe_json, session_factory

logger = logging.getLogger(__name__)

T = TypeVar("T")

METADATA_TIMEOUT = 15.0
DOWNLOAD_TIMEOUT = 300.0


class RemoteSource:
    """
    Shared plumbing for a remote package source.

    Parameters
    ----------
    base_url : str
        API root; relative paths passed to `_request` are joined onto it.
    session : Optional[requests.Session]
        Session for metadata calls. Built by :func:`session_factory` when omitted.
    download_session : Optional[requests.Session]
        Session for byte downloads. Defaults to `session`.
    cache_dir : Optional[Path | str]
        Durable cache directory; None keeps the cache in memory only.
    cache_ttl : float
        Freshness window in seconds.
    timeout : float
        Metadata request timeout in seconds.
    download_timeout : float
        Byte download timeout in seconds.
    show_progress : bool
        Render a tqdm bar during downloads.
    cache : Optional[TwoTierCache]
        Pre-built cache (tests); overrides `cache_dir` / `cache_ttl`.
    """

    name = "remote"

    def __init__(self,
                 base_url: str,
                 *,
                 session: Optional[requests.Session] = None,
                 download_session: Optional[requests.Session] = None,
                 cache_dir: Optional[Union[Path, str]] = None,
                 cache_ttl: float = 900.0,
                 timeout: float = METADATA_TIMEOUT,
                 download_timeout: float = DOWNLOAD_TIMEOUT,
                 user_agent: str = DEFAULT_USER_AGENT,
                 show_progress: bool = False,
                 cache: Optional[TwoTierCache] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = float(timeout)
        self.session = session or session_factory(user_agent)
        self.download_session = download_session or self.session
        self.cache = cache or TwoTierCache(cache_dir, cache_ttl)
        self.fetcher = ByteFetcher(self.download_session, timeout=download_timeout, show_progress=show_progress)

    # Configuration helpers
    def set_cache_ttl(self, seconds: float) -> None:
        self.cache.ttl_seconds = float(seconds)

    # Quota hooks
    def _update_quota(self, headers: Mapping[str, str]) -> None:
        """Record rate-limit state from response headers. Called for every response."""

    def _quota_exhausted(self) -> bool:
        """True when the last known quota forbids a network call right now."""
        return False

    # URL builder
    def _build_url(self, path: str, **path_params) -> str:
        """
        Build a fully qualified URL from a relative path template.

        Absolute URLs are returned unchanged.
        """
        try:
            path = path.format(**path_params) if path_params else path
        except (KeyError, IndexError) as e:
            raise ValueError(f"Failed to format endpoint path '{path}' with {path_params}: {e}") from e
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    # Central request method
    def _request(self,
                 path: str,
                 *,
                 params: Optional[Dict[str, Any]] = None,
                 headers: Optional[Dict[str, str]] = None,
                 path_params: Optional[Dict[str, Any]] = None,
                 timeout: Optional[float] = None) -> Any:
        """
        Perform a GET against the source and return the decoded JSON body.

        Quota headers are recorded before the status is inspected, so failed responses
        still update the rate-limit state.

        Raises
        ------
        NetworkError
            Transport failure (timeout, connection refused, ...).
        ModdyError subclass
            Mapped from a status >= 400 (see :func:`map_http_status`).
        InvalidResponseError
            Body is not JSON.
        """
        url = self._build_url(path, **(path_params or {}))
        try:
            resp = self.session.request(
                "GET",
                url,
                params=params,
                headers=headers,
                timeout=float(timeout) if timeout is not None else self.timeout,
            )
        except requests.RequestException as exc:
            raise NetworkError(f"Connection error: {exc}") from exc

        try:
            self._update_quota(resp.headers)
        except Exception:
            logger.debug("Failed to read quota headers from %s", url, exc_info=True)

        if resp.status_code >= 400:
            content_text = resp.text[:1000] if resp.text else ""
            raise map_http_status(resp.status_code, f"{resp.status_code} for {url}: {content_text}", resp)

        return safe_json(resp.content)

    def _fetch_or_fallback(self,
                           key: str,
                           path: str,
                           parse: Callable[[Any], Optional[T]],
                           params: Optional[Dict[str, Any]] = None,
                           path_params: Optional[Dict[str, Any]] = None) -> Optional[T]:
        # another caller may have completed the same fetch while this one waited
        fresh = self.cache.get_fresh(key)
        if fresh is not None:
            return fresh

        if self._quota_exhausted():
            logger.warning("%s rate limit exhausted; serving %s from cache", self.name, key)
            return self.cache.get_fallback(key, parse)

        try:
            raw = self._request(path, params=params, path_params=path_params)
            value = parse(raw)
            if value is None:
                raise InvalidResponseError(f"Unexpected response shape for {key}")
            self.cache.store(key, value, raw)
            return value
        except Exception as exc:
            logger.warning("%s request for %s failed: %s; using cache", self.name, key, exc)
            return self.cache.get_fallback(key, parse)

    def _cached_fetch(self,
                      key: str,
                      path: str,
                      parse: Callable[[Any], Optional[T]],
                      *,
                      params: Optional[Dict[str, Any]] = None,
                      path_params: Optional[Dict[str, Any]] = None) -> Optional[T]:
        """
        Run the two-tier-cache-plus-quota pipeline for one cache key.

        Parameters
        ----------
        key : str
            Cache key (memory key and durable file stem).
        path : str
            Endpoint path template.
        parse : Callable[[Any], Optional[T]]
            Converts a raw response (as fetched, or as read back from the durable copy)
            into the typed value. Returning None marks the response as malformed.

        Returns
        -------
        Optional[T]
            The value, or None when nothing fresh or cached is available.
        """
        fresh = self.cache.get_fresh(key)
        if fresh is not None:
            return fresh
        return self.cache.get_or_fetch(
            key, lambda: self._fetch_or_fallback(key, path, parse, params, path_params)
        )

    def download(self, url: str, *, progress_cb: Optional[ProgressCallback] = None) -> Optional[bytes]:
        """Fetch raw bytes; None on any failure (logged at ERROR)."""
        return self.fetcher.fetch(url, progress_cb=progress_cb)

    def close(self) -> None:
        """Close the underlying sessions."""
        for s in {id(self.session): self.session, id(self.download_session): self.download_session}.values():
            try:
                s.close()
            except Exception:
                logger.debug("Failed to close %s session", self.name, exc_info=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} base_url={self.base_url!r}>"
