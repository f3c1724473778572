"""
moddypy.cache
-------------

Two-tier response cache owned by a single remote source.

- Memory tier: key -> (payload, timestamp). Authoritative for freshness.
- Durable tier: one JSON file per key holding the last successfully fetched raw
  response. Consulted only as a fallback (quota exhausted, network failure, restart),
  never as the primary freshness source.

Entries are replaced whole, never patched, so concurrent readers never observe a
torn value. Concurrent fetches of the same key are collapsed into one via
:meth:`TwoTierCache.get_or_fetch`.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from concurrent.futures import Future
from pathlib import Path
from typing import *

from .utils import safe_json, sanitize_cache_key

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TwoTierCache:
    """
    Memory cache with a durable JSON mirror.

    Parameters
    ----------
    cache_dir : Optional[Path | str]
        Directory for the durable tier. ``None`` disables it (memory only).
    ttl_seconds : float
        Age below which a memory entry is considered fresh.
    clock : Callable[[], float]
        Time source, overridable in tests.

    Examples
    --------
    >>> cache = TwoTierCache("cache", ttl_seconds=900)
    >>> cache.store("Pathoschild/SMAPI", releases, raw_payload)
    >>> cache.get_fresh("Pathoschild/SMAPI")
    """

    def __init__(self,
                 cache_dir: Optional[Union[Path, str]],
                 ttl_seconds: float = 900.0,
                 *,
                 clock: Callable[[], float] = time.time):
        self.cache_dir: Optional[Path] = Path(cache_dir) if cache_dir else None
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._memory: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._inflight: Dict[str, Future] = {}

    def path_for(self, key: str) -> Optional[Path]:
        """Durable file for `key`, or None when the durable tier is disabled."""
        if not self.cache_dir:
            return None
        return self.cache_dir / f"{sanitize_cache_key(key)}.json"

    def get_fresh(self, key: str) -> Optional[Any]:
        """Return the memory payload for `key` if younger than the TTL, else None."""
        with self._lock:
            entry = self._memory.get(key)
        if entry is None:
            return None
        payload, ts = entry
        if self._clock() - ts < self.ttl_seconds:
            logger.debug("cache hit %s", key)
            return payload
        return None

    def get_fallback(self, key: str, parse: Optional[Callable[[Any], T]] = None) -> Optional[Any]:
        """
        Best available value regardless of age: durable copy first, then stale memory.

        Parameters
        ----------
        key : str
            Cache key.
        parse : Optional[Callable]
            Converts the raw durable payload into the value callers expect. Must undo any
            wrapper the durable copy was stored with.

        Returns
        -------
        The fallback value, or None when neither tier holds anything usable.
        """
        raw = self.load_durable(key)
        if raw is not None:
            try:
                value = parse(raw) if parse else raw
                if value is not None:
                    logger.debug("cache fallback %s served from disk", key)
                    return value
            except Exception as exc:
                logger.debug("Discarding unreadable durable cache for %s: %s", key, exc)

        with self._lock:
            entry = self._memory.get(key)
        if entry is not None:
            logger.debug("cache fallback %s served from stale memory", key)
            return entry[0]
        return None

    def store(self, key: str, payload: Any, raw: Any = None) -> None:
        """
        Replace the memory entry with `payload` stamped now, and mirror `raw` to disk.

        `raw` is the JSON-serializable response as fetched; when omitted, `payload` itself
        is written. Durable write failures are logged and otherwise ignored.
        """
        with self._lock:
            self._memory[key] = (payload, self._clock())
        self.save_durable(key, payload if raw is None else raw)

    def load_durable(self, key: str) -> Optional[Any]:
        path = self.path_for(key)
        if path is None or not path.exists():
            return None
        try:
            return safe_json(path.read_bytes())
        except Exception as exc:
            logger.debug("Failed to read durable cache %s: %s", path, exc)
            return None

    def save_durable(self, key: str, raw: Any) -> None:
        """Write `raw` atomically (tmp file + os.replace)."""
        path = self.path_for(key)
        if path is None:
            return
        tmp = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(raw, f, ensure_ascii=False)
            os.replace(str(tmp), str(path))
        except Exception as exc:
            logger.debug("Failed to save durable cache %s: %s", path, exc)
            try:
                if tmp.exists():
                    tmp.unlink()
            except OSError:
                pass

    def get_or_fetch(self, key: str, loader: Callable[[], T]) -> T:
        """
        Run `loader` for `key` unless another thread is already running it.

        A second caller for the same key blocks on the first caller's result instead of
        issuing a duplicate request. Exceptions raised by `loader` reach every waiter.
        """
        with self._lock:
            fut = self._inflight.get(key)
            owner = fut is None
            if owner:
                fut = Future()
                self._inflight[key] = fut

        if not owner:
            logger.debug("joining in-flight fetch for %s", key)
            return fut.result()

        try:
            result = loader()
        except BaseException as exc:
            fut.set_exception(exc)
            raise
        else:
            fut.set_result(result)
            return result
        finally:
            with self._lock:
                self._inflight.pop(key, None)

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop memory entries (one key, or all). The durable tier is left alone."""
        with self._lock:
            if key is None:
                self._memory.clear()
            else:
                self._memory.pop(key, None)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._memory

    def __repr__(self) -> str:
        return f"<TwoTierCache dir={str(self.cache_dir)!r} ttl={self.ttl_seconds:.0f}s entries={len(self._memory)}>"
