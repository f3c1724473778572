"""
moddypy.nxm
-----------

Cross-process hand-off of ``nxm://`` download requests.

An external helper, started by the operating system for every ``nxm://`` activation,
writes the raw URL into ``<queue dir>/<epoch seconds>.nxmurl``. The engine polls that
directory from its tick loop and drains it.

Delivery is at-most-once: each file is deleted right after it is read and before the
request is processed, so a crash in between loses that request.

URL grammar (must match the helper exactly)::

    nxm://<game domain>/mods/<mod id>/files/<file id>?key=<opaque>&expires=<epoch>
"""

from __future__ import annotations

import abc
import logging
import time
from pathlib import Path
from typing import *
from urllib.parse import parse_qs, urlsplit

from .paths import QUEUE_FILE_SUFFIX, default_queue_dir
from .types_models import NxmRequest

logger = logging.getLogger(__name__)

NXM_SCHEME = "nxm"
DEFAULT_GAME_DOMAIN = "stardewvalley"
DEFAULT_POLL_INTERVAL_TICKS = 60


def _as_id(segment: str) -> Optional[int]:
    if not segment.isascii() or not segment.isdigit():
        return None
    return int(segment)


def parse_nxm_url(url: str, *, game_domain: str = DEFAULT_GAME_DOMAIN) -> Optional[NxmRequest]:
    """
    Parse an ``nxm://`` URL into a request; None for anything that does not match.

    Scheme and host compare case-insensitively. ``key`` and ``expires`` are optional;
    an ``expires`` that is not an integer is dropped.

    Examples
    --------
    >>> parse_nxm_url("nxm://stardewvalley/mods/2400/files/9001?key=abc&expires=1700000000")
    NxmRequest(mod_id=2400, file_id=9001, key='abc', expires=1700000000)
    >>> parse_nxm_url("nxm://otherhost/mods/1/files/2") is None
    True
    """
    if not isinstance(url, str):
        return None
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return None
    if parts.scheme.lower() != NXM_SCHEME:
        return None
    if (parts.hostname or "").lower() != game_domain.lower():
        return None

    segments = parts.path.strip("/").split("/")
    if len(segments) < 4 or segments[0] != "mods" or segments[2] != "files":
        return None
    mod_id = _as_id(segments[1])
    file_id = _as_id(segments[3])
    if mod_id is None or file_id is None:
        return None

    query = parse_qs(parts.query)
    key = (query.get("key") or [None])[0] or None
    expires = None
    raw_expires = (query.get("expires") or [None])[0]
    if raw_expires is not None:
        try:
            expires = int(raw_expires)
        except ValueError:
            expires = None
    return NxmRequest(mod_id=mod_id, file_id=file_id, key=key, expires=expires)


class NxmQueue(abc.ABC):
    """A source of pending download requests."""

    @abc.abstractmethod
    def drain(self) -> List[NxmRequest]:
        """Remove and return every pending request."""

    def ensure_ready(self) -> None:
        """Prepare the queue for producers. No-op by default."""


def _queue_order(path: Path) -> Tuple[int, int, int, str]:
    stem = path.name[: -len(QUEUE_FILE_SUFFIX)]
    stamp, _, seq = stem.partition("-")
    stamp_n = _as_id(stamp)
    seq_n = _as_id(seq) if seq else 0
    if stamp_n is None or seq_n is None:
        return (1, 0, 0, stem)
    return (0, stamp_n, seq_n, stem)


class FileNxmQueue(NxmQueue):
    """
    Directory-backed queue shared with the external URL helper.

    Parameters
    ----------
    queue_dir : Optional[Path | str]
        Queue directory; defaults to the per-user location of :func:`default_queue_dir`.
    game_domain : str
        Host accepted in queued URLs.
    """

    def __init__(self, queue_dir: Optional[Union[Path, str]] = None, *, game_domain: str = DEFAULT_GAME_DOMAIN):
        self.queue_dir = Path(queue_dir) if queue_dir else default_queue_dir()
        self.game_domain = game_domain

    def ensure_ready(self) -> None:
        self.queue_dir.mkdir(parents=True, exist_ok=True)

    def pending(self) -> List[Path]:
        """Queued files, oldest first (``<stamp>`` before ``<stamp>-1`` before ``<stamp>-2``)."""
        if not self.queue_dir.is_dir():
            return []
        return sorted(self.queue_dir.glob(f"*{QUEUE_FILE_SUFFIX}"), key=_queue_order)

    def enqueue(self, url: str) -> Path:
        """Write `url` the way the helper does. Used by tests and in-process producers."""
        self.ensure_ready()
        stamp = int(time.time())
        path = self.queue_dir / f"{stamp}{QUEUE_FILE_SUFFIX}"
        n = 0
        while path.exists():
            n += 1
            path = self.queue_dir / f"{stamp}-{n}{QUEUE_FILE_SUFFIX}"
        path.write_text(url, encoding="utf-8")
        return path

    def drain(self) -> List[NxmRequest]:
        """
        Read, delete and parse every queued file.

        Malformed or unreadable files are logged and skipped; the rest of the drain proceeds.
        """
        requests: List[NxmRequest] = []
        for path in self.pending():
            try:
                raw = path.read_bytes()
                path.unlink()
            except OSError as exc:
                logger.warning("Failed to process nxm queue file %s: %s", path.name, exc)
                continue
            # undecodable bytes become U+FFFD and fail parsing below
            url = raw.decode("utf-8-sig", errors="replace").strip()

            parsed = parse_nxm_url(url, game_domain=self.game_domain)
            if parsed is None:
                logger.warning("Ignoring malformed nxm queue file %s", path.name)
                continue
            requests.append(parsed)
        return requests

    def __repr__(self) -> str:
        return f"<FileNxmQueue dir={str(self.queue_dir)!r}>"


class QueuePoller:
    """
    Tick-driven gate for queue polling.

    :meth:`tick` returns True once every `interval_ticks` calls (60 ticks is about one
    second at the host's frame rate).
    """

    def __init__(self, interval_ticks: int = DEFAULT_POLL_INTERVAL_TICKS):
        if interval_ticks < 1:
            raise ValueError("interval_ticks must be >= 1")
        self.interval_ticks = interval_ticks
        self._ticks = 0

    def tick(self) -> bool:
        self._ticks += 1
        if self._ticks < self.interval_ticks:
            return False
        self._ticks = 0
        return True

    def reset(self) -> None:
        self._ticks = 0
