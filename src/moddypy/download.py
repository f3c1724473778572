"""
moddypy.download
----------------

Byte fetcher shared by both remote sources.

Features
- Streamed GET into memory (archives are extracted straight from the buffer)
- Optional tqdm progress bar and per-chunk progress callback
- Never raises to callers: failures are logged at ERROR and reported as None
"""

from __future__ import annotations

import io
import logging
from typing import *

import requests
from tqdm import tqdm

from .exceptions import DownloadError, NetworkError, map_http_status

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, Optional[int], Dict[str, Any]], None]
# callback(downloaded_bytes, total_bytes_or_None, meta) -> None

DEFAULT_CHUNK_SIZE = 64 * 1024


class ByteFetcher:
    """
    Fetches a URL's body as bytes.

    Parameters
    ----------
    session : requests.Session
        Session to use; its headers (User-Agent, credentials) apply to every fetch.
    timeout : float
        Per-request timeout in seconds.
    show_progress : bool
        Render a tqdm bar on stderr while streaming.
    chunk_size : int
        Streaming chunk size in bytes.
    """

    def __init__(self,
                 session: requests.Session,
                 *,
                 timeout: float = 300.0,
                 show_progress: bool = False,
                 chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.session = session
        self.timeout = float(timeout)
        self.show_progress = bool(show_progress)
        self.chunk_size = int(chunk_size)

    def _stream(self, url: str, progress_cb: Optional[ProgressCallback], desc: Optional[str]) -> bytes:
        try:
            resp = self.session.get(url, stream=True, timeout=self.timeout)
        except requests.RequestException as exc:
            raise NetworkError(f"Connection error: {exc}") from exc

        try:
            if resp.status_code >= 400:
                raise map_http_status(resp.status_code, f"download of {url} failed", resp)

            total = None
            try:
                if resp.headers.get("Content-Length"):
                    total = int(resp.headers.get("Content-Length"))
            except (TypeError, ValueError):
                total = None

            buf = io.BytesIO()
            written = 0
            meta = {"url": url}
            with tqdm(total=total, unit="B", unit_scale=True, desc=desc or url.rsplit("/", 1)[-1][:40],
                      ncols=80, disable=not self.show_progress) as bar:
                for chunk in resp.iter_content(chunk_size=self.chunk_size):
                    if not chunk:
                        continue
                    buf.write(chunk)
                    written += len(chunk)
                    bar.update(len(chunk))
                    if progress_cb:
                        try:
                            progress_cb(written, total, meta)
                        except Exception:
                            logger.debug("progress callback raised", exc_info=True)

            if total is not None and written < total:
                raise DownloadError(f"Truncated download: got {written} of {total} bytes")
            return buf.getvalue()
        except requests.RequestException as exc:
            raise NetworkError(f"Connection error while streaming: {exc}") from exc
        finally:
            resp.close()

    def fetch(self,
              url: str,
              *,
              progress_cb: Optional[ProgressCallback] = None,
              desc: Optional[str] = None) -> Optional[bytes]:
        """
        Download `url` and return its body.

        Parameters
        ----------
        url : str
            Absolute URL.
        progress_cb : Optional[callable(downloaded, total, meta)]
            Per-chunk progress callback. Exceptions it raises are ignored.
        desc : Optional[str]
            Label for the progress bar.

        Returns
        -------
        Optional[bytes]
            The body, or None on any failure.
        """
        if not url:
            logger.error("Download failed: empty URL")
            return None
        try:
            data = self._stream(url, progress_cb, desc)
            logger.debug("Downloaded %d bytes from %s", len(data), url)
            return data
        except Exception as exc:
            logger.error("Download failed for %s: %s", url, exc)
            return None

    def __repr__(self) -> str:
        return f"<ByteFetcher timeout={self.timeout:.0f}s progress={self.show_progress}>"
