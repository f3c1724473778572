from __future__ import annotations

import re,json,logging
from packaging import version
from typing import *
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
import requests
from .exceptions import InvalidResponseError

__all__ = [
    "logger_setup",
    "session_factory",
    "parse_numeric_version",
    "is_newer_version",
    "safe_json",
    "sanitize_cache_key",
]

DEFAULT_USER_AGENT = "Moddy/1.0"
LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s: %(message)s"

def logger_setup(name: str = "moddypy",
                 level: int = logging.INFO,
                 *,
                 log_to_file: Optional[str] = None,
                 file_level: Optional[int] = None,
                 fmt: str = LOG_FORMAT,
                 datefmt: str = "%Y-%m-%d %H:%M:%S") -> logging.Logger:
    """
    Attach console (and optionally file) output to the ``moddypy`` logger tree.

    Modules only ever call ``logging.getLogger(__name__)``; nothing is printed until the
    host calls this once. Calling it again for the same `name` adds no extra handlers.

    Parameters
    ----------
    name : str
        Root of the logger tree to configure.
    level : int
        Console threshold.
    log_to_file : Optional[str]
        Also append records to this file.
    file_level : Optional[int]
        File threshold; the console threshold when None.
    fmt, datefmt : str
        Formatter strings.

    Example
    -------
    >>> log = logger_setup(level=logging.DEBUG, log_to_file="moddy.log")
    >>> log.info("ready")
    """
    file_level = level if file_level is None else file_level
    log = logging.getLogger(name)
    log.setLevel(min(level, file_level))
    if getattr(log, "_moddy_handlers", None):
        return log

    formatter = logging.Formatter(fmt=fmt, datefmt=datefmt)
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    handlers[0].setLevel(level)
    if log_to_file:
        file_handler = logging.FileHandler(log_to_file, encoding="utf-8")
        file_handler.setLevel(file_level)
        handlers.append(file_handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        log.addHandler(handler)
    log._moddy_handlers = handlers
    return log

def session_factory(user_agent: Optional[str] = None,
                    *,
                    pool_maxsize: int = 10,
                    pool_connections: int = 10,
                    max_retries: int = 0,
                    backoff_factor: float = 0.0,
                    status_forcelist: Optional[Iterable[int]] = (500, 502, 503, 504),
                    default_headers: Optional[Dict[str, str]] = None) -> requests.Session:
    """
    Build the ``requests.Session`` a remote source talks through.

    The session sends JSON ``Accept`` and the engine's User-Agent, and mounts a pooled
    ``HTTPAdapter``. Transport retries (urllib3 ``Retry``, GET/HEAD only) are off by
    default; 429 is never retried because an exhausted quota is answered from cache.

    Parameters
    ----------
    user_agent : Optional[str]
        Defaults to ``DEFAULT_USER_AGENT``.
    pool_maxsize, pool_connections : int
        Adapter pool sizing.
    max_retries : int
        0 disables retries.
    backoff_factor : float
        urllib3 exponential backoff factor.
    status_forcelist : Iterable[int]
        Statuses retried when `max_retries` > 0.
    default_headers : Optional[Dict[str, str]]
        Extra headers, applied last.
    """
    session = requests.Session()
    session.headers["Accept"] = "application/json"
    session.headers["User-Agent"] = user_agent or DEFAULT_USER_AGENT
    session.headers.update(default_headers or {})

    retry: Union[Retry, int] = 0
    if max_retries > 0:
        retry = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=tuple(status_forcelist or ()),
            allowed_methods=frozenset({"GET", "HEAD"}),
            raise_on_status=False,
        )
    adapter = HTTPAdapter(pool_connections=pool_connections, pool_maxsize=pool_maxsize, max_retries=retry)
    for prefix in ("https://", "http://"):
        session.mount(prefix, adapter)
    return session

_NUMERIC_VERSION_RE = re.compile(r"^\d+(\.\d+)*$")

def parse_numeric_version(tag: Optional[str]) -> Optional[version.Version]:
    """
    Parse a release tag or package version as a dotted numeric version.

    Leading ``v``/``V`` characters are stripped first. Anything that is not purely
    dotted digits afterwards (``1.2-beta``, ``latest``, empty) yields None rather
    than raising, so callers can treat "unparseable" as "no update".

    Parameters
    ----------
    tag : Optional[str]
        Version string (e.g. 'v1.20.1').

    Returns
    -------
    Optional[packaging.version.Version]
        Parsed version object for comparison operations, or None.
    """
    if not tag:
        return None
    cleaned = tag.strip().lstrip("vV")
    if not _NUMERIC_VERSION_RE.match(cleaned):
        return None
    try:
        return version.Version(cleaned)
    except version.InvalidVersion:
        return None

def is_newer_version(latest: Optional[str], installed: Optional[str]) -> bool:
    """
    True only when both sides parse and `latest` is strictly greater than `installed`.

    Comparison is component-wise numeric (1.10.0 > 1.2.0); trailing zero components are
    insignificant (1.0 == 1.0.0.0).
    """
    latest_v = parse_numeric_version(latest)
    installed_v = parse_numeric_version(installed)
    if latest_v is None or installed_v is None:
        return False
    return latest_v > installed_v

def safe_json(payload: Union[str, bytes, dict, list, None], *, default: Optional[Union[dict, list]] = None) -> Optional[Union[dict, list]]:
    """
    Safely parse JSON payloads into Python objects.

    This helper accepts:
      - Raw JSON strings (str or bytes)
      - Already-parsed dict/list (returns as-is)
      - None -> returns `default`

    Unlike an API envelope helper this does not unwrap anything: callers own the shape.

    Raises
    ------
    InvalidResponseError
        If the payload cannot be parsed and `default` is None.
    """
    if payload is None:
        return default

    if isinstance(payload, (dict, list)):
        return payload

    if isinstance(payload, (bytes, bytearray)):
        text = payload.decode("utf-8-sig", errors="replace")
    else:
        text = str(payload)
        if text.startswith("\ufeff"):
            text = text[1:]

    if not text.strip():
        return default

    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        if default is not None:
            return default
        raise InvalidResponseError(f"Invalid JSON payload: {exc}") from exc

_UNSAFE_PATH_CHARS = re.compile(r'[\\/:*?"<>|\s]')

def sanitize_cache_key(key: str) -> str:
    """
    Turn a cache key such as ``owner/repo`` into a single safe file name stem.

    >>> sanitize_cache_key("Pathoschild/SMAPI")
    'Pathoschild_SMAPI'
    """
    cleaned = _UNSAFE_PATH_CHARS.sub("_", key.strip())
    cleaned = cleaned.replace("..", "_")
    return cleaned or "_"
