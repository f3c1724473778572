"""
exceptions.py

Centralized custom exception types for the library.

This file defines a small hierarchy of exceptions used across the remote
sources, the downloader, the installer and the registry. Each error carries an
optional numeric code and optional raw response object for easier debugging.

Public remote-source operations never let these escape to the caller; they
are raised inside the request layer and translated into cache fallbacks or
``None`` results there.
"""

from typing import Optional, Any


class ModdyError(Exception):
    """
    Base class for all library-specific exceptions.

    Attributes
    ----------
    message: str
        Human readable error message.
    code: Optional[int]
        HTTP status code or internal error code if applicable.
    response: Optional[Any]
        Raw response object (requests.Response or API payload) for debugging.
    """

    def __init__(self, message: str, code: Optional[int] = None, response: Optional[Any] = None):
        self.message = message
        self.code = code
        self.response = response
        super().__init__(self.__str__())

    def __str__(self) -> str:
        base = f"[ModdyError] {self.message}"
        if self.code is not None:
            base += f" (code={self.code})"
        return base

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} code={self.code!r} message={self.message!r}>"


class BadRequestError(ModdyError):
    """HTTP 400 - Client sent invalid data (bad parameters / payload)."""


class UnauthorizedError(ModdyError):
    """HTTP 401 - Missing or invalid API credentials (apikey header)."""


class ForbiddenError(ModdyError):
    """HTTP 403 - Authenticated but not allowed to access resource."""


class NotFoundError(ModdyError):
    """HTTP 404 - Requested resource not found."""


class RateLimitError(ModdyError):
    """HTTP 429, or a locally tracked quota that is already exhausted."""


class ServerError(ModdyError):
    """5xx - Server-side error from the API."""


class NetworkError(ModdyError):
    """Network / transport related error (timeouts, connection failures)."""


class InvalidResponseError(ModdyError):
    """Raised when the API returns malformed/unparseable data."""


class DownloadError(ModdyError):
    """Raised for byte-fetch failures (I/O, remote 4xx/5xx during streaming)."""


class ManifestError(ModdyError):
    """
    Raised when an archive has no package manifest, or the manifest cannot be read.

    A missing manifest is a hard install failure.
    """


class InstallError(ModdyError):
    """Raised when extraction into the packages directory fails."""


class ConfigurationError(ModdyError):
    """Raised when client/configuration is invalid or incomplete."""


class RegistryError(ModdyError):
    """Raised when the installation registry cannot be read or written."""


def map_http_status(status_code: int, message: str = "", response: Optional[Any] = None) -> ModdyError:
    """
    Convert an HTTP status code + message into an appropriate ModdyError instance.

    Parameters
    ----------
    status_code : int
        HTTP status code returned by the server.
    message : str
        Response text or short explanation.
    response : Any
        Raw response object (optional) to attach to the exception instance.

    Returns
    -------
    ModdyError
        An instance of a subclass representing the status.
    """
    if status_code == 400:
        return BadRequestError(message or "Bad Request", status_code, response)
    if status_code == 401:
        return UnauthorizedError(message or "Unauthorized", status_code, response)
    if status_code == 403:
        return ForbiddenError(message or "Forbidden", status_code, response)
    if status_code == 404:
        return NotFoundError(message or "Not Found", status_code, response)
    if status_code == 429:
        return RateLimitError(message or "Rate Limited", status_code, response)
    if 500 <= status_code <= 599:
        return ServerError(message or "Server Error", status_code, response)
    return ModdyError(message or f"HTTP {status_code}", status_code, response)
