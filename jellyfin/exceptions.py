"""
Exception hierarchy for the Jellyfin/Emby HTTP client.

Every failure the client surfaces is a JellyfinError so callers can catch a
single type at per-event boundaries:

    JellyfinError
    ├── JellyfinConnectionError   server unreachable or request timed out
    ├── JellyfinRequestError      non-2xx response without a usable body
    └── JellyfinResponseError     body could not be parsed into the expected shape
"""

from typing import Optional

import httpx


class JellyfinError(Exception):
    """Base class for all Jellyfin/Emby client failures."""


class JellyfinConnectionError(JellyfinError):
    """
    Server is unreachable or the request timed out.

    Covers both connection failures (ConnectError) and timeouts
    (TimeoutException); both mean an unavailable server to the caller.
    """


class JellyfinRequestError(JellyfinError):
    """Server answered with a non-2xx status and no usable body."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class JellyfinResponseError(JellyfinError):
    """Response body did not match the expected JSON shape."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def translate_http_error(exc: Exception) -> JellyfinError:
    """
    Convert an httpx exception into the JellyfinError hierarchy.

    Args:
        exc: Exception raised by httpx (or already a JellyfinError)

    Returns:
        Matching JellyfinError subclass instance
    """
    if isinstance(exc, JellyfinError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return JellyfinConnectionError(f"Request timed out: {exc}")
    if isinstance(exc, (httpx.ConnectError, httpx.NetworkError)):
        return JellyfinConnectionError(f"Cannot connect to server: {exc}")
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return JellyfinRequestError(f"HTTP {status} from {exc.request.url}", status_code=status)
    return JellyfinError(str(exc))
