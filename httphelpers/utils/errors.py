"""
httphelpers/utils/errors.py

WHAT THIS FILE IS FOR
---------------------
The single error model raised by the REST clients.

Callers should only ever need to catch `HttpHelperError` (or one of its
subclasses) to handle every failure a client call can produce:

- ConfigurationError -> malformed base address / missing required setting
- ClientError        -> HTTP status >= 400, or a timeout remapped to 504
- TransportError     -> the request never produced a response (DNS,
                        connection refused, protocol error). Never a timeout.
- CodecError         -> request/response body could not be (de)serialized
- ClientClosedError  -> call issued after the client was closed
"""

from __future__ import annotations

from typing import Any, Optional


class HttpHelperError(Exception):
    """Base class for every error raised by httphelpers."""


class ConfigurationError(HttpHelperError, ValueError):
    """Raised when a client is configured with an invalid value."""


class ClientError(HttpHelperError):
    """
    Terminal outcome of a failed call.

    `status_code` is the HTTP status received, or 504 when the call timed
    out in StandardClient. `reason` is the reason phrase (or the timeout
    message), and is also the exception message.
    """

    def __init__(self, status_code: int, reason: str, body: Optional[Any] = None):
        self.status_code = status_code
        self.reason = reason
        self.body = body
        super().__init__(reason)

    def __repr__(self) -> str:
        return f"ClientError(status_code={self.status_code}, reason={self.reason!r})"


class TransportError(HttpHelperError):
    """Raised when no response was received for a reason other than a timeout."""


class CodecError(HttpHelperError):
    """Raised when a body cannot be encoded to or decoded from JSON."""


class ClientClosedError(HttpHelperError):
    """Raised when a request is issued on a client that has been closed."""
