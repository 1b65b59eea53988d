"""Error taxonomy for the static file server.

Only `BindError` is fatal. Every `RequestError` is caught at the request
boundary and turned into an HTTP status with a `{"detail": ...}` body.
Missing files and unsupported methods use Starlette's `HTTPException`.
"""

from http import HTTPStatus
from typing import Optional


class MiniCDNError(Exception):
    """Base class for all MiniCDN errors."""


class BindError(MiniCDNError):
    """The listener could not be bound to the configured address."""

    def __init__(self, host: str, port: int, reason: str):
        self.host = host
        self.port = port
        self.reason = reason
        super().__init__(f"Cannot bind to {host}:{port}: {reason}")


class RequestError(MiniCDNError):
    """A per-request failure with the HTTP status it maps to."""

    status_code: int = 500

    def __init__(self, detail: Optional[str] = None, path: Optional[str] = None):
        self.detail = detail or HTTPStatus(self.status_code).phrase
        self.path = path
        super().__init__(self.detail)


class MalformedRequest(RequestError):
    status_code = 400


class PathTraversal(RequestError):
    """The request path climbs above the serving root."""

    status_code = 403


class FileReadError(RequestError):
    """The file exists but cannot be read."""

    status_code = 500
