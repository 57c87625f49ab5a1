"""Internal machinery: the HTTP transport."""

from .http import (
    Auth,
    HttpClient,
    HttpError,
    Releasable,
    Response,
    StaticTokenAuth,
)

__all__ = [
    "Auth",
    "HttpClient",
    "HttpError",
    "Releasable",
    "Response",
    "StaticTokenAuth",
]
