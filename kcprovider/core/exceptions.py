"""Exception hierarchy for kcprovider.

All provider-specific exceptions inherit from KakaoCloudError, so callers
can catch everything raised by this package with a single except clause.
Remote failures are normally reported through Outcome values and
Diagnostics rather than raised; these types travel inside them.
"""

from __future__ import annotations

DEADLINE_EXCEEDED = "context deadline exceeded"
CANCELLED = "context cancelled"


class KakaoCloudError(Exception):
    """Base exception for all kcprovider errors."""


class ConfigurationError(KakaoCloudError):
    """Raised for invalid configuration or missing required settings."""


class AuthenticationError(KakaoCloudError):
    """Raised when a token cannot be issued, validated or refreshed."""


class DeadlineExceeded(KakaoCloudError):  # noqa: N818
    """Raised when an operation outlives its deadline or is cancelled."""

    def __init__(self, reason: str = DEADLINE_EXCEEDED) -> None:
        self.reason = reason
        super().__init__(reason)

    @property
    def cancelled(self) -> bool:
        return self.reason == CANCELLED
