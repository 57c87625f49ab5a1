"""Error classification for retries.

Predicates decide how the executor and pollers treat a failure:
authentication expiry (refresh once and retry), transient (retry with
backoff), not-found (poll-policy dependent) or anything else (fatal).

Example:
    is_rate_limited = on_status_code(429)
    retryable = any_of(on_status_code(502, 503), on_exception_message("reset by peer"))
"""

from __future__ import annotations

from collections.abc import Callable

# Type for the classification predicate
ErrorPredicate = Callable[[BaseException], bool]

AUTH_ERROR_PATTERNS = (
    "unauthorized",
    "invalid token",
    "token expired",
    "authentication required",
)

TRANSIENT_STATUS_CODES = (0, 429, 500, 502, 503, 504)


def on_status_code(*codes: int) -> ErrorPredicate:
    """Match exceptions whose `status` attribute is one of `codes`.

    Works with HttpError, aiohttp.ClientResponseError, and similar
    exceptions that expose a `status` attribute.
    """

    def predicate(e: BaseException) -> bool:
        status = getattr(e, "status", None)
        return status in codes

    return predicate


def on_server_error() -> ErrorPredicate:
    def predicate(e: BaseException) -> bool:
        status = getattr(e, "status", None)
        return isinstance(status, int) and status >= 500

    return predicate


def on_exception_message(*patterns: str, case_sensitive: bool = False) -> ErrorPredicate:
    def predicate(e: BaseException) -> bool:
        msg = str(e)
        if not case_sensitive:
            msg = msg.lower()
            return any(p.lower() in msg for p in patterns)
        return any(p in msg for p in patterns)

    return predicate


def on_exception_type(*types: type[BaseException]) -> ErrorPredicate:
    def predicate(e: BaseException) -> bool:
        return isinstance(e, types)

    return predicate


def any_of(*predicates: ErrorPredicate) -> ErrorPredicate:
    def combined(e: BaseException) -> bool:
        return any(p(e) for p in predicates)

    return combined


def all_of(*predicates: ErrorPredicate) -> ErrorPredicate:
    def combined(e: BaseException) -> bool:
        return all(p(e) for p in predicates)

    return combined


# =============================================================================
# Classification used by the core
# =============================================================================

is_not_found: ErrorPredicate = on_status_code(404)

is_rate_limited: ErrorPredicate = on_status_code(429)

is_auth_expired: ErrorPredicate = any_of(
    on_status_code(401),
    all_of(on_status_code(403), on_exception_message(*AUTH_ERROR_PATTERNS)),
)

is_transient: ErrorPredicate = any_of(
    on_status_code(*TRANSIENT_STATUS_CODES),
    on_server_error(),
    on_exception_type(ConnectionError, TimeoutError),
)
