"""Authenticated, retrying execution of a single remote operation.

`execute()` wraps one REST call and hides two kinds of failure from the
caller's business logic:

- transient failures (transport errors, 5xx, 429) are retried a bounded
  number of times with capped exponential backoff;
- an expired credential triggers exactly one refresh of the shared
  client followed by exactly one more attempt.

Everything else is returned as-is. The result is always the last
attempt's Outcome; failed attempts are released before being discarded.

Example:
    outcome = await execute(
        deadline, kc, diags,
        lambda: kc.kubernetes_engine.get(f"/api/v1/clusters/{name}"),
        action="read",
    )
    if not outcome.ok:
        add_api_action_error(diags, target, "read", "GetCluster", outcome.error)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Generic, Protocol, TypeAlias, TypeVar

from loguru import logger
from tenacity import AsyncRetrying, RetryCallState, retry_if_result, wait_exponential

from kcprovider.core.deadline import Deadline
from kcprovider.core.diagnostics import Diagnostics
from kcprovider.core.exceptions import AuthenticationError, DeadlineExceeded
from kcprovider.infra.http import HttpError, Response
from kcprovider.retry import is_auth_expired, is_not_found, is_rate_limited, is_transient

T = TypeVar("T")
U = TypeVar("U")

RemoteOperation: TypeAlias = Callable[[], Awaitable[Response[T]]]


class Reauthenticator(Protocol):
    """Capability to replace the credential used by a shared client."""

    async def refresh(self) -> None: ...


@dataclass(frozen=True, slots=True)
class RetrySettings:
    """Transient retry policy.

    Attributes:
        max_attempts: Attempts (including the first) for transient errors.
        rate_limit_attempts: Attempts when the server answers 429.
        backoff_initial: First backoff delay in seconds; doubles per retry.
        backoff_max: Backoff cap in seconds.
    """

    max_attempts: int = 3
    rate_limit_attempts: int = 10
    backoff_initial: float = 0.2
    backoff_max: float = 2.0


@dataclass(frozen=True, slots=True)
class Outcome(Generic[T]):
    value: T | None = None
    response: Response[Any] | None = field(default=None, repr=False)
    error: BaseException | None = None

    @classmethod
    def of(cls, response: Response[T]) -> Outcome[T]:
        return cls(value=response.data, response=response)

    @classmethod
    def failed(cls, error: BaseException) -> Outcome[T]:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status(self) -> int | None:
        if self.response is not None:
            return self.response.status
        return getattr(self.error, "status", None)

    @property
    def not_found(self) -> bool:
        return self.error is not None and is_not_found(self.error)

    def map(self, fn: Callable[[T], U]) -> Outcome[U]:
        if self.error is not None:
            return Outcome(response=self.response, error=self.error)
        return Outcome(value=fn(self.value), response=self.response)  # type: ignore[arg-type]

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    def release(self) -> None:
        raw = self.response.raw if self.response is not None else getattr(self.error, "raw", None)
        if raw is not None:
            raw.release()


async def _attempt(deadline: Deadline, op: RemoteOperation[T]) -> Outcome[T]:
    try:
        response = await deadline.run(op())
    except (HttpError, AuthenticationError, DeadlineExceeded, ConnectionError, TimeoutError) as e:
        return Outcome.failed(e)
    return Outcome.of(response)


def _should_retry(outcome: Outcome[Any]) -> bool:
    error = outcome.error
    if error is None or isinstance(error, DeadlineExceeded):
        return False
    return is_transient(error)


def _budget(settings: RetrySettings, outcome: Outcome[Any]) -> int:
    if outcome.error is not None and is_rate_limited(outcome.error):
        return settings.rate_limit_attempts
    return settings.max_attempts


async def _retry_transient(
    deadline: Deadline,
    diags: Diagnostics,
    op: RemoteOperation[T],
    settings: RetrySettings,
    action: str,
) -> Outcome[T]:
    log = logger.bind(component="executor", action=action)

    def stop(state: RetryCallState) -> bool:
        if deadline.done:
            return True
        outcome: Outcome[T] = state.outcome.result()  # type: ignore[union-attr]
        return state.attempt_number >= _budget(settings, outcome)

    def before_sleep(state: RetryCallState) -> None:
        outcome: Outcome[T] = state.outcome.result()  # type: ignore[union-attr]
        outcome.release()
        delay = state.next_action.sleep if state.next_action else 0.0
        log.warning(
            "Retry {attempt}/{total} for {action} after {error}. Waiting {delay:.2f}s...",
            attempt=state.attempt_number, total=_budget(settings, outcome),
            action=action, error=outcome.error, delay=delay,
        )

    def exhausted(state: RetryCallState) -> Outcome[T]:
        outcome: Outcome[T] = state.outcome.result()  # type: ignore[union-attr]
        if deadline.done:
            outcome.release()
            return Outcome.failed(deadline.error())
        if outcome.error is not None and is_rate_limited(outcome.error):
            diags.add_error(
                f"Error during {action}",
                f"Exceeded max retry attempts ({state.attempt_number}) "
                "due to 429 Too Many Requests",
            )
        log.warning(
            "Giving up on {action} after {n} attempts: {error}",
            action=action, n=state.attempt_number, error=outcome.error,
        )
        return outcome

    async def sleep(seconds: float) -> None:
        if not await deadline.sleep(seconds):
            raise deadline.error()

    retrying = AsyncRetrying(
        stop=stop,
        wait=wait_exponential(multiplier=settings.backoff_initial, max=settings.backoff_max),
        retry=retry_if_result(_should_retry),
        before_sleep=before_sleep,
        retry_error_callback=exhausted,
        sleep=sleep,
    )
    try:
        return await retrying(_attempt, deadline, op)
    except DeadlineExceeded as e:
        log.warning("{action} interrupted while backing off: {reason}", action=action, reason=e.reason)
        return Outcome.failed(e)


async def execute(
    deadline: Deadline,
    client: Reauthenticator,
    diags: Diagnostics,
    op: RemoteOperation[T],
    *,
    action: str = "request",
    settings: RetrySettings | None = None,
) -> Outcome[T]:
    """Run `op` with transient retry and a single credential refresh.

    Args:
        deadline: Bounds every attempt and every backoff sleep.
        client: Shared client whose credentials are refreshed on expiry.
        diags: Sink for diagnostics raised by the retry policy itself.
        op: The remote call; raises HttpError on failure.
        action: Action name used in logs and diagnostics.
        settings: Transient retry policy.

    Returns:
        The last attempt's Outcome. Deadline expiry or cancellation is
        reported as an Outcome carrying DeadlineExceeded.
    """
    settings = settings or RetrySettings()
    log = logger.bind(component="executor", action=action)

    outcome = await _retry_transient(deadline, diags, op, settings, action)
    if outcome.ok or not is_auth_expired(outcome.error):  # type: ignore[arg-type]
        return outcome

    outcome.release()
    log.info("Credentials rejected during {action}; refreshing", action=action)
    try:
        await deadline.run(client.refresh())
    except DeadlineExceeded as e:
        return Outcome.failed(e)
    except (AuthenticationError, HttpError) as e:
        error = AuthenticationError(f"failed to refresh credentials: {e}")
        error.__cause__ = e
        return Outcome.failed(error)

    outcome = await _retry_transient(deadline, diags, op, settings, action)
    if not outcome.ok and is_auth_expired(outcome.error):  # type: ignore[arg-type]
        log.error("Credentials rejected again after refresh during {action}", action=action)
    return outcome
