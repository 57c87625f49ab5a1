"""Generic wait/polling utilities for resource handlers.

Provides the two reconciliation loops every handler builds on:
`poll_until` waits for a status in a target set, `poll_until_deletion`
waits for a resource to disappear. Both fetch immediately, then sleep a
fixed interval between fetches; the sleep wakes early on deadline expiry
or cancellation.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Collection
from enum import StrEnum
from typing import TypeAlias, TypeVar

from loguru import logger

from kcprovider.core.deadline import Deadline
from kcprovider.core.diagnostics import (
    Diagnostics,
    Target,
    add_api_action_error,
    add_general_error,
    add_general_warning,
)
from kcprovider.core.exceptions import DeadlineExceeded
from kcprovider.core.executor import Outcome

T = TypeVar("T")
S = TypeVar("S")

Fetch: TypeAlias = Callable[[Deadline], Awaitable[Outcome[T]]]
StatusOf: TypeAlias = Callable[[T], S]
DeletionCheck: TypeAlias = Callable[[Deadline], Awaitable[Outcome[bool]]]

DEFAULT_MAX_ABSENT = 10


class Absence(StrEnum):
    """What a status poll does when the resource is reported not found."""

    RETRY = "retry"
    FAIL = "fail"


def _elapsed(start: float) -> str:
    return f"{round(time.monotonic() - start)}s"


def _report_deadline(
    diags: Diagnostics,
    target: Target,
    action: str,
    states: Collection[S],
    start: float,
    reason: str,
) -> None:
    add_general_error(
        diags,
        target,
        action,
        f"{reason}: {target} did not reach one of the states "
        f"{sorted(map(str, states))} after {_elapsed(start)}",
    )


async def poll_until(
    deadline: Deadline,
    target: Target,
    *,
    interval: float,
    states: Collection[S],
    diags: Diagnostics,
    fetch: Fetch[T],
    status_of: StatusOf[T, S],
    action: str = "poll",
    timeout: float | None = None,
    on_absent: Absence = Absence.RETRY,
    max_absent: int = DEFAULT_MAX_ABSENT,
) -> tuple[T | None, bool]:
    """Poll `fetch` until `status_of` of the result is in `states`.

    The poller only matches against `states`; callers that include failure
    states in the set classify the returned entity themselves.

    Args:
        deadline: Caller deadline; expiry or cancellation ends the wait.
        target: Resource identity used in logs and diagnostics.
        interval: Fixed delay between fetches in seconds.
        states: Acceptable terminal statuses.
        diags: Sink receiving exactly one error when the wait fails.
        fetch: Fetches the entity, typically through `execute`.
        status_of: Extracts the status from a fetched entity.
        action: Action name used in diagnostics.
        timeout: Optional bound narrower than `deadline`.
        on_absent: How a not-found fetch is treated.
        max_absent: Consecutive not-found fetches tolerated under RETRY.

    Returns:
        (entity, True) when a target status was observed, otherwise
        (last fetched entity or None, False).
    """
    deadline = deadline.child(timeout)
    log = logger.bind(component="wait", kind=target.kind, identity=target.identity)
    start = time.monotonic()
    last: T | None = None
    absent = 0

    while True:
        outcome = await fetch(deadline)

        if isinstance(outcome.error, DeadlineExceeded):
            _report_deadline(diags, target, action, states, start, outcome.error.reason)
            return last, False

        if outcome.not_found:
            absent += 1
            if on_absent is Absence.RETRY and absent <= max_absent:
                log.warning(
                    "{target} not found (404). Retrying {n}/{max}...",
                    target=target, n=absent, max=max_absent,
                )
            else:
                message = None
                if on_absent is Absence.RETRY:
                    message = (
                        f"The requested {target.kind} '{target.identity}' does not exist or is not "
                        f"accessible after {max_absent} retries. Please verify the resource exists."
                    )
                add_api_action_error(diags, target, action, "PollForStatus", outcome.error, message)
                return last, False
        elif outcome.error is not None:
            add_api_action_error(diags, target, action, "PollForStatus", outcome.error)
            return last, False
        else:
            absent = 0
            last = outcome.value
            status = status_of(outcome.value)  # type: ignore[arg-type]
            if status in states:
                log.debug("{target} reached {status}", target=target, status=status)
                return last, True
            log.info("{status}... [{elapsed} elapsed]", status=status, elapsed=_elapsed(start))

        if not await deadline.sleep(interval):
            _report_deadline(diags, target, action, states, start, deadline.reason or "")
            return last, False


async def poll_until_deletion(
    deadline: Deadline,
    target: Target,
    *,
    interval: float,
    diags: Diagnostics,
    check: DeletionCheck,
    action: str = "delete",
) -> bool:
    """Poll `check` until the resource is gone.

    A check is terminal when it returns True or reports not-found. Any
    other error is logged and retried until the deadline. Running out of
    time only adds a warning: a stuck teardown never blocks the caller
    from dropping the resource.

    Returns:
        True if deletion was confirmed.
    """
    log = logger.bind(component="wait", kind=target.kind, identity=target.identity)
    start = time.monotonic()

    while True:
        outcome = await check(deadline)

        if outcome.not_found or (outcome.ok and outcome.value):
            log.debug("{target} deleted after {elapsed}", target=target, elapsed=_elapsed(start))
            return True
        if outcome.error is not None and not isinstance(outcome.error, DeadlineExceeded):
            log.warning(
                "Checking deletion of {target} failed: {error}. Retrying...",
                target=target, error=outcome.error,
            )
            outcome.release()

        if deadline.done or not await deadline.sleep(interval):
            add_general_warning(
                diags,
                target,
                action,
                f"{deadline.reason}: deletion of {target} was not confirmed "
                f"after {_elapsed(start)}",
            )
            return False
