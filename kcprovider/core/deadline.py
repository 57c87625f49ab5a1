"""Absolute deadlines with cooperative cancellation.

A Deadline is the per-operation "context" every core primitive receives:
an optional absolute expiry on the monotonic clock plus a cancellation
signal. Both suspension points of the core (the remote call and the
inter-poll sleep) go through it, so expiry or cancel() wakes them within
one tick instead of at the next scheduled fetch.

Example:
    deadline = Deadline.after(30 * 60)
    if not await deadline.sleep(5.0):
        ...  # expired or cancelled while sleeping
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Awaitable
from typing import TypeVar

from kcprovider.core.exceptions import CANCELLED, DEADLINE_EXCEEDED, DeadlineExceeded


T = TypeVar("T")


class Deadline:
    __slots__ = ("_expires_at", "_cancelled")

    def __init__(
        self,
        expires_at: float | None = None,
        *,
        _cancelled: asyncio.Event | None = None,
    ) -> None:
        self._expires_at = expires_at
        self._cancelled = _cancelled if _cancelled is not None else asyncio.Event()

    @classmethod
    def after(cls, seconds: float | None) -> Deadline:
        """Deadline `seconds` from now; None means no expiry."""
        if seconds is None:
            return cls()
        return cls(time.monotonic() + seconds)

    @classmethod
    def never(cls) -> Deadline:
        return cls()

    def child(self, timeout: float | None) -> Deadline:
        """Narrower deadline sharing this one's cancellation signal."""
        if timeout is None:
            return Deadline(self._expires_at, _cancelled=self._cancelled)
        expires_at = time.monotonic() + timeout
        if self._expires_at is not None:
            expires_at = min(expires_at, self._expires_at)
        return Deadline(expires_at, _cancelled=self._cancelled)

    @property
    def expires_at(self) -> float | None:
        return self._expires_at

    def remaining(self) -> float | None:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return self._expires_at is not None and time.monotonic() >= self._expires_at

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def done(self) -> bool:
        return self.cancelled or self.expired

    @property
    def reason(self) -> str | None:
        if self.cancelled:
            return CANCELLED
        if self.expired:
            return DEADLINE_EXCEEDED
        return None

    def cancel(self) -> None:
        self._cancelled.set()

    def error(self) -> DeadlineExceeded:
        return DeadlineExceeded(self.reason or DEADLINE_EXCEEDED)

    async def sleep(self, delay: float) -> bool:
        """Sleep for `delay` seconds unless the deadline fires first.

        Returns:
            True if the full delay elapsed and the deadline is still live.
        """
        if self.done:
            return False
        remaining = self.remaining()
        timeout = delay if remaining is None else min(delay, remaining)
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._cancelled.wait(), timeout=timeout)
        return not self.done

    async def run(self, aw: Awaitable[T]) -> T:
        """Await `aw`, abandoning it on expiry or cancellation.

        Raises:
            DeadlineExceeded: If the deadline fired before `aw` finished.
        """
        if self.done:
            if asyncio.iscoroutine(aw):
                aw.close()
            raise self.error()

        task = asyncio.ensure_future(aw)
        waiter = asyncio.ensure_future(self._cancelled.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
            await asyncio.gather(task, waiter, return_exceptions=True)

        if task not in done:
            raise self.error()
        return task.result()

    def __repr__(self) -> str:
        return f"Deadline(remaining={self.remaining()!r}, cancelled={self.cancelled})"
