from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from kcprovider.core import locks
from kcprovider.core.executor import Outcome, RetrySettings
from kcprovider.infra.http import HttpError, Response


class FakeRaw:
    """Stands in for an aiohttp response; counts release() calls."""

    def __init__(self) -> None:
        self.released = 0

    def release(self) -> None:
        self.released += 1


class StubClient:
    def __init__(self, fail: BaseException | None = None) -> None:
        self.refreshes = 0
        self.fail = fail

    async def refresh(self) -> None:
        self.refreshes += 1
        if self.fail is not None:
            raise self.fail


class Scripted:
    """Async callable replaying `steps`: exceptions are raised, values returned.

    The last step repeats once the script is exhausted.
    """

    def __init__(self, *steps: Any) -> None:
        self.steps = list(steps)
        self.calls = 0

    async def __call__(self, *_: Any) -> Any:
        step = self.steps[min(self.calls, len(self.steps) - 1)]
        self.calls += 1
        if isinstance(step, BaseException):
            raise step
        return step


@pytest.fixture(autouse=True)
def _reset_locks():
    yield
    locks._reset()


@pytest.fixture
def fake_raw() -> type[FakeRaw]:
    return FakeRaw


@pytest.fixture
def stub_client() -> StubClient:
    return StubClient()


@pytest.fixture
def stub_client_factory() -> type[StubClient]:
    return StubClient


@pytest.fixture
def scripted() -> type[Scripted]:
    return Scripted


@pytest.fixture
def ok() -> Callable[..., Response[Any]]:
    def make(data: Any = None, status: int = 200) -> Response[Any]:
        return Response(status=status, data=data, headers={}, raw=FakeRaw())

    return make


@pytest.fixture
def http_error() -> Callable[..., HttpError]:
    def make(status: int, body: str = "") -> HttpError:
        return HttpError(status=status, body=body, raw=FakeRaw())

    return make


@pytest.fixture
def entity() -> Callable[..., Outcome[dict[str, Any]]]:
    def make(status: str, **fields: Any) -> Outcome[dict[str, Any]]:
        return Outcome(value={"status": {"phase": status}, **fields})

    return make


@pytest.fixture
def fast_retry() -> RetrySettings:
    return RetrySettings(
        max_attempts=3,
        rate_limit_attempts=4,
        backoff_initial=0.001,
        backoff_max=0.005,
    )
