from __future__ import annotations

import asyncio
import time

import pytest

from kcprovider.core.deadline import Deadline
from kcprovider.core.diagnostics import Diagnostics, Severity, Target
from kcprovider.core.exceptions import CANCELLED, DEADLINE_EXCEEDED, DeadlineExceeded
from kcprovider.core.executor import Outcome
from kcprovider.core.wait import Absence, poll_until, poll_until_deletion

pytestmark = [pytest.mark.unit, pytest.mark.xdist_group("unit")]

TARGET = Target("kakaocloud_kubernetes_engine_cluster", "cluster", "demo")
READY = {"Provisioned"}


def phase(entity: dict) -> str:
    return entity["status"]["phase"]


@pytest.fixture
def sleeps(monkeypatch) -> list[float]:
    """Record Deadline.sleep calls without actually sleeping."""
    recorded: list[float] = []

    async def fake_sleep(self: Deadline, delay: float) -> bool:
        recorded.append(delay)
        return not self.done

    monkeypatch.setattr(Deadline, "sleep", fake_sleep)
    return recorded


# ─── poll_until ──────────────────────────────────────────────────────


class TestPollUntil:
    @pytest.mark.asyncio
    async def test_ready_on_first_fetch(self, scripted, entity, sleeps):
        fetch = scripted(entity("Provisioned", name="demo"))
        diags = Diagnostics()

        result, ok = await poll_until(
            Deadline.after(5), TARGET, interval=3, states=READY,
            diags=diags, fetch=fetch, status_of=phase,
        )

        assert ok
        assert result["name"] == "demo"
        assert fetch.calls == 1
        assert sleeps == []
        assert not diags

    @pytest.mark.asyncio
    async def test_n_fetches_n_minus_one_sleeps(self, scripted, entity, sleeps):
        fetch = scripted(
            entity("Provisioning"), entity("Provisioning"), entity("Provisioning"),
            entity("Provisioned"),
        )

        _, ok = await poll_until(
            Deadline.after(5), TARGET, interval=7, states=READY,
            diags=Diagnostics(), fetch=fetch, status_of=phase,
        )

        assert ok
        assert fetch.calls == 4
        assert sleeps == [7, 7, 7]

    @pytest.mark.asyncio
    async def test_short_interval_wall_clock(self, scripted, entity):
        fetch = scripted(entity("Provisioning"), entity("Provisioning"), entity("Provisioned"))
        start = time.monotonic()

        _, ok = await poll_until(
            Deadline.after(5), TARGET, interval=0.01, states={"Provisioned", "Failed"},
            diags=Diagnostics(), fetch=fetch, status_of=phase,
        )

        assert ok
        assert 0.015 <= time.monotonic() - start < 1
        assert fetch.calls == 3

    @pytest.mark.asyncio
    async def test_failure_state_is_returned_to_caller(self, scripted, entity, sleeps):
        fetch = scripted(entity("Provisioning"), entity("Failed"))
        diags = Diagnostics()

        result, ok = await poll_until(
            Deadline.after(5), TARGET, interval=1, states={"Provisioned", "Failed"},
            diags=diags, fetch=fetch, status_of=phase,
        )

        assert ok
        assert phase(result) == "Failed"
        assert not diags

    @pytest.mark.asyncio
    async def test_deadline_during_sleep_reports_once(self, scripted, entity):
        fetch = scripted(entity("Provisioning"))
        diags = Diagnostics()
        start = time.monotonic()

        result, ok = await poll_until(
            Deadline.after(0.05), TARGET, interval=10, states=READY,
            diags=diags, fetch=fetch, status_of=phase, action="create",
        )

        assert time.monotonic() - start < 1
        assert not ok
        assert phase(result) == "Provisioning"
        assert fetch.calls == 1
        (d,) = diags
        assert d.severity is Severity.ERROR
        assert d.summary == "Create resource: kakaocloud_kubernetes_engine_cluster"
        assert d.detail.startswith(f"{DEADLINE_EXCEEDED}: cluster 'demo' did not reach")
        assert "['Provisioned']" in d.detail

    @pytest.mark.asyncio
    async def test_deadline_in_fetch_reports_once(self, scripted, entity, sleeps):
        fetch = scripted(entity("Provisioning"), Outcome.failed(DeadlineExceeded()))
        diags = Diagnostics()

        result, ok = await poll_until(
            Deadline.after(5), TARGET, interval=1, states=READY,
            diags=diags, fetch=fetch, status_of=phase,
        )

        assert not ok
        assert phase(result) == "Provisioning"
        assert len(diags) == 1
        assert DEADLINE_EXCEEDED in next(iter(diags)).detail

    @pytest.mark.asyncio
    async def test_cancel_mid_sleep_returns_fast(self, scripted, entity):
        fetch = scripted(entity("Provisioning"))
        deadline = Deadline.never()
        asyncio.get_running_loop().call_later(0.02, deadline.cancel)
        diags = Diagnostics()
        start = time.monotonic()

        _, ok = await poll_until(
            deadline, TARGET, interval=30, states=READY,
            diags=diags, fetch=fetch, status_of=phase,
        )

        assert time.monotonic() - start < 1
        assert not ok
        (d,) = diags
        assert d.detail.startswith(CANCELLED)

    @pytest.mark.asyncio
    async def test_timeout_narrower_than_deadline(self, scripted, entity):
        fetch = scripted(entity("Provisioning"))
        diags = Diagnostics()
        start = time.monotonic()

        _, ok = await poll_until(
            Deadline.never(), TARGET, interval=10, states=READY,
            diags=diags, fetch=fetch, status_of=phase, timeout=0.05,
        )

        assert time.monotonic() - start < 1
        assert not ok
        assert len(diags.errors()) == 1

    @pytest.mark.asyncio
    async def test_api_error_is_fatal(self, scripted, http_error, sleeps):
        fetch = scripted(Outcome.failed(http_error(500, '{"error": {"message": "boom"}}')))
        diags = Diagnostics()

        _, ok = await poll_until(
            Deadline.after(5), TARGET, interval=1, states=READY,
            diags=diags, fetch=fetch, status_of=phase, action="update",
        )

        assert not ok
        assert fetch.calls == 1
        (d,) = diags
        assert "(API: PollForStatus): HTTP 500" in d.detail
        assert d.detail.endswith("\nboom")


class TestAbsence:
    @pytest.mark.asyncio
    async def test_retries_until_visible(self, scripted, http_error, entity, sleeps):
        fetch = scripted(
            Outcome.failed(http_error(404)), Outcome.failed(http_error(404)),
            entity("Provisioned"),
        )
        diags = Diagnostics()

        _, ok = await poll_until(
            Deadline.after(5), TARGET, interval=1, states=READY,
            diags=diags, fetch=fetch, status_of=phase,
        )

        assert ok
        assert fetch.calls == 3
        assert not diags

    @pytest.mark.asyncio
    async def test_gives_up_after_max_absent(self, scripted, http_error, sleeps):
        fetch = scripted(Outcome.failed(http_error(404)))
        diags = Diagnostics()

        _, ok = await poll_until(
            Deadline.after(5), TARGET, interval=1, states=READY,
            diags=diags, fetch=fetch, status_of=phase, max_absent=2,
        )

        assert not ok
        assert fetch.calls == 3
        assert len(sleeps) == 2
        (d,) = diags
        assert "does not exist or is not accessible after 2 retries" in d.detail

    @pytest.mark.asyncio
    async def test_counter_resets_on_success(self, scripted, http_error, entity, sleeps):
        missing = Outcome.failed(http_error(404))
        fetch = scripted(
            missing, entity("Provisioning"), missing, entity("Provisioned"),
        )

        _, ok = await poll_until(
            Deadline.after(5), TARGET, interval=1, states=READY,
            diags=Diagnostics(), fetch=fetch, status_of=phase, max_absent=1,
        )

        assert ok

    @pytest.mark.asyncio
    async def test_fail_policy(self, scripted, http_error, sleeps):
        fetch = scripted(Outcome.failed(http_error(404, '{"error": {"message": "no such cluster"}}')))
        diags = Diagnostics()

        _, ok = await poll_until(
            Deadline.after(5), TARGET, interval=1, states=READY,
            diags=diags, fetch=fetch, status_of=phase, on_absent=Absence.FAIL,
        )

        assert not ok
        assert fetch.calls == 1
        assert next(iter(diags)).detail.endswith("\nno such cluster")


# ─── poll_until_deletion ─────────────────────────────────────────────


class TestPollUntilDeletion:
    @pytest.mark.asyncio
    async def test_already_gone(self, scripted, http_error, sleeps):
        check = scripted(Outcome.failed(http_error(404)))
        diags = Diagnostics()

        assert await poll_until_deletion(
            Deadline.after(5), TARGET, interval=2, diags=diags, check=check
        )
        assert check.calls == 1
        assert sleeps == []
        assert not diags

    @pytest.mark.asyncio
    async def test_gone_on_third_check(self, scripted, http_error, sleeps):
        check = scripted(Outcome(value=False), Outcome(value=False), Outcome.failed(http_error(404)))

        assert await poll_until_deletion(
            Deadline.after(5), TARGET, interval=2, diags=Diagnostics(), check=check
        )
        assert check.calls == 3
        assert sleeps == [2, 2]

    @pytest.mark.asyncio
    async def test_check_reports_true(self, scripted, sleeps):
        check = scripted(Outcome(value=False), Outcome(value=True))

        assert await poll_until_deletion(
            Deadline.after(5), TARGET, interval=1, diags=Diagnostics(), check=check
        )
        assert check.calls == 2

    @pytest.mark.asyncio
    async def test_errors_are_retried_and_released(self, scripted, http_error, sleeps):
        err = http_error(500)
        check = scripted(Outcome.failed(err), Outcome.failed(http_error(404)))
        diags = Diagnostics()

        assert await poll_until_deletion(
            Deadline.after(5), TARGET, interval=1, diags=diags, check=check
        )
        assert err.raw.released == 1
        assert not diags

    @pytest.mark.asyncio
    async def test_timeout_is_a_warning(self, scripted):
        check = scripted(Outcome(value=False))
        diags = Diagnostics()
        start = time.monotonic()

        gone = await poll_until_deletion(
            Deadline.after(0.05), TARGET, interval=10, diags=diags, check=check
        )

        assert time.monotonic() - start < 1
        assert not gone
        assert not diags.has_error()
        (d,) = diags.warnings()
        assert d.summary == "Delete resource: kakaocloud_kubernetes_engine_cluster"
        assert d.detail.startswith(f"{DEADLINE_EXCEEDED}: deletion of cluster 'demo' was not confirmed")
