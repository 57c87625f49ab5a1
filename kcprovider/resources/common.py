"""Building blocks shared by the resource handlers."""

from __future__ import annotations

from typing import Any, TypeAlias, TypeVar

from kcprovider.client import KakaoCloudClient
from kcprovider.constants import Action
from kcprovider.core.deadline import Deadline
from kcprovider.core.diagnostics import Diagnostics, Target, add_api_action_error
from kcprovider.core.executor import Outcome, RemoteOperation, execute
from kcprovider.core.wait import Fetch, poll_until_deletion
from kcprovider.infra.http import HttpClient

Entity: TypeAlias = dict[str, Any]
T = TypeVar("T")


def deadline_for(kc: KakaoCloudClient, action: Action, deadline: Deadline | None) -> Deadline:
    """Caller deadline, or one derived from the configured action timeout."""
    if deadline is not None:
        return deadline
    return Deadline.after(kc.timeouts.for_action(action))


async def call(
    kc: KakaoCloudClient,
    deadline: Deadline,
    diags: Diagnostics,
    op: RemoteOperation[T],
    *,
    action: str,
) -> Outcome[T]:
    return await execute(deadline, kc, diags, op, action=action, settings=kc.retry)


def unwrap_key(key: str) -> Any:
    def extract(data: Any) -> Any:
        return data[key] if isinstance(data, dict) and key in data else data

    return extract


def entity_fetcher(
    kc: KakaoCloudClient,
    http: HttpClient,
    diags: Diagnostics,
    path: str,
    key: str,
    *,
    action: str,
) -> Fetch[Entity]:
    """Fetch closure GETting `path` and unwrapping the `key` envelope."""

    async def fetch(deadline: Deadline) -> Outcome[Entity]:
        outcome = await call(kc, deadline, diags, lambda: http.get(path), action=action)
        return outcome.map(unwrap_key(key))

    return fetch


def phase_of(entity: Entity | None) -> str:
    """Status phase of `entity`; empty for a missing or malformed body."""
    if not isinstance(entity, dict):
        return ""
    status = entity.get("status")
    if isinstance(status, dict):
        return str(status.get("phase", ""))
    return str(status or "")


async def delete_and_wait(
    kc: KakaoCloudClient,
    deadline: Deadline,
    diags: Diagnostics,
    target: Target,
    http: HttpClient,
    path: str,
    *,
    api_name: str,
    interval: float,
    check_path: str | None = None,
) -> bool:
    """DELETE `path`, then poll GET `check_path` (default: `path`) until 404.

    A 404 on the delete itself means the resource is already gone.

    Returns:
        False only if the delete request failed; an unconfirmed deletion
        is reported as a warning and still returns True.
    """
    outcome = await call(kc, deadline, diags, lambda: http.delete(path), action=Action.DELETE)
    if outcome.not_found:
        return True
    if not outcome.ok:
        add_api_action_error(diags, target, Action.DELETE, api_name, outcome.error)
        return False

    async def check(deadline: Deadline) -> Outcome[bool]:
        probe = await call(kc, deadline, diags, lambda: http.get(check_path or path), action=Action.DELETE)
        return probe.map(lambda _: False)

    await poll_until_deletion(deadline, target, interval=interval, diags=diags, check=check)
    return True
