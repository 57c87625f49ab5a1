"""Scheduled scaling of a node pool.

The API has no per-schedule GET, so both creation and deletion are
confirmed by polling the node pool's schedule list for the named entry.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Final

from kcprovider.client import KakaoCloudClient
from kcprovider.constants import Action
from kcprovider.core.deadline import Deadline
from kcprovider.core.diagnostics import Diagnostics, Target, add_api_action_error
from kcprovider.core.executor import Outcome
from kcprovider.core.locks import lock_for
from kcprovider.core.wait import Fetch, poll_until, poll_until_deletion
from kcprovider.resources.common import Entity, call, deadline_for

TYPE_NAME: Final = "kakaocloud_kubernetes_engine_scheduled_scaling"
TARGET: Final = Target(TYPE_NAME, "scheduled scaling")

STATUS_FOUND: Final = "found"
STATUS_PENDING: Final = "pending"

POLL_INTERVAL: Final = 2.0


@dataclass(frozen=True, slots=True)
class ScheduleLookup:
    item: Entity | None = None

    @property
    def status(self) -> str:
        return STATUS_FOUND if self.item is not None else STATUS_PENDING


def schedules_path(cluster_name: str, node_pool_name: str) -> str:
    return f"/api/v1/clusters/{cluster_name}/node-pools/{node_pool_name}/scheduled-scaling"


def _find(data: Any, name: str) -> ScheduleLookup:
    items = data.get("scheduled_scaling", []) if isinstance(data, dict) else []
    for item in items or ():
        if item.get("name") == name:
            return ScheduleLookup(item)
    return ScheduleLookup()


def schedule_lookup(
    kc: KakaoCloudClient,
    diags: Diagnostics,
    cluster_name: str,
    node_pool_name: str,
    name: str,
    *,
    action: str,
) -> Fetch[ScheduleLookup]:
    path = schedules_path(cluster_name, node_pool_name)

    async def fetch(deadline: Deadline) -> Outcome[ScheduleLookup]:
        outcome = await call(kc, deadline, diags, lambda: kc.kubernetes_engine.get(path), action=action)
        return outcome.map(lambda data: _find(data, name))

    return fetch


async def create_scheduled_scaling(
    kc: KakaoCloudClient,
    diags: Diagnostics,
    cluster_name: str,
    node_pool_name: str,
    spec: dict[str, Any],
    *,
    deadline: Deadline | None = None,
) -> Entity | None:
    deadline = deadline_for(kc, Action.CREATE, deadline)
    name = spec["name"]
    target = TARGET.named(name)
    path = schedules_path(cluster_name, node_pool_name)

    async with lock_for(f"{cluster_name}/{node_pool_name}"):
        outcome = await call(
            kc, deadline, diags,
            lambda: kc.kubernetes_engine.post(path, json={"scheduled_scaling": spec}),
            action=Action.CREATE,
        )
    if not outcome.ok:
        add_api_action_error(
            diags, target, Action.CREATE, "CreateNodePoolScheduledScaling", outcome.error
        )
        return None

    result, ok = await poll_until(
        deadline,
        target,
        interval=POLL_INTERVAL,
        states={STATUS_FOUND},
        diags=diags,
        fetch=schedule_lookup(kc, diags, cluster_name, node_pool_name, name, action=Action.CREATE),
        status_of=lambda lookup: lookup.status,
        action=Action.CREATE,
    )
    if not ok or result is None:
        return None
    return result.item


async def read_scheduled_scaling(
    kc: KakaoCloudClient,
    diags: Diagnostics,
    cluster_name: str,
    node_pool_name: str,
    name: str,
    *,
    deadline: Deadline | None = None,
) -> Entity | None:
    deadline = deadline_for(kc, Action.READ, deadline)
    fetch = schedule_lookup(kc, diags, cluster_name, node_pool_name, name, action=Action.READ)
    outcome = await fetch(deadline)
    if outcome.not_found:
        return None
    if not outcome.ok:
        add_api_action_error(
            diags, TARGET.named(name), Action.READ, "ListNodePoolScheduledScalings", outcome.error
        )
        return None
    return outcome.value.item  # type: ignore[union-attr]


async def delete_scheduled_scaling(
    kc: KakaoCloudClient,
    diags: Diagnostics,
    cluster_name: str,
    node_pool_name: str,
    name: str,
    *,
    deadline: Deadline | None = None,
) -> bool:
    deadline = deadline_for(kc, Action.DELETE, deadline)
    target = TARGET.named(name)
    path = f"{schedules_path(cluster_name, node_pool_name)}/{name}"

    async with lock_for(f"{cluster_name}/{node_pool_name}"):
        outcome = await call(
            kc, deadline, diags, lambda: kc.kubernetes_engine.delete(path), action=Action.DELETE
        )
    if outcome.not_found:
        return True
    if not outcome.ok:
        add_api_action_error(
            diags, target, Action.DELETE, "DeleteNodePoolScheduledScaling", outcome.error
        )
        return False

    lookup = schedule_lookup(kc, diags, cluster_name, node_pool_name, name, action=Action.DELETE)

    async def check(deadline: Deadline) -> Outcome[bool]:
        return (await lookup(deadline)).map(lambda found: found.item is None)

    await poll_until_deletion(deadline, target, interval=POLL_INTERVAL, diags=diags, check=check)
    return True
