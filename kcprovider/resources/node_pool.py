"""Kubernetes Engine node pool lifecycle.

Node pools of one cluster are mutated one at a time (`lock_for(cluster)`);
the API rejects overlapping create/update/delete calls on a cluster.
"""

from __future__ import annotations

from typing import Any, Final

from kcprovider.client import KakaoCloudClient
from kcprovider.constants import Action
from kcprovider.core.deadline import Deadline
from kcprovider.core.diagnostics import (
    Diagnostics,
    Target,
    add_api_action_error,
    add_general_error,
    check_resource_available_status,
)
from kcprovider.core.exceptions import DEADLINE_EXCEEDED
from kcprovider.core.locks import lock_for
from kcprovider.core.wait import poll_until
from kcprovider.resources.common import (
    Entity,
    call,
    deadline_for,
    delete_and_wait,
    entity_fetcher,
    phase_of,
)

TYPE_NAME: Final = "kakaocloud_kubernetes_engine_node_pool"
TARGET: Final = Target(TYPE_NAME, "node pool")

STATUS_RUNNING: Final = "Running"
STATUS_RUNNING_SCHEDULING_DISABLED: Final = "RunningSchedulingDisabled"
STATUS_PROVISIONING: Final = "Provisioning"
STATUS_PENDING: Final = "Pending"
STATUS_SCALING: Final = "Scaling"
STATUS_UPDATING: Final = "Updating"
STATUS_FAILED: Final = "Failed"
STATUS_DELETING: Final = "Deleting"

READY: Final = frozenset({STATUS_RUNNING, STATUS_RUNNING_SCHEDULING_DISABLED})
READY_OR_FAILED: Final = READY | {STATUS_FAILED, STATUS_DELETING}
READY_TO_DELETE: Final = READY | {STATUS_FAILED, STATUS_PENDING}

IMMUTABLE_FIELDS: Final = (
    "name",
    "flavor_id",
    "volume_size",
    "ssh_key_name",
    "image_id",
    "is_hyper_threading",
    "taints",
    "vpc_info",
)

POLL_INTERVAL: Final = 5.0
DELETE_POLL_INTERVAL: Final = 10.0


def node_pools_path(cluster_name: str) -> str:
    return f"/api/v1/clusters/{cluster_name}/node-pools"


def node_pool_path(cluster_name: str, name: str) -> str:
    return f"{node_pools_path(cluster_name)}/{name}"


async def wait_node_pool(
    kc: KakaoCloudClient,
    deadline: Deadline,
    diags: Diagnostics,
    cluster_name: str,
    name: str,
    states: frozenset[str] = READY_OR_FAILED,
    *,
    action: str = Action.CREATE,
) -> tuple[Entity | None, bool]:
    """Wait for the node pool to reach `states`.

    A deadline failure gets an extra, plainer error naming the node pool
    and the ready states it never reached.
    """
    target = TARGET.named(name)
    seen = len(diags)
    result, ok = await poll_until(
        deadline,
        target,
        interval=POLL_INTERVAL,
        states=states,
        diags=diags,
        fetch=entity_fetcher(
            kc, kc.kubernetes_engine, diags,
            node_pool_path(cluster_name, name), "node_pool", action=action,
        ),
        status_of=phase_of,
        action=action,
    )
    if not ok and any(DEADLINE_EXCEEDED in d.detail for d in list(diags)[seen:]):
        add_general_error(
            diags, target, action,
            f"Node Pool {name} did not reach one of the following states: {sorted(READY)}.",
        )
    return result, ok


async def create_node_pool(
    kc: KakaoCloudClient,
    diags: Diagnostics,
    cluster_name: str,
    spec: dict[str, Any],
    *,
    deadline: Deadline | None = None,
) -> Entity | None:
    deadline = deadline_for(kc, Action.CREATE, deadline)
    name = spec["name"]
    target = TARGET.named(name)

    async with lock_for(cluster_name):
        outcome = await call(
            kc, deadline, diags,
            lambda: kc.kubernetes_engine.post(node_pools_path(cluster_name), json={"node_pool": spec}),
            action=Action.CREATE,
        )
        if not outcome.ok:
            add_api_action_error(diags, target, Action.CREATE, "CreateNodePool", outcome.error)
            return None

        result, ok = await wait_node_pool(kc, deadline, diags, cluster_name, name)

    if not ok or result is None or diags.has_error():
        return None
    if not check_resource_available_status(diags, target, Action.CREATE, phase_of(result), READY):
        return None
    return result


def immutable_changes(state: dict[str, Any], plan: dict[str, Any]) -> list[str]:
    return [f for f in IMMUTABLE_FIELDS if f in plan and plan[f] != state.get(f)]


async def update_node_pool(
    kc: KakaoCloudClient,
    diags: Diagnostics,
    cluster_name: str,
    state: dict[str, Any],
    plan: dict[str, Any],
    *,
    deadline: Deadline | None = None,
) -> Entity | None:
    """Apply the mutable differences between `state` and `plan`.

    Waits for the node pool to settle before patching, then for it to be
    ready (or failed) afterwards.
    """
    deadline = deadline_for(kc, Action.UPDATE, deadline)
    name = state["name"]
    target = TARGET.named(name)

    if changed := immutable_changes(state, plan):
        diags.add_error(
            "Immutable field update attempted",
            "The following fields cannot be updated in-place and require "
            f"resource replacement: {changed}",
        )
        return None

    changes = {k: v for k, v in plan.items() if k not in IMMUTABLE_FIELDS and state.get(k) != v}

    async with lock_for(cluster_name):
        _, ok = await wait_node_pool(
            kc, deadline, diags, cluster_name, name, READY_TO_DELETE, action=Action.UPDATE
        )
        if not ok:
            return None

        if changes:
            outcome = await call(
                kc, deadline, diags,
                lambda: kc.kubernetes_engine.patch(
                    node_pool_path(cluster_name, name), json={"node_pool": changes}
                ),
                action=Action.UPDATE,
            )
            if not outcome.ok:
                add_api_action_error(diags, target, Action.UPDATE, "UpdateNodePool", outcome.error)
                return None

        result, ok = await wait_node_pool(
            kc, deadline, diags, cluster_name, name, action=Action.UPDATE
        )

    if not ok or result is None:
        return None
    if not check_resource_available_status(diags, target, Action.UPDATE, phase_of(result), READY):
        return None
    return result


async def delete_node_pool(
    kc: KakaoCloudClient,
    diags: Diagnostics,
    cluster_name: str,
    name: str,
    *,
    deadline: Deadline | None = None,
) -> bool:
    deadline = deadline_for(kc, Action.DELETE, deadline)
    async with lock_for(cluster_name):
        return await delete_and_wait(
            kc, deadline, diags, TARGET.named(name),
            kc.kubernetes_engine, node_pool_path(cluster_name, name),
            api_name="DeleteNodePool",
            interval=DELETE_POLL_INTERVAL,
        )
