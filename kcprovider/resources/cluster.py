"""Kubernetes Engine cluster lifecycle."""

from __future__ import annotations

from typing import Any, Final

from kcprovider.client import KakaoCloudClient
from kcprovider.constants import Action
from kcprovider.core.deadline import Deadline
from kcprovider.core.diagnostics import (
    Diagnostics,
    Target,
    add_api_action_error,
    check_resource_available_status,
)
from kcprovider.core.executor import Outcome
from kcprovider.core.wait import poll_until
from kcprovider.resources.common import (
    Entity,
    call,
    deadline_for,
    delete_and_wait,
    entity_fetcher,
    phase_of,
    unwrap_key,
)

TYPE_NAME: Final = "kakaocloud_kubernetes_engine_cluster"
TARGET: Final = Target(TYPE_NAME, "cluster")

STATUS_PROVISIONED: Final = "Provisioned"
STATUS_PROVISIONING: Final = "Provisioning"
STATUS_FAILED: Final = "Failed"
STATUS_DELETING: Final = "Deleting"

READY_OR_FAILED: Final = frozenset({STATUS_PROVISIONED, STATUS_FAILED})

POLL_INTERVAL: Final = 10.0
DELETE_POLL_INTERVAL: Final = 2.0

BASE_PATH: Final = "/api/v1/clusters"


def cluster_path(name: str) -> str:
    return f"{BASE_PATH}/{name}"


async def get_cluster(
    kc: KakaoCloudClient, deadline: Deadline, diags: Diagnostics, name: str
) -> Outcome[Entity]:
    fetch = entity_fetcher(
        kc, kc.kubernetes_engine, diags, cluster_path(name), "cluster", action=Action.READ
    )
    return await fetch(deadline)


async def wait_cluster(
    kc: KakaoCloudClient,
    deadline: Deadline,
    diags: Diagnostics,
    name: str,
    states: frozenset[str] = READY_OR_FAILED,
    *,
    action: str = Action.CREATE,
) -> tuple[Entity | None, bool]:
    return await poll_until(
        deadline,
        TARGET.named(name),
        interval=POLL_INTERVAL,
        states=states,
        diags=diags,
        fetch=entity_fetcher(
            kc, kc.kubernetes_engine, diags, cluster_path(name), "cluster", action=action
        ),
        status_of=phase_of,
        action=action,
    )


async def create_cluster(
    kc: KakaoCloudClient,
    diags: Diagnostics,
    spec: dict[str, Any],
    *,
    deadline: Deadline | None = None,
) -> Entity | None:
    """Create a cluster and wait until it is provisioned.

    Returns:
        The provisioned cluster, or None with errors in `diags`.
    """
    deadline = deadline_for(kc, Action.CREATE, deadline)
    name = spec["name"]
    target = TARGET.named(name)

    outcome = await call(
        kc, deadline, diags,
        lambda: kc.kubernetes_engine.post(BASE_PATH, json={"cluster": spec}),
        action=Action.CREATE,
    )
    if not outcome.ok:
        add_api_action_error(diags, target, Action.CREATE, "CreateCluster", outcome.error)
        return None

    result, ok = await wait_cluster(kc, deadline, diags, name)
    if not ok or result is None or diags.has_error():
        return None

    if not check_resource_available_status(
        diags, target, Action.CREATE, phase_of(result), {STATUS_PROVISIONED}
    ):
        return None
    return result


async def read_cluster(
    kc: KakaoCloudClient,
    diags: Diagnostics,
    name: str,
    *,
    deadline: Deadline | None = None,
) -> Entity | None:
    """Current cluster, or None if it no longer exists (or on error)."""
    deadline = deadline_for(kc, Action.READ, deadline)
    outcome = await get_cluster(kc, deadline, diags, name)
    if outcome.not_found:
        return None
    if not outcome.ok:
        add_api_action_error(diags, TARGET.named(name), Action.READ, "GetCluster", outcome.error)
        return None
    return outcome.value


async def update_cluster(
    kc: KakaoCloudClient,
    diags: Diagnostics,
    name: str,
    changes: dict[str, Any],
    *,
    deadline: Deadline | None = None,
) -> Entity | None:
    deadline = deadline_for(kc, Action.UPDATE, deadline)
    target = TARGET.named(name)

    if changes:
        outcome = await call(
            kc, deadline, diags,
            lambda: kc.kubernetes_engine.patch(cluster_path(name), json={"cluster": changes}),
            action=Action.UPDATE,
        )
        if not outcome.ok:
            add_api_action_error(diags, target, Action.UPDATE, "UpdateCluster", outcome.error)
            return None

    outcome = await call(
        kc, deadline, diags,
        lambda: kc.kubernetes_engine.get(cluster_path(name)),
        action=Action.UPDATE,
    )
    if not outcome.ok:
        add_api_action_error(diags, target, Action.UPDATE, "GetCluster", outcome.error)
        return None
    return unwrap_key("cluster")(outcome.value)


async def delete_cluster(
    kc: KakaoCloudClient,
    diags: Diagnostics,
    name: str,
    *,
    deadline: Deadline | None = None,
) -> bool:
    deadline = deadline_for(kc, Action.DELETE, deadline)
    return await delete_and_wait(
        kc, deadline, diags, TARGET.named(name),
        kc.kubernetes_engine, cluster_path(name),
        api_name="DeleteCluster",
        interval=DELETE_POLL_INTERVAL,
    )
