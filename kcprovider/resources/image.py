"""Image lifecycle."""

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

TYPE_NAME: Final = "kakaocloud_image"
TARGET: Final = Target(TYPE_NAME, "image")

STATUS_ACTIVE: Final = "active"
STATUS_QUEUED: Final = "queued"
STATUS_SAVING: Final = "saving"
STATUS_KILLED: Final = "killed"
STATUS_DELETED: Final = "deleted"

ACTIVE_OR_FAILED: Final = frozenset({STATUS_ACTIVE, STATUS_KILLED, STATUS_DELETED})

POLL_INTERVAL: Final = 2.0

BASE_PATH: Final = "/api/v1/images"


def image_path(image_id: str) -> str:
    return f"{BASE_PATH}/{image_id}"


async def wait_image(
    kc: KakaoCloudClient,
    deadline: Deadline,
    diags: Diagnostics,
    image_id: str,
    states: frozenset[str] = ACTIVE_OR_FAILED,
    *,
    action: str = Action.CREATE,
) -> tuple[Entity | None, bool]:
    return await poll_until(
        deadline,
        TARGET.named(image_id),
        interval=POLL_INTERVAL,
        states=states,
        diags=diags,
        fetch=entity_fetcher(kc, kc.image, diags, image_path(image_id), "image", action=action),
        status_of=phase_of,
        action=action,
    )


async def create_image(
    kc: KakaoCloudClient,
    diags: Diagnostics,
    spec: dict[str, Any],
    *,
    deadline: Deadline | None = None,
) -> Entity | None:
    """Create an image and wait for it to become active."""
    deadline = deadline_for(kc, Action.CREATE, deadline)
    target = TARGET.named(spec.get("name", ""))

    outcome = await call(
        kc, deadline, diags,
        lambda: kc.image.post(BASE_PATH, json={"image": spec}),
        action=Action.CREATE,
    )
    if not outcome.ok:
        add_api_action_error(diags, target, Action.CREATE, "CreateImage", outcome.error)
        return None

    created = unwrap_key("image")(outcome.value)
    image_id = created.get("id") if isinstance(created, dict) else None
    if not image_id:
        add_general_error(diags, target, Action.CREATE, "image id missing from create response")
        return None

    result, ok = await wait_image(kc, deadline, diags, image_id)
    if not ok or result is None:
        return None
    if not check_resource_available_status(
        diags, TARGET.named(image_id), Action.CREATE, phase_of(result), {STATUS_ACTIVE}
    ):
        return None
    return result


async def read_image(
    kc: KakaoCloudClient,
    diags: Diagnostics,
    image_id: str,
    *,
    deadline: Deadline | None = None,
) -> Entity | None:
    deadline = deadline_for(kc, Action.READ, deadline)
    fetch = entity_fetcher(kc, kc.image, diags, image_path(image_id), "image", action=Action.READ)
    outcome = await fetch(deadline)
    if outcome.not_found:
        return None
    if not outcome.ok:
        add_api_action_error(diags, TARGET.named(image_id), Action.READ, "GetImage", outcome.error)
        return None
    return outcome.value


async def update_image(
    kc: KakaoCloudClient,
    diags: Diagnostics,
    image_id: str,
    changes: dict[str, Any],
    *,
    deadline: Deadline | None = None,
) -> Entity | None:
    deadline = deadline_for(kc, Action.UPDATE, deadline)
    outcome = await call(
        kc, deadline, diags,
        lambda: kc.image.patch(image_path(image_id), json={"image": changes}),
        action=Action.UPDATE,
    )
    if not outcome.ok:
        add_api_action_error(
            diags, TARGET.named(image_id), Action.UPDATE, "UpdateImage", outcome.error
        )
        return None

    result, ok = await wait_image(
        kc, deadline, diags, image_id, frozenset({STATUS_ACTIVE}), action=Action.UPDATE
    )
    return result if ok else None


async def delete_image(
    kc: KakaoCloudClient,
    diags: Diagnostics,
    image_id: str,
    *,
    deadline: Deadline | None = None,
) -> bool:
    deadline = deadline_for(kc, Action.DELETE, deadline)
    return await delete_and_wait(
        kc, deadline, diags, TARGET.named(image_id),
        kc.image, image_path(image_id),
        api_name="DeleteImage",
        interval=POLL_INTERVAL,
    )
