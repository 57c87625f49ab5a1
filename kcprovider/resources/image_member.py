"""Image sharing: the set of projects an image is shared with."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Final

from kcprovider.client import KakaoCloudClient
from kcprovider.constants import Action
from kcprovider.core.deadline import Deadline
from kcprovider.core.diagnostics import Diagnostics, Target, add_api_action_error
from kcprovider.core.executor import Outcome
from kcprovider.core.locks import lock_for
from kcprovider.core.wait import Fetch, poll_until
from kcprovider.resources.common import Entity, call, deadline_for

TYPE_NAME: Final = "kakaocloud_image_member"
TARGET: Final = Target(TYPE_NAME, "image member")

STATUS_SHARED: Final = "shared"
STATUS_PENDING: Final = "pending"

POLL_INTERVAL: Final = 2.0


@dataclass(frozen=True, slots=True)
class Membership:
    members: tuple[Entity, ...]
    wanted: frozenset[str]

    @property
    def shared_ids(self) -> frozenset[str]:
        return frozenset(str(m.get("id")) for m in self.members if m.get("is_shared"))

    @property
    def status(self) -> str:
        return STATUS_SHARED if self.wanted <= self.shared_ids else STATUS_PENDING


def members_path(image_id: str) -> str:
    return f"/api/v1/images/{image_id}/members"


def member_path(image_id: str, project_id: str) -> str:
    return f"{members_path(image_id)}/{project_id}"


def _members(data: Any) -> tuple[Entity, ...]:
    if isinstance(data, dict):
        return tuple(data.get("members") or ())
    return ()


def membership_fetcher(
    kc: KakaoCloudClient,
    diags: Diagnostics,
    image_id: str,
    wanted: Iterable[str] = (),
    *,
    action: str,
) -> Fetch[Membership]:
    wanted = frozenset(wanted)

    async def fetch(deadline: Deadline) -> Outcome[Membership]:
        outcome = await call(
            kc, deadline, diags, lambda: kc.image.get(members_path(image_id)), action=action
        )
        return outcome.map(lambda data: Membership(_members(data), wanted))

    return fetch


async def share_image(
    kc: KakaoCloudClient,
    diags: Diagnostics,
    image_id: str,
    project_ids: list[str],
    *,
    deadline: Deadline | None = None,
) -> Membership | None:
    """Share an unshared image with `project_ids` and wait until all are shared."""
    deadline = deadline_for(kc, Action.CREATE, deadline)
    target = TARGET.named(image_id)
    fetch = membership_fetcher(kc, diags, image_id, project_ids, action=Action.CREATE)

    async with lock_for(image_id):
        current = await fetch(deadline)
        if not current.ok:
            add_api_action_error(
                diags, target, Action.CREATE, "ListImageSharedProjects", current.error
            )
            return None
        if current.value is not None and current.value.shared_ids:
            diags.add_error(
                "Image already has shared members",
                f"Image {image_id!r} already has shared members. "
                "Remove them first before applying.",
            )
            return None

        for project_id in project_ids:
            outcome = await call(
                kc, deadline, diags,
                lambda project_id=project_id: kc.image.post(member_path(image_id, project_id)),
                action=Action.CREATE,
            )
            if not outcome.ok:
                add_api_action_error(diags, target, Action.CREATE, "AddImageShare", outcome.error)
                return None

    result, ok = await poll_until(
        deadline,
        target,
        interval=POLL_INTERVAL,
        states={STATUS_SHARED},
        diags=diags,
        fetch=fetch,
        status_of=lambda membership: membership.status,
        action=Action.CREATE,
    )
    return result if ok else None


async def read_image_members(
    kc: KakaoCloudClient,
    diags: Diagnostics,
    image_id: str,
    *,
    deadline: Deadline | None = None,
) -> Membership | None:
    deadline = deadline_for(kc, Action.READ, deadline)
    outcome = await membership_fetcher(kc, diags, image_id, action=Action.READ)(deadline)
    if outcome.not_found:
        return None
    if not outcome.ok:
        add_api_action_error(
            diags, TARGET.named(image_id), Action.READ, "ListImageSharedProjects", outcome.error
        )
        return None
    return outcome.value


async def unshare_image(
    kc: KakaoCloudClient,
    diags: Diagnostics,
    image_id: str,
    project_ids: list[str],
    *,
    deadline: Deadline | None = None,
) -> bool:
    """Remove each project share; a missing share or image ends the loop."""
    deadline = deadline_for(kc, Action.DELETE, deadline)
    target = TARGET.named(image_id)

    async with lock_for(image_id):
        for project_id in project_ids:
            outcome = await call(
                kc, deadline, diags,
                lambda project_id=project_id: kc.image.delete(member_path(image_id, project_id)),
                action=Action.DELETE,
            )
            if outcome.not_found:
                return True
            if not outcome.ok:
                add_api_action_error(
                    diags, target, Action.DELETE, "RemoveImageShare", outcome.error
                )
                return False
    return True
