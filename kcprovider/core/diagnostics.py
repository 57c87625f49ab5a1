"""User-facing diagnostics collected during one resource operation.

Diagnostics is an append-only, order-preserving sink. Each handler
invocation owns exactly one instance and threads it through every core
call; the handler inspects `has_error()` afterwards to decide whether to
abort. Instances are never shared between tasks, so no locking is done.
"""

from __future__ import annotations

import json
from collections.abc import Collection, Iterator
from dataclasses import dataclass
from enum import StrEnum

from kcprovider.infra.http import HttpError


class Severity(StrEnum):
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Diagnostic:
    severity: Severity
    summary: str
    detail: str


@dataclass(frozen=True, slots=True)
class Target:
    """Identity of the remote resource an operation is about.

    Attributes:
        type_name: Resource type name, e.g. "kakaocloud_kubernetes_engine_cluster".
        kind: Human-readable kind, e.g. "cluster" or "node pool".
        identity: Name or id of the concrete resource.
    """

    type_name: str
    kind: str
    identity: str = ""

    def named(self, identity: str) -> Target:
        return Target(self.type_name, self.kind, identity)

    def __str__(self) -> str:
        return f"{self.kind} '{self.identity}'" if self.identity else self.kind


class Diagnostics:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[Diagnostic] = []

    def add_error(self, summary: str, detail: str) -> None:
        self._items.append(Diagnostic(Severity.ERROR, summary, detail))

    def add_warning(self, summary: str, detail: str) -> None:
        self._items.append(Diagnostic(Severity.WARNING, summary, detail))

    def extend(self, other: Diagnostics) -> None:
        self._items.extend(other)

    def has_error(self) -> bool:
        return any(d.severity is Severity.ERROR for d in self._items)

    def errors(self) -> list[Diagnostic]:
        return [d for d in self._items if d.severity is Severity.ERROR]

    def warnings(self) -> list[Diagnostic]:
        return [d for d in self._items if d.severity is Severity.WARNING]

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __repr__(self) -> str:
        return f"Diagnostics({self._items!r})"


# ─── Reporting helpers ───────────────────────────────────────────────


def _summary(target: Target, action: str) -> str:
    return f"{action.capitalize()} resource: {target.type_name}"


def _api_message(error: BaseException | None) -> str:
    if not isinstance(error, HttpError):
        return "no response body"
    if not error.body:
        return "no response body"
    try:
        parsed = json.loads(error.body)
    except ValueError as e:
        return str(e)
    if isinstance(parsed, dict) and isinstance(parsed.get("error"), dict):
        return str(parsed["error"].get("message", ""))
    return ""


def add_api_action_error(
    diags: Diagnostics,
    target: Target,
    action: str,
    api_name: str,
    error: BaseException | None,
    message: str | None = None,
) -> None:
    """Report a failed API call, surfacing the API's own error message.

    The detail carries the error plus either `message` or the
    `error.message` field of the JSON error body.
    """
    detail = message or _api_message(error)
    diags.add_error(
        _summary(target, action),
        f"Could not {action.lower()} {target.type_name} (API: {api_name}): {error}\n{detail}",
    )


def add_general_error(diags: Diagnostics, target: Target, action: str, message: str) -> None:
    diags.add_error(_summary(target, action), message)


def add_general_warning(diags: Diagnostics, target: Target, action: str, message: str) -> None:
    diags.add_warning(_summary(target, action), message)


def check_resource_available_status(
    diags: Diagnostics,
    target: Target,
    action: str,
    status: str | None,
    expected: Collection[str],
) -> bool:
    """Error unless `status` is one of `expected`; returns whether it was."""
    if status is None:
        add_general_error(diags, target, action, "status is nil")
        return False
    if status in expected:
        return True
    add_general_error(
        diags,
        target,
        action,
        f"Status is {status!r}, expected one of: {sorted(expected)}",
    )
    return False
