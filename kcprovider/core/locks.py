"""Process-wide locks keyed by resource id.

Some APIs reject concurrent mutations of children that share a parent
(node pools of one cluster, scaling schedules of one node pool). Handlers
hold `lock_for(parent_id)` around such mutations.
"""

from __future__ import annotations

import asyncio
import threading

_registry_lock = threading.Lock()
_locks: dict[str, asyncio.Lock] = {}


def lock_for(key: str) -> asyncio.Lock:
    with _registry_lock:
        lock = _locks.get(key)
        if lock is None:
            lock = _locks[key] = asyncio.Lock()
        return lock


def _reset() -> None:
    with _registry_lock:
        _locks.clear()
