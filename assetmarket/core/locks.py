"""Per-asset mutual exclusion for marketplace operations.

Operations on the same asset id run one at a time. Ownership of a lock is
tracked by the asyncio task that acquired it, so a task that already holds
an asset may enter ``hold`` again, while tasks it spawns are ordinary
contenders and wait like any other request.
"""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class AssetLockRegistry:
    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = weakref.WeakValueDictionary()
        self._holders: dict[int, asyncio.Task] = {}

    def _lock_for(self, asset_id: int) -> asyncio.Lock:
        lock = self._locks.get(asset_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[asset_id] = lock
        return lock

    def is_held(self, asset_id: int) -> bool:
        """True if the current task is inside ``hold(asset_id)``."""
        task = asyncio.current_task()
        return task is not None and self._holders.get(asset_id) is task

    @asynccontextmanager
    async def hold(self, asset_id: int) -> AsyncIterator[None]:
        if self.is_held(asset_id):
            yield
            return

        lock = self._lock_for(asset_id)
        async with lock:
            self._holders[asset_id] = asyncio.current_task()
            try:
                yield
            finally:
                del self._holders[asset_id]


asset_locks = AssetLockRegistry()
