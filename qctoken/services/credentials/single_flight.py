"""Per-key single-flight guard.

Concurrent refreshes of the same credential must not race: each would spend
the same refresh token and the provider invalidates it after first use. The
guard serializes holders of a key; callers re-read state after acquiring it so
a waiter sees the tokens the previous holder wrote.

The guard is per process; refreshes from other processes are serialized by
the row lease in CredentialService.
"""
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager


class SingleFlight:
    """Keyed asyncio locks that are dropped once nobody holds or awaits them."""

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                # Locks bind to the running loop; never keep one past its last user
                del self._waiters[key]
                self._locks.pop(key, None)

    def in_flight(self, key: Hashable) -> bool:
        return key in self._locks


refresh_guard = SingleFlight()
