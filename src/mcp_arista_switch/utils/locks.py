"""Per-switch serialization of cache-rewriting operations."""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class SwitchLocks:
    """Hands out one asyncio.Lock per switch id.

    Interface/VLAN sync clear and rewrite a switch's cache rows; holding the
    switch lock keeps two syncs of the same switch from interleaving their
    delete and insert phases. Different switches never block each other.
    """

    def __init__(self):
        self._locks: dict[int, asyncio.Lock] = {}

    def get(self, switch_id: int) -> asyncio.Lock:
        lock = self._locks.get(switch_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[switch_id] = lock
        return lock

    def locked(self, switch_id: int) -> bool:
        lock = self._locks.get(switch_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, switch_id: int) -> AsyncIterator[None]:
        async with self.get(switch_id):
            yield
