"""Per-key mutual exclusion for find-then-replace upserts.

The device APIs have no transactions: two renewals of the same subscriber
racing through lookup and write can leave duplicate or clobbered
artifacts. `KeyedLock` serializes such sequences per natural key within
this process. It does not coordinate across processes.
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class KeyedLock:
    """Async lock per key, released entries are dropped.

    Example:
        locks = KeyedLock()
        async with locks.hold(("router-1", "10.0.0.5")):
            ...  # find, remove, add
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._waiters: dict[Hashable, int] = defaultdict(int)

    def __len__(self) -> int:
        return len(self._locks)

    def locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        """Hold the lock for `key` for the duration of the block."""
        self._waiters[key] += 1
        lock = self._locks[key]
        try:
            async with lock:
                logger.debug(f"Acquired upsert lock {key!r}")
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                self._locks.pop(key, None)
