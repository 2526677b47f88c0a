"""Concurrency control for idempotency keys.

Serializes requests that share an (operation kind, idempotency key) pair
within one process, so a duplicate waits for the first request to commit
and then observes its tx id instead of broadcasting again.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

logger = logging.getLogger(__name__)


class LockTimeoutError(Exception):
    """Raised when a lock cannot be acquired within the timeout period."""

    pass


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.holders = 0


class KeyedLocks:
    """Registry of asyncio locks keyed by string.

    Entries are dropped once no task holds or waits on them, so the
    registry does not grow with the number of distinct keys.

    Example:
        locks = KeyedLocks()
        async with locks.hold("hd.transfer:order-42", timeout=30):
            ...
    """

    def __init__(self):
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def is_locked(self, key: str) -> bool:
        entry = self._entries.get(key)
        return bool(entry and entry.lock.locked())

    @asynccontextmanager
    async def hold(
        self,
        key: str,
        timeout: Optional[float] = 30.0,
    ) -> AsyncIterator[None]:
        """Hold the lock for ``key``.

        Args:
            key: Lock key
            timeout: Maximum time to wait for lock (None = wait forever)

        Raises:
            LockTimeoutError: If the lock is not acquired in time
        """
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _Entry()
        entry.holders += 1

        acquired = False
        try:
            try:
                if timeout:
                    await asyncio.wait_for(entry.lock.acquire(), timeout=timeout)
                else:
                    await entry.lock.acquire()
                acquired = True
            except asyncio.TimeoutError:
                logger.warning(f"Lock timeout for {key} after {timeout}s")
                raise LockTimeoutError(f"Could not acquire lock for {key} within {timeout}s")

            logger.debug(f"Lock acquired: {key}")
            yield

        finally:
            if acquired:
                entry.lock.release()
                logger.debug(f"Lock released: {key}")
            entry.holders -= 1
            if entry.holders == 0:
                self._entries.pop(key, None)
