"""
Per-match serialization of board transitions.

Two players acting at the same moment must not both compute a "next
position" from the same read. Every transition on a match runs while
holding that match's lock; different matches use different locks and
never wait on each other.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class MatchLocks:
    """Registry of one asyncio.Lock per match id, created on demand."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    def lock_for(self, match_id: str) -> asyncio.Lock:
        lock = self._locks.get(match_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[match_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, match_id: str) -> AsyncIterator[None]:
        """Hold the match's lock for the duration of the block."""
        lock = self.lock_for(match_id)
        self._holders[match_id] = self._holders.get(match_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[match_id] -= 1
            if self._holders[match_id] == 0:
                # No holders or waiters left
                del self._holders[match_id]
                self._locks.pop(match_id, None)

    def is_locked(self, match_id: str) -> bool:
        lock = self._locks.get(match_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
