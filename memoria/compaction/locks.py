"""Per-session mutual exclusion for compaction."""

import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator


class SessionLocks:
    """
    Hands out one asyncio lock per session id.

    Locks are held weakly: a session's lock is dropped once nobody waits on
    or holds it. Sessions never share a lock.
    """

    def __init__(self):
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def get(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    def is_locked(self, session_id: str) -> bool:
        lock = self._locks.get(session_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        """Hold the session's lock for the duration of the block."""
        lock = self.get(session_id)
        async with lock:
            yield
