"""Duplicate-dispatch guard.

Keeps the keys of every message that has been dispatched successfully during
the life of the process. Keys are never evicted.

The guard also hands out per-key locks. Holding the lock for a key across a
whole send closes the window between "check duplicate" and "mark sent", so
concurrent sends of the same content cannot both reach a provider.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from mail_dispatcher.types import MessageKey

__all__ = ["DedupGuard"]


@dataclass(slots=True)
class _KeyLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class DedupGuard:
    """Set of message keys that have been sent successfully."""

    def __init__(self) -> None:
        self._sent: set[MessageKey] = set()
        self._locks: dict[MessageKey, _KeyLock] = {}

    def is_duplicate(self, key: MessageKey) -> bool:
        """Return True if a dispatch for this key has already succeeded."""
        return key in self._sent

    def mark_sent(self, key: MessageKey) -> None:
        """Record a successful dispatch for this key."""
        self._sent.add(key)

    def __contains__(self, key: object) -> bool:
        return key in self._sent

    def __len__(self) -> int:
        return len(self._sent)

    @asynccontextmanager
    async def hold(self, key: MessageKey) -> AsyncIterator[None]:
        """Serialize callers working on the same key.

        The lock entry is dropped once nobody holds or waits for it, so the
        lock table only grows with concurrently active keys.

        Args:
            key: Key to lock
        """
        entry = self._locks.get(key)
        if entry is None:
            entry = _KeyLock()
            self._locks[key] = entry
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                _ = self._locks.pop(key, None)

    def active_locks(self) -> int:
        """Return the number of keys currently held or awaited."""
        return len(self._locks)
