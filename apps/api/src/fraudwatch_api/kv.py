"""Key-value store with per-key locking.

One-time code records live behind this interface so the single-process
dictionary can later be swapped for a shared store without touching the
OTC state machine. Callers hold ``lock(key)`` across every
read-check-write sequence on a key.
"""

import asyncio
import weakref
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from fraudwatch_shared.schemas import utcnow


class KeyValueStore(ABC):
    """Async key-value store contract."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Value for a key, or None if absent or past its TTL."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Store a value, optionally expiring after ``ttl_seconds``."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove a key. Returns True if it existed."""

    @abstractmethod
    async def keys(self) -> list[str]:
        """Snapshot of the live keys."""

    @abstractmethod
    def lock(self, key: str) -> asyncio.Lock:
        """Mutex serializing access to one key."""


class InMemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store for a single process.

    Not shared across process instances. Per-key locks are created on demand
    and dropped once no coroutine holds a reference to them.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self._clock = clock or utcnow
        self._data: dict[str, tuple[Any, datetime | None]] = {}
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    async def get(self, key: str) -> Any | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            self._data.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        expires_at = None
        if ttl_seconds is not None:
            expires_at = self._clock() + timedelta(seconds=ttl_seconds)
        self._data[key] = (value, expires_at)

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def keys(self) -> list[str]:
        return list(self._data)

    def lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def __len__(self) -> int:
        return len(self._data)
