"""Cache entry type, provider protocol and the default in-memory provider.

A provider is a keyed store of :class:`CacheEntry` objects with TTL expiry
and a bounded number of entries.  Every operation is a coroutine so that
remote stores (Redis, memcached, ...) can be substituted without changing the
pipeline; the in-memory provider simply never suspends.

Expiry is lazy: an entry past its TTL is removed the next time it is read.
Capacity is enforced eagerly on write by dropping the least recently
*written* key -- reads never refresh recency.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import Any, Callable, Optional, Protocol, runtime_checkable

DEFAULT_MAX_ENTRIES = 1000

Clock = Callable[[], float]


def now_ms() -> float:
    """Wall-clock time in milliseconds."""
    return time.time() * 1000


@dataclass(frozen=True)
class CacheEntry:
    """A cached value with the time it was stored and its time-to-live.

    Attributes:
        value: The cached payload.
        stored_at: Store time in milliseconds.  ``None`` lets the provider
            stamp the entry with its own clock on :meth:`CacheProvider.set`.
        ttl_ms: Lifetime in milliseconds.
    """

    value: Any
    stored_at: Optional[float] = None
    ttl_ms: int = 0

    def is_live(self, now: float) -> bool:
        """Return ``True`` while ``now - stored_at <= ttl_ms`` (boundary inclusive)."""
        if self.stored_at is None:
            return True
        return now - self.stored_at <= self.ttl_ms


@runtime_checkable
class CacheProvider(Protocol):
    """Contract every cache backend must honour."""

    async def get(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for *key*, or ``None`` when absent or expired."""
        ...

    async def set(self, key: str, entry: CacheEntry) -> None:
        """Store *entry* under *key*, evicting the oldest write when full."""
        ...

    async def flush(self) -> None:
        """Remove every entry."""
        ...


class MemoryCacheProvider:
    """In-process cache provider backed by an insertion-ordered dict.

    Args:
        max_entries: Capacity.  ``0`` evicts every insert immediately.
        clock: Millisecond clock, injectable for tests.

    Example::

        provider = MemoryCacheProvider(max_entries=2)
        await provider.set("a", CacheEntry(value=1, ttl_ms=1_000))
        entry = await provider.get("a")
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES, clock: Clock = now_ms) -> None:
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._max_entries = max(0, max_entries)
        self._clock = clock

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not entry.is_live(self._clock()):
            del self._entries[key]
            return None
        return entry

    async def set(self, key: str, entry: CacheEntry) -> None:
        if entry.stored_at is None:
            entry = replace(entry, stored_at=self._clock())
        # Re-inserting moves the key to the newest position.
        self._entries.pop(key, None)
        self._entries[key] = entry
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    async def flush(self) -> None:
        self._entries.clear()
