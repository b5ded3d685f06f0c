"""Disk-backed cache provider.

Uses :mod:`diskcache` to persist cached Content API responses on the
filesystem so that repeated ``capi`` invocations (or several worker
processes on one host) share one cache.  The provider honours the same
contract as :class:`~capi_client.cache.provider.MemoryCacheProvider`:

* TTL expiry is checked on read against the entry's own ``stored_at`` and
  ``ttl_ms`` (boundary inclusive) and expired rows are deleted.
* Capacity is counted in entries, not bytes.  Overwriting a key deletes and
  re-inserts the row so that it becomes the newest; the oldest row (by
  insertion order) is dropped when the store is over capacity.

Values must be picklable.  The pipeline only stores plain response
snapshots (``status_code``, ``headers``, ``body``).

See Also:
    :class:`~capi_client.models.CacheConfig` -- ``backend="disk"`` selects
    this provider.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import diskcache

from capi_client.cache.provider import DEFAULT_MAX_ENTRIES, CacheEntry, Clock, now_ms


class DiskCacheProvider:
    """Cache provider storing entries in a :class:`diskcache.Cache` directory.

    Args:
        cache_dir: Root directory for the cache.  A ``responses/``
            subdirectory is created inside it.
        max_entries: Capacity in entries.  ``0`` evicts every insert.
        clock: Millisecond clock, injectable for tests.

    Example::

        from capi_client.cache import DiskCacheProvider

        with DiskCacheProvider("/tmp/capi-cache") as provider:
            await provider.set("key", CacheEntry(value={"body": {}}, ttl_ms=60_000))
    """

    def __init__(
        self,
        cache_dir: str | Path,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Clock = now_ms,
    ) -> None:
        self._cache_dir = Path(cache_dir)
        self._max_entries = max(0, max_entries)
        self._clock = clock
        self._cache = diskcache.Cache(str(self._cache_dir / "responses"))

    @property
    def directory(self) -> Path:
        return self._cache_dir / "responses"

    def __len__(self) -> int:
        return len(self._cache)

    def __enter__(self) -> DiskCacheProvider:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    async def get(self, key: str) -> Optional[CacheEntry]:
        """Look up a live entry.

        Returns:
            The :class:`CacheEntry`, or ``None`` on a miss.  An expired row
            is deleted before returning ``None``.
        """
        raw = self._cache.get(key)
        if raw is None:
            return None
        entry = _entry_from_row(raw)
        if not entry.is_live(self._clock()):
            self._cache.delete(key)
            return None
        return entry

    async def set(self, key: str, entry: CacheEntry) -> None:
        """Store *entry*, then trim the oldest rows beyond ``max_entries``."""
        stored_at = entry.stored_at if entry.stored_at is not None else self._clock()
        # diskcache keeps the row position on update; delete so the key
        # becomes the newest row.
        self._cache.delete(key)
        self._cache.set(
            key,
            {"value": entry.value, "stored_at": stored_at, "ttl_ms": entry.ttl_ms},
        )
        while len(self._cache) > self._max_entries:
            try:
                oldest, _ = self._cache.peekitem(last=False)
            except KeyError:
                break
            self._cache.delete(oldest)

    async def flush(self) -> None:
        """Remove all entries from the cache."""
        self._cache.clear()

    def stats(self) -> dict[str, Any]:
        """Return ``size``, ``directory`` and ``max_entries``."""
        return {
            "size": len(self._cache),
            "directory": str(self.directory),
            "max_entries": self._max_entries,
        }

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        self._cache.close()


def _entry_from_row(raw: dict[str, Any]) -> CacheEntry:
    return CacheEntry(
        value=raw.get("value"),
        stored_at=raw.get("stored_at"),
        ttl_ms=raw.get("ttl_ms", 0),
    )
