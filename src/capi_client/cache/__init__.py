"""Response caching for capi_client.

This package provides the pluggable cache used by the request pipeline:

* :class:`CacheEntry` / :class:`CacheProvider` -- the entry type and the
  async ``get``/``set``/``flush`` contract any backend must honour.
* :class:`MemoryCacheProvider` -- default in-process TTL/LRU store.
* :class:`DiskCacheProvider` -- :mod:`diskcache`-backed store shared across
  processes.
* :func:`create_strategy` and the ``cache-first``, ``network-first`` and
  ``swr`` strategies that decide between cached and network results.

The cache is consumed by :class:`~capi_client.pipeline.RequestPipeline` and
is controlled by the ``cache`` section of a
:class:`~capi_client.models.ClientConfig`.
"""

from capi_client.cache.disk import DiskCacheProvider
from capi_client.cache.provider import (
    DEFAULT_MAX_ENTRIES,
    CacheEntry,
    CacheProvider,
    MemoryCacheProvider,
    now_ms,
)
from capi_client.cache.strategies import (
    CacheStrategy,
    SwrStrategy,
    cache_first,
    create_strategy,
    network_first,
)

__all__ = [
    "DEFAULT_MAX_ENTRIES",
    "CacheEntry",
    "CacheProvider",
    "CacheStrategy",
    "DiskCacheProvider",
    "MemoryCacheProvider",
    "SwrStrategy",
    "cache_first",
    "create_strategy",
    "network_first",
    "now_ms",
]
