"""Cache consistency strategies.

A strategy receives the cache key, the cached result (``None`` on a miss)
and a zero-argument coroutine factory that loads -- and caches -- a fresh
result from the network.  It decides which of the two the caller gets:

``cache-first``
    Serve the cached result when there is one; otherwise load.
``network-first``
    Always load; fall back to the cached result only when loading raises.
``swr`` (stale-while-revalidate)
    Serve the cached result immediately and refresh it in the background,
    at most one refresh per key at a time.  Background failures are logged
    and dropped.

One strategy instance is created per client and shared by every call on it.
Custom strategies only need to match :class:`CacheStrategy`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol, Union

from capi_client.models import CacheStrategyName

logger = logging.getLogger(__name__)

LoadNetwork = Callable[[], Awaitable[Any]]


class CacheStrategy(Protocol):
    """Signature shared by the built-in strategies and custom ones."""

    def __call__(
        self,
        key: str,
        cached_result: Optional[Any],
        load_network: LoadNetwork,
    ) -> Awaitable[Any]: ...


async def cache_first(key: str, cached_result: Optional[Any], load_network: LoadNetwork) -> Any:
    """Return the cached result when present, without touching the network."""
    if cached_result is not None:
        return cached_result
    return await load_network()


async def network_first(key: str, cached_result: Optional[Any], load_network: LoadNetwork) -> Any:
    """Load from the network; fall back to the cached result when that raises."""
    try:
        return await load_network()
    except Exception:
        if cached_result is None:
            raise
        logger.debug("Network load failed for %s, serving cached result", key, exc_info=True)
        return cached_result


class SwrStrategy:
    """Stale-while-revalidate strategy with per-key background refreshes.

    In-flight refreshes are tracked as :class:`asyncio.Task` objects keyed by
    cache key.  A second call for a key whose refresh is still pending does
    not start another one; unrelated keys refresh independently.
    """

    def __init__(self) -> None:
        self._in_flight: dict[str, asyncio.Task[Any]] = {}

    @property
    def in_flight(self) -> frozenset[str]:
        """Cache keys with a background refresh still running."""
        return frozenset(self._in_flight)

    async def __call__(
        self,
        key: str,
        cached_result: Optional[Any],
        load_network: LoadNetwork,
    ) -> Any:
        if cached_result is None:
            return await load_network()

        if key not in self._in_flight:
            task = asyncio.get_running_loop().create_task(self._revalidate(key, load_network))
            self._in_flight[key] = task
        return cached_result

    async def _revalidate(self, key: str, load_network: LoadNetwork) -> None:
        try:
            await load_network()
        except Exception:
            logger.debug("Background revalidation failed for %s", key, exc_info=True)
        finally:
            self._in_flight.pop(key, None)

    async def drain(self) -> None:
        """Wait for every pending background refresh to finish."""
        while self._in_flight:
            await asyncio.gather(*self._in_flight.values(), return_exceptions=True)


StrategyLike = Union[CacheStrategyName, str, CacheStrategy]


def create_strategy(strategy: StrategyLike = CacheStrategyName.CACHE_FIRST) -> CacheStrategy:
    """Resolve a strategy name (or pass through a custom callable).

    Raises:
        ValueError: If *strategy* is an unknown name.
    """
    if callable(strategy) and not isinstance(strategy, str):
        return strategy
    name = CacheStrategyName(strategy)
    if name is CacheStrategyName.NETWORK_FIRST:
        return network_first
    if name is CacheStrategyName.SWR:
        return SwrStrategy()
    return cache_first
