"""The request pipeline: cache, strategy, cv and throttle around the transport.

For every GET the pipeline

1. adds the held content version (``cv``) to published CDN queries,
2. decides whether the request may be answered from the cache,
3. hands the cached result (if any) and a network loader to the strategy,
4. on every network result, feeds the rate-limit header back into the
   throttle and updates the held ``cv``; a changed ``cv`` flushes the whole
   cache.

Other methods go straight through the throttle to the transport.  The held
``cv`` lives on the pipeline instance, so independently configured clients
never share it.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from capi_client.cache.provider import CacheEntry, CacheProvider
from capi_client.cache.strategies import CacheStrategy
from capi_client.client.transport import ApiResult, Transport
from capi_client.cv import Cv, apply_cv_to_query, extract_cv
from capi_client.request import create_cache_key, normalize_path, should_use_cache
from capi_client.throttle import ThrottleManager

logger = logging.getLogger(__name__)


class RequestPipeline:
    """Orchestrates one client's requests.

    Args:
        transport: Sends the HTTP requests.
        throttle: Gate shared by every request of the client.
        cache_provider: Store for cached response snapshots.
        strategy: Cache consistency strategy.
        ttl_ms: Lifetime of cache entries written by the pipeline.
        throw_on_error: Make the transport raise failures instead of
            returning them on the result.
    """

    def __init__(
        self,
        transport: Transport,
        throttle: ThrottleManager,
        cache_provider: CacheProvider,
        strategy: CacheStrategy,
        ttl_ms: int,
        throw_on_error: bool = False,
        cache_enabled: bool = True,
    ) -> None:
        self.transport = transport
        self.throttle = throttle
        self.cache_provider = cache_provider
        self.strategy = strategy
        self.ttl_ms = ttl_ms
        self.throw_on_error = throw_on_error
        self.cache_enabled = cache_enabled
        self._cv: Optional[Cv] = None

    @property
    def cv(self) -> Optional[Cv]:
        """Content version of the most recent successful response."""
        return self._cv

    async def request(
        self,
        method: str,
        path: str,
        query: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> ApiResult:
        method = method.upper()
        path = normalize_path(path)
        raw_query: Mapping[str, Any] = query or {}

        if method != "GET":
            return await self._send(method, path, raw_query, body, headers)

        effective_query = apply_cv_to_query(path, raw_query, self._cv)

        if not (self.cache_enabled and should_use_cache(method, path, raw_query)):
            return await self._send(method, path, effective_query, body, headers)

        key = create_cache_key(method, path, raw_query)
        entry = await self.cache_provider.get(key)
        cached_result = ApiResult.from_snapshot(entry.value) if entry is not None else None

        async def load_network() -> ApiResult:
            result = await self._send(method, path, effective_query, body, headers)
            if result.error is None:
                await self.cache_provider.set(
                    key, CacheEntry(value=result.to_snapshot(), ttl_ms=self.ttl_ms)
                )
            return result

        return await self.strategy(key, cached_result, load_network)

    async def _send(
        self,
        method: str,
        path: str,
        query: Mapping[str, Any],
        body: Any,
        headers: Optional[Mapping[str, str]],
    ) -> ApiResult:
        """Throttled transport call followed by rate-limit and cv bookkeeping."""

        async def call() -> ApiResult:
            result = await self.transport.request(
                method,
                path,
                query=query,
                body=body,
                headers=headers,
                throw_on_error=self.throw_on_error,
            )
            self.throttle.adapt_to_response(result.response)
            return result

        result = await self.throttle.execute(path, query, call)
        await self._update_cv(result)
        return result

    async def _update_cv(self, result: ApiResult) -> None:
        cv = extract_cv(result)
        if cv is None:
            return
        if self._cv is not None and cv != self._cv:
            logger.debug("Content version changed from %s to %s, flushing cache", self._cv, cv)
            await self.cache_provider.flush()
        self._cv = cv
