"""High-level Content API client.

:class:`ApiClient` assembles one :class:`~capi_client.pipeline.RequestPipeline`
from a :class:`~capi_client.models.ClientConfig` (cache provider, strategy,
throttle manager and transport) and exposes it through generic HTTP verbs
and per-resource helpers.  Every piece of mutable state (cache, held ``cv``,
throttle queues) belongs to the instance, so several clients with different
settings can run side by side.

Example::

    from capi_client import create_api_client

    async with create_api_client("public-token", region="us") as client:
        result = await client.stories.get("home", {"version": "published"})
        if result.ok:
            print(result.data["story"]["name"])
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Mapping, Optional

import httpx

from capi_client.cache.disk import DiskCacheProvider
from capi_client.cache.provider import CacheProvider, MemoryCacheProvider
from capi_client.cache.strategies import CacheStrategy, SwrStrategy, StrategyLike, create_strategy
from capi_client.client.hooks import HookRunner
from capi_client.client.resources import (
    DatasourceEntries,
    Datasources,
    Links,
    Spaces,
    Stories,
    Tags,
)
from capi_client.client.transport import ApiResult, Transport
from capi_client.config import get_cache_dir, resolve_credential
from capi_client.cv import Cv, apply_cv_to_query
from capi_client.models import ClientConfig, RateLimitConfig
from capi_client.pipeline import RequestPipeline
from capi_client.relations import (
    STORIES_PATH,
    build_relation_map,
    fetch_missing_relations,
    inline_stories_content,
    inline_story_content,
    parse_resolve_relations,
)
from capi_client.throttle import DEFAULT_INTERVAL_MS, create_throttle_manager

logger = logging.getLogger(__name__)


class ApiClient:
    """Asynchronous client for the Content Delivery API.

    Use as an async context manager, or call :meth:`aclose` when done.

    Args:
        config: Client configuration.
        cache_provider: Custom cache store.  Defaults to the backend named
            by ``config.cache.backend``.
        strategy: Custom strategy callable or a strategy name overriding
            ``config.cache.strategy``.
        http_transport: Optional :mod:`httpx` transport (tests use
            :class:`httpx.MockTransport`).
        rate_limit_interval_ms: Length of the throttle admission window.
    """

    def __init__(
        self,
        config: ClientConfig,
        cache_provider: Optional[CacheProvider] = None,
        strategy: Optional[StrategyLike] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        rate_limit_interval_ms: float = DEFAULT_INTERVAL_MS,
    ) -> None:
        self._config = config
        self.hooks = HookRunner()

        self._transport = Transport(config, http_transport=http_transport, hook_runner=self.hooks)
        if config.access_token is None and config.access_token_source:
            self._transport.set_token(resolve_credential(config.access_token_source))

        self._cache_provider = cache_provider or _default_cache_provider(config)
        self._strategy: CacheStrategy = create_strategy(strategy or config.cache.strategy)
        self._throttle = create_throttle_manager(config.rate_limit, interval_ms=rate_limit_interval_ms)
        self._pipeline = RequestPipeline(
            transport=self._transport,
            throttle=self._throttle,
            cache_provider=self._cache_provider,
            strategy=self._strategy,
            ttl_ms=config.cache.ttl_ms,
            throw_on_error=config.throw_on_error,
            cache_enabled=config.cache.enabled,
        )

        self.stories = Stories(self)
        self.links = Links(self)
        self.datasources = Datasources(self)
        self.datasource_entries = DatasourceEntries(self)
        self.tags = Tags(self)
        self.spaces = Spaces(self)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> ApiClient:
        await self._transport.__aenter__()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Wait for background revalidations, then release connections."""
        if isinstance(self._strategy, SwrStrategy):
            await self._strategy.drain()
        await self._transport.aclose()
        if isinstance(self._cache_provider, DiskCacheProvider):
            self._cache_provider.close()

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def cv(self) -> Optional[Cv]:
        """Content version held by this client's pipeline."""
        return self._pipeline.cv

    @property
    def cache_provider(self) -> CacheProvider:
        return self._cache_provider

    @property
    def strategy(self) -> CacheStrategy:
        return self._strategy

    @property
    def pipeline(self) -> RequestPipeline:
        return self._pipeline

    def set_token(self, token: str) -> None:
        """Switch the access token, e.g. from a public to a preview token."""
        self._transport.set_token(token)

    # ------------------------------------------------------------------ #
    # Generic verbs
    # ------------------------------------------------------------------ #

    async def request(
        self,
        method: str,
        path: str,
        query: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> ApiResult:
        return await self._pipeline.request(method, path, query=query, body=body, headers=headers)

    async def get(self, path: str, query: Optional[Mapping[str, Any]] = None) -> ApiResult:
        return await self.request("GET", path, query)

    async def post(
        self, path: str, query: Optional[Mapping[str, Any]] = None, body: Any = None
    ) -> ApiResult:
        return await self.request("POST", path, query, body)

    async def put(
        self, path: str, query: Optional[Mapping[str, Any]] = None, body: Any = None
    ) -> ApiResult:
        return await self.request("PUT", path, query, body)

    async def patch(
        self, path: str, query: Optional[Mapping[str, Any]] = None, body: Any = None
    ) -> ApiResult:
        return await self.request("PATCH", path, query, body)

    async def delete(
        self, path: str, query: Optional[Mapping[str, Any]] = None, body: Any = None
    ) -> ApiResult:
        return await self.request("DELETE", path, query, body)

    # ------------------------------------------------------------------ #
    # Relations
    # ------------------------------------------------------------------ #

    async def resolve_relations(self, result: ApiResult, query: Mapping[str, Any]) -> ApiResult:
        """Inline ``resolve_relations`` targets into a stories response.

        A no-op unless ``inline_relations`` is enabled and *result* is a
        successful response.  Stories listed in ``rel_uuids`` but missing
        from ``rels`` are fetched first.  The returned result carries new
        ``story`` / ``stories`` values; ``rels`` and ``rel_uuids`` are left
        as returned by the API.

        Raises:
            CapiError: If fetching a missing relation fails.
        """
        if not self._config.inline_relations or result.error is not None:
            return result
        data = result.data
        if not isinstance(data, dict):
            return result
        paths = parse_resolve_relations(query)
        if not paths:
            return result

        relation_map = build_relation_map(data.get("rels"))
        missing = [uuid for uuid in data.get("rel_uuids") or [] if uuid not in relation_map]
        if missing:
            context = apply_cv_to_query(STORIES_PATH, query, self._pipeline.cv)
            fetched = await fetch_missing_relations(
                self._transport, missing, context, self._throttle
            )
            relation_map.update(build_relation_map(fetched))

        inlined = dict(data)
        if isinstance(data.get("story"), dict):
            inlined["story"] = inline_story_content(data["story"], paths, relation_map)
        if isinstance(data.get("stories"), list):
            inlined["stories"] = inline_stories_content(data["stories"], paths, relation_map)
        return dataclasses.replace(result, data=inlined)


def _default_cache_provider(config: ClientConfig) -> CacheProvider:
    if config.cache.backend == "disk":
        return DiskCacheProvider(get_cache_dir(), max_entries=config.cache.max_entries)
    return MemoryCacheProvider(max_entries=config.cache.max_entries)


def create_api_client(
    access_token: Optional[str] = None,
    *,
    cache_provider: Optional[CacheProvider] = None,
    strategy: Optional[StrategyLike] = None,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
    rate_limit_interval_ms: float = DEFAULT_INTERVAL_MS,
    **options: Any,
) -> ApiClient:
    """Build an :class:`ApiClient` from keyword options.

    *options* are :class:`ClientConfig` fields.  ``rate_limit`` additionally
    accepts ``False`` (no throttling) or an ``int`` (fixed starts per
    second).

    Example::

        client = create_api_client(
            "public-token",
            cache={"strategy": "swr", "ttl_ms": 5_000},
            rate_limit=10,
        )
    """
    rate_limit = options.get("rate_limit")
    if rate_limit is False:
        options["rate_limit"] = RateLimitConfig(enabled=False)
    elif isinstance(rate_limit, int) and not isinstance(rate_limit, bool):
        options["rate_limit"] = RateLimitConfig(max_concurrent=rate_limit)
    elif rate_limit is None or rate_limit is True:
        options.pop("rate_limit", None)

    config = ClientConfig(access_token=access_token, **options)
    return ApiClient(
        config,
        cache_provider=cache_provider,
        strategy=strategy,
        http_transport=http_transport,
        rate_limit_interval_ms=rate_limit_interval_ms,
    )
