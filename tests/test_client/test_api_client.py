"""End-to-end tests for ApiClient over httpx.MockTransport."""

from __future__ import annotations

import httpx
import pytest

from capi_client.cache import DiskCacheProvider, MemoryCacheProvider, SwrStrategy
from capi_client.client import ApiClient, create_api_client
from capi_client.exceptions import NotFoundError, ServerError
from capi_client.models import ClientConfig, Region
from capi_client.throttle import DisabledThrottleManager, FixedThrottleManager, TieredThrottleManager


class _Cms:
    """Tiny in-memory Content API."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.cv = 1
        self.version = 1
        self.stories: dict[str, dict] = {}
        self.fail_by_uuids = False

    def add(self, uuid: str, slug: str, content: dict | None = None) -> dict:
        story = {"uuid": uuid, "full_slug": slug, "name": slug.title(), "id": len(self.stories) + 1, "content": content or {}}
        self.stories[uuid] = story
        return story

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        params = request.url.params

        if path == "/v2/cdn/stories":
            if "by_uuids" in params:
                if self.fail_by_uuids:
                    return httpx.Response(500, json={"error": "boom"})
                uuids = params["by_uuids"].split(",")
                return self._ok({"stories": [self.stories[u] for u in uuids if u in self.stories]})
            return self._ok({"stories": list(self.stories.values()), "version": self.version})

        if path.startswith("/v2/cdn/stories/"):
            slug = path[len("/v2/cdn/stories/"):]
            for story in self.stories.values():
                if story["full_slug"] == slug:
                    return self._ok({"story": story, "version": self.version})
            return httpx.Response(404, json={"error": "This record could not be found"})

        return self._ok({"path": path})

    def _ok(self, body: dict) -> httpx.Response:
        return httpx.Response(200, json={**body, "cv": self.cv})

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


def _client(cms: _Cms, **options) -> ApiClient:
    options.setdefault("base_url", "https://capi.test")
    options.setdefault("request", {"max_retries": 0})
    return create_api_client("tok", http_transport=httpx.MockTransport(cms), **options)


# ------------------------------------------------------------------ #
# Resources
# ------------------------------------------------------------------ #


class TestResources:
    @pytest.mark.asyncio
    async def test_resource_paths(self) -> None:
        cms = _Cms()
        async with _client(cms) as client:
            await client.links.get_all()
            await client.datasources.get_all()
            await client.datasources.get(7)
            await client.datasource_entries.get_all({"datasource": "colors"})
            await client.tags.get_all()
            await client.spaces.get()

        assert cms.paths() == [
            "/v2/cdn/links",
            "/v2/cdn/datasources",
            "/v2/cdn/datasources/7",
            "/v2/cdn/datasource_entries",
            "/v2/cdn/tags",
            "/v2/cdn/spaces/me",
        ]

    @pytest.mark.asyncio
    async def test_story_by_nested_slug(self) -> None:
        cms = _Cms()
        cms.add("u1", "blog/first-post")
        async with _client(cms) as client:
            result = await client.stories.get("blog/first-post")
        assert result.data["story"]["uuid"] == "u1"
        assert cms.paths() == ["/v2/cdn/stories/blog/first-post"]

    @pytest.mark.asyncio
    async def test_missing_story(self) -> None:
        cms = _Cms()
        async with _client(cms) as client:
            result = await client.stories.get("nope")
        assert isinstance(result.error, NotFoundError)
        assert result.data is None

    @pytest.mark.asyncio
    async def test_throw_on_error(self) -> None:
        cms = _Cms()
        async with _client(cms, throw_on_error=True) as client:
            with pytest.raises(NotFoundError):
                await client.stories.get("nope")

    @pytest.mark.asyncio
    async def test_space_is_never_cached(self) -> None:
        cms = _Cms()
        async with _client(cms) as client:
            await client.spaces.get()
            await client.spaces.get()
        assert len(cms.requests) == 2

    @pytest.mark.asyncio
    async def test_generic_verbs(self) -> None:
        cms = _Cms()
        async with _client(cms) as client:
            await client.post("/v2/cdn/x", body={"a": 1})
            await client.put("/v2/cdn/x")
            await client.patch("/v2/cdn/x")
            await client.delete("/v2/cdn/x")
        assert [r.method for r in cms.requests] == ["POST", "PUT", "PATCH", "DELETE"]


# ------------------------------------------------------------------ #
# Configuration
# ------------------------------------------------------------------ #


class TestConfiguration:
    def test_region_selects_base_url(self) -> None:
        client = create_api_client("tok", region="us")
        assert client.config.resolved_base_url == "https://api-us.storyblok.com"
        assert ClientConfig(region=Region.EU).resolved_base_url == "https://api.storyblok.com"

    def test_rate_limit_options(self) -> None:
        assert isinstance(create_api_client("t").pipeline.throttle, TieredThrottleManager)
        assert isinstance(create_api_client("t", rate_limit=False).pipeline.throttle, DisabledThrottleManager)
        fixed = create_api_client("t", rate_limit=5).pipeline.throttle
        assert isinstance(fixed, FixedThrottleManager)
        assert fixed.ceiling == 5

    def test_strategy_and_provider_defaults(self) -> None:
        client = create_api_client("t", cache={"strategy": "swr"})
        assert isinstance(client.strategy, SwrStrategy)
        assert isinstance(client.cache_provider, MemoryCacheProvider)

    @pytest.mark.asyncio
    async def test_disk_backend(self, isolated_config) -> None:
        client = create_api_client("t", cache={"backend": "disk"})
        assert isinstance(client.cache_provider, DiskCacheProvider)
        await client.aclose()

    def test_custom_provider_is_used(self) -> None:
        provider = MemoryCacheProvider(max_entries=2)
        client = create_api_client("t", cache_provider=provider)
        assert client.cache_provider is provider

    @pytest.mark.asyncio
    async def test_token_from_source(self, monkeypatch) -> None:
        monkeypatch.setenv("MY_CMS_TOKEN", "from-env")
        cms = _Cms()
        client = create_api_client(
            None,
            access_token_source="env:MY_CMS_TOKEN",
            base_url="https://capi.test",
            http_transport=httpx.MockTransport(cms),
        )
        async with client:
            await client.links.get_all()
        assert cms.requests[0].url.params["token"] == "from-env"

    @pytest.mark.asyncio
    async def test_set_token(self) -> None:
        cms = _Cms()
        async with _client(cms) as client:
            client.set_token("preview")
            await client.stories.get_all({"version": "draft"})
        assert cms.requests[0].url.params["token"] == "preview"

    @pytest.mark.asyncio
    async def test_clients_do_not_share_state(self) -> None:
        cms = _Cms()
        async with _client(cms) as first, _client(cms) as second:
            await first.links.get_all()
            await second.links.get_all()
            assert first.cv == 1 and second.cv == 1
            assert first.cache_provider is not second.cache_provider
        assert len(cms.requests) == 2


# ------------------------------------------------------------------ #
# Strategies end to end
# ------------------------------------------------------------------ #


class TestStrategies:
    @pytest.mark.asyncio
    async def test_swr_serves_stale_then_fresh(self) -> None:
        cms = _Cms()
        cms.add("u1", "home")
        async with _client(cms, cache={"strategy": "swr"}) as client:
            first = await client.stories.get("home")
            assert first.data["version"] == 1

            cms.version = 2
            stale = await client.stories.get("home")
            assert stale.data["version"] == 1

            await client.strategy.drain()
            fresh = await client.stories.get("home")
            assert fresh.data["version"] == 2

    @pytest.mark.asyncio
    async def test_network_first_falls_back_to_cache(self) -> None:
        cms = _Cms()
        cms.add("u1", "home")
        async with _client(cms, cache={"strategy": "network-first"}, throw_on_error=True) as client:
            await client.stories.get("home")
            del cms.stories["u1"]
            result = await client.stories.get("home")
        assert result.data["story"]["uuid"] == "u1"

    @pytest.mark.asyncio
    async def test_cv_change_flushes_cache(self) -> None:
        cms = _Cms()
        cms.add("a", "a")
        cms.add("b", "b")
        async with _client(cms) as client:
            await client.stories.get("a")
            cms.cv = 2
            await client.stories.get("b")
            await client.stories.get("a")
        assert cms.paths() == ["/v2/cdn/stories/a", "/v2/cdn/stories/b", "/v2/cdn/stories/a"]
        assert cms.requests[1].url.params["cv"] == "1"


# ------------------------------------------------------------------ #
# Relation inlining
# ------------------------------------------------------------------ #


def _relation_cms() -> _Cms:
    cms = _Cms()
    cms.add("author-1", "authors/ada")
    cms.add("author-2", "authors/grace")
    cms.add("post", "blog/post", {"component": "post", "_uid": "p1", "authors": ["author-1", "author-2"]})
    return cms


class TestInlineRelations:
    @staticmethod
    def _with_rels(cms: _Cms, rels: list[str], rel_uuids: list[str]):
        original = cms.__call__

        def handler(request: httpx.Request) -> httpx.Response:
            response = original(request)
            if request.url.path == "/v2/cdn/stories/blog/post":
                body = response.json()
                body["rels"] = [cms.stories[u] for u in rels]
                body["rel_uuids"] = rel_uuids
                return httpx.Response(200, json=body)
            return response

        return handler

    @pytest.mark.asyncio
    async def test_inlines_embedded_and_fetched_relations(self) -> None:
        cms = _relation_cms()
        handler = self._with_rels(cms, rels=["author-1"], rel_uuids=["author-1", "author-2"])
        client = create_api_client(
            "tok",
            base_url="https://capi.test",
            inline_relations=True,
            http_transport=httpx.MockTransport(handler),
        )
        query = {"resolve_relations": "post.authors", "language": "de", "starts_with": "x"}
        async with client:
            result = await client.stories.get("blog/post", query)

        authors = result.data["story"]["content"]["authors"]
        assert [a["full_slug"] for a in authors] == ["authors/ada", "authors/grace"]
        assert [r["uuid"] for r in result.data["rels"]] == ["author-1"]
        assert result.data["rel_uuids"] == ["author-1", "author-2"]

        fetch = cms.requests[1]
        assert fetch.url.params["by_uuids"] == "author-2"
        assert fetch.url.params["language"] == "de"
        assert fetch.url.params["cv"] == "1"
        assert "starts_with" not in fetch.url.params

    @pytest.mark.asyncio
    async def test_cached_response_is_not_modified(self) -> None:
        cms = _relation_cms()
        handler = self._with_rels(cms, rels=["author-1", "author-2"], rel_uuids=[])
        client = create_api_client(
            "tok",
            base_url="https://capi.test",
            inline_relations=True,
            http_transport=httpx.MockTransport(handler),
        )
        query = {"resolve_relations": "post.authors"}
        async with client:
            first = await client.stories.get("blog/post", query)
            raw = await client.get("/v2/cdn/stories/blog/post", query)

        assert isinstance(first.data["story"]["content"]["authors"][0], dict)
        assert raw.data["story"]["content"]["authors"] == ["author-1", "author-2"]
        assert len(cms.requests) == 1

    @pytest.mark.asyncio
    async def test_list_endpoint_inlines_every_story(self) -> None:
        cms = _relation_cms()
        original = cms.__call__

        def handler(request: httpx.Request) -> httpx.Response:
            response = original(request)
            if request.url.path == "/v2/cdn/stories" and "by_uuids" not in request.url.params:
                body = response.json()
                body["rels"] = [cms.stories["author-1"], cms.stories["author-2"]]
                return httpx.Response(200, json=body)
            return response

        client = create_api_client(
            "tok",
            base_url="https://capi.test",
            inline_relations=True,
            http_transport=httpx.MockTransport(handler),
        )
        async with client:
            result = await client.stories.get_all({"resolve_relations": "post.authors"})

        post = next(s for s in result.data["stories"] if s["uuid"] == "post")
        assert post["content"]["authors"][1]["full_slug"] == "authors/grace"

    @pytest.mark.asyncio
    async def test_failed_relation_fetch_raises(self) -> None:
        cms = _relation_cms()
        cms.fail_by_uuids = True
        handler = self._with_rels(cms, rels=[], rel_uuids=["author-1"])
        client = create_api_client(
            "tok",
            base_url="https://capi.test",
            inline_relations=True,
            request={"max_retries": 0},
            http_transport=httpx.MockTransport(handler),
        )
        async with client:
            with pytest.raises(ServerError):
                await client.stories.get("blog/post", {"resolve_relations": "post.authors"})

    @pytest.mark.asyncio
    async def test_disabled_by_default(self) -> None:
        cms = _relation_cms()
        handler = self._with_rels(cms, rels=["author-1"], rel_uuids=["author-1", "author-2"])
        client = create_api_client(
            "tok", base_url="https://capi.test", http_transport=httpx.MockTransport(handler)
        )
        async with client:
            result = await client.stories.get("blog/post", {"resolve_relations": "post.authors"})
        assert result.data["story"]["content"]["authors"] == ["author-1", "author-2"]
        assert len(cms.requests) == 1
