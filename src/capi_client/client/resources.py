"""Typed entry points for the Content Delivery API resources.

Each resource is a thin wrapper binding a path to
:meth:`~capi_client.client.api_client.ApiClient.get`; caching, throttling and
``cv`` handling are inherited from the client's pipeline.

=========================  ===============================================
``stories``                ``/v2/cdn/stories`` and ``/v2/cdn/stories/{id}``
``links``                  ``/v2/cdn/links``
``datasources``            ``/v2/cdn/datasources`` and ``.../{id}``
``datasource_entries``     ``/v2/cdn/datasource_entries``
``tags``                   ``/v2/cdn/tags``
``spaces``                 ``/v2/cdn/spaces/me`` (never cached)
=========================  ===============================================
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, Optional, Union
from urllib.parse import quote

from capi_client.client.transport import ApiResult

if TYPE_CHECKING:
    from capi_client.client.api_client import ApiClient

Query = Optional[Mapping[str, Any]]


class _Resource:
    def __init__(self, client: ApiClient) -> None:
        self._client = client


class Stories(_Resource):
    """Stories, with optional relation inlining (``inline_relations``)."""

    async def get(self, identifier: Union[str, int], query: Query = None) -> ApiResult:
        """Fetch one story by full slug, numeric id or uuid.

        Slashes in a full slug are kept, so ``blog/my-post`` addresses the
        nested story.
        """
        path = f"/v2/cdn/stories/{quote(str(identifier).strip('/'), safe='/')}"
        result = await self._client.get(path, query)
        return await self._client.resolve_relations(result, query or {})

    async def get_all(self, query: Query = None) -> ApiResult:
        result = await self._client.get("/v2/cdn/stories", query)
        return await self._client.resolve_relations(result, query or {})


class Links(_Resource):
    async def get_all(self, query: Query = None) -> ApiResult:
        return await self._client.get("/v2/cdn/links", query)


class Datasources(_Resource):
    async def get_all(self, query: Query = None) -> ApiResult:
        return await self._client.get("/v2/cdn/datasources", query)

    async def get(self, datasource_id: Union[str, int], query: Query = None) -> ApiResult:
        return await self._client.get(f"/v2/cdn/datasources/{datasource_id}", query)


class DatasourceEntries(_Resource):
    async def get_all(self, query: Query = None) -> ApiResult:
        return await self._client.get("/v2/cdn/datasource_entries", query)


class Tags(_Resource):
    async def get_all(self, query: Query = None) -> ApiResult:
        return await self._client.get("/v2/cdn/tags", query)


class Spaces(_Resource):
    async def get(self, query: Query = None) -> ApiResult:
        """The space owning the access token."""
        return await self._client.get("/v2/cdn/spaces/me", query)
