"""Content API client.

Classes:
    :class:`ApiClient` -- high-level client: generic verbs, resources,
    caching, throttling and relation inlining.
    :class:`Transport` -- :mod:`httpx` transport with token injection,
    hooks, retry and error mapping.
    :class:`ApiResult` -- ``data`` / ``error`` / ``response`` of one call.
    :class:`HookRunner` / :class:`HookContext` -- request and response hooks.

Example::

    from capi_client.client import create_api_client

    async with create_api_client("public-token") as client:
        result = await client.links.get_all({"version": "published"})
"""

from capi_client.client.api_client import ApiClient, create_api_client
from capi_client.client.hooks import HookContext, HookRunner
from capi_client.client.transport import ApiResult, Transport

__all__ = [
    "ApiClient",
    "ApiResult",
    "HookContext",
    "HookRunner",
    "Transport",
    "create_api_client",
]
