"""capi_client -- cached, rate-limited client for a headless CMS Content API.

Every read goes through one request pipeline:

* a pluggable TTL/LRU response cache with ``cache-first``,
  ``network-first`` and ``swr`` strategies,
* content-version (``cv``) tracking that flushes the cache when published
  content changes,
* a request-start throttle tiered by request shape and narrowed by the
  server's ``X-RateLimit-Policy`` header,
* optional inlining of related stories (``resolve_relations``).

Typical use::

    from capi_client import create_api_client

    async with create_api_client("public-token", inline_relations=True) as client:
        result = await client.stories.get("home", {"resolve_relations": "page.author"})

Modules:
    client: :class:`ApiClient`, transport, hooks and resources.
    pipeline: The request pipeline.
    cache: Cache providers and strategies.
    throttle: Throttle managers and tier detection.
    relations: Relation fetching and inlining.
    config: XDG-aware configuration and precedence resolution.
    app: The ``capi`` command.
"""

__version__ = "0.1.0"

from capi_client.client import ApiClient, ApiResult, create_api_client  # noqa: E402
from capi_client.exceptions import CapiError  # noqa: E402
from capi_client.filter_query import (  # noqa: E402
    IS,
    build_filter_query,
    i18n_field,
    nested_field,
    nested_property,
)
from capi_client.models import ClientConfig, Region  # noqa: E402

__all__ = [
    "IS",
    "ApiClient",
    "ApiResult",
    "CapiError",
    "ClientConfig",
    "Region",
    "__version__",
    "build_filter_query",
    "create_api_client",
    "i18n_field",
    "nested_field",
    "nested_property",
]
