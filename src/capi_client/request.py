"""Request classification helpers used by the pipeline.

Decides whether a request may be served from cache and derives the
deterministic cache key for it.  Only published reads from the CDN
(``/v2/cdn/...``) are cacheable; draft reads and the "current space" lookup
always go to the network.
"""

from __future__ import annotations

import json
from typing import Any, Mapping, Optional

CDN_PATH_PREFIX = "/v2/cdn/"
CACHEABLE_METHODS = frozenset({"GET"})
NON_CACHEABLE_PATHS = frozenset({"/v2/cdn/spaces/me"})


def normalize_path(path: str) -> str:
    """Prefix *path* with ``/`` when missing."""
    return path if path.startswith("/") else f"/{path}"


def is_cdn_path(path: str) -> bool:
    return path.startswith(CDN_PATH_PREFIX)


def is_draft_request(query: Mapping[str, Any]) -> bool:
    return query.get("version") == "draft"


def _normalize_query(value: Any) -> Any:
    """Recursively sort mapping keys; sequences keep their order."""
    if isinstance(value, Mapping):
        return {str(k): _normalize_query(value[k]) for k in sorted(value, key=str)}
    if isinstance(value, (list, tuple)):
        return [_normalize_query(item) for item in value]
    return value


def create_cache_key(
    method: str,
    path: str,
    query: Optional[Mapping[str, Any]] = None,
) -> str:
    """Build a cache key from method, path and query.

    Nested query mappings are key-sorted before serialisation so that two
    semantically identical queries written in a different key order share
    one entry.

    Example::

        >>> create_cache_key("GET", "/v2/cdn/stories", {"b": 2, "a": 1})
        '{"method": "GET", "path": "/v2/cdn/stories", "query": {"a": 1, "b": 2}}'
    """
    return json.dumps(
        {
            "method": method,
            "path": path,
            "query": _normalize_query(query or {}),
        },
        default=str,
    )


def should_use_cache(method: str, path: str, query: Mapping[str, Any]) -> bool:
    """Return ``True`` when a request may be answered from the cache."""
    return (
        method.upper() in CACHEABLE_METHODS
        and is_cdn_path(path)
        and path not in NON_CACHEABLE_PATHS
        and not is_draft_request(query)
    )
