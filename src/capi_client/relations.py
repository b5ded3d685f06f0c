"""Relation resolution for stories.

Stories reference other stories by uuid.  When a request carries
``resolve_relations=component.field,...`` the API returns the referenced
stories next to the payload (``rels``), or only their uuids (``rel_uuids``)
when there are too many to embed.  This module fetches whatever is missing
and splices the referenced stories into the content tree in place of their
uuids.

Inlining works on a deep copy of each root story, so cached responses are
never modified.  Every referenced story is inlined at most once per call and
later references (cycles included) point at that same object.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional, Sequence

from capi_client.exceptions import CapiError

if TYPE_CHECKING:
    from capi_client.client.transport import Transport
    from capi_client.throttle import ThrottleManager

logger = logging.getLogger(__name__)

Story = dict[str, Any]
RelationMap = Mapping[str, Story]

STORIES_PATH = "/v2/cdn/stories"
UUID_CHUNK_SIZE = 50

# Only these keys of the triggering request are forwarded to relation fetches.
CONTEXT_QUERY_KEYS = frozenset(
    {
        "cv",
        "fallback_lang",
        "from_release",
        "language",
        "resolve_assets",
        "resolve_links",
        "resolve_links_level",
        "version",
    }
)


# --- Parsing ---


def _is_relation_path(path: str) -> bool:
    parts = path.split(".")
    return len(parts) == 2 and all(parts)


def parse_resolve_relations(query: Mapping[str, Any]) -> list[str]:
    """Return the well-formed ``component.field`` paths of ``resolve_relations``.

    Malformed entries (no dot, several dots, an empty side) are dropped.
    """
    raw = query.get("resolve_relations")
    if not isinstance(raw, str):
        return []
    paths = (part.strip() for part in raw.split(","))
    return [path for path in paths if _is_relation_path(path)]


def build_relation_map(rels: Optional[Iterable[Story]]) -> dict[str, Story]:
    """Index stories by uuid."""
    return {story["uuid"]: story for story in rels or () if "uuid" in story}


# --- Fetching ---


def _chunks(items: Sequence[str], size: int) -> list[list[str]]:
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def _query_context(base_query: Mapping[str, Any]) -> dict[str, Any]:
    return {
        key: value
        for key, value in base_query.items()
        if key in CONTEXT_QUERY_KEYS and value is not None
    }


async def fetch_missing_relations(
    transport: Transport,
    uuids: Sequence[str],
    base_query: Mapping[str, Any],
    throttle: ThrottleManager,
) -> list[Story]:
    """Fetch stories by uuid, ``UUID_CHUNK_SIZE`` per request.

    All chunks are requested concurrently through *throttle*, which sees only
    the context query and so tiers them like a plain stories read.  Each
    request asks for a page as large as its chunk so that no story is cut off.

    Args:
        transport: Transport used for the ``by_uuids`` requests.
        uuids: Story uuids to fetch.
        base_query: Query of the triggering request; only the context keys
            (version, language, cv, ...) are forwarded.
        throttle: The client's throttle manager.

    Returns:
        The fetched stories, in chunk order.

    Raises:
        CapiError: If any chunk request fails.  Results of the other chunks
            are discarded.
    """
    if not uuids:
        return []

    context = _query_context(base_query)

    async def fetch_chunk(chunk: list[str]) -> list[Story]:
        query = {**context, "by_uuids": ",".join(chunk), "per_page": UUID_CHUNK_SIZE}

        async def call() -> Any:
            result = await transport.request("GET", STORIES_PATH, query=query)
            throttle.adapt_to_response(result.response)
            return result

        result = await throttle.execute(STORIES_PATH, context, call)
        if result.error is not None:
            raise result.error
        if not isinstance(result.data, Mapping):
            raise CapiError("Failed to fetch missing relations.")
        return list(result.data.get("stories") or [])

    chunks = _chunks(list(uuids), UUID_CHUNK_SIZE)
    logger.debug("Fetching %d missing relations in %d chunk(s)", len(uuids), len(chunks))
    results = await asyncio.gather(*(fetch_chunk(chunk) for chunk in chunks))
    return [story for stories in results for story in stories]


# --- Inlining ---


def is_component_node(value: Any) -> bool:
    """A dict carrying a string ``component`` name and a string ``_uid``."""
    return (
        isinstance(value, dict)
        and isinstance(value.get("component"), str)
        and isinstance(value.get("_uid"), str)
    )


class _Inliner:
    """Walks content trees, sharing one resolved-set across roots."""

    def __init__(self, paths: Iterable[str], relation_map: RelationMap) -> None:
        self.paths = frozenset(paths)
        self.relation_map = relation_map
        self.resolved: dict[str, Story] = {}

    def inline(self, story: Story) -> Story:
        uuid = story.get("uuid")
        if uuid is not None and uuid in self.resolved:
            return self.resolved[uuid]

        cloned = copy.deepcopy(story)
        # Registered before recursing so that cycles land on this object.
        if uuid is not None:
            self.resolved[uuid] = cloned
        if "content" in cloned:
            cloned["content"] = self._walk(cloned["content"])
        return cloned

    def _walk(self, value: Any) -> Any:
        if isinstance(value, list):
            return [self._walk(item) for item in value]
        if not isinstance(value, dict):
            return value

        if is_component_node(value):
            component = value["component"]
            for field, field_value in value.items():
                if field in ("component", "_uid"):
                    continue
                if f"{component}.{field}" in self.paths:
                    value[field] = self._resolve_field(field_value)
                else:
                    value[field] = self._walk(field_value)
            return value

        for field, field_value in value.items():
            value[field] = self._walk(field_value)
        return value

    def _resolve_field(self, value: Any) -> Any:
        if isinstance(value, str):
            related = self.relation_map.get(value)
            if related is None:
                return value
            return self.inline(related)
        if isinstance(value, list):
            return [self._resolve_field(item) for item in value]
        return self._walk(value)


def inline_story_content(
    story: Story,
    paths: Iterable[str],
    relation_map: RelationMap,
) -> Story:
    """Return a copy of *story* with relation uuids replaced by stories.

    Args:
        story: Root story.  It is not modified.
        paths: Accepted ``component.field`` relation paths.
        relation_map: uuid -> story for every known related story.
    """
    return _Inliner(paths, relation_map).inline(story)


def inline_stories_content(
    stories: Iterable[Story],
    paths: Iterable[str],
    relation_map: RelationMap,
) -> list[Story]:
    """List variant of :func:`inline_story_content` with one shared resolved-set."""
    inliner = _Inliner(paths, relation_map)
    return [inliner.inline(story) for story in stories]
