"""Request-start throttling for the Content API.

The CDN enforces per-second limits that depend on the shape of the request:
single-story reads and small pages are cheap, big pages are not.  This module
mirrors those tiers client side and narrows them further when the server
advertises a lower quota via the ``X-RateLimit-Policy`` response header.

:class:`Throttle` is a fixed-rate admission controller, not a max-in-flight
gate: each admitted job holds a slot for ``interval_ms`` *from its start*,
however long its own work takes.  With the default one-second interval a
limit of ``n`` therefore means at most ``n`` request starts per second.

Managers, built by :func:`create_throttle_manager` from the ``rate_limit``
option:

=================================  =========================================
``False``                          :class:`DisabledThrottleManager`
``10`` / ``{"max_concurrent": 10}`` :class:`FixedThrottleManager` (one queue)
``None`` / ``{}``                  :class:`TieredThrottleManager` (four tiers)
=================================  =========================================
"""

from __future__ import annotations

import asyncio
import enum
import logging
import math
import re
from collections import deque
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, TypeVar, Union

import httpx

from capi_client.models import RateLimitConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_RATE_LIMIT = 1_000
DEFAULT_INTERVAL_MS = 1_000
DEFAULT_PER_PAGE = 25
RATE_LIMIT_POLICY_HEADER = "x-ratelimit-policy"

_QUOTA_RE = re.compile(r"q=(\d+)")
# /v2/cdn/stories/<identifier>, nested slugs included
_SINGLE_ENTITY_PATH_RE = re.compile(r"/v2/cdn/stories/.+$")


class Tier(str, enum.Enum):
    """Rate-limit tiers enforced by the CDN, keyed by request shape."""

    SINGLE_OR_SMALL = "SINGLE_OR_SMALL"
    MEDIUM = "MEDIUM"
    LARGE = "LARGE"
    VERY_LARGE = "VERY_LARGE"

    @property
    def limit(self) -> int:
        """Nominal request starts per second for this tier."""
        return TIER_LIMITS[self]


TIER_LIMITS: dict[Tier, int] = {
    Tier.SINGLE_OR_SMALL: 50,  # single story or per_page <= 25
    Tier.MEDIUM: 15,  # per_page 26-50
    Tier.LARGE: 10,  # per_page 51-75
    Tier.VERY_LARGE: 6,  # per_page > 75
}


def _per_page(query: Mapping[str, Any]) -> float:
    raw = query.get("per_page")
    if isinstance(raw, bool):
        return DEFAULT_PER_PAGE
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        # NaN matches no tier; infinity falls through to VERY_LARGE
        return DEFAULT_PER_PAGE if math.isnan(raw) else raw
    if isinstance(raw, str):
        match = re.match(r"\s*([+-]?\d+)", raw)
        if match and int(match.group(1)) != 0:
            return int(match.group(1))
    return DEFAULT_PER_PAGE


def determine_tier(path: str, query: Mapping[str, Any]) -> Tier:
    """Map a request path and query to its rate-limit tier.

    Single-entity reads are always :attr:`Tier.SINGLE_OR_SMALL`; anything
    else is classified by ``per_page`` (default 25).
    """
    if _SINGLE_ENTITY_PATH_RE.search(path):
        return Tier.SINGLE_OR_SMALL

    per_page = _per_page(query)
    if per_page <= 25:
        return Tier.SINGLE_OR_SMALL
    if per_page <= 50:
        return Tier.MEDIUM
    if per_page <= 75:
        return Tier.LARGE
    return Tier.VERY_LARGE


def parse_rate_limit_policy_header(response: Optional[httpx.Response]) -> Optional[int]:
    """Extract the quota from ``X-RateLimit-Policy`` (e.g. ``"concurrent-requests";q=30``).

    Returns:
        The quota capped at :data:`MAX_RATE_LIMIT`, or ``None`` when the
        header is absent or carries no ``q=`` value.
    """
    if response is None:
        return None
    policy = response.headers.get(RATE_LIMIT_POLICY_HEADER)
    if not policy:
        return None
    match = _QUOTA_RE.search(policy)
    if match is None:
        return None
    return min(int(match.group(1)), MAX_RATE_LIMIT)


class Throttle:
    """FIFO queue admitting at most ``limit`` job starts per ``interval_ms``.

    Each admitted job is started as its own task and its slot is released by
    a loop timer ``interval_ms`` after the start.  Jobs are admitted strictly
    in arrival order.  A caller that stops awaiting :meth:`execute` does not
    cancel its job once queued; the slot bookkeeping stays consistent.

    Args:
        limit: Job starts allowed per interval.
        interval_ms: Length of the admission window in milliseconds.
    """

    def __init__(self, limit: int, interval_ms: float = DEFAULT_INTERVAL_MS) -> None:
        self._limit = max(1, limit)
        self._interval = interval_ms / 1000
        self._active_count = 0
        self._queue: deque[Callable[[], None]] = deque()
        self._running: set[asyncio.Task[Any]] = set()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def active_count(self) -> int:
        """Slots taken in the current window."""
        return self._active_count

    @property
    def pending(self) -> int:
        """Jobs waiting for a slot."""
        return len(self._queue)

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Queue *fn* and return its result once admitted and finished."""
        loop = asyncio.get_running_loop()
        future: asyncio.Future[T] = loop.create_future()

        def start() -> None:
            try:
                task = loop.create_task(fn())
            except Exception as exc:
                if not future.done():
                    future.set_exception(exc)
                return
            self._running.add(task)
            task.add_done_callback(self._running.discard)
            task.add_done_callback(lambda t: _settle(future, t))

        self._queue.append(start)
        self._advance()
        return await future

    def set_limit(self, limit: int) -> None:
        """Change the limit; a raised limit admits waiting jobs right away."""
        self._limit = max(1, limit)
        self._advance()

    def _advance(self) -> None:
        while self._queue and self._active_count < self._limit:
            self._active_count += 1
            start = self._queue.popleft()
            asyncio.get_running_loop().call_later(self._interval, self._release)
            start()

    def _release(self) -> None:
        self._active_count -= 1
        self._advance()


def _settle(future: asyncio.Future[Any], task: asyncio.Task[Any]) -> None:
    """Copy a finished job's outcome onto the caller's future."""
    if task.cancelled():
        if not future.done():
            future.cancel()
        return
    exc = task.exception()
    if future.done():
        return
    if exc is not None:
        future.set_exception(exc)
    else:
        future.set_result(task.result())


class ThrottleManager(Protocol):
    """Gate for every outgoing request, plus server feedback."""

    async def execute(
        self, path: str, query: Mapping[str, Any], fn: Callable[[], Awaitable[T]]
    ) -> T: ...

    def adapt_to_response(self, response: Optional[httpx.Response]) -> None: ...


class DisabledThrottleManager:
    """Runs every request immediately."""

    async def execute(
        self, path: str, query: Mapping[str, Any], fn: Callable[[], Awaitable[T]]
    ) -> T:
        return await fn()

    def adapt_to_response(self, response: Optional[httpx.Response]) -> None:
        return None


class FixedThrottleManager:
    """Single queue shared by every request, capped at ``max_concurrent``.

    Server feedback may lower the limit but never raise it above the
    user-configured ceiling.
    """

    def __init__(
        self,
        max_concurrent: int,
        adapt_to_server_headers: bool = True,
        interval_ms: float = DEFAULT_INTERVAL_MS,
    ) -> None:
        self.ceiling = min(max_concurrent, MAX_RATE_LIMIT)
        self.adapt_to_server_headers = adapt_to_server_headers
        self.throttle = Throttle(self.ceiling, interval_ms)

    async def execute(
        self, path: str, query: Mapping[str, Any], fn: Callable[[], Awaitable[T]]
    ) -> T:
        return await self.throttle.execute(fn)

    def adapt_to_response(self, response: Optional[httpx.Response]) -> None:
        if not self.adapt_to_server_headers:
            return
        server_limit = parse_rate_limit_policy_header(response)
        if server_limit is None:
            return
        limit = min(self.ceiling, server_limit)
        if limit != self.throttle.limit:
            logger.debug("Adapting fixed throttle limit to %d", limit)
        self.throttle.set_limit(limit)


class TieredThrottleManager:
    """One queue per :class:`Tier`, selected per request.

    Only the :attr:`Tier.SINGLE_OR_SMALL` queue follows server feedback; it
    carries the bulk of the traffic while the other tiers are already
    conservative.
    """

    def __init__(
        self,
        adapt_to_server_headers: bool = True,
        interval_ms: float = DEFAULT_INTERVAL_MS,
    ) -> None:
        self.adapt_to_server_headers = adapt_to_server_headers
        self.throttles: dict[Tier, Throttle] = {
            tier: Throttle(limit, interval_ms) for tier, limit in TIER_LIMITS.items()
        }

    async def execute(
        self, path: str, query: Mapping[str, Any], fn: Callable[[], Awaitable[T]]
    ) -> T:
        tier = determine_tier(path, query)
        return await self.throttles[tier].execute(fn)

    def adapt_to_response(self, response: Optional[httpx.Response]) -> None:
        if not self.adapt_to_server_headers:
            return
        server_limit = parse_rate_limit_policy_header(response)
        if server_limit is None:
            return
        throttle = self.throttles[Tier.SINGLE_OR_SMALL]
        limit = min(Tier.SINGLE_OR_SMALL.limit, server_limit)
        if limit != throttle.limit:
            logger.debug("Adapting %s throttle limit to %d", Tier.SINGLE_OR_SMALL.value, limit)
        throttle.set_limit(limit)


RateLimitOption = Union[bool, int, Mapping[str, Any], RateLimitConfig, None]


def create_throttle_manager(
    config: RateLimitOption = None,
    interval_ms: float = DEFAULT_INTERVAL_MS,
) -> ThrottleManager:
    """Build the throttle manager for a ``rate_limit`` option.

    Args:
        config: ``False`` disables throttling; an ``int`` or a config with
            ``max_concurrent`` selects fixed mode; ``None``/``{}``/``True``
            select tier auto-detection.
        interval_ms: Admission window, one second unless overridden.
    """
    if config is False:
        return DisabledThrottleManager()
    if config is None or config is True:
        config = RateLimitConfig()
    elif isinstance(config, int):
        config = RateLimitConfig(max_concurrent=config)
    elif isinstance(config, Mapping):
        config = RateLimitConfig.model_validate(config)

    if not config.enabled:
        return DisabledThrottleManager()
    if config.max_concurrent is not None:
        return FixedThrottleManager(
            config.max_concurrent,
            adapt_to_server_headers=config.adapt_to_server_headers,
            interval_ms=interval_ms,
        )
    return TieredThrottleManager(
        adapt_to_server_headers=config.adapt_to_server_headers,
        interval_ms=interval_ms,
    )
