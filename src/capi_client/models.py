"""Canonical Pydantic models shared across all capi_client modules.

This is the single source of truth for configuration shapes in the project.
Every other module imports from here rather than defining its own models.

**Client configuration** -- passed to :class:`~capi_client.client.ApiClient`
and serialised as JSON in the user's config directory:
    :class:`CacheConfig`, :class:`RateLimitConfig`, :class:`RequestConfig`,
    :class:`OutputConfig` and :class:`ClientConfig`.

**Enumerations**:
    :class:`Region` (CDN base URL selection) and :class:`CacheStrategyName`
    (built-in cache consistency strategies).

All models use Pydantic v2. :class:`ClientConfig` accepts the nested sections
either as model instances or as plain dicts.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Enumerations ---


class Region(str, enum.Enum):
    """Content API regions, each served from its own base URL."""

    EU = "eu"
    US = "us"
    CA = "ca"
    AP = "ap"
    CN = "cn"

    @property
    def base_url(self) -> str:
        """HTTPS base URL of the Content API in this region."""
        return _REGION_BASE_URLS[self]


_REGION_BASE_URLS = {
    Region.EU: "https://api.storyblok.com",
    Region.US: "https://api-us.storyblok.com",
    Region.CA: "https://api-ca.storyblok.com",
    Region.AP: "https://api-ap.storyblok.com",
    Region.CN: "https://app.storyblokchina.cn",
}


class CacheStrategyName(str, enum.Enum):
    """Built-in cache consistency strategies.

    See :mod:`capi_client.cache.strategies` for the semantics of each.
    """

    CACHE_FIRST = "cache-first"
    NETWORK_FIRST = "network-first"
    SWR = "swr"


# --- Client configuration ---


class CacheConfig(BaseModel):
    """Response cache settings for published CDN reads."""

    enabled: bool = Field(default=True, description="Enable response caching")
    strategy: CacheStrategyName = Field(
        default=CacheStrategyName.CACHE_FIRST,
        description="Consistency strategy: cache-first, network-first, swr",
    )
    ttl_ms: int = Field(default=60_000, ge=0, description="Cache TTL in milliseconds")
    max_entries: int = Field(
        default=1000, ge=0, description="Maximum number of cached responses"
    )
    backend: str = Field(
        default="memory", description="Cache backend: memory or disk"
    )

    @field_validator("backend")
    @classmethod
    def _check_backend(cls, value: str) -> str:
        if value not in ("memory", "disk"):
            raise ValueError(f"Unknown cache backend: {value}")
        return value


class RateLimitConfig(BaseModel):
    """Request-start throttling settings.

    When ``max_concurrent`` is set, every request shares a single queue
    capped at that many starts per second (and at most 1000). When it is
    left unset, the tier is detected per request from the path and the
    ``per_page`` query parameter.
    """

    enabled: bool = Field(default=True, description="Throttle outgoing requests")
    max_concurrent: Optional[int] = Field(
        default=None, ge=0, description="Fixed request starts per second"
    )
    adapt_to_server_headers: bool = Field(
        default=True,
        description="Narrow the limit from the X-RateLimit-Policy response header",
    )


class RequestConfig(BaseModel):
    """Default HTTP request settings applied to every API call."""

    timeout: float = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    max_retries: int = Field(default=3, ge=0, description="Max retry attempts")
    retry_base_delay: float = Field(
        default=0.5, ge=0, description="First retry delay in seconds (doubles per attempt)"
    )
    retry_max_delay: float = Field(
        default=10.0, ge=0, description="Upper bound for a single retry delay in seconds"
    )


class OutputConfig(BaseModel):
    """Default output format preferences for the ``capi`` command."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )

    @field_validator("format")
    @classmethod
    def _check_format(cls, value: str) -> str:
        if value not in ("auto", "json", "plain", "rich"):
            raise ValueError(f"Unknown output format: {value}")
        return value


class ClientConfig(BaseModel):
    """Everything needed to build an :class:`~capi_client.client.ApiClient`.

    Persisted (without the raw token) at ``~/.config/capi/config.json`` and
    resolved by :func:`~capi_client.config.resolve_config`. Fields here have
    the lowest precedence and can be overridden by project config,
    environment variables, or CLI flags.

    Example::

        ClientConfig(
            access_token="public-token",
            region="us",
            cache={"strategy": "swr", "ttl_ms": 5_000},
            rate_limit={"max_concurrent": 10},
        )
    """

    model_config = ConfigDict(extra="forbid")

    access_token: Optional[str] = Field(
        default=None, description="Public or preview access token"
    )
    access_token_source: Optional[str] = Field(
        default=None, description="Token source: env:VAR or file:/path"
    )
    region: Region = Field(default=Region.EU, description="Content API region")
    base_url: Optional[str] = Field(
        default=None, description="Override the region base URL"
    )
    headers: dict[str, str] = Field(default_factory=dict)
    throw_on_error: bool = Field(
        default=False, description="Raise CapiError instead of returning it on the result"
    )
    inline_relations: bool = Field(
        default=False,
        description="Replace resolve_relations uuids with the related stories",
    )
    cache: CacheConfig = Field(default_factory=CacheConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    request: RequestConfig = Field(default_factory=RequestConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @property
    def resolved_base_url(self) -> str:
        """The explicit ``base_url`` when set, otherwise the region's URL."""
        return (self.base_url or self.region.base_url).rstrip("/")
