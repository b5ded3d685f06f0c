"""Tests for configuration models and the exception hierarchy."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from capi_client.exceptions import (
    AuthError,
    CapiError,
    ClientError,
    HTTPError,
    NotFoundError,
    RateLimitError,
    ServerError,
    error_for_status,
)
from capi_client.exit_codes import EXIT_AUTH_FAILURE, EXIT_GENERIC_FAILURE, EXIT_NOT_FOUND
from capi_client.models import CacheConfig, CacheStrategyName, ClientConfig, Region


class TestClientConfig:
    def test_defaults(self) -> None:
        config = ClientConfig()
        assert config.region is Region.EU
        assert config.cache.strategy is CacheStrategyName.CACHE_FIRST
        assert config.cache.ttl_ms == 60_000
        assert config.rate_limit.max_concurrent is None
        assert config.throw_on_error is False

    def test_nested_sections_from_dicts(self) -> None:
        config = ClientConfig(cache={"strategy": "swr"}, rate_limit={"max_concurrent": 4})
        assert config.cache.strategy is CacheStrategyName.SWR
        assert config.rate_limit.max_concurrent == 4

    def test_base_url_overrides_region(self) -> None:
        config = ClientConfig(region="cn", base_url="https://proxy.test/")
        assert config.resolved_base_url == "https://proxy.test"

    @pytest.mark.parametrize("region", list(Region))
    def test_every_region_has_https_url(self, region: Region) -> None:
        assert region.base_url.startswith("https://")

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ClientConfig(acces_token="typo")

    def test_unknown_backend_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CacheConfig(backend="redis")


class TestErrors:
    @pytest.mark.parametrize(
        ("status", "error_type"),
        [
            (400, ClientError),
            (401, AuthError),
            (403, AuthError),
            (404, NotFoundError),
            (429, RateLimitError),
            (502, ServerError),
        ],
    )
    def test_error_for_status(self, status: int, error_type: type) -> None:
        error = error_for_status(status, f"HTTP {status}", {"error": "x"})
        assert type(error) is error_type
        assert isinstance(error, HTTPError)
        assert error.status_code == status
        assert error.body == {"error": "x"}

    def test_exit_codes(self) -> None:
        assert CapiError("x").exit_code == EXIT_GENERIC_FAILURE
        assert AuthError("x", 401).exit_code == EXIT_AUTH_FAILURE
        assert NotFoundError("x", 404).exit_code == EXIT_NOT_FOUND
        assert CapiError("x", exit_code=9).exit_code == 9
