"""Tests for capi_client.config -- XDG paths, atomic writes, precedence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from capi_client.config import (
    _atomic_write,
    configured_output_format,
    get_cache_dir,
    get_config_dir,
    load_project_config,
    load_user_config,
    resolve_config,
    resolve_credential,
    save_user_config,
    set_config_value,
    user_config_path,
)
from capi_client.exceptions import ConfigError
from capi_client.models import ClientConfig, Region


def _write_json(path: Path, data: Any) -> None:
    """Write *data* as JSON to *path*, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestPaths:
    def test_xdg_dirs(self, isolated_config: Path) -> None:
        assert get_config_dir() == isolated_config / "config" / "capi"
        assert get_cache_dir() == isolated_config / "cache" / "capi"
        assert get_config_dir().is_dir()

    def test_xdg_defaults_to_home(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("capi_client.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert get_config_dir() == tmp_path / ".config" / "capi"

    def test_non_xdg_platform(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("capi_client.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert get_config_dir() == tmp_path / ".capi"
        assert get_cache_dir() == tmp_path / ".capi" / "cache"


class TestAtomicWrite:
    def test_writes_and_replaces(self, tmp_path: Path) -> None:
        target = tmp_path / "nested" / "file.json"
        _atomic_write(target, "one")
        _atomic_write(target, "two")
        assert target.read_text(encoding="utf-8") == "two"
        assert [p.name for p in target.parent.iterdir()] == ["file.json"]


# ---------------------------------------------------------------------------
# User and project config
# ---------------------------------------------------------------------------


class TestUserConfig:
    def test_missing_is_empty(self, isolated_config: Path) -> None:
        assert load_user_config() == {}

    def test_save_strips_raw_token(self, isolated_config: Path) -> None:
        config = ClientConfig(access_token="secret", access_token_source="env:CMS_TOKEN", region="us")
        save_user_config(config)

        raw = user_config_path().read_text(encoding="utf-8")
        assert "secret" not in raw
        data = json.loads(raw)
        assert data["access_token_source"] == "env:CMS_TOKEN"
        assert data["region"] == "us"

    def test_invalid_json(self, isolated_config: Path) -> None:
        user_config_path().write_text("{nope", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid user config"):
            load_user_config()

    def test_non_object(self, isolated_config: Path) -> None:
        _write_json(user_config_path(), [1, 2])
        with pytest.raises(ConfigError, match="expected a JSON object"):
            load_user_config()


class TestProjectConfig:
    def test_missing(self, isolated_config: Path) -> None:
        assert load_project_config() is None

    def test_loaded_from_cwd(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "capi.json", {"region": "ap"})
        assert load_project_config() == {"region": "ap"}


# ---------------------------------------------------------------------------
# Precedence
# ---------------------------------------------------------------------------


class TestResolveConfig:
    def test_defaults(self, isolated_config: Path) -> None:
        config = resolve_config()
        assert config.region is Region.EU
        assert config.access_token is None

    def test_project_overrides_user_and_merges_sections(self, isolated_config: Path) -> None:
        _write_json(user_config_path(), {"region": "us", "cache": {"ttl_ms": 10, "strategy": "swr"}})
        _write_json(isolated_config / "capi.json", {"region": "ca", "cache": {"ttl_ms": 20}})

        config = resolve_config()
        assert config.region is Region.CA
        assert config.cache.ttl_ms == 20
        assert config.cache.strategy.value == "swr"

    def test_env_overrides_files(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_json(isolated_config / "capi.json", {"region": "ca"})
        monkeypatch.setenv("CAPI_REGION", "us")
        monkeypatch.setenv("CAPI_ACCESS_TOKEN", "env-token")
        config = resolve_config()
        assert config.region is Region.US
        assert config.access_token == "env-token"

    def test_cli_overrides_env(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CAPI_REGION", "us")
        monkeypatch.setenv("CAPI_BASE_URL", "https://env.test")
        config = resolve_config(
            cli_access_token="cli-token",
            cli_region="ap",
            cli_base_url="https://cli.test",
            cli_format="json",
        )
        assert config.region is Region.AP
        assert config.access_token == "cli-token"
        assert config.resolved_base_url == "https://cli.test"
        assert config.output.format == "json"

    def test_token_source_resolved(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CMS_TOKEN", "from-source")
        _write_json(user_config_path(), {"access_token_source": "env:CMS_TOKEN"})
        assert resolve_config().access_token == "from-source"

    def test_direct_token_beats_source(self, isolated_config: Path) -> None:
        _write_json(user_config_path(), {"access_token_source": "env:UNSET_VAR"})
        assert resolve_config(cli_access_token="direct").access_token == "direct"

    def test_invalid_value(self, isolated_config: Path) -> None:
        _write_json(user_config_path(), {"region": "mars"})
        with pytest.raises(ConfigError, match="Invalid configuration"):
            resolve_config()

    def test_unknown_key(self, isolated_config: Path) -> None:
        _write_json(user_config_path(), {"regoin": "us"})
        with pytest.raises(ConfigError):
            resolve_config()


class TestConfiguredOutputFormat:
    def test_default_is_auto(self, isolated_config: Path) -> None:
        assert configured_output_format() == "auto"

    def test_project_overrides_user(self, isolated_config: Path) -> None:
        _write_json(user_config_path(), {"output": {"format": "plain"}})
        assert configured_output_format() == "plain"
        _write_json(isolated_config / "capi.json", {"output": {"format": "json"}})
        assert configured_output_format() == "json"

    def test_ignores_unresolvable_token_source(self, isolated_config: Path) -> None:
        _write_json(
            user_config_path(),
            {"access_token_source": "env:CAPI_MISSING_VAR", "output": {"format": "json"}},
        )
        assert configured_output_format() == "json"

    def test_unknown_format(self, isolated_config: Path) -> None:
        _write_json(user_config_path(), {"output": {"format": "yaml"}})
        with pytest.raises(ConfigError, match="Unknown output format"):
            configured_output_format()


class TestSetConfigValue:
    def test_nested_json_value(self) -> None:
        config = set_config_value(ClientConfig(), "cache.ttl_ms", "5000")
        assert config.cache.ttl_ms == 5000

    def test_string_value(self) -> None:
        config = set_config_value(ClientConfig(), "cache.strategy", "network-first")
        assert config.cache.strategy.value == "network-first"

    def test_bool_value(self) -> None:
        config = set_config_value(ClientConfig(), "inline_relations", "true")
        assert config.inline_relations is True

    def test_refuses_raw_token(self) -> None:
        with pytest.raises(ConfigError, match="access_token_source"):
            set_config_value(ClientConfig(), "access_token", "secret")

    def test_invalid(self) -> None:
        with pytest.raises(ConfigError, match="cache.backend"):
            set_config_value(ClientConfig(), "cache.backend", "redis")


# ---------------------------------------------------------------------------
# Credential sources
# ---------------------------------------------------------------------------


class TestResolveCredential:
    def test_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CMS_TOKEN", "abc")
        assert resolve_credential("env:CMS_TOKEN") == "abc"

    def test_env_missing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("CMS_TOKEN", raising=False)
        with pytest.raises(ConfigError, match="not set"):
            resolve_credential("env:CMS_TOKEN")

    def test_file(self, tmp_path: Path) -> None:
        token_file = tmp_path / "token"
        token_file.write_text("  file-token\n", encoding="utf-8")
        assert resolve_credential(f"file:{token_file}") == "file-token"

    def test_file_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            resolve_credential(f"file:{tmp_path / 'nope'}")

    def test_unknown_scheme(self) -> None:
        with pytest.raises(ConfigError, match="Unknown credential source"):
            resolve_credential("vault:secret/cms")
