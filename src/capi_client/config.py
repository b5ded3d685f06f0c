"""Configuration files, precedence resolution and token sources.

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.capi/`` on macOS and Windows.  See :func:`get_config_dir` and
  :func:`get_cache_dir`.
* **User config** -- ``config.json`` in the config directory, a serialised
  :class:`~capi_client.models.ClientConfig` without the raw access token.
* **Project config** -- ``./capi.json``, a partial ``ClientConfig`` that a
  repository can commit (region, cache settings, token *source*).
* **Precedence resolution** -- :func:`resolve_config` layers CLI flags over
  environment variables over project config over user config.
* **Token sources** -- :func:`resolve_credential` reads ``env:VAR`` and
  ``file:/path`` descriptors so that tokens never have to be written into
  a config file.

Writes go through :func:`_atomic_write` (temp file, then rename).
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from capi_client.exceptions import ConfigError
from capi_client.models import ClientConfig, OutputConfig

_APP_NAME = "capi"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "capi.json"

ENV_ACCESS_TOKEN = "CAPI_ACCESS_TOKEN"
ENV_REGION = "CAPI_REGION"
ENV_BASE_URL = "CAPI_BASE_URL"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    return Path.home().joinpath(*default_segments)


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/capi/`` (default ``~/.config/capi/``).
    On macOS/Windows: ``~/.capi/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the response cache directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CACHE_HOME/capi/`` (default ``~/.cache/capi/``).
    On macOS/Windows: ``~/.capi/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}" / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write *data* to *path* through a temp file in the same directory."""
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp = tempfile.NamedTemporaryFile(
        mode="w",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
        encoding="utf-8",
    )
    try:
        with tmp:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp.name, path)
    except BaseException:
        try:
            os.unlink(tmp.name)
        except OSError:
            pass
        raise


def _read_json(path: Path, label: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid {label} at {path}: {exc}") from exc


# --- User config ---


def user_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_user_config() -> dict[str, Any]:
    """Load ``config.json`` as a raw dict (``{}`` when missing).

    Raises:
        ConfigError: If the file is not a JSON object.
    """
    path = user_config_path()
    if not path.is_file():
        return {}
    data = _read_json(path, "user config")
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid user config at {path}: expected a JSON object")
    return data


def save_user_config(config: ClientConfig) -> None:
    """Persist *config* without its raw ``access_token``."""
    data = config.model_dump(mode="json", exclude={"access_token"}, exclude_none=True)
    _atomic_write(user_config_path(), json.dumps(data, indent=2) + "\n")


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load ``./capi.json``, or ``None`` when there is none.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    data = _read_json(path, "project config")
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


# --- Precedence resolution ---


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def resolve_config(
    cli_access_token: Optional[str] = None,
    cli_region: Optional[str] = None,
    cli_base_url: Optional[str] = None,
    cli_format: Optional[str] = None,
) -> ClientConfig:
    """Build the effective :class:`ClientConfig`.

    Precedence (high to low):
        1. CLI flags
        2. Environment variables (``CAPI_ACCESS_TOKEN``, ``CAPI_REGION``,
           ``CAPI_BASE_URL``)
        3. Project config (``./capi.json``)
        4. User config (``~/.config/capi/config.json``)
        5. Defaults

    An ``access_token_source`` that survives the merge is resolved into
    ``access_token`` when no token was given directly.

    Raises:
        ConfigError: On unreadable files, invalid values, or an
            unresolvable token source.
    """
    data = load_user_config()

    project = load_project_config()
    if project is not None:
        data = _deep_merge(data, project)

    env_overrides = {
        "access_token": os.environ.get(ENV_ACCESS_TOKEN),
        "region": os.environ.get(ENV_REGION),
        "base_url": os.environ.get(ENV_BASE_URL),
    }
    data.update({k: v for k, v in env_overrides.items() if v})

    cli_overrides = {
        "access_token": cli_access_token,
        "region": cli_region,
        "base_url": cli_base_url,
    }
    data.update({k: v for k, v in cli_overrides.items() if v is not None})
    if cli_format is not None:
        data = _deep_merge(data, {"output": {"format": cli_format}})

    try:
        config = ClientConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc

    if config.access_token is None and config.access_token_source:
        config.access_token = resolve_credential(config.access_token_source)
    return config


def configured_output_format() -> str:
    """The ``output.format`` from project and user config (``"auto"`` if unset).

    Only the ``output`` section is read, so a token source that cannot be
    resolved does not stop the CLI from starting.

    Raises:
        ConfigError: On unreadable files or an unknown format.
    """
    data = load_user_config()
    project = load_project_config()
    if project is not None:
        data = _deep_merge(data, project)
    try:
        return OutputConfig.model_validate(data.get("output") or {}).format
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def set_config_value(config: ClientConfig, key: str, value: str) -> ClientConfig:
    """Return a copy of *config* with the dotted *key* set to *value*.

    *value* is parsed as JSON when possible (``60000``, ``true``) and kept
    as a string otherwise.

    Raises:
        ConfigError: For the raw ``access_token`` (use
            ``access_token_source``) or when the result fails validation.
    """
    if key == "access_token":
        raise ConfigError(
            "Refusing to store a raw access token; set access_token_source "
            "to env:VAR or file:/path instead"
        )
    try:
        parsed: Any = json.loads(value)
    except json.JSONDecodeError:
        parsed = value

    update: Any = parsed
    for part in reversed(key.split(".")):
        update = {part: update}

    data = _deep_merge(config.model_dump(mode="json"), update)
    try:
        return ClientConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid value for '{key}': {exc}") from exc


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a token from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    raise ConfigError(f"Unknown credential source format: {source}")
