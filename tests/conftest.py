"""Shared test fixtures for capi_client.

Provides an isolated config environment, output managers, a controllable
millisecond clock for TTL tests, and a Typer CLI runner.  Fixtures are
discovered by pytest automatically.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from capi_client.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The manager holds on to sys.stdout/sys.stderr; CliRunner swaps those
    streams out, so a stale manager would write to closed files.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG directories at tmp_path and clear CAPI_* variables.

    Also changes the working directory to tmp_path so that no project
    ``capi.json`` leaks in.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("capi_client.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    for var in ["CAPI_ACCESS_TOKEN", "CAPI_REGION", "CAPI_BASE_URL"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON OutputManager for tests that parse stdout."""
    output = OutputManager(format=OutputFormat.JSON, no_color=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner capturing stdout and stderr."""
    from typer.testing import CliRunner

    return CliRunner()
