"""Typer application and entry point for the ``capi`` command.

The root callback installs the global
:class:`~capi_client.output.OutputManager` from the output flags, or the
configured ``output.format`` when none is given, and keeps
the connection overrides (``--token``, ``--region``, ``--base-url``) on
``ctx.obj`` for the sub-commands.  :func:`main` is the console-script entry
point declared in ``pyproject.toml``; it turns
:class:`~capi_client.exceptions.CapiError` into the matching exit code.
"""

from __future__ import annotations

import logging
import signal
import sys
from typing import Any, Optional

import typer

from capi_client import __version__
from capi_client.commands.cache import cache_app
from capi_client.commands.config import config_app
from capi_client.commands.request import get_command
from capi_client.commands.stories import stories_app
from capi_client.exit_codes import EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="capi",
    help="Query a headless CMS Content Delivery API with caching and rate limiting.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("get")(get_command)
app.add_typer(stories_app, name="stories", help="Fetch stories.")
app.add_typer(config_app, name="config", help="Configuration management.")
app.add_typer(cache_app, name="cache", help="On-disk response cache.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"capi {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    token: Optional[str] = typer.Option(
        None, "--token", "-t", help="Access token (overrides CAPI_ACCESS_TOKEN)."
    ),
    region: Optional[str] = typer.Option(
        None, "--region", "-r", help="Region: eu, us, ca, ap, cn."
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="Override the region base URL."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every sub-command."""
    from capi_client.config import configured_output_format
    from capi_client.output import OutputFormat, OutputManager, set_output

    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        fmt = OutputFormat(configured_output_format())

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    ctx.ensure_object(dict)
    ctx.obj["access_token"] = token
    ctx.obj["region"] = region
    ctx.obj["base_url"] = base_url


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """CLI entry point invoked by the ``capi`` console script.

    :class:`~capi_client.exceptions.CapiError` exits with the error's
    ``exit_code``; anything else is reported and exits with a generic
    failure.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    from capi_client.exceptions import CapiError
    from capi_client.output import get_output

    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except CapiError as exc:
        get_output().error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        get_output().error(f"Unexpected error: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
