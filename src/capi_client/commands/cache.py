"""``capi cache`` -- manage the on-disk response cache."""

from __future__ import annotations

import typer

from capi_client.commands import run
from capi_client.output import get_output

cache_app = typer.Typer(no_args_is_help=True)


@cache_app.command("clear")
def cache_clear() -> None:
    """Delete every cached response of the ``disk`` backend.

    Example::

        capi cache clear
    """
    from capi_client.cache import DiskCacheProvider
    from capi_client.config import get_cache_dir

    with DiskCacheProvider(get_cache_dir()) as provider:
        removed = len(provider)
        run(provider.flush)
    get_output().success(f"Cleared {removed} cached response(s).")


@cache_app.command("stats")
def cache_stats() -> None:
    """Show size and location of the on-disk cache."""
    from capi_client.cache import DiskCacheProvider
    from capi_client.config import get_cache_dir

    with DiskCacheProvider(get_cache_dir()) as provider:
        get_output().format_response(provider.stats())
