"""Built-in ``capi`` sub-commands.

* :mod:`~capi_client.commands.request` -- ``capi get PATH``.
* :mod:`~capi_client.commands.stories` -- ``capi stories get|list``.
* :mod:`~capi_client.commands.config` -- ``capi config show|set``.
* :mod:`~capi_client.commands.cache` -- ``capi cache clear|stats``.

Commands resolve their :class:`~capi_client.models.ClientConfig` through
:func:`client_config`, which layers the root callback's flags (kept on
``ctx.obj``) over environment and config files.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer

from capi_client.exceptions import InvalidUsageError
from capi_client.models import ClientConfig

T = TypeVar("T")


def client_config(ctx: Optional[typer.Context]) -> ClientConfig:
    from capi_client.config import resolve_config

    obj = (ctx.obj if ctx is not None else None) or {}
    return resolve_config(
        cli_access_token=obj.get("access_token"),
        cli_region=obj.get("region"),
        cli_base_url=obj.get("base_url"),
    )


def parse_query_options(options: Optional[list[str]]) -> dict[str, Any]:
    """Turn repeated ``-q key=value`` options into a query dict.

    Raises:
        InvalidUsageError: For an option without ``=``.
    """
    query: dict[str, Any] = {}
    for option in options or []:
        key, sep, value = option.partition("=")
        if not sep or not key:
            raise InvalidUsageError(f"Expected key=value, got: {option}")
        query[key] = value
    return query


def run(fn: Callable[[], Awaitable[T]]) -> T:
    """Run an async command body on a fresh event loop."""
    return asyncio.run(fn())
