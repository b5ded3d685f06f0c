"""``capi get`` -- send a GET through the full pipeline and print the result."""

from __future__ import annotations

from typing import Optional

import typer

from capi_client.commands import client_config, parse_query_options, run


def get_command(
    ctx: typer.Context,
    path: str = typer.Argument(help="API path, e.g. v2/cdn/links."),
    query: Optional[list[str]] = typer.Option(
        None, "--query", "-q", help="Query parameter as key=value (repeatable)."
    ),
) -> None:
    """Fetch any Content API path.

    Example::

        capi get v2/cdn/links -q version=published
        capi --json get v2/cdn/tags -q starts_with=blog
    """
    from capi_client.client import ApiClient
    from capi_client.client.response import format_api_result

    config = client_config(ctx)
    params = parse_query_options(query)

    async def _get() -> None:
        async with ApiClient(config) as client:
            result = await client.get(path, params)
        format_api_result(result)

    run(_get)
