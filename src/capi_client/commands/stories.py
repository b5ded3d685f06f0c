"""``capi stories`` -- fetch one story or list stories.

Relation inlining is switched on with ``--inline-relations`` together with
``-q resolve_relations=component.field``.
"""

from __future__ import annotations

from typing import Optional

import typer

from capi_client.commands import client_config, parse_query_options, run
from capi_client.models import ClientConfig
from capi_client.output import get_output

stories_app = typer.Typer(no_args_is_help=True)


def _config(ctx: typer.Context, inline_relations: bool) -> ClientConfig:
    config = client_config(ctx)
    if inline_relations:
        config = config.model_copy(update={"inline_relations": True})
    return config


@stories_app.command("get")
def stories_get(
    ctx: typer.Context,
    identifier: str = typer.Argument(help="Full slug, numeric id or uuid."),
    query: Optional[list[str]] = typer.Option(
        None, "--query", "-q", help="Query parameter as key=value (repeatable)."
    ),
    inline_relations: bool = typer.Option(
        False, "--inline-relations", help="Inline resolve_relations targets."
    ),
) -> None:
    """Fetch a single story.

    Example::

        capi stories get blog/my-post -q version=published
    """
    from capi_client.client import ApiClient
    from capi_client.client.response import format_api_result

    config = _config(ctx, inline_relations)
    params = parse_query_options(query)

    async def _get() -> None:
        async with ApiClient(config) as client:
            result = await client.stories.get(identifier, params)
        format_api_result(result)

    run(_get)


@stories_app.command("list")
def stories_list(
    ctx: typer.Context,
    query: Optional[list[str]] = typer.Option(
        None, "--query", "-q", help="Query parameter as key=value (repeatable)."
    ),
    inline_relations: bool = typer.Option(
        False, "--inline-relations", help="Inline resolve_relations targets."
    ),
) -> None:
    """List stories as a table (``--json`` prints the full payload).

    Example::

        capi stories list -q starts_with=blog/ -q per_page=10
    """
    from capi_client.client import ApiClient
    from capi_client.client.response import status_line
    from capi_client.output import OutputFormat

    config = _config(ctx, inline_relations)
    params = parse_query_options(query)

    async def _list() -> None:
        async with ApiClient(config) as client:
            result = await client.stories.get_all(params)

        output = get_output()
        output.info(status_line(result))
        if result.error is not None:
            raise result.error
        if output.format == OutputFormat.JSON:
            output.format_response(result.data)
            return
        stories = (result.data or {}).get("stories") or []
        rows = [
            [str(story.get("id", "")), story.get("full_slug", ""), story.get("name", "")]
            for story in stories
        ]
        output.print_table(["id", "full_slug", "name"], rows, title="Stories")

    run(_list)
