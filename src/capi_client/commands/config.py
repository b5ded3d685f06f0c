"""``capi config`` -- view and modify the user configuration.

Settings live in ``config.json`` in the capi config directory.  The raw
access token is never written there; point ``access_token_source`` at an
environment variable or a file instead.
"""

from __future__ import annotations

import typer

from capi_client.output import get_output

config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show the stored configuration.

    Example::

        capi config show
        capi --json config show
    """
    from capi_client.config import get_config_dir, load_user_config
    from capi_client.models import ClientConfig

    config = ClientConfig.model_validate(load_user_config())
    output = get_output()
    output.info(f"Config directory: {get_config_dir()}")
    output.format_response(config.model_dump(mode="json", exclude={"access_token"}))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Config key (dot notation, e.g. 'cache.ttl_ms')."),
    value: str = typer.Argument(help="Value to set (parsed as JSON when possible)."),
) -> None:
    """Set a configuration value.

    Example::

        capi config set region us
        capi config set cache.strategy swr
        capi config set rate_limit.max_concurrent 10
        capi config set access_token_source env:STORYBLOK_TOKEN
    """
    from capi_client.config import load_user_config, save_user_config, set_config_value
    from capi_client.models import ClientConfig

    config = ClientConfig.model_validate(load_user_config())
    updated = set_config_value(config, key, value)
    save_user_config(updated)
    get_output().success(f"Set {key} = {value}")
