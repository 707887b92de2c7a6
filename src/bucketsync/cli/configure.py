"""Config commands for the bucketsync CLI.

Commands:
- config set: Store a setting in ~/.bucketsync/config.json
- config show: Show effective settings (secrets masked)
"""

from __future__ import annotations

import sys

import click

from bucketsync.cli.config import (
    CONFIG_KEYS,
    SECRET_KEYS,
    get_config_file,
    get_environ,
    load_config,
    mask_secret,
    save_config,
)


@click.group("config")
def config_group() -> None:
    """Manage stored settings.

    Environment variables always take precedence over stored settings.
    """


@config_group.command("set")
@click.argument("key")
@click.argument("value")
def set_cmd(key: str, value: str) -> None:
    """Store KEY=VALUE in the config file."""
    key = key.upper()
    if key not in CONFIG_KEYS:
        click.echo(f"Error: unknown key {key}. Known keys: {', '.join(CONFIG_KEYS)}", err=True)
        sys.exit(1)

    config = load_config()
    config[key] = value
    save_config(config)
    shown = mask_secret(value) if key in SECRET_KEYS else value
    click.echo(f"{key} = {shown}")


@config_group.command("show")
def show_cmd() -> None:
    """Show effective settings."""
    environ = get_environ()
    click.echo(f"Config file: {get_config_file()}")
    for key in CONFIG_KEYS:
        value = environ.get(key)
        if value is None:
            shown = click.style("(unset)", dim=True)
        elif key in SECRET_KEYS:
            shown = mask_secret(value)
        else:
            shown = value
        click.echo(f"  {key} = {shown}")
