"""Command-line interface for bucketsync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- sync: Replicate local state into the bucket mount
- mount: Ensure the bucket is mounted
- status: Show mount state and last sync
- config: Manage stored settings
- serve: Run the HTTP admin API
"""

from __future__ import annotations

import click

from bucketsync.cli.config import (
    get_config_dir,
    get_config_file,
    get_environ,
    load_config,
    save_config,
)
from bucketsync.cli.configure import config_group
from bucketsync.cli.mount import mount, status
from bucketsync.cli.server import serve
from bucketsync.cli.sync import sync


@click.group()
@click.version_option(package_name="bucketsync")
def cli() -> None:
    """bucketsync - Keep a working tree backed by a mounted bucket."""


# Sync commands
cli.add_command(sync)

# Mount commands
cli.add_command(mount)
cli.add_command(status)

# Config commands
cli.add_command(config_group)

# Server commands
cli.add_command(serve)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "get_config_dir",
    "get_config_file",
    "get_environ",
    "load_config",
    "save_config",
]
