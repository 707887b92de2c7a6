"""Mount commands for the bucketsync CLI.

Commands:
- mount: Ensure the bucket is mounted
- status: Show mount state and the last completed sync
"""

from __future__ import annotations

import asyncio
import json
import sys

import click

from bucketsync.cli.config import configure_logging, get_environ
from bucketsync.core.types import MountState
from bucketsync.sync.factory import create_orchestrator


@click.command()
@click.option("--verbose", "-v", is_flag=True, help="Show mount diagnostics.")
def mount(verbose: bool) -> None:
    """Mount the bucket if it is not already mounted.

    A stale mount is lazily unmounted and mounted again.
    """
    configure_logging(verbose)
    orchestrator = create_orchestrator(get_environ())
    config = orchestrator.config

    if not config.is_configured:
        click.echo(
            "Error: R2 storage is not configured "
            "(set R2_ACCESS_KEY_ID, R2_SECRET_ACCESS_KEY and CF_ACCOUNT_ID).",
            err=True,
        )
        sys.exit(1)

    if asyncio.run(orchestrator.mount_controller.ensure_mounted()):
        click.echo(f"Bucket {config.bucket_name} mounted at {config.mount_path}")
    else:
        click.echo(f"Error: failed to mount {config.bucket_name} at {config.mount_path}", err=True)
        sys.exit(1)


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Print status as JSON.")
def status(as_json: bool) -> None:
    """Show mount state and the last completed sync."""
    configure_logging(False)
    orchestrator = create_orchestrator(get_environ())
    config = orchestrator.config

    info: dict[str, object] = {
        "configured": config.is_configured,
        "bucket": config.bucket_name,
        "mountPath": config.mount_path,
    }

    async def _collect() -> None:
        probe = await orchestrator.mount_controller.probe()
        info["mountState"] = probe.state.value
        info["fsType"] = probe.fs_type
        if probe.is_mounted:
            info["lastSync"] = await orchestrator.read_last_sync()

    if config.is_configured:
        asyncio.run(_collect())

    if as_json:
        click.echo(json.dumps(info))
        return

    click.echo(f"Bucket:     {config.bucket_name}")
    click.echo(f"Mount path: {config.mount_path}")
    if not config.is_configured:
        click.echo(click.style("Not configured", fg="yellow"))
        return

    state = info["mountState"]
    color = "green" if state == MountState.MOUNTED.value else "red"
    click.echo(f"Mount:      {click.style(str(state), fg=color)} ({info['fsType'] or '-'})")
    click.echo(f"Last sync:  {info.get('lastSync') or 'never'}")
