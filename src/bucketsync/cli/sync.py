"""Sync command for the bucketsync CLI.

Commands:
- sync: Replicate local state into the bucket mount
"""

from __future__ import annotations

import json
import sys
import time

import click

from bucketsync.cli.config import configure_logging, get_environ
from bucketsync.server.scheduler import DEFAULT_INTERVAL_MINUTES, SyncScheduler, run_sync_once
from bucketsync.sync.factory import create_orchestrator
from bucketsync.sync.types import SyncResult


def echo_result(result: SyncResult, as_json: bool) -> None:
    """Print a SyncResult for humans or as JSON."""
    if as_json:
        click.echo(json.dumps(result.to_dict()))
        return

    if result.success and result.last_sync:
        click.echo(click.style("✓ Sync complete", fg="green") + f" (last sync: {result.last_sync})")
    elif result.success:
        click.echo(result.details or "Nothing to do.")
    else:
        click.echo(click.style(f"✗ {result.error}", fg="red"), err=True)
        if result.details:
            click.echo(result.details, err=True)


@click.command()
@click.option("--watch", "-w", is_flag=True, help="Keep running and sync periodically.")
@click.option(
    "--interval",
    "-i",
    type=click.FloatRange(min=0.1),
    default=DEFAULT_INTERVAL_MINUTES,
    show_default=True,
    help="Minutes between syncs in watch mode.",
)
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON.")
@click.option("--verbose", "-v", is_flag=True, help="Log every sync stage.")
def sync(watch: bool, interval: float, as_json: bool, verbose: bool) -> None:
    """Replicate local state into the bucket mount.

    Mounts the bucket if needed, checks the local trees look sane, mirrors
    them into the mount and verifies the completion marker.
    Use --watch to keep syncing every --interval minutes.
    """
    configure_logging(verbose)
    orchestrator = create_orchestrator(get_environ(), verbose=verbose or None)

    if not watch:
        click.echo(f"Syncing into {orchestrator.config.mount_path}...", err=as_json)
    result = run_sync_once(orchestrator)
    echo_result(result, as_json)

    if not watch:
        if not result.success:
            sys.exit(1)
        return

    scheduler = SyncScheduler(orchestrator, interval_minutes=interval)
    scheduler.start()
    click.echo(f"\nSyncing every {interval:g} minutes... (Ctrl+C to stop)\n")
    try:
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:
        click.echo("\nStopping...")
    finally:
        scheduler.stop()
