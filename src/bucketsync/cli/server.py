"""Server commands for the bucketsync CLI.

Commands:
- serve: Run the HTTP admin API (and optional periodic sync)
"""

from __future__ import annotations

import os

import click


@click.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Interface to bind.")
@click.option("--port", "-p", type=int, default=8000, show_default=True, help="Port to bind.")
@click.option(
    "--interval",
    "-i",
    type=float,
    default=None,
    help="Run a periodic sync every N minutes (default: BUCKETSYNC_SYNC_INTERVAL or off).",
)
def serve(host: str, port: int, interval: float | None) -> None:
    """Run the HTTP admin API.

    Exposes GET /api/storage and POST /api/storage/sync.

    Examples:

        # Serve locally
        bucketsync serve

        # Serve and sync every 5 minutes
        bucketsync serve --interval 5
    """
    import uvicorn

    if interval is not None:
        os.environ["BUCKETSYNC_SYNC_INTERVAL"] = str(interval)

    click.echo(f"Serving on http://{host}:{port}")
    uvicorn.run("bucketsync.server.app:app_factory", factory=True, host=host, port=port)
