"""subsmith worker command — process the durable queue until interrupted."""

from __future__ import annotations

import time
from typing import Annotated, Optional

import typer

from subsmith.cli.utils import build_config, open_service
from subsmith.utils.console import console


def worker(
    workers: Annotated[
        Optional[int],
        typer.Option("--workers", "-w", help="Number of worker threads."),
    ] = None,
    to: Annotated[
        Optional[str],
        typer.Option("--to", "-t", help="Target language code (run 'subsmith languages' to list)."),
    ] = None,
) -> None:
    """Run a worker pool against the job queue. Stop with Ctrl+C."""
    config = build_config(to=to, workers=workers)
    service = open_service(config)

    console.print(
        f"[bold]Worker pool:[/bold] {config.queue.workers} thread(s) on {config.queue.db_path}"
    )
    service.start()
    try:
        while service.pool.running:
            time.sleep(1.0)
    except KeyboardInterrupt:
        console.print("[yellow]Stopping after current jobs...[/yellow]")
    finally:
        service.stop()
    console.print("[green]Worker pool stopped.[/green]")
