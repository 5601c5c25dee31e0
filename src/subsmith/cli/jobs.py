"""subsmith submit/status/cancel commands — work with the durable job queue."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.table import Table

from subsmith.cli.utils import build_config, read_glossary, read_subtitles
from subsmith.core.errors import JobCancelled
from subsmith.core.models import JobPayload, JobStatus
from subsmith.jobs.service import dump_job
from subsmith.jobs.store import JobStore
from subsmith.utils.console import console

_STATUS_STYLE = {
    JobStatus.QUEUED: "cyan",
    JobStatus.ACTIVE: "yellow",
    JobStatus.COMPLETED: "green",
    JobStatus.FAILED: "red",
}


def _open_store() -> JobStore:
    return JobStore(build_config().queue.db_path)


def submit(
    subtitle_files: Annotated[
        list[Path],
        typer.Argument(help="Subtitle files to enqueue."),
    ],
    tone: Annotated[
        str,
        typer.Option("--tone", help="Tone for the translation (e.g. Casual, Formal)."),
    ] = "Neutral",
    thinking: Annotated[
        bool,
        typer.Option("--thinking", help="Use extended reasoning for deep-tier calls."),
    ] = False,
    glossary: Annotated[
        Optional[Path],
        typer.Option("--glossary", "-g", help='JSON glossary: [{"term": ..., "translation": ...}].'),
    ] = None,
) -> None:
    """Enqueue subtitle files for a worker and print their job ids."""
    user_glossary = read_glossary(glossary)
    store = _open_store()
    for path in subtitle_files:
        payload = JobPayload(
            subtitle_content=read_subtitles(path),
            tone=tone,
            thinking_mode=thinking,
            user_glossary=user_glossary,
        )
        job = store.create(payload)
        console.print(f"[green]Queued:[/green] {path} → {job.id}")


def status(
    job_id: Annotated[
        Optional[str],
        typer.Argument(help="Job id. Omit to list recent jobs."),
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write a completed job's subtitles to this file."),
    ] = None,
) -> None:
    """Show the last known state of a job, or list recent jobs."""
    store = _open_store()

    if job_id is None:
        table = Table(title="Recent Jobs")
        table.add_column("Job", style="bold")
        table.add_column("Status")
        table.add_column("Attempts", justify="right")
        table.add_column("Progress")
        for job in store.list_jobs():
            style = _STATUS_STYLE[job.status]
            table.add_row(job.id, f"[{style}]{job.status.value}[/{style}]", str(job.attempts), job.progress)
        console.print(table)
        return

    job = store.get(job_id)
    if job is None:
        console.print(f"[red]Unknown job:[/red] {job_id}")
        raise typer.Exit(1)

    console.print_json(dump_job(job))
    if output is not None:
        if job.result is None:
            console.print(f"[yellow]Job {job_id} has no result yet.[/yellow]")
            raise typer.Exit(1)
        output.write_text(job.result, encoding="utf-8")
        console.print(f"[green]Saved:[/green] {output}")


def cancel(
    job_id: Annotated[str, typer.Argument(help="Job id to cancel.")],
) -> None:
    """Request cancellation of a queued or running job."""
    store = _open_store()
    job = store.get(job_id)
    if job is None:
        console.print(f"[red]Unknown job:[/red] {job_id}")
        raise typer.Exit(1)
    if job.status.is_terminal:
        console.print(f"[yellow]Job {job_id} already {job.status.value}.[/yellow]")
        return

    if store.request_cancel(job_id, str(JobCancelled(job_id))):
        console.print(f"[green]Cancelled:[/green] {job_id}")
    else:
        console.print(f"[green]Cancellation requested:[/green] {job_id} stops at its next checkpoint")
