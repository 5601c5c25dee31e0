"""subsmith translate command — translate a subtitle file end to end."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer

from subsmith.cli.utils import (
    build_config,
    open_service,
    print_event,
    read_glossary,
    read_subtitles,
)
from subsmith.core.events import COMPLETED
from subsmith.utils.console import console


def translate(
    subtitle_file: Annotated[
        Path,
        typer.Argument(help="Path to subtitle file (SRT, VTT, ASS)."),
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
    to: Annotated[
        Optional[str],
        typer.Option("--to", "-t", help="Target language code (run 'subsmith languages' to list)."),
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Output file path."),
    ] = None,
    workers: Annotated[
        Optional[int],
        typer.Option("--workers", "-w", help="Worker threads for this run."),
    ] = None,
) -> None:
    """Translate a subtitle file and wait for the result."""
    content = read_subtitles(subtitle_file)
    user_glossary = read_glossary(glossary)
    config = build_config(to=to, workers=workers)
    service = open_service(config)

    job_id = service.submit(content, tone=tone, thinking_mode=thinking, user_glossary=user_glossary)
    console.print(f"[bold]Job:[/bold] {job_id}")

    # Subscribe before the pool starts so no event is missed; follow() also
    # polls the store in case another worker process runs the job
    final = None
    with service.subscribe(job_id) as events, service:
        for event in service.follow(events):
            print_event(event)
            final = event

    if final is None or final.type != COMPLETED:
        raise typer.Exit(1)
    result = final.payload["result"]

    sub_path = output or subtitle_file.with_suffix(f".{config.ai.target_language}.srt")
    sub_path.write_text(result, encoding="utf-8")
    console.print(f"[green]Saved:[/green] {sub_path}")
