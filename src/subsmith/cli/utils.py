"""Shared CLI utilities."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from subsmith.core.config import SubsmithConfig, load_config
from subsmith.core.errors import ConfigError
from subsmith.core.events import BLUEPRINT_READY, COMPLETED, FAILED, PROGRESS, ProgressEvent
from subsmith.core.languages import validate_language
from subsmith.core.models import UserGlossaryItem
from subsmith.jobs.service import TranslationService, load_glossary
from subsmith.utils.console import console


def build_config(to: Optional[str] = None, workers: Optional[int] = None) -> SubsmithConfig:
    """Load config with CLI overrides, exiting on an invalid language code."""
    if to is not None:
        try:
            validate_language(to)
        except ValueError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
    return load_config(**{"ai.target_language": to, "queue.workers": workers})


def open_service(config: SubsmithConfig) -> TranslationService:
    try:
        return TranslationService(config)
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)


def read_subtitles(path: Path) -> str:
    if not path.is_file():
        console.print(f"[red]File not found:[/red] {path}")
        raise typer.Exit(1)
    return path.read_text(encoding="utf-8-sig")


def read_glossary(path: Optional[Path]) -> list[UserGlossaryItem]:
    if path is None:
        return []
    if not path.is_file():
        console.print(f"[red]Glossary not found:[/red] {path}")
        raise typer.Exit(1)
    try:
        items = load_glossary(path)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print(f"[bold]Glossary:[/bold] {len(items)} term(s) from {path}")
    return items


def print_event(event: ProgressEvent) -> None:
    """Render one job event on the console."""
    if event.type == PROGRESS:
        console.print(f"  {event.payload.get('stage', '')}")
    elif event.type == BLUEPRINT_READY:
        glossary = event.payload.get("glossary", [])
        console.print(f"[green]Blueprint ready:[/green] {len(glossary)} glossary term(s)")
    elif event.type == COMPLETED:
        console.print("[green]Translation complete.[/green]")
    elif event.type == FAILED:
        console.print(f"[red]Job failed:[/red] {event.payload.get('error', '')}")
