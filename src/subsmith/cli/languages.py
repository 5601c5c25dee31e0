"""subsmith languages command — list target languages."""

from __future__ import annotations

from rich.table import Table

from subsmith.core.languages import TARGET_LANGUAGES
from subsmith.utils.console import console


def languages() -> None:
    """List the target languages prompts can be written for."""
    table = Table(title=f"Target Languages ({len(TARGET_LANGUAGES)})")
    table.add_column("Code", style="bold cyan", width=5)
    table.add_column("Language", width=20)

    for code in sorted(TARGET_LANGUAGES):
        table.add_row(code, TARGET_LANGUAGES[code])

    console.print(table)
    console.print("\n[dim]Set the target with --to or ai.target_language in subsmith.toml.[/dim]")
