"""Subsmith CLI entry point."""

from typing import Annotated, Optional

import typer
from dotenv import load_dotenv

from subsmith import __version__
from subsmith.cli.jobs import cancel, status, submit
from subsmith.cli.languages import languages
from subsmith.cli.translate import translate
from subsmith.cli.worker import worker

app = typer.Typer(
    name="subsmith",
    help="Subsmith — Context-aware AI subtitle transcreation.",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"subsmith {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-V",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
) -> None:
    """Subsmith — Context-aware AI subtitle transcreation."""
    # Shell exports take precedence over .env
    load_dotenv(override=False)


app.command("translate")(translate)
app.command("submit")(submit)
app.command("worker")(worker)
app.command("status")(status)
app.command("cancel")(cancel)
app.command("languages")(languages)
