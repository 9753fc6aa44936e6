"""kindex CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from kindex.cli.common import console
from kindex.cli.index import index_cmd
from kindex.cli.search import ask_cmd, search_cmd
from kindex.cli.sources import sources_app


def _version() -> str:
    try:
        return importlib.metadata.version("kindex")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"kindex {_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="kindex",
    help=(
        "kindex: knowledge ingestion and hybrid retrieval.\n\n"
        "  kindex sources add   Register a web page or inline text.\n"
        "  kindex index         Collect, chunk, embed and store registered sources.\n"
        "  kindex ask           Answer a question from the indexed knowledge."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    """kindex: knowledge ingestion and hybrid retrieval."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    # LiteLLM and HTTP clients are noisy at DEBUG
    for name in ("LiteLLM", "httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


app.command("index")(index_cmd)
app.command("search")(search_cmd)
app.command("ask")(ask_cmd)
app.add_typer(sources_app, name="sources")


@app.command("version")
def version_cmd() -> None:
    """Show the installed kindex version."""
    typer.echo(f"kindex {_version()}")


if __name__ == "__main__":
    app()
