"""kindex index command: collect, chunk, embed and store registered sources."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from kindex.cli.common import console, open_service
from kindex.cli.errors import err_no_api_key, err_source_not_found, err_store
from kindex.db.errors import StoreError
from kindex.service import SourceNotFoundError

_STATUS_STYLE = {
    "success": "[green]✓ success[/]",
    "skipped": "[dim]↷ skipped[/]",
    "failed": "[red]✗ failed[/]",
}


def index_cmd(
    url: Annotated[
        str | None,
        typer.Option("--url", "-u", help="Index only this registered source."),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", help="Re-index even when content is unchanged."),
    ] = False,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the kindex database (default from config)."),
    ] = None,
) -> None:
    """Index registered knowledge sources into the vector store."""
    service, cfg = open_service(db)

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console,
        ) as prog:
            prog.add_task("Indexing…", total=None)
            results = service.index(url=url, force=force)
    except SourceNotFoundError as exc:
        console.print(err_source_not_found(exc.url))
        raise typer.Exit(1) from exc
    except StoreError as exc:
        console.print(err_store(str(exc), cfg.store.path))
        raise typer.Exit(1) from exc

    if not results:
        console.print("[yellow]No knowledge sources registered.[/]\n  Run:  kindex sources add URL")
        raise typer.Exit(0)

    table = Table(title="Indexing Results", show_header=True, header_style="bold")
    table.add_column("URL", style="bold")
    table.add_column("Status")
    table.add_column("Chunks", justify="right")
    table.add_column("Error")

    for r in results:
        chunks = "" if r.chunks_count is None else str(r.chunks_count)
        table.add_row(r.url, _STATUS_STYLE.get(r.status, r.status), chunks, r.error or "")
    console.print(table)

    failed = [r for r in results if r.status == "failed"]
    missing_key = next((r for r in failed if r.error and "API key not found" in r.error), None)
    if missing_key is not None:
        console.print(err_no_api_key(missing_key.error))
    if failed:
        raise typer.Exit(1)
