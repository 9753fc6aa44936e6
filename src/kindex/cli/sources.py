"""kindex sources CLI commands.

Commands:
  kindex sources add URL --title T --category C [--text CONTENT]
  kindex sources list
  kindex sources remove URL
  kindex sources import FILE      (JSON or YAML with a 'sources' list)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from kindex.cli.common import console, open_service
from kindex.cli.errors import (
    err_duplicate_source,
    err_file_not_found,
    err_invalid_source,
    err_source_not_found,
    err_store,
)
from kindex.db.errors import DuplicateSourceError, StoreError
from kindex.ingest.sources import SourceValidationError
from kindex.service import SourceNotFoundError

sources_app = typer.Typer(
    name="sources",
    help="Manage registered knowledge sources (add, list, remove, import).",
    add_completion=False,
)

_DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Path to the kindex database (default from config)."),
]


@sources_app.command("add")
def sources_add_cmd(
    url: Annotated[str, typer.Argument(help="Page URL, or an identifier for --text sources.")],
    title: Annotated[str, typer.Option("--title", "-t", help="Human-readable title.")],
    category: Annotated[str, typer.Option("--category", "-c", help="Category tag.")],
    text: Annotated[
        str | None,
        typer.Option("--text", help="Inline content; registers a text source."),
    ] = None,
    db: _DbOption = None,
) -> None:
    """Register a knowledge source."""
    service, cfg = open_service(db)
    raw = {"url": url, "title": title, "category": category}
    if text is not None:
        raw.update(type="text", content=text)

    try:
        source = service.add_source(raw)
    except SourceValidationError as exc:
        console.print(err_invalid_source(str(exc)))
        raise typer.Exit(1) from exc
    except DuplicateSourceError as exc:
        console.print(err_duplicate_source(exc.url))
        raise typer.Exit(1) from exc
    except StoreError as exc:
        console.print(err_store(str(exc), cfg.store.path))
        raise typer.Exit(1) from exc

    console.print(f"[green]✓[/] Registered {source.type} source: {source.url}")
    console.print("  Run:  kindex index")


@sources_app.command("list")
def sources_list_cmd(db: _DbOption = None) -> None:
    """List registered sources with their indexing status."""
    service, cfg = open_service(db)
    try:
        sources = service.list_sources()
    except StoreError as exc:
        console.print(err_store(str(exc), cfg.store.path))
        raise typer.Exit(1) from exc

    if not sources:
        console.print("[yellow]No knowledge sources registered.[/]\n  Run:  kindex sources add URL")
        raise typer.Exit(0)

    table = Table(title="Knowledge Sources", show_header=True, header_style="bold")
    table.add_column("URL", style="bold")
    table.add_column("Title")
    table.add_column("Category")
    table.add_column("Type")
    table.add_column("Status")

    for item in sources:
        s = item.source
        status = (
            "[green]✓ indexed[/]" if item.indexing_status == "indexed" else "[yellow]✗ not indexed[/]"
        )
        table.add_row(s.url, s.title, s.category, s.type, status)

    console.print(table)


@sources_app.command("remove")
def sources_remove_cmd(
    url: Annotated[str, typer.Argument(help="URL of the source to remove.")],
    db: _DbOption = None,
) -> None:
    """Unregister a source and delete its indexed chunks."""
    service, cfg = open_service(db)
    try:
        service.delete_source(url)
    except SourceNotFoundError as exc:
        console.print(err_source_not_found(exc.url))
        raise typer.Exit(1) from exc
    except StoreError as exc:
        console.print(err_store(str(exc), cfg.store.path))
        raise typer.Exit(1) from exc

    console.print(f"[green]✓[/] Removed {url} and its indexed chunks")


@sources_app.command("import")
def sources_import_cmd(
    path: Annotated[Path, typer.Argument(help="Knowledge config file (.json, .yaml, .yml).")],
    db: _DbOption = None,
) -> None:
    """Register every source listed in a knowledge config file."""
    service, cfg = open_service(db)
    try:
        added, skipped = service.import_sources(path)
    except FileNotFoundError as exc:
        console.print(err_file_not_found(str(path)))
        raise typer.Exit(1) from exc
    except SourceValidationError as exc:
        console.print(err_invalid_source(str(exc)))
        raise typer.Exit(1) from exc
    except StoreError as exc:
        console.print(err_store(str(exc), cfg.store.path))
        raise typer.Exit(1) from exc

    console.print(f"[green]✓[/] Imported {len(added)} sources")
    for url in skipped:
        console.print(f"  [dim]↷ Already registered: {url}[/]")
