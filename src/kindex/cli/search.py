"""kindex search and ask commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from kindex.cli.common import console, open_service
from kindex.cli.errors import err_no_api_key, err_rate_limited, err_store
from kindex.db.errors import StoreError
from kindex.ingest.embedding import EmbeddingError
from kindex.service import RateLimitExceeded

_DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Path to the kindex database (default from config)."),
]


def search_cmd(
    question: Annotated[str, typer.Argument(help="Search query.")],
    top_k: Annotated[
        int | None,
        typer.Option("--top-k", "-k", min=1, help="Number of results (default from config)."),
    ] = None,
    db: _DbOption = None,
) -> None:
    """Hybrid (dense + keyword) search over indexed chunks."""
    service, cfg = open_service(db)
    try:
        results = service.search(question, top_k=top_k)
    except EnvironmentError as exc:
        console.print(err_no_api_key(str(exc)))
        raise typer.Exit(1) from exc
    except StoreError as exc:
        console.print(err_store(str(exc), cfg.store.path))
        raise typer.Exit(1) from exc
    except EmbeddingError as exc:
        console.print(f"[red]Error:[/] {exc}")
        raise typer.Exit(1) from exc

    if not results:
        console.print("[yellow]No matching chunks.[/]")
        raise typer.Exit(0)

    table = Table(title="Search Results", show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Source")
    table.add_column("Text")

    for i, r in enumerate(results, start=1):
        snippet = r.text if len(r.text) <= 160 else r.text[:157] + "…"
        table.add_row(
            str(i),
            f"{r.score:.4f}",
            f"{r.source_title}\n[dim]{r.source_url}#{r.chunk_index}[/]",
            snippet,
        )
    console.print(table)


def ask_cmd(
    question: Annotated[str, typer.Argument(help="Question to answer from the knowledge base.")],
    db: _DbOption = None,
) -> None:
    """Answer a question using retrieved context (streamed)."""
    service, cfg = open_service(db)
    try:
        session_id, answer = service.ask(question, client_id="cli")
        for delta in answer.iter_text():
            console.print(delta, end="", markup=False, highlight=False)
        console.print()
    except ValueError as exc:
        console.print(f"[red]Error:[/] {exc}")
        raise typer.Exit(1) from exc
    except RateLimitExceeded as exc:
        console.print(err_rate_limited(exc.result.reset_at))
        raise typer.Exit(1) from exc
    except EnvironmentError as exc:
        console.print(err_no_api_key(str(exc)))
        raise typer.Exit(1) from exc
    except EmbeddingError as exc:
        console.print(f"[red]Error:[/] {exc}")
        raise typer.Exit(1) from exc

    service.record_answer(session_id, answer.text())
