"""kindex rich error messages: actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from kindex.cli.errors import err_no_api_key
    console.print(err_no_api_key(str(exc)))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_no_api_key(detail: str) -> str:
    """Provider API key missing from the environment."""
    return (
        f"[red]Error:[/] {detail}\n"
        "  API keys are read from environment variables only, never from config files."
    )


def err_config(detail: str) -> str:
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {detail}\n"
        "  Fix kindex.yaml or ~/.kindex/config.yaml and run the command again."
    )


def err_invalid_source(detail: str) -> str:
    return (
        f"[red]Error:[/] {detail}\n"
        "  Example:  kindex sources add https://example.com/post --title 'Post' --category blog"
    )


def err_duplicate_source(url: str) -> str:
    return (
        f"[red]Error:[/] '{url}' is already registered.\n"
        "  Run:  kindex sources list"
    )


def err_source_not_found(url: str) -> str:
    return (
        f"[red]Error:[/] No knowledge source is registered for '{url}'.\n"
        "  Run:  kindex sources list"
    )


def err_store(detail: str, db_path: str) -> str:
    """Vector store cannot be opened or written."""
    return (
        f"[red]Error:[/] Vector store unavailable: {detail}\n"
        f"  Check that '{db_path}' is a writable kindex database, not locked by another process."
    )


def err_rate_limited(reset_at: str) -> str:
    return (
        "[red]Error:[/] Daily request limit reached.\n"
        f"  The limit resets at {reset_at}."
    )


def err_file_not_found(path: str) -> str:
    return f"[red]Error:[/] File not found: '{path}'\n  Check the path and try again."
