"""Shared CLI plumbing: config + service construction with friendly errors."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from kindex.cli.errors import err_config
from kindex.config import ConfigError, KindexConfig, load_config
from kindex.service import KnowledgeService, build_service

console = Console()


def load_cli_config(db: Path | None = None) -> KindexConfig:
    """Load layered config and apply the ``--db`` flag on top."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    if db is not None:
        cfg.store.path = str(db)
    return cfg


def open_service(db: Path | None = None) -> tuple[KnowledgeService, KindexConfig]:
    cfg = load_cli_config(db)
    return build_service(cfg), cfg
