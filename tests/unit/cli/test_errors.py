"""Tests for kindex rich error messages."""

from __future__ import annotations

import pytest

from kindex.cli.errors import (
    err_config,
    err_duplicate_source,
    err_file_not_found,
    err_invalid_source,
    err_no_api_key,
    err_rate_limited,
    err_source_not_found,
    err_store,
)


def _has_action(msg: str) -> bool:
    """Every error must contain a cause AND an actionable instruction."""
    lower = msg.lower()
    return any(kw in lower for kw in ["run:", "example:", "check", "fix", "environment", "resets"])


@pytest.mark.parametrize(
    "msg",
    [
        err_no_api_key("API key not found for provider 'gemini'."),
        err_config("Config file 'kindex.yaml' is not valid YAML"),
        err_invalid_source("Invalid knowledge source."),
        err_duplicate_source("https://a.com"),
        err_source_not_found("https://a.com"),
        err_store("database is locked", ".kindex.db"),
        err_rate_limited("2026-03-02T00:00:00+09:00"),
        err_file_not_found("knowledge.yaml"),
    ],
)
def test_every_error_is_actionable(msg: str) -> None:
    assert msg.startswith("[red]Error:[/]")
    assert _has_action(msg)


def test_err_store_names_db_path() -> None:
    assert ".kindex.db" in err_store("locked", ".kindex.db")


def test_err_rate_limited_names_reset_time() -> None:
    assert "2026-03-02T00:00:00+09:00" in err_rate_limited("2026-03-02T00:00:00+09:00")
