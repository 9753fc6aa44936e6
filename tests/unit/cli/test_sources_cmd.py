"""Tests for kindex sources commands (real SQLite store via --db)."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from kindex.cli.main import app

runner = CliRunner()


def _db_args(tmp_path: Path) -> list[str]:
    return ["--db", str(tmp_path / ".kindex.db")]


def _add(tmp_path: Path, url: str = "https://a.com", *extra: str):
    return runner.invoke(
        app,
        ["sources", "add", url, "--title", "Post A", "--category", "blog", *extra, *_db_args(tmp_path)],
    )


# ---------------------------------------------------------------------------
# add
# ---------------------------------------------------------------------------


def test_add_url_source(tmp_path: Path) -> None:
    result = _add(tmp_path)
    assert result.exit_code == 0, result.output
    assert "Registered url source: https://a.com" in result.output
    assert "kindex index" in result.output


def test_add_text_source(tmp_path: Path) -> None:
    result = _add(tmp_path, "resume://summary", "--text", "Backend engineer.")
    assert result.exit_code == 0, result.output
    assert "Registered text source" in result.output


def test_add_duplicate_exits_1(tmp_path: Path) -> None:
    _add(tmp_path)
    result = _add(tmp_path)
    assert result.exit_code == 1
    assert "already registered" in result.output


def test_add_invalid_url_exits_1(tmp_path: Path) -> None:
    result = _add(tmp_path, "not-a-url")
    assert result.exit_code == 1
    assert "http(s)" in result.output


def test_add_requires_title(tmp_path: Path) -> None:
    result = runner.invoke(app, ["sources", "add", "https://a.com", "--category", "blog"])
    assert result.exit_code != 0


# ---------------------------------------------------------------------------
# list
# ---------------------------------------------------------------------------


def test_list_empty(tmp_path: Path) -> None:
    result = runner.invoke(app, ["sources", "list", *_db_args(tmp_path)])
    assert result.exit_code == 0
    assert "No knowledge sources registered" in result.output


def test_list_shows_not_indexed(tmp_path: Path) -> None:
    _add(tmp_path)
    result = runner.invoke(app, ["sources", "list", *_db_args(tmp_path)])
    assert result.exit_code == 0, result.output
    assert "https://a.com" in result.output
    assert "not indexed" in result.output


# ---------------------------------------------------------------------------
# remove
# ---------------------------------------------------------------------------


def test_remove_source(tmp_path: Path) -> None:
    _add(tmp_path)
    result = runner.invoke(app, ["sources", "remove", "https://a.com", *_db_args(tmp_path)])
    assert result.exit_code == 0, result.output
    assert "Removed https://a.com" in result.output

    listing = runner.invoke(app, ["sources", "list", *_db_args(tmp_path)])
    assert "No knowledge sources registered" in listing.output


def test_remove_unknown_exits_1(tmp_path: Path) -> None:
    result = runner.invoke(app, ["sources", "remove", "https://nope.com", *_db_args(tmp_path)])
    assert result.exit_code == 1
    assert "kindex sources list" in result.output


# ---------------------------------------------------------------------------
# import
# ---------------------------------------------------------------------------


def test_import_reports_added_and_skipped(tmp_path: Path) -> None:
    _add(tmp_path)
    path = tmp_path / "knowledge.json"
    path.write_text(
        json.dumps(
            {
                "sources": [
                    {"url": "https://a.com", "title": "A", "category": "blog"},
                    {"url": "https://b.com", "title": "B", "category": "blog"},
                ]
            }
        ),
        encoding="utf-8",
    )

    result = runner.invoke(app, ["sources", "import", str(path), *_db_args(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "Imported 1 sources" in result.output
    assert "Already registered: https://a.com" in result.output


def test_import_missing_file(tmp_path: Path) -> None:
    result = runner.invoke(
        app, ["sources", "import", str(tmp_path / "missing.yaml"), *_db_args(tmp_path)]
    )
    assert result.exit_code == 1
    assert "File not found" in result.output


def test_import_unsupported_extension(tmp_path: Path) -> None:
    path = tmp_path / "knowledge.txt"
    path.write_text("sources: []", encoding="utf-8")
    result = runner.invoke(app, ["sources", "import", str(path), *_db_args(tmp_path)])
    assert result.exit_code == 1
    assert ".txt" in result.output


# ---------------------------------------------------------------------------
# config errors
# ---------------------------------------------------------------------------


def test_invalid_project_config_exits_1(tmp_path: Path) -> None:
    (tmp_path / "kindex.yaml").write_text("store: [unclosed\n", encoding="utf-8")
    result = runner.invoke(app, ["sources", "list"])
    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


def test_invalid_collection_env_exits_1(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("KINDEX_COLLECTION", "My-Docs")
    result = runner.invoke(app, ["sources", "list", *_db_args(tmp_path)])
    assert result.exit_code == 1
    assert "Invalid configuration" in result.output
