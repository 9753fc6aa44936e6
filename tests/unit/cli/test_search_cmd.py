"""Tests for kindex search and ask commands."""

from __future__ import annotations

from unittest.mock import patch

from fakes import make_result
from typer.testing import CliRunner

from kindex.cli.main import app
from kindex.rag.answer import AnswerStream

runner = CliRunner()


# ---------------------------------------------------------------------------
# search
# ---------------------------------------------------------------------------


def test_search_prints_results(fake_service, fake_store) -> None:
    fake_store.dense_results = [make_result("monorepo notes", "https://a.com")]
    result = runner.invoke(app, ["search", "monorepo"])
    assert result.exit_code == 0, result.output
    assert "Search Results" in result.output
    assert "monorepo notes" in result.output


def test_search_no_results(fake_service) -> None:
    result = runner.invoke(app, ["search", "anything"])
    assert result.exit_code == 0
    assert "No matching chunks" in result.output


def test_search_top_k(fake_service, fake_store) -> None:
    fake_store.dense_results = [make_result(f"chunk{i}") for i in range(5)]
    runner.invoke(app, ["search", "q", "--top-k", "2"])
    assert ("search_dense", 8) in fake_store.log


# ---------------------------------------------------------------------------
# ask
# ---------------------------------------------------------------------------


def test_ask_streams_answer(fake_service) -> None:
    answer = AnswerStream(iter(["A monorepo ", "holds many packages [post](https://a.com)."]))
    with patch("kindex.service.generate_answer", return_value=answer):
        result = runner.invoke(app, ["ask", "What is a monorepo?"])

    assert result.exit_code == 0, result.output
    assert "A monorepo holds many packages [post](https://a.com)." in result.output


def test_ask_blank_question(fake_service) -> None:
    result = runner.invoke(app, ["ask", "  "])
    assert result.exit_code == 1
    assert "must not be empty" in result.output


def test_ask_rate_limited(fake_service) -> None:
    with patch("kindex.service.generate_answer", return_value=AnswerStream(iter(["ok"]))):
        runner.invoke(app, ["ask", "one"])
        result = runner.invoke(app, ["ask", "two"])

    assert result.exit_code == 1
    assert "Daily request limit reached" in result.output


def test_ask_missing_api_key(fake_service) -> None:
    with patch(
        "kindex.service.generate_answer",
        side_effect=EnvironmentError("API key not found for provider 'gemini'. Set the GEMINI_API_KEY environment variable."),
    ):
        result = runner.invoke(app, ["ask", "q"])

    assert result.exit_code == 1
    assert "GEMINI_API_KEY" in result.output
    assert "environment variables only" in result.output


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


def test_version_command() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.output.startswith("kindex ")
