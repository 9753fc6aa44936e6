"""Tests for prompt assembly and streamed answer generation."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fakes import make_result

from kindex.db.models import ConversationMessage
from kindex.rag.answer import (
    NO_CONTEXT_MARKER,
    SYSTEM_PROMPT,
    AnswerStream,
    build_messages,
    format_context,
    generate_answer,
)


def test_format_context_numbers_references():
    text = format_context([make_result("first body", "https://a.com"), make_result("second", "https://b.com")])

    assert text.startswith("[Reference 1] Title: Example\nURL: https://a.com\nCategory: blog\nContent:\nfirst body")
    assert "\n\n---\n\n[Reference 2] Title: Example\nURL: https://b.com" in text


def test_format_context_empty():
    assert format_context([]) == NO_CONTEXT_MARKER


def test_build_messages_history_then_question():
    history = [
        ConversationMessage(role="user", content="hi"),
        ConversationMessage(role="assistant", content="hello"),
    ]
    messages = build_messages("What is a monorepo?", [make_result("ctx")], history)

    assert messages[:2] == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
    ]
    assert messages[-1]["role"] == "user"
    assert messages[-1]["content"].startswith("Related documents from the knowledge base:\n\n[Reference 1]")
    assert messages[-1]["content"].endswith("---\n\nQuestion: What is a monorepo?")


def test_build_messages_no_context_marker():
    messages = build_messages("q", [], [])
    assert len(messages) == 1
    assert NO_CONTEXT_MARKER in messages[0]["content"]


def test_answer_stream_iter_and_text():
    answer = AnswerStream(iter(["Mono", "repo", "."]))
    assert list(answer.iter_text()) == ["Mono", "repo", "."]
    assert answer.text() == "Monorepo."


def test_answer_stream_text_drains():
    assert AnswerStream(iter(["a", "b"])).text() == "ab"


def test_generate_answer_prepends_system_prompt(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    with patch("kindex.rag.answer.stream", return_value=iter(["ok"])) as mock_stream:
        answer = generate_answer("q", [make_result("ctx")], [], model="gemini/gemini-2.5-flash")

    assert answer.text() == "ok"
    model, messages = mock_stream.call_args.args
    assert model == "gemini/gemini-2.5-flash"
    assert messages[0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert messages[1]["content"].endswith("Question: q")


def test_generate_answer_requires_api_key(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    with patch("kindex.rag.answer.stream") as mock_stream:
        with pytest.raises(EnvironmentError, match="GEMINI_API_KEY"):
            generate_answer("q", [], [], model="gemini/gemini-2.5-flash")
    mock_stream.assert_not_called()
