"""Tests for ConversationManager (completion mocked)."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from kindex.db.models import ConversationMessage
from kindex.rag.conversation import ConversationManager


def _fill(manager: ConversationManager, session_id: str, n: int) -> None:
    for i in range(n):
        role = "user" if i % 2 == 0 else "assistant"
        manager.add_message(session_id, ConversationMessage(role=role, content=f"m{i}"))


@pytest.fixture
def manager():
    return ConversationManager(model="gemini/gemini-2.5-flash", max_messages=10, keep_recent=4)


def test_create_session_unique(manager):
    a, b = manager.create_session(), manager.create_session()
    assert a != b
    assert manager.has_session(a)
    assert not manager.has_session("nope")
    assert manager.get_history(a) == []


def test_add_message_stamps_timestamp(manager):
    sid = manager.create_session()
    manager.add_message(sid, ConversationMessage(role="user", content="hi"))
    [message] = manager.get_history(sid)
    assert message.timestamp


def test_unknown_session_raises(manager):
    with pytest.raises(KeyError):
        manager.add_message("nope", ConversationMessage(role="user", content="hi"))
    with pytest.raises(KeyError):
        manager.get_history("nope")


def test_get_history_returns_copy(manager):
    sid = manager.create_session()
    manager.get_history(sid).append(ConversationMessage(role="user", content="x"))
    assert manager.get_history(sid) == []


@pytest.mark.parametrize("keep", [-1, 11])
def test_invalid_keep_recent(keep):
    with pytest.raises(ValueError):
        ConversationManager(model="m", max_messages=10, keep_recent=keep)


def test_short_history_not_summarised(manager):
    sid = manager.create_session()
    _fill(manager, sid, 10)
    with patch("kindex.rag.conversation.complete") as mock_complete:
        history = manager.summarize_if_needed(sid)
    assert [m.content for m in history] == [f"m{i}" for i in range(10)]
    mock_complete.assert_not_called()


def test_long_history_summarised(manager):
    sid = manager.create_session()
    _fill(manager, sid, 11)
    with patch("kindex.rag.conversation.complete", return_value="  talked about monorepos ") as mock_complete:
        history = manager.summarize_if_needed(sid)

    assert len(history) == 5
    assert history[0].role == "assistant"
    assert history[0].content == "Summary of the earlier conversation: talked about monorepos"
    assert [m.content for m in history[1:]] == ["m7", "m8", "m9", "m10"]

    prompt = mock_complete.call_args.args[1][0]["content"]
    assert "user: m0" in prompt and "user: m6" in prompt
    assert "m7" not in prompt
    assert mock_complete.call_args.kwargs["max_tokens"] == 300
    assert [m.content for m in manager.get_history(sid)] == ["m7", "m8", "m9", "m10"]


def test_summarised_turns_are_dropped_from_storage(manager):
    sid = manager.create_session()
    _fill(manager, sid, 12)
    with patch("kindex.rag.conversation.complete", return_value="s"):
        manager.summarize_if_needed(sid)
    assert [m.content for m in manager.get_history(sid)] == ["m8", "m9", "m10", "m11"]


def test_summary_carries_over_without_resummarising():
    manager = ConversationManager(model="m", max_messages=4, keep_recent=2)
    sid = manager.create_session()
    _fill(manager, sid, 5)
    with patch("kindex.rag.conversation.complete", return_value="first") as mock_complete:
        manager.summarize_if_needed(sid)
        manager.add_message(sid, ConversationMessage(role="user", content="next"))
        history = manager.summarize_if_needed(sid)

    assert mock_complete.call_count == 1
    assert history[0].content == "Summary of the earlier conversation: first"
    assert [m.content for m in history[1:]] == ["m3", "m4", "next"]
    assert len(manager.get_history(sid)) == 3


def test_next_summary_folds_in_previous_one():
    manager = ConversationManager(model="m", max_messages=4, keep_recent=2)
    sid = manager.create_session()
    _fill(manager, sid, 5)
    with patch("kindex.rag.conversation.complete", return_value="first"):
        manager.summarize_if_needed(sid)
    _fill(manager, sid, 3)
    with patch("kindex.rag.conversation.complete", return_value="second") as mock_complete:
        history = manager.summarize_if_needed(sid)

    prompt = mock_complete.call_args.args[1][0]["content"]
    assert "(earlier summary) first" in prompt
    assert "assistant: m3" in prompt and "user: m4" in prompt
    assert history[0].content == "Summary of the earlier conversation: second"
    assert len(manager.get_history(sid)) == 2


def test_summary_failure_falls_back_to_recent(manager, caplog):
    sid = manager.create_session()
    _fill(manager, sid, 11)
    with patch("kindex.rag.conversation.complete", side_effect=RuntimeError("quota")):
        history = manager.summarize_if_needed(sid)

    assert [m.content for m in history] == ["m7", "m8", "m9", "m10"]
    assert "quota" in caplog.text
    assert len(manager.get_history(sid)) == 11
