"""In-memory conversation sessions with LLM summarisation of long histories."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from kindex.db.models import ConversationMessage
from kindex.rag.llm_client import complete

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGES = 10
DEFAULT_KEEP_RECENT = 4

_SUMMARY_PROMPT = """\
Summarise the following conversation in a few sentences. Keep names, \
topics and any facts the assistant cited so the conversation can continue \
without the full transcript.

Conversation:
{transcript}

Summary:"""


@dataclass
class ConversationSession:
    id: str
    messages: list[ConversationMessage] = field(default_factory=list)
    created_at: str = ""
    summary: str = ""


class ConversationManager:
    """Keep per-session message histories in memory.

    Once a session holds more than *max_messages* messages,
    ``summarize_if_needed`` folds all but the *keep_recent* newest ones into
    a running summary produced by *model*. The summary is sent ahead of the
    remaining messages on every later turn.
    """

    def __init__(
        self,
        model: str,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        keep_recent: int = DEFAULT_KEEP_RECENT,
    ) -> None:
        if keep_recent < 0 or keep_recent > max_messages:
            raise ValueError("keep_recent must be in [0, max_messages]")
        self._model = model
        self._max_messages = max_messages
        self._keep_recent = keep_recent
        self._sessions: dict[str, ConversationSession] = {}

    def create_session(self) -> str:
        session_id = str(uuid.uuid4())
        self._sessions[session_id] = ConversationSession(id=session_id, created_at=_now())
        return session_id

    def has_session(self, session_id: str) -> bool:
        return session_id in self._sessions

    def add_message(self, session_id: str, message: ConversationMessage) -> None:
        """Append *message* to the session.

        Raises:
            KeyError: If *session_id* is unknown.
        """
        if not message.timestamp:
            message.timestamp = _now()
        self._session(session_id).messages.append(message)

    def get_history(self, session_id: str) -> list[ConversationMessage]:
        return list(self._session(session_id).messages)

    def summarize_if_needed(self, session_id: str) -> list[ConversationMessage]:
        """Return the history to send to the model, summarising old turns if long.

        Once the session exceeds *max_messages*, the older turns are folded
        into the session's running summary and dropped from storage, so each
        turn is summarised once. A failed summary call is logged, the stored
        history is left as it was and only the recent messages are returned
        behind any earlier summary.
        """
        session = self._session(session_id)
        messages = session.messages
        if len(messages) <= self._max_messages:
            return self._with_summary(session, list(messages))

        split = len(messages) - self._keep_recent
        older, recent = messages[:split], messages[split:]
        try:
            summary = self._summarize(older, session.summary)
        except Exception as exc:
            logger.warning("Conversation summary failed for %s: %s", session_id, exc)
            return self._with_summary(session, list(recent))

        session.summary = summary
        session.messages = list(recent)
        return self._with_summary(session, list(recent))

    def _with_summary(
        self, session: ConversationSession, messages: list[ConversationMessage]
    ) -> list[ConversationMessage]:
        if not session.summary:
            return messages
        header = ConversationMessage(
            role="assistant",
            content=f"Summary of the earlier conversation: {session.summary}",
            timestamp=_now(),
        )
        return [header, *messages]

    def _summarize(self, messages: list[ConversationMessage], previous: str = "") -> str:
        transcript = "\n".join(f"{m.role}: {m.content}" for m in messages)
        if previous:
            transcript = f"(earlier summary) {previous}\n{transcript}"
        prompt = _SUMMARY_PROMPT.format(transcript=transcript)
        return complete(
            self._model,
            [{"role": "user", "content": prompt}],
            max_tokens=300,
        ).strip()

    def _session(self, session_id: str) -> ConversationSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise KeyError(f"Unknown conversation session: {session_id}") from None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
