"""Answer generation: prompt assembly over retrieved context, streamed completion."""

from __future__ import annotations

from collections.abc import Iterator

from kindex.db.models import ConversationMessage, SearchResult
from kindex.rag.llm_client import stream, validate_api_key

DEFAULT_GENERATION_MODEL = "gemini/gemini-2.5-flash"

NO_CONTEXT_MARKER = "No related documents were found."

SYSTEM_PROMPT = """\
You are an assistant that answers questions using only the knowledge base \
documents provided with each question.

Rules:
1. Cite sources inline for every statement you take from a document, \
formatted as [title](URL).
2. Decline questions unrelated to the knowledge base and say that only \
questions about its content can be answered.
3. If the documents do not contain enough information, say so plainly \
instead of guessing.
4. Format the answer in Markdown.
5. Base the answer solely on the provided documents; do not use outside \
knowledge or speculation."""


def format_context(results: list[SearchResult]) -> str:
    """Render *results* as numbered references the model can cite."""
    if not results:
        return NO_CONTEXT_MARKER
    return "\n\n---\n\n".join(
        f"[Reference {i}] Title: {r.source_title}\n"
        f"URL: {r.source_url}\n"
        f"Category: {r.category}\n"
        f"Content:\n{r.text}"
        for i, r in enumerate(results, start=1)
    )


def build_messages(
    question: str,
    context: list[SearchResult],
    history: list[ConversationMessage],
) -> list[dict]:
    """Return prior *history* followed by one user message with context and question."""
    messages = [{"role": m.role, "content": m.content} for m in history]
    messages.append(
        {
            "role": "user",
            "content": (
                "Related documents from the knowledge base:\n\n"
                f"{format_context(context)}\n\n"
                "---\n\n"
                f"Question: {question}"
            ),
        }
    )
    return messages


class AnswerStream:
    """Lazily streamed answer text.

    ``iter_text()`` yields deltas as the provider produces them and may be
    consumed once; ``text()`` drains the stream and returns the full answer.
    """

    def __init__(self, chunks: Iterator[str]) -> None:
        self._chunks = chunks
        self._parts: list[str] = []
        self._done = False

    def iter_text(self) -> Iterator[str]:
        for part in self._chunks:
            self._parts.append(part)
            yield part
        self._done = True

    def text(self) -> str:
        if not self._done:
            for _ in self.iter_text():
                pass
        return "".join(self._parts)


def generate_answer(
    question: str,
    context: list[SearchResult],
    history: list[ConversationMessage],
    model: str = DEFAULT_GENERATION_MODEL,
) -> AnswerStream:
    """Start a streamed completion for *question* over *context*.

    Raises:
        EnvironmentError: If the provider API key is not set.
    """
    validate_api_key(model)
    messages = [{"role": "system", "content": SYSTEM_PROMPT}]
    messages.extend(build_messages(question, context, history))
    return AnswerStream(stream(model, messages))
