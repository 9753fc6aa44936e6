"""KnowledgeService: the composition root wiring every collaborator once.

Construct one service per process with ``build_service(config)``; the CLI
does so at command start. Tests construct ``KnowledgeService`` directly with
in-memory doubles.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from kindex.config import KindexConfig
from kindex.db.connection import Database
from kindex.db.errors import DuplicateSourceError, StoreError
from kindex.db.models import (
    ConversationMessage,
    IndexResult,
    KnowledgeSource,
    SearchResult,
    SourceWithStatus,
)
from kindex.db.store import SqliteVectorStore, VectorStore
from kindex.ingest.base import BaseChunker, BaseCollector, BaseEmbedder
from kindex.ingest.chunker import TextChunker
from kindex.ingest.collector import WebCollector
from kindex.ingest.embedding import LiteLLMEmbedder
from kindex.ingest.pipeline import IndexingPipeline
from kindex.ingest.sources import load_knowledge_config, validate_source
from kindex.rag.answer import AnswerStream, generate_answer
from kindex.rag.conversation import ConversationManager
from kindex.rag.hybrid_search import HybridSearcher
from kindex.rag.rate_limit import RateLimiter, RateLimitResult

logger = logging.getLogger(__name__)


class SourceNotFoundError(LookupError):
    """Raised when an operation names a URL that is not registered."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"No knowledge source is registered for '{url}'.")


class RateLimitExceeded(RuntimeError):
    """Raised when a client has used up its daily request allowance."""

    def __init__(self, result: RateLimitResult) -> None:
        self.result = result
        super().__init__(
            f"Daily request limit reached. Try again after {result.reset_at}."
        )


class KnowledgeService:
    """Source registry, indexing, search and question answering in one place."""

    def __init__(
        self,
        store: VectorStore,
        collector: BaseCollector,
        chunker: BaseChunker,
        embedder: BaseEmbedder,
        conversations: ConversationManager,
        rate_limiter: RateLimiter,
        generation_model: str,
        top_k: int = 5,
        rrf_k: int = 60,
        prefetch_multiplier: int = 4,
    ) -> None:
        self.store = store
        self.conversations = conversations
        self.rate_limiter = rate_limiter
        self.generation_model = generation_model
        self.top_k = top_k
        self._pipeline = IndexingPipeline(store, collector, chunker, embedder)
        self._searcher = HybridSearcher(
            store, embedder, rrf_k=rrf_k, prefetch_multiplier=prefetch_multiplier
        )

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def index(self, url: str | None = None, force: bool = False) -> list[IndexResult]:
        """Index every registered source, or only *url*.

        Raises:
            SourceNotFoundError: If *url* is given but not registered.
        """
        if url is None:
            sources = self.store.list_sources()
        else:
            source = self.store.get_source_by_url(url)
            if source is None:
                raise SourceNotFoundError(url)
            sources = [source]
        return self._pipeline.run(sources, force=force)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, question: str, top_k: int | None = None) -> list[SearchResult]:
        return self._searcher.search(question, top_k or self.top_k)

    # ------------------------------------------------------------------
    # Source registry
    # ------------------------------------------------------------------

    def add_source(self, raw: dict[str, Any]) -> KnowledgeSource:
        """Validate *raw* and register it.

        Raises:
            SourceValidationError: If *raw* is not a valid source.
            DuplicateSourceError: If the URL is already registered.
        """
        source = validate_source(raw)
        if self.store.get_source_by_url(source.url) is not None:
            raise DuplicateSourceError(source.url)
        return self.store.add_source(source)

    def delete_source(self, url: str) -> None:
        """Unregister *url* and delete its indexed chunks.

        Raises:
            SourceNotFoundError: If *url* is not registered.
        """
        if self.store.get_source_by_url(url) is None:
            raise SourceNotFoundError(url)
        self.store.delete_source(url)

    def list_sources(self) -> list[SourceWithStatus]:
        return self.store.get_all_sources()

    def import_sources(self, path: Path | str) -> tuple[list[KnowledgeSource], list[str]]:
        """Register every source in a knowledge config file.

        Returns:
            (added sources, URLs skipped because they were already registered)
        """
        added: list[KnowledgeSource] = []
        skipped: list[str] = []
        for source in load_knowledge_config(path):
            try:
                added.append(self.store.add_source(source))
            except DuplicateSourceError:
                skipped.append(source.url)
        return added, skipped

    # ------------------------------------------------------------------
    # Question answering
    # ------------------------------------------------------------------

    def ask(
        self,
        question: str,
        session_id: str | None = None,
        client_id: str = "anonymous",
    ) -> tuple[str, AnswerStream]:
        """Answer *question* with retrieved context and session history.

        Returns:
            (session id, answer stream). Pass the final text to
            ``record_answer`` once the stream is consumed.

        Raises:
            ValueError: If *question* is blank.
            RateLimitExceeded: If *client_id* has no requests left today.
        """
        if not question.strip():
            raise ValueError("Question must not be empty.")

        limit = self.rate_limiter.check_limit(client_id)
        if not limit.allowed:
            raise RateLimitExceeded(limit)
        self.rate_limiter.increment(client_id)

        if not session_id or not self.conversations.has_session(session_id):
            session_id = self.conversations.create_session()
        user_message = ConversationMessage(role="user", content=question)
        self.conversations.add_message(session_id, user_message)
        history = self.conversations.summarize_if_needed(session_id)

        try:
            context = self.search(question)
        except StoreError as exc:
            logger.warning("Search unavailable, answering without context: %s", exc)
            context = []

        # The current question is sent with the context, not as history.
        prior = history[:-1] if history and history[-1] is user_message else history
        return session_id, generate_answer(question, context, prior, model=self.generation_model)

    def record_answer(self, session_id: str, text: str) -> None:
        self.conversations.add_message(
            session_id, ConversationMessage(role="assistant", content=text)
        )


def build_service(config: KindexConfig) -> KnowledgeService:
    """Construct a KnowledgeService with production collaborators from *config*."""
    store = SqliteVectorStore(
        Database(config.store.path),
        collection=config.store.collection,
        dimensions=config.embedding.dimensions,
        embedding_model=config.embedding.model,
    )
    return KnowledgeService(
        store=store,
        collector=WebCollector(
            timeout=config.collector.timeout,
            user_agent=config.collector.user_agent,
            block_private_addresses=config.collector.block_private_addresses,
        ),
        chunker=TextChunker(config.chunker.chunk_size, config.chunker.chunk_overlap),
        embedder=LiteLLMEmbedder(config.embedding.model, config.embedding.dimensions),
        conversations=ConversationManager(
            model=config.generation.model,
            max_messages=config.chat.max_messages,
            keep_recent=config.chat.keep_recent,
        ),
        rate_limiter=RateLimiter(daily_limit=config.chat.daily_limit),
        generation_model=config.generation.model,
        top_k=config.retrieval.top_k,
        rrf_k=config.retrieval.rrf_k,
        prefetch_multiplier=config.retrieval.prefetch_multiplier,
    )
