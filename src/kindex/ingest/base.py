"""Collaborator interfaces for the indexing pipeline.

Each interface has one production implementation in this package:
WebCollector, TextChunker, LiteLLMEmbedder.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from kindex.db.models import ChunkMetadata, CollectedContent, TextChunk


class BaseCollector(ABC):
    """Fetches a URL and returns its cleaned text plus a content hash."""

    @abstractmethod
    def collect(self, url: str) -> CollectedContent:
        """Fetch *url* and return the cleaned content.

        Raises:
            CollectorError: If the URL is unreachable or returns a non-2xx status.
        """


class BaseChunker(ABC):
    """Abstract base for chunkers.

    Sizes are measured in characters, not tokens, so chunk boundaries do not
    depend on any provider's tokenizer.
    """

    def __init__(self, chunk_size: int = 1000, chunk_overlap: int = 200) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if not 0 <= chunk_overlap < chunk_size:
            raise ValueError("chunk_overlap must be in [0, chunk_size)")
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    @abstractmethod
    def chunk(self, text: str, metadata: ChunkMetadata) -> list[TextChunk]:
        """Split *text* into TextChunks that all carry *metadata*.

        Returns:
            Ordered list with contiguous 0-based ``index`` values.
        """


class BaseEmbedder(ABC):
    """Turns text into dense vectors.

    Document and query embeddings are distinct calls because asymmetric
    retrieval models produce different vectors for each.
    """

    @abstractmethod
    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* in document mode, one vector per input."""

    @abstractmethod
    def embed_query(self, text: str) -> list[float]:
        """Embed a single search query in query mode."""
