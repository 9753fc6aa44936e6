"""Domain models shared by the ingest, store, and retrieval layers."""

from __future__ import annotations

from dataclasses import dataclass, field

SOURCE_TYPES = ("url", "text")
INDEX_STATUSES = ("success", "skipped", "failed")


@dataclass
class KnowledgeSource:
    """A registered unit of knowledge.

    Attributes:
        url: Unique identifier. Web pages use their URL; text sources use a
            synthetic ``scheme://id`` string.
        title: Human-readable title, copied into every chunk.
        category: Free-form tag, copied into every chunk.
        type: 'url' (fetched by the collector) or 'text' (inline content).
        content: Raw text body; required iff ``type == 'text'``.
        created_at: ISO-8601 timestamp stamped by the source registry.
    """

    url: str
    title: str
    category: str
    type: str = "url"
    content: str | None = None
    created_at: str | None = None


@dataclass
class SourceWithStatus:
    """A registered source annotated with its derived indexing status."""

    source: KnowledgeSource
    indexing_status: str = "not_indexed"  # indexed | not_indexed

    @property
    def url(self) -> str:
        return self.source.url


@dataclass
class CollectedContent:
    url: str
    title: str
    text: str
    content_hash: str
    collected_at: str


@dataclass
class ChunkMetadata:
    source_url: str
    source_title: str
    category: str


@dataclass
class TextChunk:
    text: str
    index: int
    metadata: ChunkMetadata


@dataclass
class VectorPoint:
    """The persisted unit: one embedded chunk.

    ``payload`` holds text, source_url, source_title, category, chunk_index
    and content_hash. The store stamps ``indexed_at`` and ``source_type`` on
    write.
    """

    id: str
    dense: list[float]
    payload: dict = field(default_factory=dict)


@dataclass
class SearchResult:
    text: str
    score: float
    source_url: str
    source_title: str
    category: str
    chunk_index: int


@dataclass
class IndexResult:
    url: str
    status: str  # success | skipped | failed
    chunks_count: int | None = None
    error: str | None = None


@dataclass
class ConversationMessage:
    role: str  # user | assistant
    content: str
    timestamp: str = ""
