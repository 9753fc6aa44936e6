"""Indexing pipeline: collect, deduplicate by content hash, chunk, embed, upsert.

Per source, in order:
  1. Collect (URL source) or validate inline content (text source).
  2. Compare the new content hash with the stored one; equal ⇒ skipped.
  3. Delete the source's existing points.
  4. Chunk, embed all chunk texts in one batch, upsert.

Sources are processed sequentially. A failing source becomes a ``failed``
IndexResult and processing continues with the next one.
"""

from __future__ import annotations

import logging
import uuid

from kindex.db.models import ChunkMetadata, IndexResult, KnowledgeSource, TextChunk, VectorPoint
from kindex.db.store import VectorStore
from kindex.ingest.base import BaseChunker, BaseCollector, BaseEmbedder
from kindex.ingest.collector import content_hash
from kindex.ingest.embedding import EmbeddingError

logger = logging.getLogger(__name__)

EMPTY_CONTENT_ERROR = "empty content"


class IndexingPipeline:
    """Index knowledge sources into a VectorStore.

    Args:
        store:     Target vector store.
        collector: Fetches URL sources.
        chunker:   Splits cleaned text into TextChunks.
        embedder:  Produces document-mode vectors for the chunks.
    """

    def __init__(
        self,
        store: VectorStore,
        collector: BaseCollector,
        chunker: BaseChunker,
        embedder: BaseEmbedder,
    ) -> None:
        self._store = store
        self._collector = collector
        self._chunker = chunker
        self._embedder = embedder

    def run(self, sources: list[KnowledgeSource], force: bool = False) -> list[IndexResult]:
        """Index *sources* and return one IndexResult per source, in input order.

        Args:
            sources: Sources to index.
            force:   Re-index even when the stored content hash is unchanged.
        """
        self._store.ensure_collection()

        results: list[IndexResult] = []
        for source in sources:
            try:
                result = self._index_source(source, force=force)
            except Exception as exc:
                logger.warning("Indexing failed for %s: %s", source.url, exc)
                result = IndexResult(url=source.url, status="failed", error=str(exc))
            else:
                logger.info(
                    "Indexed %s: %s (%s chunks)", source.url, result.status, result.chunks_count
                )
            results.append(result)
        return results

    # ------------------------------------------------------------------
    # Per-source flow
    # ------------------------------------------------------------------

    def _index_source(self, source: KnowledgeSource, force: bool) -> IndexResult:
        if source.type == "text":
            text = source.content or ""
            if not text.strip():
                return IndexResult(url=source.url, status="failed", error=EMPTY_CONTENT_ERROR)
            new_hash = content_hash(text)
        else:
            collected = self._collector.collect(source.url)
            text, new_hash = collected.text, collected.content_hash

        if not force and self._store.get_content_hash_by_url(source.url) == new_hash:
            return IndexResult(url=source.url, status="skipped")

        self._store.delete_by_source_url(source.url)

        metadata = ChunkMetadata(
            source_url=source.url,
            source_title=source.title,
            category=source.category,
        )
        chunks = self._chunker.chunk(text, metadata)
        if not chunks:
            return IndexResult(url=source.url, status="success", chunks_count=0)

        vectors = self._embedder.embed_texts([c.text for c in chunks])
        points = build_vector_points(chunks, vectors, new_hash)
        self._store.upsert_points(points)
        return IndexResult(url=source.url, status="success", chunks_count=len(points))


def build_vector_points(
    chunks: list[TextChunk], vectors: list[list[float]], content_hash: str
) -> list[VectorPoint]:
    """Pair each chunk with its vector under a fresh UUID4 id.

    Raises:
        EmbeddingError: If the vector count differs from the chunk count.
    """
    if len(vectors) != len(chunks):
        raise EmbeddingError(
            f"Embedder returned {len(vectors)} vectors for {len(chunks)} chunks."
        )
    return [
        VectorPoint(
            id=str(uuid.uuid4()),
            dense=vector,
            payload={
                "text": chunk.text,
                "source_url": chunk.metadata.source_url,
                "source_title": chunk.metadata.source_title,
                "category": chunk.metadata.category,
                "chunk_index": chunk.index,
                "content_hash": content_hash,
            },
        )
        for chunk, vector in zip(chunks, vectors)
    ]


def run_indexing_pipeline(
    sources: list[KnowledgeSource],
    *,
    store: VectorStore,
    collector: BaseCollector,
    chunker: BaseChunker,
    embedder: BaseEmbedder,
    force: bool = False,
) -> list[IndexResult]:
    """Functional shortcut for ``IndexingPipeline(...).run(sources, force)``."""
    return IndexingPipeline(store, collector, chunker, embedder).run(sources, force=force)
