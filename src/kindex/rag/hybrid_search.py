"""Hybrid search: dense (sqlite-vec) + sparse (FTS5 bm25), fused via RRF.

Reciprocal Rank Fusion:
  score(d) = Σ 1 / (k + rank)   over every list containing d, k = 60

Each channel prefetches ``limit * PREFETCH_MULTIPLIER`` candidates. Results
are identified by ``text::source_url``; two chunks with identical text from
the same URL collapse into one entry.
"""

from __future__ import annotations

import dataclasses
from concurrent.futures import ThreadPoolExecutor

from kindex.db.models import SearchResult
from kindex.db.store import VectorStore
from kindex.ingest.base import BaseEmbedder

RRF_K = 60
DEFAULT_LIMIT = 5
PREFETCH_MULTIPLIER = 4


def result_key(result: SearchResult) -> str:
    """Identity of a search result for fusion purposes."""
    return f"{result.text}::{result.source_url}"


def merge_with_rrf(
    dense: list[SearchResult],
    sparse: list[SearchResult],
    limit: int,
    k: int = RRF_K,
) -> list[SearchResult]:
    """Fuse two ranked lists with Reciprocal Rank Fusion.

    The first-seen record for each key is kept as the representative; its
    ``score`` is replaced by the fused score on a copy. Ties keep first-seen
    order.
    """
    scores: dict[str, float] = {}
    records: dict[str, SearchResult] = {}

    for results in (dense, sparse):
        for rank, result in enumerate(results, start=1):
            key = result_key(result)
            scores[key] = scores.get(key, 0.0) + 1.0 / (k + rank)
            records.setdefault(key, result)

    merged = [dataclasses.replace(records[key], score=score) for key, score in scores.items()]
    merged.sort(key=lambda r: r.score, reverse=True)
    return merged[:limit]


class HybridSearcher:
    """Run dense and sparse retrieval concurrently and fuse the rankings.

    Args:
        store:               Vector store with both search channels.
        embedder:            Produces the query-mode vector.
        rrf_k:               RRF rank constant.
        prefetch_multiplier: Candidates fetched per channel, relative to limit.
    """

    def __init__(
        self,
        store: VectorStore,
        embedder: BaseEmbedder,
        rrf_k: int = RRF_K,
        prefetch_multiplier: int = PREFETCH_MULTIPLIER,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._rrf_k = rrf_k
        self._prefetch_multiplier = prefetch_multiplier

    def search(self, query: str, limit: int = DEFAULT_LIMIT) -> list[SearchResult]:
        """Return up to *limit* results ordered by fused score, best first."""
        if not query.strip() or limit <= 0:
            return []

        self._store.ensure_collection()
        vector = self._embedder.embed_query(query)
        prefetch = limit * self._prefetch_multiplier

        with ThreadPoolExecutor(max_workers=2) as pool:
            dense_future = pool.submit(self._store.search_dense, vector, prefetch)
            sparse_future = pool.submit(self._store.search_sparse, query, prefetch)
            dense, sparse = dense_future.result(), sparse_future.result()

        return merge_with_rrf(dense, sparse, limit, k=self._rrf_k)


def hybrid_search(
    query: str,
    limit: int = DEFAULT_LIMIT,
    *,
    store: VectorStore,
    embedder: BaseEmbedder,
) -> list[SearchResult]:
    """Functional shortcut for ``HybridSearcher(store, embedder).search()``."""
    return HybridSearcher(store, embedder).search(query, limit)
