"""Vector store: dense + sparse chunk collection and the source registry.

``VectorStore`` is the interface the pipeline and the searcher depend on.
``SqliteVectorStore`` is the production engine: sqlite-vec for cosine KNN
over dense vectors, FTS5 bm25() for sparse keyword scoring.
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from kindex.db.collections import (
    dense_table,
    ensure_chunks_collection,
    ensure_sources_collection,
    sources_table,
    sparse_table,
    table_exists,
    validate_collection_name,
)
from kindex.db.connection import Database
from kindex.db.errors import DuplicateSourceError, StoreError
from kindex.db.migrations import run_migrations
from kindex.db.models import KnowledgeSource, SearchResult, SourceWithStatus, VectorPoint

logger = logging.getLogger(__name__)

# Constant marker stamped on every chunk point.
SOURCE_TYPE_MARKER = "url"

_PAYLOAD_COLUMNS = "text, source_url, source_title, category, chunk_index"

# sqlite-vec rejects KNN queries with k above this.
_MAX_KNN_K = 4096


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class VectorStore(ABC):
    """Abstract vector store over a chunks collection and a source registry.

    Subclasses implement the engine-specific operations. Status annotation
    and the compound source deletion are shared here.
    """

    @abstractmethod
    def ensure_collection(self) -> None:
        """Create the chunks collection if absent (idempotent)."""

    @abstractmethod
    def ensure_sources_collection(self) -> None:
        """Create the source registry if absent (idempotent)."""

    @abstractmethod
    def upsert_points(self, points: list[VectorPoint]) -> None:
        """Write *points* and return only once they are durable."""

    @abstractmethod
    def delete_by_source_url(self, url: str) -> None:
        """Delete every point whose ``source_url`` equals *url*."""

    @abstractmethod
    def get_content_hash_by_url(self, url: str) -> str | None:
        """Return the content hash stored for *url*, or None."""

    @abstractmethod
    def search_dense(self, vector: list[float], limit: int) -> list[SearchResult]:
        """Similarity search on the dense vectors, best first."""

    @abstractmethod
    def search_sparse(self, text: str, limit: int) -> list[SearchResult]:
        """BM25-style keyword search, best first."""

    @abstractmethod
    def add_source(self, source: KnowledgeSource) -> KnowledgeSource:
        """Register *source*. Raises DuplicateSourceError for a known URL."""

    @abstractmethod
    def list_sources(self) -> list[KnowledgeSource]:
        """Return every registered source in registration order."""

    @abstractmethod
    def get_source_by_url(self, url: str) -> KnowledgeSource | None:
        """Return the registered source for *url*, or None."""

    @abstractmethod
    def remove_source_record(self, url: str) -> None:
        """Delete the registry entry for *url* only (no chunk cascade)."""

    def get_all_sources(self) -> list[SourceWithStatus]:
        """Return every registered source annotated with its indexing status.

        A source is 'indexed' iff a content hash exists for its URL. Lookup
        errors are logged and degrade to 'not_indexed'.
        """
        annotated: list[SourceWithStatus] = []
        for source in self.list_sources():
            try:
                content_hash = self.get_content_hash_by_url(source.url)
            except Exception as exc:
                logger.warning("Status lookup failed for %s: %s", source.url, exc)
                content_hash = None
            status = "indexed" if content_hash else "not_indexed"
            annotated.append(SourceWithStatus(source=source, indexing_status=status))
        return annotated

    def delete_source(self, url: str) -> None:
        """Remove the registry entry, then every chunk point for *url*.

        The chunk deletion is attempted even if the registry delete fails.
        """
        try:
            self.remove_source_record(url)
        finally:
            self.delete_by_source_url(url)


class SqliteVectorStore(VectorStore):
    """SQLite + sqlite-vec + FTS5 implementation of VectorStore.

    Each operation opens a short-lived connection, so one instance can be
    shared across threads. Engine errors surface as StoreError.

    Args:
        db: Database (or path) holding the collections.
        collection: Chunks collection name; the registry is ``<name>_sources``.
        dimensions: Dense vector dimensions of the embedding model.
        embedding_model: Recorded alongside the collection for reporting.
    """

    def __init__(
        self,
        db: Database | Path | str,
        collection: str = "knowledge_chunks",
        dimensions: int = 768,
        embedding_model: str = "",
    ) -> None:
        self._db = db if isinstance(db, Database) else Database(db)
        self.collection = validate_collection_name(collection)
        self.dimensions = dimensions
        self.embedding_model = embedding_model

    @property
    def db_path(self) -> Path:
        return self._db.db_path

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        try:
            with self._db.session() as conn:
                yield conn
        except sqlite3.Error as exc:
            raise StoreError(f"Vector store error ({self._db.db_path}): {exc}") from exc

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def ensure_collection(self) -> None:
        with self._session() as conn:
            run_migrations(conn)
            ensure_chunks_collection(
                conn, self.collection, self.dimensions, self.embedding_model
            )

    def ensure_sources_collection(self) -> None:
        with self._session() as conn:
            run_migrations(conn)
            ensure_sources_collection(conn, self.collection)

    # ------------------------------------------------------------------
    # Chunk points
    # ------------------------------------------------------------------

    def upsert_points(self, points: list[VectorPoint]) -> None:
        """Insert or replace *points* in one transaction, committed on return."""
        if not points:
            return
        for point in points:
            if len(point.dense) != self.dimensions:
                raise ValueError(
                    f"Point {point.id} has a {len(point.dense)}-dimensional vector; "
                    f"collection '{self.collection}' expects {self.dimensions}."
                )

        now = utc_now()
        name = self.collection
        with self._session() as conn:
            for point in points:
                self._delete_rowids(conn, _rowids_where(conn, name, "id = ?", point.id))
                payload = point.payload
                cur = conn.execute(
                    f"""
                    INSERT INTO {name} (id, text, source_url, source_title, category,
                                        chunk_index, content_hash, indexed_at, source_type)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        point.id,
                        payload.get("text", ""),
                        payload.get("source_url", ""),
                        payload.get("source_title", ""),
                        payload.get("category", ""),
                        int(payload.get("chunk_index", 0)),
                        payload.get("content_hash", ""),
                        now,
                        SOURCE_TYPE_MARKER,
                    ),
                )
                rowid = cur.lastrowid
                conn.execute(
                    f"INSERT INTO {dense_table(name)}(rowid, embedding) VALUES (?, ?)",
                    (rowid, json.dumps([float(v) for v in point.dense])),
                )
                conn.execute(
                    f"INSERT INTO {sparse_table(name)}(rowid, text) VALUES (?, ?)",
                    (rowid, payload.get("text", "")),
                )
            conn.commit()

    def delete_by_source_url(self, url: str) -> None:
        with self._session() as conn:
            if not table_exists(conn, self.collection):
                return
            self._delete_rowids(
                conn, _rowids_where(conn, self.collection, "source_url = ?", url)
            )
            conn.commit()

    def get_content_hash_by_url(self, url: str) -> str | None:
        with self._session() as conn:
            if not table_exists(conn, self.collection):
                return None
            row = conn.execute(
                f"SELECT content_hash FROM {self.collection} WHERE source_url = ? LIMIT 1",
                (url,),
            ).fetchone()
        if row is None or not row["content_hash"]:
            return None
        return row["content_hash"]

    def count_points(self, url: str | None = None) -> int:
        """Return the number of chunk points, optionally for one URL."""
        with self._session() as conn:
            if not table_exists(conn, self.collection):
                return 0
            if url is None:
                return conn.execute(f"SELECT COUNT(*) FROM {self.collection}").fetchone()[0]
            return conn.execute(
                f"SELECT COUNT(*) FROM {self.collection} WHERE source_url = ?", (url,)
            ).fetchone()[0]

    def _delete_rowids(self, conn: sqlite3.Connection, rowids: list[int]) -> None:
        """Delete rows from payload, dense and sparse tables (no FTS cascade)."""
        if not rowids:
            return
        placeholders = ",".join("?" * len(rowids))
        name = self.collection
        for table in (dense_table(name), sparse_table(name), name):
            conn.execute(f"DELETE FROM {table} WHERE rowid IN ({placeholders})", rowids)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search_dense(self, vector: list[float], limit: int) -> list[SearchResult]:
        """Cosine KNN. Score is similarity (1 - cosine distance), best first."""
        if limit < 1:
            return []
        with self._session() as conn:
            knn = conn.execute(
                f"""
                SELECT rowid, distance FROM {dense_table(self.collection)}
                WHERE embedding MATCH ? AND k = ?
                ORDER BY distance
                """,
                (json.dumps([float(v) for v in vector]), min(limit, _MAX_KNN_K)),
            ).fetchall()
            scored = [(r["rowid"], 1.0 - r["distance"]) for r in knn]
            return self._hydrate(conn, scored)

    def search_sparse(self, text: str, limit: int) -> list[SearchResult]:
        """BM25 keyword search over any query term. Score is -bm25(), best first."""
        fts_query = _to_fts_query(text)
        if not fts_query or limit < 1:
            return []
        table = sparse_table(self.collection)
        with self._session() as conn:
            rows = conn.execute(
                f"""
                SELECT rowid, bm25({table}) AS rank FROM {table}
                WHERE {table} MATCH ?
                ORDER BY rank
                LIMIT ?
                """,
                (fts_query, limit),
            ).fetchall()
            scored = [(r["rowid"], -r["rank"]) for r in rows]
            return self._hydrate(conn, scored)

    def _hydrate(
        self, conn: sqlite3.Connection, scored: list[tuple[int, float]]
    ) -> list[SearchResult]:
        """Attach payloads to (rowid, score) pairs, preserving their order."""
        if not scored:
            return []
        rowids = [rowid for rowid, _ in scored]
        placeholders = ",".join("?" * len(rowids))
        rows = conn.execute(
            f"SELECT rowid, {_PAYLOAD_COLUMNS} FROM {self.collection} "
            f"WHERE rowid IN ({placeholders})",
            rowids,
        ).fetchall()
        by_rowid = {r["rowid"]: r for r in rows}

        results: list[SearchResult] = []
        for rowid, score in scored:
            row = by_rowid.get(rowid)
            if row is None:
                continue
            results.append(
                SearchResult(
                    text=row["text"],
                    score=float(score),
                    source_url=row["source_url"],
                    source_title=row["source_title"],
                    category=row["category"],
                    chunk_index=row["chunk_index"],
                )
            )
        return results

    # ------------------------------------------------------------------
    # Source registry
    # ------------------------------------------------------------------

    def add_source(self, source: KnowledgeSource) -> KnowledgeSource:
        self.ensure_sources_collection()
        if source.created_at is None:
            source.created_at = utc_now()
        with self._session() as conn:
            try:
                conn.execute(
                    f"""
                    INSERT INTO {sources_table(self.collection)}
                        (url, title, category, type, content, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        source.url,
                        source.title,
                        source.category,
                        source.type,
                        source.content,
                        source.created_at,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateSourceError(source.url) from exc
            conn.commit()
        return source

    def list_sources(self) -> list[KnowledgeSource]:
        self.ensure_sources_collection()
        with self._session() as conn:
            rows = conn.execute(
                f"SELECT url, title, category, type, content, created_at "
                f"FROM {sources_table(self.collection)} ORDER BY created_at, rowid"
            ).fetchall()
        return [_row_to_source(r) for r in rows]

    def get_source_by_url(self, url: str) -> KnowledgeSource | None:
        self.ensure_sources_collection()
        with self._session() as conn:
            row = conn.execute(
                f"SELECT url, title, category, type, content, created_at "
                f"FROM {sources_table(self.collection)} WHERE url = ?",
                (url,),
            ).fetchone()
        return _row_to_source(row) if row else None

    def remove_source_record(self, url: str) -> None:
        self.ensure_sources_collection()
        with self._session() as conn:
            conn.execute(
                f"DELETE FROM {sources_table(self.collection)} WHERE url = ?", (url,)
            )
            conn.commit()


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _rowids_where(
    conn: sqlite3.Connection, table: str, clause: str, value: str
) -> list[int]:
    return [
        r[0] for r in conn.execute(f"SELECT rowid FROM {table} WHERE {clause}", (value,))
    ]


def _to_fts_query(text: str) -> str:
    """Turn free text into an FTS5 OR-query of quoted word tokens.

    FTS5 MATCH rejects bare punctuation and ANDs terms by default; quoting
    each token and joining with OR gives any-term BM25 scoring.
    """
    seen: dict[str, None] = {}
    for token in re.findall(r"\w+", text):
        seen.setdefault(token.lower(), None)
    return " OR ".join(f'"{token}"' for token in seen)


def _row_to_source(row: sqlite3.Row) -> KnowledgeSource:
    return KnowledgeSource(
        url=row["url"],
        title=row["title"],
        category=row["category"],
        type=row["type"],
        content=row["content"],
        created_at=row["created_at"],
    )
