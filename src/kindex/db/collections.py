"""Collection table management: chunks (dense + sparse) and source registry.

A chunks collection named ``<name>`` is stored as three tables that share
integer rowids:

  <name>         payload rows (UUID id, text, source_url, ..., content_hash)
  <name>_dense   sqlite-vec vec0 table, cosine distance, fixed dimensions
  <name>_sparse  FTS5 table ranked with the built-in IDF-weighted bm25()

The source registry lives in ``<name>_sources``. Dimensions and embedding
model of every collection are recorded in the migration-managed
``collections`` table.
"""

from __future__ import annotations

import re
import sqlite3

from kindex.db.errors import StoreError

_NAME_RE = re.compile(r"[a-z][a-z0-9_]*")

_SPARSE_TOKENIZER = "unicode61 remove_diacritics 2"


def validate_collection_name(name: str) -> str:
    """Return *name* unchanged if it is a safe table-name stem.

    Raises:
        ValueError: If *name* is not lowercase ``[a-z][a-z0-9_]*``.
    """
    if not _NAME_RE.fullmatch(name):
        raise ValueError(
            f"Invalid collection name '{name}' - use lowercase letters, digits and '_'."
        )
    return name


def dense_table(name: str) -> str:
    return f"{name}_dense"


def sparse_table(name: str) -> str:
    return f"{name}_sparse"


def sources_table(name: str) -> str:
    return f"{name}_sources"


def table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()
    return row is not None


def ensure_chunks_collection(
    conn: sqlite3.Connection,
    name: str,
    dimensions: int,
    embedding_model: str = "",
) -> None:
    """Create the chunks collection *name* if it doesn't already exist.

    Args:
        conn: Active connection (sqlite-vec loaded, migrations applied).
        name: Collection name (see validate_collection_name()).
        dimensions: Dense vector dimensions, e.g. 768.
        embedding_model: Recorded for status reporting only.

    Raises:
        StoreError: If the collection exists with different dimensions.
    """
    validate_collection_name(name)
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    recorded = conn.execute(
        "SELECT dimensions FROM collections WHERE name = ?", (name,)
    ).fetchone()
    if recorded is not None and recorded["dimensions"] != dimensions:
        raise StoreError(
            f"Collection '{name}' was created with {recorded['dimensions']}-dimensional "
            f"vectors; the configured embedding produces {dimensions}. "
            "Use a different collection name or re-create the database."
        )

    if table_exists(conn, name):
        return

    conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS {name} (
            id            TEXT NOT NULL UNIQUE,
            text          TEXT NOT NULL,
            source_url    TEXT NOT NULL,
            source_title  TEXT NOT NULL DEFAULT '',
            category      TEXT NOT NULL DEFAULT '',
            chunk_index   INTEGER NOT NULL,
            content_hash  TEXT NOT NULL DEFAULT '',
            indexed_at    TEXT,
            source_type   TEXT
        )
        """
    )
    # Keyword index for filtered deletes and hash lookups.
    conn.execute(
        f"CREATE INDEX IF NOT EXISTS idx_{name}_source_url ON {name}(source_url)"
    )
    conn.execute(
        f"CREATE VIRTUAL TABLE IF NOT EXISTS {dense_table(name)} "
        f"USING vec0(embedding float[{dimensions}] distance_metric=cosine)"
    )
    conn.execute(
        f"CREATE VIRTUAL TABLE IF NOT EXISTS {sparse_table(name)} "
        f"USING fts5(text, tokenize='{_SPARSE_TOKENIZER}')"
    )
    conn.execute(
        """
        INSERT OR REPLACE INTO collections (name, kind, dimensions, embedding_model)
        VALUES (?, 'chunks', ?, ?)
        """,
        (name, dimensions, embedding_model),
    )
    conn.commit()


def ensure_sources_collection(conn: sqlite3.Connection, name: str) -> None:
    """Create the ``<name>_sources`` registry table if it doesn't exist."""
    validate_collection_name(name)
    table = sources_table(name)
    if table_exists(conn, table):
        return

    conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS {table} (
            url         TEXT PRIMARY KEY,
            title       TEXT NOT NULL,
            category    TEXT NOT NULL,
            type        TEXT NOT NULL DEFAULT 'url',
            content     TEXT,
            created_at  TEXT NOT NULL
        )
        """
    )
    conn.execute(
        "INSERT OR REPLACE INTO collections (name, kind) VALUES (?, 'sources')",
        (table,),
    )
    conn.commit()
