"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from kindex.db.connection import Database
from kindex.db.migrations import run_migrations
from kindex.db.store import SqliteVectorStore


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB connection in tmp_path with migrations applied, closed after test."""
    db = Database(tmp_path / ".kindex.db")
    conn = db.connect()
    run_migrations(conn)
    yield conn
    conn.close()


@pytest.fixture
def store(tmp_path) -> SqliteVectorStore:
    """4-dimensional SqliteVectorStore backed by a file in tmp_path."""
    return SqliteVectorStore(tmp_path / ".kindex.db", collection="test_chunks", dimensions=4)
