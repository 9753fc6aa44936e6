"""kindex vector store layer."""

from kindex.db.connection import Database
from kindex.db.errors import DuplicateSourceError, StoreError
from kindex.db.migrations import MIGRATIONS, run_migrations
from kindex.db.store import SqliteVectorStore, VectorStore

__all__ = [
    "Database",
    "DuplicateSourceError",
    "MIGRATIONS",
    "SqliteVectorStore",
    "StoreError",
    "VectorStore",
    "run_migrations",
]
