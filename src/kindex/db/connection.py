"""SQLite connection layer with the sqlite-vec extension loaded."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import sqlite_vec


class Database:
    """File-backed SQLite database acting as the vector engine.

    Every ``session()`` opens its own connection, so one Database instance
    can be shared by threads that read concurrently (WAL mode).
    """

    def __init__(self, db_path: Path | str, timeout: float = 10.0) -> None:
        """Store the database path. Nothing is opened until connect().

        Args:
            db_path: Path to the SQLite database file (created if missing).
            timeout: Seconds to wait on a locked database before failing.
        """
        self.db_path = Path(db_path)
        self.timeout = timeout

    def connect(self) -> sqlite3.Connection:
        """Open a connection, load sqlite-vec, and return the connection."""
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        conn.enable_load_extension(True)
        sqlite_vec.load(conn)
        conn.enable_load_extension(False)
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    @contextmanager
    def session(self) -> Iterator[sqlite3.Connection]:
        """Yield a fresh connection and close it afterwards.

        Uncommitted work is rolled back if the block raises.
        """
        conn = self.connect()
        try:
            yield conn
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()
