"""SQLite connection layer with the sqlite-vec extension.

Vectors are stored as float32 BLOBs in an ordinary table so the chunk key
(document, chunk, model, device) can carry a UNIQUE constraint for upserts;
nearest-neighbour ranking uses sqlite-vec's ``vec_distance_cosine()``.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec

from blogsearch.errors import StoreError


class Database:
    """Blog knowledge base stored in SQLite with sqlite-vec vector functions."""

    def __init__(self, db_path: Path | str) -> None:
        """Store the database path. Call connect() to open the connection.

        Args:
            db_path: Path to the SQLite database file, or ``":memory:"``.
        """
        self.db_path = db_path if db_path == ":memory:" else Path(db_path)
        self._conn: sqlite3.Connection | None = None

    def connect(self, *, migrate: bool = True) -> sqlite3.Connection:
        """Open a connection with sqlite-vec loaded and foreign keys enforced.

        Args:
            migrate: Apply pending schema migrations before returning.

        Raises:
            StoreError: If the file cannot be opened or the extension fails to load.
        """
        try:
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.enable_load_extension(True)
            sqlite_vec.load(conn)
            conn.enable_load_extension(False)
            conn.execute("PRAGMA foreign_keys = ON")
            if self.db_path != ":memory:":
                conn.execute("PRAGMA journal_mode = WAL")
        except sqlite3.Error as exc:
            raise StoreError.from_exception(exc) from exc

        if migrate:
            from blogsearch.db.migrations import run_migrations

            run_migrations(conn)
        return conn

    def __enter__(self) -> sqlite3.Connection:
        self._conn = self.connect()
        return self._conn

    def __exit__(self, *args: object) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None


def vec_version(conn: sqlite3.Connection) -> str:
    """Return the loaded sqlite-vec version string (e.g. ``"v0.1.6"``)."""
    return conn.execute("SELECT vec_version()").fetchone()[0]
