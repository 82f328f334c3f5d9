"""Tests for the forward-only migration runner."""

from __future__ import annotations

import sqlite3

import pytest

from blogsearch.db.connection import Database
from blogsearch.db.migrations import CURRENT_VERSION, MIGRATIONS, run_migrations, schema_version


def _fresh_conn(tmp_path):
    """Open a new connection without running migrations."""
    return Database(tmp_path / "test.db").connect(migrate=False)


def _table_exists(conn, name: str) -> bool:
    return conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (name,)
    ).fetchone() is not None


def test_run_migrations_creates_tables(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    for table in ("schema_version", "documents", "document_embeddings"):
        assert _table_exists(conn, table)
    conn.close()


def test_schema_version_fresh_is_zero(tmp_path):
    conn = _fresh_conn(tmp_path)
    conn.execute("CREATE TABLE schema_version (version INTEGER NOT NULL, applied_at DATETIME)")
    assert schema_version(conn) == 0
    conn.close()


def test_run_migrations_records_current_version(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert schema_version(conn) == CURRENT_VERSION == MIGRATIONS[-1][0]
    conn.close()


def test_run_migrations_idempotent(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    run_migrations(conn)
    rows = conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    assert rows == len(MIGRATIONS)
    conn.close()


def test_chunk_index_must_be_non_negative(tmp_db):
    tmp_db.execute(
        "INSERT INTO documents (id, title, slug) VALUES ('d1', 'T', 't')"
    )
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute(
            """
            INSERT INTO document_embeddings
                (document_id, chunk_index, chunk_text, model_id, device, content_hash, embedding)
            VALUES ('d1', -1, 'x', 'm', 'cpu', 'h', x'00000000')
            """
        )


def test_embedding_requires_existing_document(tmp_db):
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute(
            """
            INSERT INTO document_embeddings
                (document_id, chunk_index, chunk_text, model_id, device, content_hash, embedding)
            VALUES ('ghost', 0, 'x', 'm', 'cpu', 'h', x'00000000')
            """
        )
