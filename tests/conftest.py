"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from blogsearch.db.connection import Database


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with migrations applied, closed after test."""
    db = Database(tmp_path / ".blogsearch.db")
    conn = db.connect()
    yield conn
    conn.close()


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path, monkeypatch):
    """Keep the user's ~/.blogsearch and BLOGSEARCH_* env out of every test."""
    monkeypatch.setattr("blogsearch.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    for var in ("BLOGSEARCH_EMBEDDING_MODEL", "BLOGSEARCH_DEVICE", "BLOGSEARCH_DB", "BLOGSEARCH_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
