"""Tests for blogsearch status."""

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from blogsearch.cli.main import app
from blogsearch.db.connection import Database
from blogsearch.db.models import Document, EmbeddingRecord
from blogsearch.db.repository import Repository

runner = CliRunner()


def test_status_without_db(tmp_path: Path) -> None:
    result = runner.invoke(app, ["status", "--db", str(tmp_path / "none.db")])
    assert result.exit_code == 0
    assert "No database found" in result.output


def test_status_shows_counts_and_models(tmp_path: Path) -> None:
    db_path = tmp_path / ".blogsearch.db"
    conn = Database(db_path).connect()
    repo = Repository(conn)
    repo.add_document(Document(id="d1", title="Hola", slug="hola"))
    repo.upsert_embeddings([
        EmbeddingRecord("d1", 0, "t", [1.0, 0.0], "org/model", "cpu", "h"),
        EmbeddingRecord("d1", 1, "t", [0.0, 1.0], "org/model", "cpu", "h"),
    ])
    conn.close()

    result = runner.invoke(app, ["status", "--db", str(db_path)])
    assert result.exit_code == 0, result.output
    assert "Posts: 1" in result.output
    assert "Chunks: 2" in result.output
    assert "org/model" in result.output
