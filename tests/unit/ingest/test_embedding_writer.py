"""Tests for embedding ingestion: upserts, deletes and EmbeddingWriter."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from blogsearch.config import EmbeddingCfg
from blogsearch.db.models import Document
from blogsearch.db.repository import Repository
from blogsearch.errors import DimensionMismatchError, StoreError, WorkerError
from blogsearch.ingest.embedding_writer import (
    EmbeddingItem,
    EmbeddingWriter,
    delete_document_embeddings,
    upsert_embeddings,
)
from blogsearch.ingest.markdown import MarkdownChunker
from blogsearch.search.query import EmbedResult
from blogsearch.utils import fnv1a32

D = 3


@pytest.fixture
def repo(tmp_db):
    r = Repository(tmp_db)
    r.add_document(Document(id="doc-1", title="Hola", slug="hola", raw_markdown="## A\nuno\n## B\ndos"))
    return r


def _item(index=0, text="uno", vec=(1.0, 0.0, 0.0), model="m", device="cpu"):
    return EmbeddingItem(
        chunk_index=index, chunk_text=text, embedding=list(vec), model_id=model, device=device
    )


# ------------------------------------------------------------------
# upsert_embeddings / delete_document_embeddings
# ------------------------------------------------------------------


def test_upsert_returns_count_and_hashes_text(repo):
    assert upsert_embeddings(repo, "doc-1", [_item(0, "uno"), _item(1, "dos")], dimensions=D) == 2
    stored = repo.get_embeddings("doc-1")
    assert [s.content_hash for s in stored] == [fnv1a32("uno"), fnv1a32("dos")]


def test_upsert_same_key_twice_keeps_one_row_with_latest_values(repo):
    upsert_embeddings(repo, "doc-1", [_item(text="uno", vec=(1.0, 0.0, 0.0))], dimensions=D)
    upsert_embeddings(repo, "doc-1", [_item(text="uno", vec=(0.0, 0.0, 1.0))], dimensions=D)
    [stored] = repo.get_embeddings("doc-1")
    assert stored.embedding == [0.0, 0.0, 1.0]
    assert stored.content_hash == fnv1a32("uno")


def test_upsert_changed_text_supersedes(repo):
    upsert_embeddings(repo, "doc-1", [_item(text="viejo")], dimensions=D)
    upsert_embeddings(repo, "doc-1", [_item(text="nuevo")], dimensions=D)
    [stored] = repo.get_embeddings("doc-1")
    assert stored.chunk_text == "nuevo"
    assert stored.content_hash == fnv1a32("nuevo")


def test_upsert_rejects_wrong_dimension_without_writing(repo):
    with pytest.raises(DimensionMismatchError):
        upsert_embeddings(repo, "doc-1", [_item(0), _item(1, vec=(1.0, 0.0))], dimensions=D)
    assert repo.count_embeddings("doc-1") == 0


def test_upsert_unknown_document_is_store_error(repo):
    with pytest.raises(StoreError):
        upsert_embeddings(repo, "ghost", [_item()], dimensions=D)


def test_delete_document_embeddings(repo):
    upsert_embeddings(repo, "doc-1", [_item(0), _item(1)], dimensions=D)
    assert delete_document_embeddings(repo, "doc-1") == 2
    assert delete_document_embeddings(repo, "doc-1") == 0


# ------------------------------------------------------------------
# EmbeddingWriter
# ------------------------------------------------------------------


def _writer(repo, monkeypatch, vectors, dimensions=D):
    calls: list[dict] = []

    def fake_embed_texts(client, texts, **kwargs):
        calls.append({"texts": texts, **kwargs})
        return EmbedResult(model_id="m", device="cpu", embeddings=vectors[: len(texts)])

    monkeypatch.setattr("blogsearch.ingest.embedding_writer.embed_texts", fake_embed_texts)
    cfg = EmbeddingCfg(model="m", device="cpu", dimensions=dimensions)
    writer = EmbeddingWriter(repo, MagicMock(), cfg, MarkdownChunker(), timeout=9.0)
    return writer, calls


def test_writer_embeds_all_chunks_in_one_call(repo, monkeypatch):
    writer, calls = _writer(repo, monkeypatch, [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
    written = writer.write(repo.get_document("doc-1"))
    assert written == 2
    assert len(calls) == 1
    assert calls[0]["texts"] == ["## A\nuno", "## B\ndos"]
    assert calls[0]["model_id"] == "m"
    assert calls[0]["timeout"] == 9.0
    assert [e.chunk_index for e in repo.get_embeddings("doc-1")] == [0, 1]


def test_writer_empty_post_writes_nothing(repo, monkeypatch):
    writer, calls = _writer(repo, monkeypatch, [])
    doc = Document(id="doc-1", title="Hola", slug="hola", raw_markdown=None)
    assert writer.write(doc) == 0
    assert calls == []


def test_reindex_replaces_stale_chunks(repo, monkeypatch):
    upsert_embeddings(repo, "doc-1", [_item(i) for i in range(5)], dimensions=D)
    writer, _ = _writer(repo, monkeypatch, [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
    assert writer.reindex(repo.get_document("doc-1")) == 2
    assert repo.count_embeddings("doc-1") == 2


def test_reindex_embed_failure_keeps_old_chunks(repo, monkeypatch):
    upsert_embeddings(repo, "doc-1", [_item(0)], dimensions=D)

    def failing(*args, **kwargs):
        raise TimeoutError("worker slow")

    monkeypatch.setattr("blogsearch.ingest.embedding_writer.embed_texts", failing)
    writer = EmbeddingWriter(repo, MagicMock(), EmbeddingCfg(dimensions=D))
    with pytest.raises(TimeoutError):
        writer.reindex(repo.get_document("doc-1"))
    assert repo.count_embeddings("doc-1") == 1


def test_writer_dimension_mismatch_writes_nothing(repo, monkeypatch):
    writer, _ = _writer(repo, monkeypatch, [[1.0, 0.0], [0.0, 1.0]])
    with pytest.raises(DimensionMismatchError):
        writer.write(repo.get_document("doc-1"))
    assert repo.count_embeddings("doc-1") == 0


def test_reindex_saves_body_with_new_chunks(repo, monkeypatch):
    upsert_embeddings(repo, "doc-1", [_item(i) for i in range(3)], dimensions=D)
    writer, _ = _writer(repo, monkeypatch, [[1.0, 0.0, 0.0]])
    doc = repo.get_document("doc-1")
    doc.title = "Nuevo"
    doc.raw_markdown = "solo uno"

    assert writer.reindex(doc) == 1
    stored = repo.get_document("doc-1")
    assert (stored.title, stored.raw_markdown) == ("Nuevo", "solo uno")
    assert [e.chunk_text for e in repo.get_embeddings("doc-1")] == ["solo uno"]


def test_reindex_embed_failure_keeps_old_body(repo, monkeypatch):
    def failing(*args, **kwargs):
        raise WorkerError("boom")

    monkeypatch.setattr("blogsearch.ingest.embedding_writer.embed_texts", failing)
    writer = EmbeddingWriter(repo, MagicMock(), EmbeddingCfg(dimensions=D))
    doc = repo.get_document("doc-1")
    doc.raw_markdown = "otro"
    with pytest.raises(WorkerError):
        writer.reindex(doc)
    assert repo.get_document("doc-1").raw_markdown == "## A\nuno\n## B\ndos"


def test_writer_vector_count_mismatch_is_worker_error(repo, monkeypatch):
    def short(client, texts, **kwargs):
        return EmbedResult(model_id="m", device="cpu", embeddings=[[1.0, 0.0, 0.0]])

    monkeypatch.setattr("blogsearch.ingest.embedding_writer.embed_texts", short)
    writer = EmbeddingWriter(repo, MagicMock(), EmbeddingCfg(model="m", dimensions=D))
    with pytest.raises(WorkerError, match="1 vectors for 2 chunks"):
        writer.write(repo.get_document("doc-1"))
    assert repo.count_embeddings("doc-1") == 0
