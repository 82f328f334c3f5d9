"""Embedding ingestion — per-chunk vectors for a post, upserted into the store.

Each stored chunk is keyed by (document_id, chunk_index, model_id, device).
Re-ingesting the same key overwrites text, pooling/normalize flags, content
hash (FNV-1a of the chunk text) and vector. Vector lengths are checked
against the deployment dimension before anything is written.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from blogsearch.config import EMBEDDING_DIMENSIONS, EmbeddingCfg
from blogsearch.db.models import Document, EmbeddingRecord
from blogsearch.db.repository import Repository
from blogsearch.errors import WorkerError
from blogsearch.ingest.markdown import MarkdownChunker, TextChunk
from blogsearch.search.query import embed_texts
from blogsearch.search.semantic import validate_dimensions
from blogsearch.utils import fnv1a32
from blogsearch.worker.rpc import ProgressCallback, WorkerRpcClient

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingItem:
    """One chunk vector to persist, before hashing."""

    chunk_index: int
    chunk_text: str
    embedding: list[float]
    model_id: str
    device: str
    pooling: str = "mean"
    normalize: bool = True


def upsert_embeddings(
    repo: Repository,
    document_id: str,
    items: Sequence[EmbeddingItem],
    *,
    dimensions: int = EMBEDDING_DIMENSIONS,
) -> int:
    """Validate, hash and upsert *items* for *document_id*. Returns items written.

    Raises:
        DimensionMismatchError: If any vector has the wrong length; nothing is written.
        StoreError: If the store rejects the batch (e.g. unknown document id).
    """
    return repo.upsert_embeddings(_to_records(document_id, items, dimensions))


def _to_records(
    document_id: str, items: Sequence[EmbeddingItem], dimensions: int
) -> list[EmbeddingRecord]:
    for item in items:
        validate_dimensions(item.embedding, dimensions)

    return [
        EmbeddingRecord(
            document_id=document_id,
            chunk_index=item.chunk_index,
            chunk_text=item.chunk_text,
            embedding=list(item.embedding),
            model_id=item.model_id,
            device=item.device,
            content_hash=fnv1a32(item.chunk_text),
            pooling=item.pooling,
            normalize=item.normalize,
        )
        for item in items
    ]


def delete_document_embeddings(repo: Repository, document_id: str) -> int:
    """Remove every stored chunk of *document_id*. Returns rows deleted."""
    return repo.delete_embeddings_by_document(document_id)


class EmbeddingWriter:
    """Chunk a post, embed its chunks through the worker, and store them.

    For each post:
    1. Split the Markdown body with ``MarkdownChunker``.
    2. Embed all chunk texts with a single worker ``embed`` call.
    3. Upsert one row per chunk via ``upsert_embeddings()``.

    Args:
        repo:    Open Repository instance.
        client:  RPC client bound to an embeddings worker.
        config:  Embedding configuration (model, device, dimensions, flags).
        chunker: Chunker to use (defaults to MarkdownChunker()).
        timeout: Seconds to wait for the embed call (covers model download).
    """

    def __init__(
        self,
        repo: Repository,
        client: WorkerRpcClient,
        config: EmbeddingCfg | None = None,
        chunker: MarkdownChunker | None = None,
        timeout: float | None = None,
    ) -> None:
        self._repo = repo
        self._client = client
        self._config = config or EmbeddingCfg()
        self._chunker = chunker or MarkdownChunker()
        self._timeout = timeout

    def write(self, document: Document, on_progress: ProgressCallback | None = None) -> int:
        """Embed and upsert the chunks of *document*. Returns chunks written."""
        chunks = self._chunker.chunk(document.raw_markdown or "")
        if not chunks:
            logger.info("Document %s has no text to embed", document.id)
            return 0
        return self._embed_and_store(document.id, chunks, on_progress)

    def reindex(self, document: Document, on_progress: ProgressCallback | None = None) -> int:
        """Save *document*'s title and body and replace all of its chunks.

        Chunks are embedded before the store is touched; the row update and
        chunk swap then commit together, so a failure at any step leaves the
        stored post as it was.
        """
        chunks = self._chunker.chunk(document.raw_markdown or "")
        items = self._embed(chunks, on_progress) if chunks else []
        records = _to_records(document.id, items, self._config.dimensions)
        written = self._repo.replace_document_embeddings(document, records)
        logger.info("Replaced chunks of %s with %d new ones", document.id, written)
        return written

    def _embed_and_store(
        self, document_id: str, chunks: list[TextChunk], on_progress: ProgressCallback | None
    ) -> int:
        items = self._embed(chunks, on_progress)
        written = upsert_embeddings(
            self._repo, document_id, items, dimensions=self._config.dimensions
        )
        logger.info("Stored %d chunks for %s", written, document_id)
        return written

    def _embed(
        self, chunks: list[TextChunk], on_progress: ProgressCallback | None
    ) -> list[EmbeddingItem]:
        result = embed_texts(
            self._client,
            [c.text for c in chunks],
            model_id=self._config.model,
            device=self._config.device,
            on_progress=on_progress,
            timeout=self._timeout,
        )
        if len(result.embeddings) != len(chunks):
            raise WorkerError(
                f"Worker returned {len(result.embeddings)} vectors for {len(chunks)} chunks."
            )
        return [
            EmbeddingItem(
                chunk_index=chunk.index,
                chunk_text=chunk.text,
                embedding=vector,
                model_id=result.model_id,
                device=result.device,
                pooling=self._config.pooling,
                normalize=self._config.normalize,
            )
            for chunk, vector in zip(chunks, result.embeddings)
        ]
