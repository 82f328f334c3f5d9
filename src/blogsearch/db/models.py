"""Domain models for the blogsearch database layer."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Document:
    id: str
    title: str
    slug: str
    raw_markdown: str | None = None
    created_at: str | None = None


@dataclass
class EmbeddingRecord:
    """One stored chunk vector, unique per (document_id, chunk_index, model_id, device)."""

    document_id: str
    chunk_index: int
    chunk_text: str
    embedding: list[float]
    model_id: str
    device: str
    content_hash: str
    pooling: str = "mean"
    normalize: bool = True
    updated_at: str | None = None


@dataclass
class ChunkMatch:
    """A nearest-neighbour hit joined with its owning document."""

    document_id: str
    title: str
    slug: str
    raw_markdown: str | None
    created_at: str
    chunk_index: int
    distance: float
