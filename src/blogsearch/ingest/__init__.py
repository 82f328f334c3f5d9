"""Post ingestion — Markdown chunking and embedding upserts."""

from blogsearch.ingest.embedding_writer import (
    EmbeddingItem,
    EmbeddingWriter,
    delete_document_embeddings,
    upsert_embeddings,
)
from blogsearch.ingest.markdown import MarkdownChunker, TextChunk, split_front_matter

__all__ = [
    "EmbeddingItem",
    "EmbeddingWriter",
    "MarkdownChunker",
    "TextChunk",
    "delete_document_embeddings",
    "split_front_matter",
    "upsert_embeddings",
]
