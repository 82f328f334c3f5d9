"""Semantic search: nearest chunks → best chunk per post → ranked results.

similarity(chunk) = 1 - cosine_distance(chunk, query)

The store returns the ``limit`` closest *chunks*; a post with several chunks
among them is reported once, with its best chunk's similarity. Fewer than
``limit`` posts may therefore come back.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from blogsearch.config import EMBEDDING_DIMENSIONS
from blogsearch.db.repository import Repository
from blogsearch.errors import DimensionMismatchError, InvalidInputError
from blogsearch.search.excerpt import EXCERPT_LENGTH, make_excerpt


@dataclass
class SearchResult:
    """One post matching a query.

    Attributes:
        id: Document id.
        title: Post title.
        slug: Post slug.
        excerpt: Plain-text opening of the post (see make_excerpt).
        similarity: 1 - cosine distance of the post's best chunk.
        created_at: Post creation timestamp as stored.
    """

    id: str
    title: str
    slug: str
    excerpt: str
    similarity: float
    created_at: str


def validate_dimensions(embedding: Sequence[float], dimensions: int = EMBEDDING_DIMENSIONS) -> None:
    """Raise DimensionMismatchError unless ``len(embedding) == dimensions``."""
    if len(embedding) != dimensions:
        raise DimensionMismatchError(dimensions, len(embedding))


def semantic_search(
    repo: Repository,
    query_embedding: Sequence[float],
    limit: int = 10,
    *,
    dimensions: int = EMBEDDING_DIMENSIONS,
    model_id: str | None = None,
    device: str | None = None,
    excerpt_length: int = EXCERPT_LENGTH,
) -> list[SearchResult]:
    """Rank posts by similarity to *query_embedding*, best first.

    Args:
        repo: Open repository.
        query_embedding: Query vector; must have exactly *dimensions* entries.
        limit: Number of nearest chunks to consider.
        dimensions: Deployment embedding dimension.
        model_id: Only compare against chunks embedded by this model.
        device: Only compare against chunks embedded on this device.
        excerpt_length: Excerpt cut-off in UTF-16 code units.

    Returns:
        At most one SearchResult per document, sorted by descending similarity
        (ties keep store order). Empty when nothing matches.

    Raises:
        DimensionMismatchError: Before any store access, on a wrong vector length.
        InvalidInputError: Before any store access, if *limit* is below 1 or the
            query vector has zero norm.
        StoreError: If the store query fails.
    """
    validate_dimensions(query_embedding, dimensions)
    if limit < 1:
        raise InvalidInputError(f"limit must be at least 1, got {limit}.")
    if not any(query_embedding):
        raise InvalidInputError("Query embedding has zero norm; cosine similarity is undefined.")

    matches = repo.nearest_chunks(query_embedding, limit, model_id=model_id, device=device)

    best: dict[str, SearchResult] = {}
    for match in matches:
        similarity = 1.0 - match.distance
        existing = best.get(match.document_id)
        if existing is not None and similarity <= existing.similarity:
            continue
        best[match.document_id] = SearchResult(
            id=match.document_id,
            title=match.title,
            slug=match.slug,
            excerpt=make_excerpt(match.raw_markdown, excerpt_length),
            similarity=similarity,
            created_at=match.created_at,
        )

    return sorted(best.values(), key=lambda r: r.similarity, reverse=True)
