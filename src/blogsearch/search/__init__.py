"""Query embedding and semantic search over stored post chunks."""

from blogsearch.search.excerpt import make_excerpt, markdown_to_text
from blogsearch.search.query import EmbedResult, embed_query, embed_texts
from blogsearch.search.semantic import SearchResult, semantic_search, validate_dimensions

__all__ = [
    "EmbedResult",
    "SearchResult",
    "embed_query",
    "embed_texts",
    "make_excerpt",
    "markdown_to_text",
    "semantic_search",
    "validate_dimensions",
]
