"""blogsearch database layer."""

from blogsearch.db.connection import Database, vec_version
from blogsearch.db.migrations import MIGRATIONS, run_migrations, schema_version
from blogsearch.db.models import ChunkMatch, Document, EmbeddingRecord
from blogsearch.db.repository import Repository

__all__ = [
    "Database",
    "vec_version",
    "run_migrations",
    "schema_version",
    "MIGRATIONS",
    "ChunkMatch",
    "Document",
    "EmbeddingRecord",
    "Repository",
]
