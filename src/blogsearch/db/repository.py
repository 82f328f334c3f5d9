"""Repository pattern for all blogsearch database operations.

Single interface for: documents, per-chunk embeddings (upsert / delete) and
cosine nearest-neighbour search. Every ``sqlite3.Error`` is rolled back and
re-raised as ``StoreError`` with the driver's structured fields.
"""

from __future__ import annotations

import sqlite3
import struct
from collections.abc import Iterator, Sequence
from contextlib import contextmanager

import sqlite_vec

from blogsearch.db.models import ChunkMatch, Document, EmbeddingRecord
from blogsearch.errors import InvalidInputError, StoreError

_UPSERT_EMBEDDING = """
INSERT INTO document_embeddings (
    document_id, chunk_index, chunk_text, model_id, device,
    pooling, normalize, content_hash, embedding
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT (document_id, chunk_index, model_id, device) DO UPDATE SET
    chunk_text   = excluded.chunk_text,
    pooling      = excluded.pooling,
    normalize    = excluded.normalize,
    content_hash = excluded.content_hash,
    embedding    = excluded.embedding,
    updated_at   = datetime('now')
"""


class Repository:
    """Data access layer for documents and their chunk embeddings.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and the
                schema migrated (see blogsearch.db.connection.Database).
        """
        self._conn = conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise StoreError.from_exception(exc) from exc

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def add_document(self, document: Document) -> None:
        """Insert a new document.

        Raises:
            StoreError: On a duplicate id or slug (``constraint`` names the column).
        """
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO documents (id, title, slug, raw_markdown, created_at)
                VALUES (?, ?, ?, ?, COALESCE(?, datetime('now')))
                """,
                (
                    document.id,
                    document.title,
                    document.slug,
                    document.raw_markdown,
                    document.created_at,
                ),
            )

    def get_document(self, document_id: str) -> Document | None:
        row = self._conn.execute(
            "SELECT id, title, slug, raw_markdown, created_at FROM documents WHERE id = ?",
            (document_id,),
        ).fetchone()
        return _row_to_document(row) if row else None

    def get_document_by_slug(self, slug: str) -> Document | None:
        row = self._conn.execute(
            "SELECT id, title, slug, raw_markdown, created_at FROM documents WHERE slug = ?",
            (slug,),
        ).fetchone()
        return _row_to_document(row) if row else None

    def list_documents(self) -> list[Document]:
        """Return all documents, newest first."""
        rows = self._conn.execute(
            "SELECT id, title, slug, raw_markdown, created_at FROM documents "
            "ORDER BY created_at DESC, rowid DESC"
        ).fetchall()
        return [_row_to_document(r) for r in rows]

    def delete_document(self, document_id: str) -> bool:
        """Delete a document; its embeddings go with it (ON DELETE CASCADE).

        Returns:
            True if a row was deleted.
        """
        with self._transaction() as conn:
            cur = conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
        return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    def upsert_embeddings(self, records: Sequence[EmbeddingRecord]) -> int:
        """Insert-or-update *records* in a single transaction.

        The conflict target is (document_id, chunk_index, model_id, device);
        on conflict the chunk text, pooling, normalize flag, content hash and
        vector are overwritten.

        Returns:
            Number of records written.
        """
        if not records:
            return 0
        params = [_record_params(r) for r in records]
        with self._transaction() as conn:
            conn.executemany(_UPSERT_EMBEDDING, params)
        return len(params)

    def replace_document_embeddings(
        self, document: Document, records: Sequence[EmbeddingRecord]
    ) -> int:
        """Update *document*'s title and body and swap in *records* as its only chunks.

        The row update, the delete of the old chunks and the upsert of the new
        ones share one transaction; on failure the post keeps its previous
        title, body and chunks.

        Returns:
            Number of records written.
        """
        params = [_record_params(r) for r in records]
        with self._transaction() as conn:
            conn.execute(
                "UPDATE documents SET title = ?, raw_markdown = ? WHERE id = ?",
                (document.title, document.raw_markdown, document.id),
            )
            conn.execute(
                "DELETE FROM document_embeddings WHERE document_id = ?", (document.id,)
            )
            if params:
                conn.executemany(_UPSERT_EMBEDDING, params)
        return len(params)

    def delete_embeddings_by_document(self, document_id: str) -> int:
        """Delete every chunk embedding of *document_id*. Returns rows deleted."""
        with self._transaction() as conn:
            cur = conn.execute(
                "DELETE FROM document_embeddings WHERE document_id = ?", (document_id,)
            )
        return cur.rowcount

    def get_embeddings(self, document_id: str) -> list[EmbeddingRecord]:
        """Return the stored chunks of *document_id* ordered by chunk index."""
        rows = self._conn.execute(
            """
            SELECT document_id, chunk_index, chunk_text, embedding, model_id, device,
                   content_hash, pooling, normalize, updated_at
            FROM document_embeddings
            WHERE document_id = ?
            ORDER BY chunk_index, model_id, device
            """,
            (document_id,),
        ).fetchall()
        return [_row_to_embedding(r) for r in rows]

    def count_embeddings(self, document_id: str | None = None) -> int:
        if document_id is None:
            return self._conn.execute("SELECT COUNT(*) FROM document_embeddings").fetchone()[0]
        return self._conn.execute(
            "SELECT COUNT(*) FROM document_embeddings WHERE document_id = ?", (document_id,)
        ).fetchone()[0]

    def list_models(self) -> list[tuple[str, str, int]]:
        """Return [(model_id, device, chunk_count), ...] for every stored configuration."""
        rows = self._conn.execute(
            """
            SELECT model_id, device, COUNT(*) AS n
            FROM document_embeddings
            GROUP BY model_id, device
            ORDER BY n DESC
            """
        ).fetchall()
        return [(r["model_id"], r["device"], r["n"]) for r in rows]

    # ------------------------------------------------------------------
    # Nearest-neighbour search
    # ------------------------------------------------------------------

    def nearest_chunks(
        self,
        embedding: Sequence[float],
        limit: int = 10,
        *,
        model_id: str | None = None,
        device: str | None = None,
    ) -> list[ChunkMatch]:
        """Return the *limit* chunks closest to *embedding* by cosine distance.

        Each hit is joined with its owning document. Results are ordered by
        ascending distance. Optional *model_id* / *device* restrict the scan to
        vectors produced by that configuration. Zero-norm chunks have no
        cosine distance and are skipped.

        Raises:
            InvalidInputError: If *limit* is below 1.
        """
        if limit < 1:
            raise InvalidInputError(f"limit must be at least 1, got {limit}.")
        where: list[str] = []
        params: list[object] = [sqlite_vec.serialize_float32(list(embedding))]
        if model_id is not None:
            where.append("e.model_id = ?")
            params.append(model_id)
        if device is not None:
            where.append("e.device = ?")
            params.append(device)
        params.append(limit)

        sql = f"""
            SELECT * FROM (
                SELECT d.id AS document_id, d.title, d.slug, d.raw_markdown, d.created_at,
                       e.chunk_index,
                       vec_distance_cosine(e.embedding, ?) AS distance
                FROM document_embeddings e
                JOIN documents d ON d.id = e.document_id
                {"WHERE " + " AND ".join(where) if where else ""}
            )
            WHERE distance IS NOT NULL
            ORDER BY distance ASC
            LIMIT ?
        """
        try:
            rows = self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StoreError.from_exception(exc) from exc
        return [_row_to_match(r) for r in rows]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _record_params(r: EmbeddingRecord) -> tuple:
    return (
        r.document_id,
        r.chunk_index,
        r.chunk_text,
        r.model_id,
        r.device,
        r.pooling,
        1 if r.normalize else 0,
        r.content_hash,
        sqlite_vec.serialize_float32(r.embedding),
    )


def _deserialize(blob: bytes) -> list[float]:
    return list(struct.unpack(f"{len(blob) // 4}f", blob))


def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        title=row["title"],
        slug=row["slug"],
        raw_markdown=row["raw_markdown"],
        created_at=row["created_at"],
    )


def _row_to_embedding(row: sqlite3.Row) -> EmbeddingRecord:
    return EmbeddingRecord(
        document_id=row["document_id"],
        chunk_index=row["chunk_index"],
        chunk_text=row["chunk_text"],
        embedding=_deserialize(row["embedding"]),
        model_id=row["model_id"],
        device=row["device"],
        content_hash=row["content_hash"],
        pooling=row["pooling"],
        normalize=bool(row["normalize"]),
        updated_at=row["updated_at"],
    )


def _row_to_match(row: sqlite3.Row) -> ChunkMatch:
    return ChunkMatch(
        document_id=row["document_id"],
        title=row["title"],
        slug=row["slug"],
        raw_markdown=row["raw_markdown"],
        created_at=row["created_at"],
        chunk_index=row["chunk_index"],
        distance=float(row["distance"]),
    )
