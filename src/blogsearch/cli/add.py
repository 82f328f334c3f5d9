"""blogsearch add — index a Markdown post.

Reads PATH, takes the title from YAML front matter (``title:``) or the file
name, stores the post and embeds its chunks through a worker process.

Re-adding with ``--slug`` of an existing post updates it in place and
replaces all of its chunks.

Usage:
  blogsearch add posts/hello.md
  blogsearch add posts/hello.md --slug hello-world-1a2b3c
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from blogsearch.cli.common import load_config_or_exit, open_db, resolve_db, worker_log_level
from blogsearch.cli.errors import describe_error
from blogsearch.cli.progress import WorkerProgress
from blogsearch.db.models import Document
from blogsearch.db.repository import Repository
from blogsearch.errors import BlogSearchError
from blogsearch.ingest.embedding_writer import EmbeddingWriter
from blogsearch.ingest.markdown import MarkdownChunker, split_front_matter
from blogsearch.utils import make_slug
from blogsearch.worker.process import open_client

logger = logging.getLogger(__name__)

console = Console()


def add_cmd(
    path: Annotated[
        Path,
        typer.Argument(exists=True, dir_okay=False, readable=True, help="Markdown file to index."),
    ],
    title: Annotated[
        str | None,
        typer.Option("--title", "-t", help="Post title (default: front matter or file name)."),
    ] = None,
    slug: Annotated[
        str | None,
        typer.Option("--slug", help="Slug of an existing post to update."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to .blogsearch.db (default: database.path)."),
    ] = None,
) -> None:
    """Add (or update) a Markdown post and embed its chunks."""
    cfg = load_config_or_exit(console)
    db_path = resolve_db(db, cfg)

    content = path.read_text(encoding="utf-8")
    meta, body = split_front_matter(content)
    post_title = title or str(meta.get("title") or path.stem)

    conn = open_db(db_path, console)
    repo = Repository(conn)
    created = False
    document: Document | None = None

    try:
        existing = repo.get_document_by_slug(slug) if slug else None
        if existing is not None:
            # Saved by reindex together with the new chunks.
            existing.title = post_title
            existing.raw_markdown = body
            document = existing
        else:
            document = Document(
                id=str(uuid.uuid4()),
                title=post_title,
                slug=slug or make_slug(post_title),
                raw_markdown=body,
            )
            repo.add_document(document)
            created = True

        chunker = MarkdownChunker(cfg.chunking.chunk_size, cfg.chunking.overlap)
        with open_client(cfg, worker_log_level()) as client, WorkerProgress(console) as progress:
            writer = EmbeddingWriter(
                repo, client, cfg.embedding, chunker, timeout=cfg.worker.load_timeout
            )
            if created:
                written = writer.write(document, on_progress=progress.update)
            else:
                written = writer.reindex(document, on_progress=progress.update)

    except BlogSearchError as exc:
        if created and document is not None:
            logger.info("Rolling back post %s after failed ingest", document.id)
            repo.delete_document(document.id)
        console.print(describe_error(exc))
        raise typer.Exit(1)
    finally:
        conn.close()

    verb = "Added" if created else "Updated"
    console.print(f"[green]✓[/] {verb}: [bold]{document.title}[/]")
    console.print(f"  Slug: {document.slug}  |  Chunks: {written}")
