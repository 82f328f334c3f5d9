"""blogsearch remove — delete a post and all its chunks.

Usage:
  blogsearch remove --slug hello-world-1a2b3c
  blogsearch remove --slug hello-world-1a2b3c --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from blogsearch.cli.common import load_config_or_exit, open_db, resolve_db
from blogsearch.cli.errors import describe_error, err_document_not_found
from blogsearch.db.repository import Repository
from blogsearch.errors import StoreError
from blogsearch.ingest.embedding_writer import delete_document_embeddings

console = Console()


def remove_cmd(
    slug: Annotated[
        str,
        typer.Option("--slug", "-s", help="Slug of the post to remove."),
    ],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to .blogsearch.db (default: database.path)."),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove a post and its embeddings from the knowledge base."""
    cfg = load_config_or_exit(console)
    conn = open_db(resolve_db(db, cfg), console)
    repo = Repository(conn)

    try:
        existing = repo.get_document_by_slug(slug)
        if existing is None:
            console.print(err_document_not_found(slug))
            raise typer.Exit(0)

        chunk_count = repo.count_embeddings(existing.id)
        console.print(f"\nRemove post: [bold]{existing.title}[/] ({slug})")
        console.print(f"  Chunks: {chunk_count}")

        if not yes:
            if not typer.confirm("Confirm removal?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        deleted = delete_document_embeddings(repo, existing.id)
        repo.delete_document(existing.id)
    except StoreError as exc:
        console.print(describe_error(exc))
        raise typer.Exit(1)
    finally:
        conn.close()

    console.print(f"\n[green]✓[/] Removed: {slug}")
    console.print(f"  {deleted} chunks deleted")
