"""blogsearch search — semantic search over indexed posts.

Usage:
  blogsearch search "how do I deploy"
  blogsearch search "deploy" --limit 5 --json
"""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from blogsearch.cli.common import load_config_or_exit, open_db, resolve_db, worker_log_level
from blogsearch.cli.errors import describe_error
from blogsearch.cli.progress import WorkerProgress
from blogsearch.db.repository import Repository
from blogsearch.errors import BlogSearchError
from blogsearch.search.query import embed_query
from blogsearch.search.semantic import SearchResult, semantic_search
from blogsearch.worker.process import open_client

console = Console()


def search_cmd(
    query: Annotated[str, typer.Argument(help="Search query.")],
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", min=1, help="Nearest chunks to consider (default: search.limit)."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to .blogsearch.db (default: database.path)."),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print results as JSON."),
    ] = False,
) -> None:
    """Find the posts most similar to QUERY."""
    cfg = load_config_or_exit(console)
    db_path = resolve_db(db, cfg)
    conn = open_db(db_path, console)
    repo = Repository(conn)

    try:
        with open_client(cfg, worker_log_level()) as client, WorkerProgress(console) as progress:
            vector = embed_query(
                client,
                query,
                prefix=cfg.embedding.query_prefix,
                model_id=cfg.embedding.model,
                device=cfg.embedding.device,
                on_progress=progress.update,
                timeout=cfg.worker.load_timeout,
            )
        results = semantic_search(
            repo,
            vector,
            limit or cfg.search.limit,
            dimensions=cfg.embedding.dimensions,
            model_id=cfg.embedding.model,
            excerpt_length=cfg.search.excerpt_length,
        )
    except BlogSearchError as exc:
        console.print(describe_error(exc))
        raise typer.Exit(1)
    finally:
        conn.close()

    if as_json:
        typer.echo(json.dumps([asdict(r) for r in results], ensure_ascii=False, indent=2))
        return
    _print_results(query, results)


def _print_results(query: str, results: list[SearchResult]) -> None:
    if not results:
        console.print(f"[dim]No posts match '{escape(query)}'.[/]")
        return

    table = Table(title=f"Results for '{escape(query)}'", show_lines=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Similarity", justify="right")
    table.add_column("Title", style="bold")
    table.add_column("Slug", style="cyan")
    table.add_column("Excerpt")
    for rank, result in enumerate(results, start=1):
        table.add_row(
            str(rank),
            f"{result.similarity:.3f}",
            escape(result.title),
            result.slug,
            escape(result.excerpt),
        )
    console.print(table)
