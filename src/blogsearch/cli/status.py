"""blogsearch status command.

Shows the active configuration and knowledge base stats: posts, chunks,
stored (model, device) pairs and extension/schema versions.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from blogsearch.cli.common import load_config_or_exit, resolve_db
from blogsearch.config import BlogSearchConfig
from blogsearch.db.connection import Database, vec_version
from blogsearch.db.migrations import schema_version
from blogsearch.db.repository import Repository

console = Console()


def status_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to .blogsearch.db (default: database.path)."),
    ] = None,
) -> None:
    """Show configuration and knowledge base status."""
    cfg = load_config_or_exit(console)
    db_path = resolve_db(db, cfg)

    _show_config_panel(db_path, cfg)

    if not db_path.exists():
        console.print(
            Panel(
                "[yellow]No database found.[/]\n"
                "  Run:  blogsearch init",
                title="[bold]Knowledge Base[/]",
                expand=False,
            )
        )
        return

    conn = Database(db_path).connect()
    try:
        _show_knowledge_panel(conn, Repository(conn), cfg)
    finally:
        conn.close()


def _show_config_panel(db_path: Path, cfg: BlogSearchConfig) -> None:
    db_info = f"{db_path}"
    if db_path.exists():
        size_mb = db_path.stat().st_size / (1024 * 1024)
        db_info = f"{db_path} ({size_mb:.1f} MB)"

    lines = [
        f"Model:     [bold]{cfg.embedding.model}[/]",
        f"Device:    {cfg.embedding.device}  |  Dimensions: {cfg.embedding.dimensions}",
        f"Database:  {db_info}",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Configuration[/]", expand=False))


def _show_knowledge_panel(
    conn: sqlite3.Connection, repo: Repository, cfg: BlogSearchConfig
) -> None:
    documents = repo.list_documents()
    total_chunks = repo.count_embeddings()

    lines = [
        f"Posts: [bold]{len(documents)}[/]  |  Chunks: [bold]{total_chunks:,}[/]",
        f"Schema: v{schema_version(conn)}  |  sqlite-vec: {vec_version(conn)}",
    ]
    if documents:
        lines.append(f"Latest: [dim]{documents[0].title} ({documents[0].created_at})[/]")
    else:
        lines.append("[dim]No posts indexed yet.[/]")
    console.print(Panel("\n".join(lines), title="[bold]Knowledge Base[/]", expand=False))

    models = repo.list_models()
    if not models:
        return
    table = Table(title="Embedding models")
    table.add_column("Model")
    table.add_column("Device")
    table.add_column("Chunks", justify="right")
    for model_id, device, count in models:
        marker = " [green](active)[/]" if model_id == cfg.embedding.model else ""
        table.add_row(f"{model_id}{marker}", device, str(count))
    console.print(table)
