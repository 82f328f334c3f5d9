"""blogsearch init — create the knowledge base and a starter config.

Creates:
  .blogsearch.db    — empty knowledge base with schema (sqlite-vec loaded)
  blogsearch.yaml   — project config (embedding, search, database sections)

Both steps are idempotent: an existing database is migrated in place and an
existing blogsearch.yaml is left untouched.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from blogsearch.cli.common import load_config_or_exit
from blogsearch.cli.errors import describe_error
from blogsearch.config import write_project_config
from blogsearch.db.connection import Database
from blogsearch.db.migrations import schema_version
from blogsearch.errors import StoreError

console = Console()

_DEFAULT_PROJECT_DIR = Path(".")


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = _DEFAULT_PROJECT_DIR,
) -> None:
    """Initialize a blog search project (database + blogsearch.yaml)."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)

    cfg = load_config_or_exit(console, project_dir)
    db_path = Path(cfg.database.path)
    if not db_path.is_absolute():
        db_path = project_dir / db_path

    existed = db_path.exists()
    try:
        conn = Database(db_path).connect()
    except StoreError as exc:
        console.print(describe_error(exc))
        raise typer.Exit(1)
    try:
        version = schema_version(conn)
    finally:
        conn.close()

    verb = "migrated" if existed else "created"
    console.print(f"  [green]✓[/] {db_path} ({verb}, schema v{version})")

    cfg_path = write_project_config(project_dir, cfg)
    console.print(f"  [green]✓[/] {cfg_path}")

    console.print("\nNext steps:")
    console.print("  1. blogsearch add post.md      (index a Markdown post)")
    console.print('  2. blogsearch search "query"   (semantic search)')
