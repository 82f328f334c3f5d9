"""blogsearch rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from blogsearch.cli.errors import describe_error
    console.print(describe_error(exc))
    raise typer.Exit(1)
"""

from __future__ import annotations

from rich.markup import escape

from blogsearch.config import ConfigError
from blogsearch.errors import (
    DimensionMismatchError,
    InvalidInputError,
    ModelLoadError,
    StoreError,
    WorkerDisposedError,
    WorkerError,
    WorkerTimeoutError,
)


def err_no_db(db_path: str = ".blogsearch.db") -> str:
    """No database at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{escape(db_path)}'.\n"
        "  Run:  blogsearch init"
    )


def err_document_not_found(slug: str) -> str:
    return (
        f"[yellow]Post not found:[/] '{escape(slug)}' is not in the knowledge base.\n"
        "  Run:  blogsearch status  to see all indexed posts."
    )


def err_config(exc: ConfigError) -> str:
    return (
        f"[red]Config error:[/] {escape(str(exc))}\n"
        "  Fix blogsearch.yaml (or ~/.blogsearch/config.yaml) and retry."
    )


def err_dimension_mismatch(exc: DimensionMismatchError) -> str:
    return (
        f"[red]Error:[/] Embedding dimension mismatch.\n"
        f"  Database expects:  {exc.expected}\n"
        f"  Model produced:    {exc.actual}\n"
        "  Set embedding.dimensions to match the model, or use a model with "
        f"{exc.expected}-dimensional output."
    )


def err_model_load(exc: ModelLoadError) -> str:
    cause = f" ({escape(exc.name)})" if exc.name else ""
    return (
        f"[red]Error:[/] Could not load the embedding model{cause}: {escape(str(exc))}\n"
        "  Check your network connection and embedding.model / embedding.device.\n"
        "  Gated models need:  export HF_TOKEN=hf_..."
    )


def err_timeout(exc: WorkerTimeoutError) -> str:
    return (
        f"[red]Error:[/] {escape(str(exc))}\n"
        "  The first run downloads the model; raise worker.load_timeout in blogsearch.yaml."
    )


def err_store(exc: StoreError) -> str:
    lines = [f"[red]Database error:[/] {escape(exc.message)}"]
    if exc.store_code:
        lines.append(f"  Code:        {escape(exc.store_code)}")
    if exc.constraint:
        lines.append(f"  Constraint:  {escape(exc.constraint)}")
    return "\n".join(lines)


def err_invalid_input(exc: InvalidInputError) -> str:
    return f"[red]Error:[/] {escape(str(exc))}"


def describe_error(exc: Exception) -> str:
    """Pick the message builder for *exc*."""
    if isinstance(exc, ConfigError):
        return err_config(exc)
    if isinstance(exc, DimensionMismatchError):
        return err_dimension_mismatch(exc)
    if isinstance(exc, ModelLoadError):
        return err_model_load(exc)
    if isinstance(exc, WorkerTimeoutError):
        return err_timeout(exc)
    if isinstance(exc, StoreError):
        return err_store(exc)
    if isinstance(exc, InvalidInputError):
        return err_invalid_input(exc)
    if isinstance(exc, (WorkerError, WorkerDisposedError)):
        return f"[red]Embeddings worker error:[/] {escape(str(exc))}"
    return f"[red]Error:[/] {escape(str(exc))}"
