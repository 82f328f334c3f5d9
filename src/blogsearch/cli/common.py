"""Helpers shared by the blogsearch commands."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

import typer
from rich.console import Console

from blogsearch.cli.errors import describe_error, err_no_db
from blogsearch.config import BlogSearchConfig, ConfigError, load_config
from blogsearch.db.connection import Database


def load_config_or_exit(console: Console, project_dir: Path | None = None) -> BlogSearchConfig:
    try:
        return load_config(project_dir)
    except ConfigError as exc:
        console.print(describe_error(exc))
        raise typer.Exit(1)


def resolve_db(db: Path | None, cfg: BlogSearchConfig) -> Path:
    """``--db`` wins over ``database.path``."""
    return db if db is not None else Path(cfg.database.path)


def open_db(db_path: Path, console: Console) -> sqlite3.Connection:
    """Open an existing knowledge base, exiting with code 1 when it is missing."""
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)
    return Database(db_path).connect()


def worker_log_level() -> str:
    """The root logger level, forwarded to the worker process."""
    return logging.getLevelName(logging.getLogger().getEffectiveLevel())
