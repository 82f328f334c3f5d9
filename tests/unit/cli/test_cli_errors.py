"""Tests for CLI error messages and worker progress rendering."""

from __future__ import annotations

import io

import pytest
from rich.console import Console

from blogsearch.cli.errors import describe_error, err_no_db
from blogsearch.cli.progress import WorkerProgress
from blogsearch.config import ConfigError
from blogsearch.errors import (
    DimensionMismatchError,
    InvalidInputError,
    ModelLoadError,
    StoreError,
    WorkerDisposedError,
    WorkerTimeoutError,
)


def test_err_no_db_points_to_init():
    assert "blogsearch init" in err_no_db("x.db")


@pytest.mark.parametrize(
    "exc,needle",
    [
        (ConfigError("bad"), "Config error"),
        (DimensionMismatchError(384, 3), "Model produced:    3"),
        (ModelLoadError("offline", name="OSError"), "(OSError)"),
        (WorkerTimeoutError("slow"), "load_timeout"),
        (StoreError("boom", constraint="documents.slug"), "documents.slug"),
        (InvalidInputError("blank"), "blank"),
        (WorkerDisposedError("gone"), "worker error"),
        (RuntimeError("other"), "other"),
    ],
)
def test_describe_error(exc, needle):
    assert needle in describe_error(exc)


def test_markup_in_messages_is_escaped():
    assert "\\[bold]" in describe_error(InvalidInputError("[bold]x"))


def test_worker_progress_handles_all_events():
    console = Console(file=io.StringIO(), force_terminal=False)
    with WorkerProgress(console) as progress:
        progress.update(None)
        progress.update({"phase": "loading", "label": "Loading model", "percent": 0})
        progress.update({"phase": "loading", "label": "Downloading model", "percent": None})
        progress.update({"phase": "loading", "label": "Model ready", "percent": 100})
        progress.update({"phase": "running", "index": 0, "total": 2, "percent": 50})
        progress.update({"phase": "running", "index": 1, "total": 2, "percent": 100})
        tasks = {t.description: t for t in progress._progress.tasks}
    assert tasks["Model ready"].completed == 100
    assert tasks["Embedding"].completed == 2
    assert tasks["Embedding"].total == 2
