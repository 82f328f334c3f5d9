"""Render embeddings worker progress events with rich.progress."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TaskProgressColumn, TextColumn

from blogsearch.worker.protocol import PHASE_LOADING, PHASE_RUNNING


class WorkerProgress:
    """Context manager exposing ``update(payload)`` as a worker progress callback.

    Loading events drive a "model" bar (a percent of None only relabels it);
    running events drive an "embedding" bar.
    """

    def __init__(self, console: Console, *, transient: bool = True) -> None:
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
            transient=transient,
        )
        self._tasks: dict[str, TaskID] = {}

    def __enter__(self) -> WorkerProgress:
        self._progress.start()
        return self

    def __exit__(self, *args: object) -> None:
        self._progress.stop()

    def update(self, payload: dict[str, Any] | None) -> None:
        if not payload:
            return
        phase = payload.get("phase")
        percent = payload.get("percent")
        if phase == PHASE_LOADING:
            label = payload.get("label") or "Loading model"
            task = self._task(PHASE_LOADING, label)
            if percent is None:
                self._progress.update(task, description=label)
            else:
                self._progress.update(task, description=label, total=100, completed=percent)
        elif phase == PHASE_RUNNING:
            total = payload.get("total") or 1
            task = self._task(PHASE_RUNNING, "Embedding")
            self._progress.update(task, total=total, completed=(payload.get("index", 0) + 1))

    def _task(self, key: str, description: str) -> TaskID:
        if key not in self._tasks:
            self._tasks[key] = self._progress.add_task(description, total=None)
        return self._tasks[key]
