"""Logging setup for the CLI and the embeddings worker process."""

from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

_NOISY_LOGGERS = ("urllib3", "filelock", "transformers", "huggingface_hub")


def configure_logging(level: str | int | None = None, *, stderr: bool = True) -> None:
    """Install a RichHandler on the root logger.

    Level resolution: explicit *level* → ``BLOGSEARCH_LOG_LEVEL`` → WARNING.
    Calling it again replaces the previous handler instead of stacking.
    """
    if level is None:
        level = os.environ.get("BLOGSEARCH_LOG_LEVEL", "WARNING")
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.WARNING)

    root = logging.getLogger()
    for handler in root.handlers[:]:
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=stderr),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(name)s | %(message)s", datefmt="[%X]"))
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
