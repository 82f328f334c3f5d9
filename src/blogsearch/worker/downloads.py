"""Model file fetching with byte-level download progress.

A *fetch* is any callable ``fetch(url)`` returning a context manager that
yields a ``Download`` (declared length + iterator of byte blocks). The model
loader receives its fetch as an argument; ``track_downloads()`` wraps a fetch
for the duration of a single load so progress accounting never outlives it.

Progress percentage across all tracked files:
    min(99, round(100 * sum(loaded) / sum(total)))
100 is reserved for the "model ready" signal sent by the loader's caller.
"""

from __future__ import annotations

import os
import re
import urllib.request
from collections.abc import Callable, Iterable, Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass, replace
from typing import Any

from blogsearch.worker.protocol import PHASE_LOADING, to_percent

_USER_AGENT = "blogsearch/0.1"
_TIMEOUT = 60  # seconds, per socket operation
_BLOCK_SIZE = 64 * 1024

# Model registries and model/runtime asset files.
_MODEL_ASSET_RE = re.compile(
    r"huggingface|hf\.co|jsdelivr|onnxruntime"
    r"|\.(?:wasm|onnx|bin|json|safetensors|model|txt)(?:$|\?)",
    re.IGNORECASE,
)

DOWNLOAD_LABEL = "Downloading model"

ProgressFn = Callable[[dict[str, Any]], None]


@dataclass
class Download:
    """An open HTTP body: declared length (None if unknown) and its byte blocks."""

    url: str
    total: int | None
    chunks: Iterable[bytes]


Fetch = Callable[[str], AbstractContextManager[Download]]


def is_model_asset(url: str) -> bool:
    return bool(_MODEL_ASSET_RE.search(url))


def file_key(url: str) -> str:
    """Tracking key for *url*: its last path segment (query string dropped)."""
    path = url.split("?", 1)[0]
    return path.rstrip("/").rsplit("/", 1)[-1] or url


@contextmanager
def urlopen_fetch(url: str) -> Iterator[Download]:
    """Default fetch: stream *url* with urllib, following redirects.

    Sends ``HF_TOKEN`` as a bearer token when set (gated models).
    """
    headers = {"User-Agent": _USER_AGENT}
    if token := os.environ.get("HF_TOKEN"):
        headers["Authorization"] = f"Bearer {token}"
    req = urllib.request.Request(url, headers=headers)
    with urllib.request.urlopen(req, timeout=_TIMEOUT) as resp:  # noqa: S310
        length = resp.headers.get("Content-Length")
        total = int(length) if length and length.isdigit() else None
        yield Download(url=url, total=total, chunks=iter(lambda: resp.read(_BLOCK_SIZE), b""))


class DownloadTracker:
    """Per-file loaded/total byte counters for one model load."""

    def __init__(self) -> None:
        self._files: dict[str, list[int]] = {}

    def __len__(self) -> int:
        return len(self._files)

    def start(self, key: str, total: int) -> None:
        self._files[key] = [0, total]

    def add(self, key: str, n: int) -> None:
        if key in self._files:
            self._files[key][0] += n

    def finish(self, key: str) -> None:
        if key in self._files:
            self._files[key][0] = self._files[key][1]

    def discard(self, key: str) -> None:
        self._files.pop(key, None)

    def clear(self) -> None:
        self._files.clear()

    def percent(self) -> int | None:
        """Aggregate percentage capped at 99, or None when nothing is measurable."""
        if not self._files:
            return None
        loaded = sum(v[0] for v in self._files.values())
        total = sum(v[1] for v in self._files.values())
        if total == 0:
            return None
        return min(99, to_percent(loaded, total))


def track_downloads(fetch: Fetch, tracker: DownloadTracker, report: ProgressFn | None) -> Fetch:
    """Wrap *fetch* so model asset downloads feed *tracker* and call *report*.

    Non-asset URLs and calls without a *report* pass through untouched. A body
    without a content length yields an indeterminate ``percent: None`` event.
    """

    @contextmanager
    def tracked(url: str) -> Iterator[Download]:
        with fetch(url) as download:
            if report is None or not is_model_asset(url):
                yield download
                return
            if not download.total:
                report({"phase": PHASE_LOADING, "label": DOWNLOAD_LABEL, "percent": None})
                yield download
                return

            key = file_key(url)
            tracker.start(key, download.total)
            try:
                yield replace(download, chunks=_counted(download.chunks, key, tracker, report))
            except BaseException:
                tracker.discard(key)
                raise

    return tracked


def _counted(
    chunks: Iterable[bytes], key: str, tracker: DownloadTracker, report: ProgressFn
) -> Iterator[bytes]:
    for block in chunks:
        tracker.add(key, len(block))
        _report(tracker, report)
        yield block
    tracker.finish(key)
    _report(tracker, report)


def _report(tracker: DownloadTracker, report: ProgressFn) -> None:
    pct = tracker.percent()
    if pct is not None:
        report({"phase": PHASE_LOADING, "label": DOWNLOAD_LABEL, "percent": pct})
