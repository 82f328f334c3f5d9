"""Run the embeddings worker in a separate process.

The child process owns the model; the parent talks to it only through a
``multiprocessing.Pipe``. ``ProcessWorker`` is the parent-side handle used by
``WorkerRpcClient``: it posts requests and fans incoming messages out to
listeners from a reader thread.
"""

from __future__ import annotations

import logging
import multiprocessing
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from multiprocessing.connection import Connection
from typing import Any

from blogsearch.config import DEFAULT_DEVICE, DEFAULT_MODEL_ID, BlogSearchConfig
from blogsearch.worker.rpc import Listener, WorkerRpcClient

logger = logging.getLogger(__name__)

_JOIN_TIMEOUT = 5.0


@dataclass(frozen=True)
class WorkerOptions:
    """Picklable settings the child process builds its worker from."""

    cache_dir: str
    allow_remote: bool = True
    pooling: str = "mean"
    normalize: bool = True
    default_model_id: str = DEFAULT_MODEL_ID
    default_device: str = DEFAULT_DEVICE
    log_level: str = "WARNING"

    @classmethod
    def from_config(cls, cfg: BlogSearchConfig, log_level: str = "WARNING") -> WorkerOptions:
        return cls(
            cache_dir=cfg.embedding.cache_dir,
            allow_remote=cfg.embedding.allow_remote,
            pooling=cfg.embedding.pooling,
            normalize=cfg.embedding.normalize,
            default_model_id=cfg.embedding.model,
            default_device=cfg.embedding.device,
            log_level=log_level,
        )


def serve(conn: Connection, options: WorkerOptions) -> None:
    """Child-process entry point: handle messages one at a time until EOF."""
    from blogsearch.log import configure_logging
    from blogsearch.worker.embedder import EmbeddingWorker
    from blogsearch.worker.pipeline import HubModelLoader

    configure_logging(options.log_level)
    worker = EmbeddingWorker(
        HubModelLoader(options.cache_dir, allow_remote=options.allow_remote),
        pooling=options.pooling,
        normalize=options.normalize,
        default_model_id=options.default_model_id,
        default_device=options.default_device,
    )
    while True:
        try:
            message = conn.recv()
            worker.handle(message, conn.send)
        except (EOFError, OSError):
            break
    conn.close()


class ProcessWorker:
    """Parent-side handle to an embeddings worker process.

    Args:
        options: Settings for the worker built inside the child.
        start_method: multiprocessing start method; "spawn" keeps the child
            free of the parent's threads and imported state.
    """

    def __init__(self, options: WorkerOptions, *, start_method: str = "spawn") -> None:
        ctx = multiprocessing.get_context(start_method)
        self._conn, child_conn = ctx.Pipe()
        self._process = ctx.Process(
            target=serve,
            args=(child_conn, options),
            name="blogsearch-embeddings",
            daemon=True,
        )
        self._process.start()
        child_conn.close()

        self._listeners: list[Listener] = []
        self._lock = threading.Lock()
        self._send_lock = threading.Lock()
        self._terminated = False
        self._reader = threading.Thread(
            target=self._read_loop, name="blogsearch-worker-reader", daemon=True
        )
        self._reader.start()

    @property
    def alive(self) -> bool:
        return not self._terminated and self._process.is_alive()

    def post_message(self, message: dict[str, Any]) -> None:
        if self._terminated:
            raise RuntimeError("Embeddings worker has been terminated.")
        with self._send_lock:
            self._conn.send(message)

    def add_listener(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def terminate(self) -> None:
        """Kill the child process, aborting any in-flight work."""
        if self._terminated:
            return
        self._terminated = True
        self._process.terminate()
        self._process.join(_JOIN_TIMEOUT)
        self._conn.close()
        self._reader.join(_JOIN_TIMEOUT)

    def _read_loop(self) -> None:
        while True:
            try:
                message = self._conn.recv()
            except (EOFError, OSError):
                break
            with self._lock:
                listeners = list(self._listeners)
            for listener in listeners:
                try:
                    listener(message)
                except Exception:
                    logger.exception("Worker message listener failed")


# ---------------------------------------------------------------------------
# Shared worker
# ---------------------------------------------------------------------------

_shared: ProcessWorker | None = None
_shared_lock = threading.Lock()


def get_embeddings_worker(options: WorkerOptions | None = None) -> ProcessWorker:
    """Return the process-wide worker, starting it on first use.

    *options* only apply when the worker is started; later calls reuse it.
    """
    global _shared
    with _shared_lock:
        if _shared is None or not _shared.alive:
            _shared = ProcessWorker(options or WorkerOptions.from_config(BlogSearchConfig()))
        return _shared


def terminate_embeddings_worker() -> None:
    global _shared
    with _shared_lock:
        if _shared is not None:
            _shared.terminate()
            _shared = None


@contextmanager
def open_client(cfg: BlogSearchConfig, log_level: str = "WARNING") -> Iterator[WorkerRpcClient]:
    """Start a dedicated worker process and yield an RPC client bound to it.

    The client (and with it the worker) is disposed on exit.
    """
    worker = ProcessWorker(WorkerOptions.from_config(cfg, log_level=log_level))
    client = WorkerRpcClient(worker, default_timeout=cfg.worker.timeout)
    try:
        yield client
    finally:
        client.dispose()
