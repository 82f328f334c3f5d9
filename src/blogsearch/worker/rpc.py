"""RPC client multiplexing concurrent calls over one embeddings worker.

Each call gets a fresh request id; its future resolves on the matching
``response`` message, and its optional progress callback runs for every
matching ``progress`` message that arrives before that. Calls time out
client-side only; a late response for an expired call finds no pending entry
and is dropped.

Threading: worker messages arrive on the worker handle's reader thread, timers
fire on their own threads, and ``_lock`` serialises both against the pending
table. Progress callbacks run under the lock, so once a call has been removed
from the table none of its callbacks can start again.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from concurrent.futures import Future, InvalidStateError
from dataclasses import dataclass, field
from typing import Any, Protocol

from blogsearch.errors import WorkerDisposedError, WorkerTimeoutError, error_from_payload
from blogsearch.worker import protocol
from blogsearch.worker.protocol import PROGRESS, RESPONSE, RequestType

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0  # seconds

Listener = Callable[[Any], None]
ProgressCallback = Callable[[dict[str, Any]], None]


class WorkerHandle(Protocol):
    """The transport an RPC client talks through (see ProcessWorker)."""

    def post_message(self, message: dict[str, Any]) -> None: ...

    def add_listener(self, listener: Listener) -> None: ...

    def remove_listener(self, listener: Listener) -> None: ...

    def terminate(self) -> None: ...


@dataclass
class _PendingCall:
    type: str
    future: Future
    on_progress: ProgressCallback | None = None
    timer: threading.Timer | None = field(default=None, repr=False)


class WorkerRpcClient:
    """Correlates request/response/progress traffic with one worker.

    Args:
        worker: Worker handle; the client subscribes to its messages.
        default_timeout: Seconds a call waits for its response unless overridden.
    """

    def __init__(self, worker: WorkerHandle, default_timeout: float = DEFAULT_TIMEOUT) -> None:
        self._worker = worker
        self._default_timeout = default_timeout
        self._pending: dict[str, _PendingCall] = {}
        self._lock = threading.RLock()
        self._disposed = False
        worker.add_listener(self._on_message)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def disposed(self) -> bool:
        return self._disposed

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    def call(
        self,
        type_: RequestType | str,
        payload: Any = None,
        *,
        timeout: float | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> Future:
        """Send one request and return a future for its result.

        Args:
            type_: Request kind.
            payload: JSON-serializable request payload.
            timeout: Seconds to wait for the response (default: client default).
            on_progress: Called with each progress payload of this call.

        Returns:
            Future resolving to the response ``result``; failed responses set
            the matching BlogSearchError, expiry sets WorkerTimeoutError.
        """
        future: Future = Future()
        if self._disposed:
            future.set_exception(WorkerDisposedError("RPC client disposed"))
            return future

        request_id = str(uuid.uuid4())
        kind = type_.value if isinstance(type_, RequestType) else str(type_)
        seconds = self._default_timeout if timeout is None else timeout

        timer = threading.Timer(seconds, self._expire, args=(request_id,))
        timer.daemon = True
        entry = _PendingCall(type=kind, future=future, on_progress=on_progress, timer=timer)
        with self._lock:
            self._pending[request_id] = entry
        timer.start()

        try:
            self._worker.post_message(protocol.request(kind, request_id, payload))
        except Exception as exc:
            if self._take(request_id) is not None:
                timer.cancel()
                _settle(future, exc=exc)
        return future

    def dispose(self) -> None:
        """Fail all pending calls, stop listening and terminate the worker.

        Safe to call with nothing pending and safe to call more than once.
        """
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            entries = list(self._pending.values())
            self._pending.clear()

        self._worker.remove_listener(self._on_message)
        for entry in entries:
            if entry.timer is not None:
                entry.timer.cancel()
            _settle(entry.future, exc=WorkerDisposedError("RPC client disposed"))
        self._worker.terminate()

    def __enter__(self) -> WorkerRpcClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.dispose()

    # ------------------------------------------------------------------
    # Incoming traffic
    # ------------------------------------------------------------------

    def _on_message(self, message: Any) -> None:
        if not protocol.is_worker_message(message):
            return
        request_id = message["requestId"]

        if message["type"] == PROGRESS:
            with self._lock:
                entry = self._pending.get(request_id)
                if entry is None or entry.on_progress is None:
                    return
                try:
                    entry.on_progress(message.get("payload"))
                except Exception:
                    logger.exception("Progress callback for %s failed", request_id)
            return

        if message["type"] == RESPONSE:
            entry = self._take(request_id)
            if entry is None:
                logger.debug("Dropping response for unknown request %s", request_id)
                return
            if entry.timer is not None:
                entry.timer.cancel()
            if message.get("ok"):
                _settle(entry.future, result=message.get("result"))
            else:
                _settle(entry.future, exc=error_from_payload(message.get("error")))

    def _expire(self, request_id: str) -> None:
        entry = self._take(request_id)
        if entry is not None:
            _settle(
                entry.future,
                exc=WorkerTimeoutError(f"Timed out waiting for the embeddings worker ({entry.type})."),
            )

    def _take(self, request_id: str) -> _PendingCall | None:
        with self._lock:
            return self._pending.pop(request_id, None)


def _settle(future: Future, *, result: Any = None, exc: BaseException | None = None) -> None:
    try:
        if exc is not None:
            future.set_exception(exc)
        else:
            future.set_result(result)
    except InvalidStateError:
        # caller cancelled the future
        pass
