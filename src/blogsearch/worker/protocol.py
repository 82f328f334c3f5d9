"""Message protocol between the RPC client and the embeddings worker.

Messages are plain JSON-serializable dicts so they cross a process boundary
(``multiprocessing.Pipe``) unchanged. Keys are the wire names:

  request   {"type": "init"|"embed"|"status"|"clearCache", "requestId": str, "payload": {...}}
  response  {"type": "response", "requestId": str, "ok": bool, "result": ..., "error": {...}}
  progress  {"type": "progress", "requestId": str, "payload": {"phase": ..., "percent": ...}}
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any

RESPONSE = "response"
PROGRESS = "progress"

PHASE_LOADING = "loading"
PHASE_RUNNING = "running"


class RequestType(str, Enum):
    """Request kinds understood by the worker. Each has exactly one handler."""

    INIT = "init"
    EMBED = "embed"
    STATUS = "status"
    CLEAR_CACHE = "clearCache"


def request(type_: RequestType | str, request_id: str, payload: Any = None) -> dict[str, Any]:
    kind = type_.value if isinstance(type_, RequestType) else str(type_)
    message: dict[str, Any] = {"type": kind, "requestId": request_id}
    if payload is not None:
        message["payload"] = payload
    return message


def response(
    request_id: str,
    ok: bool,
    result: Any = None,
    error: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "type": RESPONSE,
        "requestId": request_id,
        "ok": ok,
        "result": result,
        "error": error,
    }


def progress(request_id: str, payload: dict[str, Any]) -> dict[str, Any]:
    return {"type": PROGRESS, "requestId": request_id, "payload": payload}


def to_percent(done: float, total: float) -> int:
    """Percentage rounded half-up (12.5 → 13), as progress bars display it."""
    return math.floor(done * 100 / total + 0.5)


def is_worker_message(value: Any) -> bool:
    """True for well-formed response/progress messages; anything else is ignored."""
    return (
        isinstance(value, dict)
        and value.get("type") in (RESPONSE, PROGRESS)
        and isinstance(value.get("requestId"), str)
    )
