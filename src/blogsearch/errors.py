"""Exception hierarchy shared by the worker, RPC client, search and store layers.

Worker-side failures travel over the message channel as plain dicts
(``{"code", "message", "name", "stack"}``); ``error_to_payload()`` and
``error_from_payload()`` convert between the two representations.
"""

from __future__ import annotations

import re
import sqlite3
import traceback
from typing import Any


class BlogSearchError(Exception):
    """Base class for all blogsearch errors."""

    code = "BlogSearchError"


class InvalidInputError(BlogSearchError, ValueError):
    """A request payload or argument is malformed (e.g. empty text list)."""

    code = "InvalidInput"


class DimensionMismatchError(BlogSearchError, ValueError):
    """An embedding vector does not have the deployment's fixed dimension."""

    code = "DimensionMismatch"

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Invalid embedding dimension: expected {expected}, got {actual}."
        )
        self.expected = expected
        self.actual = actual


class WorkerError(BlogSearchError):
    """A worker call finished with ``ok = False``.

    Attributes:
        name: Class name of the exception raised inside the worker.
        stack: Formatted traceback from the worker process, if available.
    """

    code = "WorkerError"

    def __init__(self, message: str, name: str | None = None, stack: str | None = None) -> None:
        super().__init__(message)
        self.name = name
        self.stack = stack


class ModelLoadError(WorkerError):
    """Network or runtime failure while loading an embedding model."""

    code = "ModelLoadFailure"


class UnknownMessageTypeError(WorkerError):
    """The worker received a request ``type`` outside the protocol."""

    code = "UnknownMessageType"


class WorkerTimeoutError(BlogSearchError, TimeoutError):
    """No terminal response arrived within the call's timeout."""

    code = "Timeout"


class WorkerDisposedError(BlogSearchError):
    """The RPC client was disposed while the call was still pending."""

    code = "Disposed"


class StoreError(BlogSearchError):
    """The SQLite store rejected a query or mutation.

    Structured fields mirror what the driver exposes; any of them may be None.
    """

    code = "StoreError"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        detail: str | None = None,
        constraint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.store_code = code
        self.detail = detail
        self.constraint = constraint

    @classmethod
    def from_exception(cls, exc: sqlite3.Error) -> StoreError:
        """Build a StoreError from a ``sqlite3.Error`` (see ``pick_store_error``)."""
        fields = pick_store_error(exc)
        return cls(
            fields["message"] or exc.__class__.__name__,
            code=fields["code"],
            detail=fields["detail"],
            constraint=fields["constraint"],
        )

    def as_dict(self) -> dict[str, str | None]:
        return {
            "code": self.store_code,
            "message": self.message,
            "detail": self.detail,
            "constraint": self.constraint,
        }


# "UNIQUE constraint failed: documents.slug" / "CHECK constraint failed: positive_index"
_CONSTRAINT_RE = re.compile(r"^(\w+) constraint failed: (.+)$")


def pick_store_error(exc: BaseException) -> dict[str, str | None]:
    """Extract code / message / detail / constraint from a database error.

    Follows ``__cause__`` first so wrapped driver errors still expose their
    fields.
    """
    cause = exc.__cause__ if isinstance(exc.__cause__, sqlite3.Error) else exc
    message = str(cause) or None
    code = getattr(cause, "sqlite_errorname", None)
    detail = None
    constraint = None
    if message and (match := _CONSTRAINT_RE.match(message)):
        detail = f"{match.group(1)} constraint violated"
        constraint = match.group(2)
    return {"code": code, "message": message, "detail": detail, "constraint": constraint}


# ---------------------------------------------------------------------------
# Wire (de)serialization
# ---------------------------------------------------------------------------

_BY_CODE: dict[str, type[WorkerError]] = {
    ModelLoadError.code: ModelLoadError,
    UnknownMessageTypeError.code: UnknownMessageTypeError,
}


def error_to_payload(exc: BaseException) -> dict[str, Any]:
    """Serialize *exc* into the protocol's error payload."""
    if isinstance(exc, WorkerError) and exc.name:
        name = exc.name
    else:
        name = exc.__class__.__name__
    stack = getattr(exc, "stack", None) or "".join(
        traceback.format_exception(type(exc), exc, exc.__traceback__)
    )
    return {
        "code": getattr(exc, "code", WorkerError.code),
        "message": str(exc) or name,
        "name": name,
        "stack": stack,
    }


def error_from_payload(payload: Any) -> BlogSearchError:
    """Rebuild an exception from a worker error payload.

    Unknown or malformed payloads become a generic WorkerError.
    """
    if not isinstance(payload, dict):
        return WorkerError("Unknown error from the embeddings worker.")

    code = payload.get("code")
    message = str(payload.get("message") or "Unknown error from the embeddings worker.")
    name = payload.get("name")
    stack = payload.get("stack")

    if code == InvalidInputError.code:
        exc: BlogSearchError = InvalidInputError(message)
        exc.name = name  # type: ignore[attr-defined]
        exc.stack = stack  # type: ignore[attr-defined]
        return exc
    return _BY_CODE.get(code, WorkerError)(message, name=name, stack=stack)
