"""Embeddings worker: request handlers and the loaded-model state.

``EmbeddingWorker.handle()`` processes one request message to completion,
emitting zero or more progress messages and then exactly one response
through the ``post`` callable it is given. It holds no transport of its own:
``blogsearch.worker.process`` drives it from a child process, tests drive it
directly.
"""

from __future__ import annotations

import logging
import traceback
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from blogsearch import config as _config
from blogsearch.errors import (
    InvalidInputError,
    ModelLoadError,
    UnknownMessageTypeError,
    error_to_payload,
)
from blogsearch.worker import protocol
from blogsearch.worker.downloads import (
    DownloadTracker,
    Fetch,
    ProgressFn,
    track_downloads,
    urlopen_fetch,
)
from blogsearch.worker.pipeline import EmbeddingPipeline, ModelLoader
from blogsearch.worker.protocol import PHASE_LOADING, PHASE_RUNNING, RequestType

logger = logging.getLogger(__name__)

Post = Callable[[dict[str, Any]], None]


@dataclass(frozen=True)
class ModelState:
    """The single loaded model configuration. Replaced wholesale on reload."""

    model_id: str | None = None
    device: str | None = None
    pipeline: EmbeddingPipeline | None = None

    def matches(self, model_id: str, device: str) -> bool:
        return self.pipeline is not None and (self.model_id, self.device) == (model_id, device)

    def config(self) -> dict[str, str | None]:
        return {"modelId": self.model_id, "device": self.device}


class EmbeddingWorker:
    """Message handlers for the embeddings worker.

    Args:
        loader: Builds a pipeline for (model_id, device) using the fetch passed in.
        fetch: Underlying network fetch; wrapped per load for progress tracking.
        pooling: Token pooling strategy passed to the pipeline.
        normalize: Whether vectors are L2-normalized.
        default_model_id: Model used when neither the request nor the state names one.
        default_device: Device used when neither the request nor the state names one.
    """

    def __init__(
        self,
        loader: ModelLoader,
        fetch: Fetch = urlopen_fetch,
        *,
        pooling: str = "mean",
        normalize: bool = True,
        default_model_id: str = _config.DEFAULT_MODEL_ID,
        default_device: str = _config.DEFAULT_DEVICE,
    ) -> None:
        self._loader = loader
        self._fetch = fetch
        self._pooling = pooling
        self._normalize = normalize
        self._default_model_id = default_model_id
        self._default_device = default_device
        self._state = ModelState()
        self._downloads = DownloadTracker()
        self._handlers: dict[RequestType, Callable[[dict[str, Any], ProgressFn], Any]] = {
            RequestType.STATUS: self._status,
            RequestType.CLEAR_CACHE: self._clear_cache,
            RequestType.INIT: self._init,
            RequestType.EMBED: self._embed,
        }

    @property
    def state(self) -> ModelState:
        return self._state

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def handle(self, message: Any, post: Post) -> None:
        """Run the handler for *message* and post its progress and response."""
        data = message if isinstance(message, dict) else {}
        request_id = data.get("requestId")
        type_ = data.get("type")

        def report(payload: dict[str, Any]) -> None:
            post(protocol.progress(request_id, payload))

        try:
            try:
                kind = RequestType(type_)
            except ValueError:
                raise UnknownMessageTypeError(f"Unknown message type: {type_!r}") from None
            payload = data.get("payload")
            if payload is None:
                payload = {}
            elif not isinstance(payload, dict):
                raise InvalidInputError("`payload` must be an object")
            result = self._handlers[kind](payload, report)
        except Exception as exc:
            logger.warning("Request %s (%s) failed: %s", request_id, type_, exc)
            post(protocol.response(request_id, False, error=error_to_payload(exc)))
            return
        post(protocol.response(request_id, True, result))

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _status(self, payload: dict[str, Any], report: ProgressFn) -> dict[str, Any]:
        return {"ready": self._state.pipeline is not None, "config": self._state.config()}

    def _clear_cache(self, payload: dict[str, Any], report: ProgressFn) -> dict[str, Any]:
        self._state = ModelState()
        self._downloads.clear()
        return {"cleared": True}

    def _init(self, payload: dict[str, Any], report: ProgressFn) -> dict[str, Any]:
        model_id = _optional_str(payload, "modelId") or self._default_model_id
        device = _optional_str(payload, "device") or self._default_device

        report({"phase": PHASE_LOADING, "label": "Loading model", "percent": 0})
        self.ensure_pipeline(model_id, device, report)
        return {"ready": True, "config": self._state.config()}

    def _embed(self, payload: dict[str, Any], report: ProgressFn) -> dict[str, Any]:
        texts = payload.get("texts")
        if (
            not isinstance(texts, list)
            or not texts
            or not all(isinstance(t, str) for t in texts)
        ):
            raise InvalidInputError("`texts` must be a non-empty list of strings")

        model_id = (
            _optional_str(payload, "modelId")
            or self._state.model_id
            or self._default_model_id
        )
        device = _optional_str(payload, "device") or self._state.device or self._default_device
        pipe = self.ensure_pipeline(model_id, device, report)

        total = len(texts)
        embeddings: list[list[float]] = []
        for i, text in enumerate(texts):
            vector = pipe(text, pooling=self._pooling, normalize=self._normalize)
            embeddings.append(_to_plain_list(vector))
            report({
                "phase": PHASE_RUNNING,
                "index": i,
                "total": total,
                "percent": protocol.to_percent(i + 1, total),
            })

        return {
            "modelId": self._state.model_id,
            "device": self._state.device,
            "embeddings": embeddings,
        }

    # ------------------------------------------------------------------
    # Model loading
    # ------------------------------------------------------------------

    def ensure_pipeline(
        self, model_id: str, device: str, report: ProgressFn | None = None
    ) -> EmbeddingPipeline:
        """Return the pipeline for (model_id, device), loading and swapping if needed.

        A matching loaded model is reused without any fetch. On failure the
        previous state is kept and ModelLoadError carries the underlying
        exception's name and traceback.
        """
        if self._state.matches(model_id, device):
            return self._state.pipeline  # type: ignore[return-value]

        logger.info("Loading model %s on %s", model_id, device)
        self._downloads.clear()
        fetch = track_downloads(self._fetch, self._downloads, report)
        try:
            pipe = self._loader(model_id, device, fetch)
        except ModelLoadError:
            raise
        except Exception as exc:
            raise ModelLoadError(
                str(exc) or exc.__class__.__name__,
                name=exc.__class__.__name__,
                stack=traceback.format_exc(),
            ) from exc
        finally:
            self._downloads.clear()

        self._state = ModelState(model_id=model_id, device=device, pipeline=pipe)
        if report is not None:
            report({"phase": PHASE_LOADING, "label": "Model ready", "percent": 100})
        return pipe


def _optional_str(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise InvalidInputError(f"`{key}` must be a string")
    return value


def _to_plain_list(vector: Any) -> list[float]:
    if hasattr(vector, "tolist"):
        vector = vector.tolist()
    if not isinstance(vector, Sequence):
        raise TypeError(f"pipeline returned {type(vector).__name__}, expected a vector")
    return [float(x) for x in vector]
