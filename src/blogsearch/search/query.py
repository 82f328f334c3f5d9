"""Ask the embeddings worker for query and chunk vectors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from blogsearch.errors import InvalidInputError
from blogsearch.worker.protocol import RequestType
from blogsearch.worker.rpc import ProgressCallback, WorkerRpcClient


@dataclass
class EmbedResult:
    """Vectors for a batch of texts plus the configuration that produced them."""

    model_id: str
    device: str
    embeddings: list[list[float]]


def embed_texts(
    client: WorkerRpcClient,
    texts: list[str],
    *,
    model_id: str | None = None,
    device: str | None = None,
    on_progress: ProgressCallback | None = None,
    timeout: float | None = None,
) -> EmbedResult:
    """Embed *texts* in order with one ``embed`` call. Blocks until done.

    Raises:
        InvalidInputError: If *texts* is empty (checked before any worker call).
        WorkerTimeoutError, ModelLoadError, WorkerError: Propagated from the call.
    """
    if not texts:
        raise InvalidInputError("texts must not be empty")

    payload: dict[str, Any] = {"texts": list(texts)}
    if model_id:
        payload["modelId"] = model_id
    if device:
        payload["device"] = device

    result = client.call(
        RequestType.EMBED, payload, timeout=timeout, on_progress=on_progress
    ).result()
    return EmbedResult(
        model_id=result["modelId"],
        device=result["device"],
        embeddings=result["embeddings"],
    )


def embed_query(
    client: WorkerRpcClient,
    query: str,
    *,
    prefix: str = "",
    model_id: str | None = None,
    device: str | None = None,
    on_progress: ProgressCallback | None = None,
    timeout: float | None = None,
) -> list[float]:
    """Return the embedding of a single search *query*.

    *prefix* is prepended verbatim (e5-style models expect ``"query: "``).

    Raises:
        InvalidInputError: If *query* is blank.
    """
    if not query.strip():
        raise InvalidInputError("query must not be blank")
    result = embed_texts(
        client,
        [f"{prefix}{query}"],
        model_id=model_id,
        device=device,
        on_progress=on_progress,
        timeout=timeout,
    )
    return result.embeddings[0]
