"""Embeddings worker: isolated model process, wire protocol and RPC client."""

from blogsearch.worker.embedder import EmbeddingWorker, ModelState
from blogsearch.worker.process import (
    ProcessWorker,
    WorkerOptions,
    get_embeddings_worker,
    open_client,
    terminate_embeddings_worker,
)
from blogsearch.worker.protocol import RequestType
from blogsearch.worker.rpc import WorkerRpcClient

__all__ = [
    "EmbeddingWorker",
    "ModelState",
    "ProcessWorker",
    "RequestType",
    "WorkerOptions",
    "WorkerRpcClient",
    "get_embeddings_worker",
    "open_client",
    "terminate_embeddings_worker",
]
