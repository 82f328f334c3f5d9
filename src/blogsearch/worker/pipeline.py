"""Feature-extraction pipeline and Hugging Face hub model loader.

The loader downloads model files through the fetch it is given (see
``blogsearch.worker.downloads``) into an on-disk cache, then builds a
``transformers`` tokenizer + encoder on the requested torch device.
torch / transformers are imported lazily so the worker can answer
``status`` and ``clearCache`` without them.
"""

from __future__ import annotations

import logging
import urllib.error
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

import numpy as np
from huggingface_hub import hf_hub_url

from blogsearch.errors import ModelLoadError
from blogsearch.worker.downloads import Fetch

logger = logging.getLogger(__name__)

_CONFIG_FILE = "config.json"
_TOKENIZER_FILES = (
    "tokenizer.json",
    "tokenizer_config.json",
    "special_tokens_map.json",
    "vocab.txt",
    "sentencepiece.bpe.model",
)
_WEIGHT_FILES = ("model.safetensors", "pytorch_model.bin")
_COMPLETE_MARKER = ".complete"


class EmbeddingPipeline(Protocol):
    def __call__(self, text: str, *, pooling: str = "mean", normalize: bool = True) -> list[float]: ...


ModelLoader = Callable[[str, str, Fetch], EmbeddingPipeline]


# ------------------------------------------------------------------
# Pooling
# ------------------------------------------------------------------


def mean_pool(token_embeddings: np.ndarray, attention_mask: np.ndarray) -> np.ndarray:
    """Average token vectors (seq_len x dim), ignoring padded positions."""
    mask = attention_mask.astype(np.float32)[:, None]
    summed = (token_embeddings * mask).sum(axis=0)
    return summed / max(float(mask.sum()), 1e-9)


def l2_normalize(vector: np.ndarray) -> np.ndarray:
    norm = float(np.linalg.norm(vector))
    if norm == 0.0:
        return vector
    return vector / norm


class FeatureExtractionPipeline:
    """Tokenizer + encoder producing one pooled vector per text."""

    def __init__(self, tokenizer: Any, model: Any, device: str) -> None:
        self._tokenizer = tokenizer
        self._model = model
        self.device = device

    @classmethod
    def from_directory(cls, path: Path, device: str) -> FeatureExtractionPipeline:
        from transformers import AutoModel, AutoTokenizer

        tokenizer = AutoTokenizer.from_pretrained(path)
        model = AutoModel.from_pretrained(path).to(device)
        model.eval()
        return cls(tokenizer, model, device)

    def __call__(self, text: str, *, pooling: str = "mean", normalize: bool = True) -> list[float]:
        import torch

        encoded = self._tokenizer(text, return_tensors="pt", truncation=True)
        encoded = {k: v.to(self.device) for k, v in encoded.items()}
        with torch.no_grad():
            output = self._model(**encoded)

        hidden = output.last_hidden_state[0].float().cpu().numpy()
        if pooling == "mean":
            vector = mean_pool(hidden, encoded["attention_mask"][0].cpu().numpy())
        else:
            vector = hidden[0]
        if normalize:
            vector = l2_normalize(vector)
        return vector.astype(np.float64).tolist()


# ------------------------------------------------------------------
# Hub loader
# ------------------------------------------------------------------


def model_dirname(model_id: str, revision: str = "main") -> str:
    """Cache directory name for a model id.

    Examples:
        "sentence-transformers/all-MiniLM-L6-v2" -> "models--sentence-transformers--all-MiniLM-L6-v2--main"
    """
    return "models--" + model_id.replace("/", "--") + f"--{revision}"


class HubModelLoader:
    """Load a feature-extraction model from the Hugging Face hub with a disk cache.

    Args:
        cache_dir: Root directory for downloaded model files.
        allow_remote: When False, only cached files are used; a missing file
            raises ModelLoadError instead of being fetched.
        revision: Hub branch, tag or commit to download.
    """

    def __init__(self, cache_dir: Path | str, *, allow_remote: bool = True, revision: str = "main") -> None:
        self.cache_dir = Path(cache_dir)
        self.allow_remote = allow_remote
        self.revision = revision

    def __call__(self, model_id: str, device: str, fetch: Fetch) -> FeatureExtractionPipeline:
        local_dir = self.cache_dir / model_dirname(model_id, self.revision)
        if not (local_dir / _COMPLETE_MARKER).exists():
            self._download(model_id, local_dir, fetch)
        logger.info("Building pipeline for %s on %s", model_id, device)
        return FeatureExtractionPipeline.from_directory(local_dir, device)

    def _download(self, model_id: str, local_dir: Path, fetch: Fetch) -> None:
        self._ensure_file(model_id, _CONFIG_FILE, local_dir, fetch, required=True)
        for name in _TOKENIZER_FILES:
            self._ensure_file(model_id, name, local_dir, fetch, required=False)
        if not any(
            self._ensure_file(model_id, name, local_dir, fetch, required=False)
            for name in _WEIGHT_FILES
        ):
            raise ModelLoadError(
                f"No weights found for model '{model_id}' "
                f"(tried {', '.join(_WEIGHT_FILES)})."
            )
        (local_dir / _COMPLETE_MARKER).touch()

    def _ensure_file(
        self, model_id: str, filename: str, local_dir: Path, fetch: Fetch, *, required: bool
    ) -> bool:
        """Make sure *filename* is cached. Returns False for an absent optional file."""
        target = local_dir / filename
        if target.exists():
            return True
        if not self.allow_remote:
            if required:
                raise ModelLoadError(
                    f"'{filename}' for model '{model_id}' is not cached and remote "
                    "downloads are disabled (embedding.allow_remote: false)."
                )
            return False

        url = hf_hub_url(model_id, filename, revision=self.revision)
        local_dir.mkdir(parents=True, exist_ok=True)
        partial = target.with_name(target.name + ".part")
        try:
            with fetch(url) as download, partial.open("wb") as fh:
                for block in download.chunks:
                    fh.write(block)
        except urllib.error.HTTPError as exc:
            partial.unlink(missing_ok=True)
            if exc.code == 404 and not required:
                logger.debug("%s has no %s", model_id, filename)
                return False
            raise
        except BaseException:
            partial.unlink(missing_ok=True)
            raise
        partial.replace(target)
        logger.debug("Fetched %s", url)
        return True
