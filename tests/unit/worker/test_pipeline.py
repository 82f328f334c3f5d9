"""Tests for pooling helpers and the hub model loader (no network, no torch)."""

from __future__ import annotations

import urllib.error
from contextlib import contextmanager

import numpy as np
import pytest

from blogsearch.errors import ModelLoadError
from blogsearch.worker.downloads import Download
from blogsearch.worker.pipeline import (
    FeatureExtractionPipeline,
    HubModelLoader,
    l2_normalize,
    mean_pool,
    model_dirname,
)

MODEL = "org/tiny-model"


# ------------------------------------------------------------------
# Pooling
# ------------------------------------------------------------------

def test_mean_pool_ignores_padding():
    tokens = np.array([[1.0, 2.0], [3.0, 4.0], [100.0, 100.0]])
    mask = np.array([1, 1, 0])
    np.testing.assert_allclose(mean_pool(tokens, mask), [2.0, 3.0])


def test_l2_normalize_unit_length():
    np.testing.assert_allclose(l2_normalize(np.array([3.0, 4.0])), [0.6, 0.8])


def test_l2_normalize_zero_vector_unchanged():
    np.testing.assert_array_equal(l2_normalize(np.zeros(3)), np.zeros(3))


def test_model_dirname():
    assert model_dirname("a/b") == "models--a--b--main"


# ------------------------------------------------------------------
# HubModelLoader
# ------------------------------------------------------------------

class _Hub:
    """fetch() over an in-memory repo; records requested file names."""

    def __init__(self, files: dict[str, bytes]) -> None:
        self.files = files
        self.requested: list[str] = []

    @contextmanager
    def fetch(self, url):
        name = url.rsplit("/", 1)[-1]
        self.requested.append(name)
        if name not in self.files:
            raise urllib.error.HTTPError(url, 404, "Not Found", None, None)
        body = self.files[name]
        yield Download(url=url, total=len(body), chunks=iter([body]))


@pytest.fixture
def built(monkeypatch):
    calls: list[tuple] = []

    def fake_from_directory(cls, path, device):
        calls.append((path, device))
        return ("pipeline", path, device)

    monkeypatch.setattr(
        FeatureExtractionPipeline, "from_directory", classmethod(fake_from_directory)
    )
    return calls


def test_loader_downloads_and_caches(tmp_path, built):
    hub = _Hub({"config.json": b"{}", "tokenizer.json": b"{}", "model.safetensors": b"W"})
    loader = HubModelLoader(tmp_path)

    pipe = loader(MODEL, "cpu", hub.fetch)

    local = tmp_path / model_dirname(MODEL)
    assert pipe == ("pipeline", local, "cpu")
    assert (local / "model.safetensors").read_bytes() == b"W"
    assert (local / ".complete").exists()
    assert "pytorch_model.bin" not in hub.requested
    assert not list(local.glob("*.part"))


def test_loader_cache_hit_does_not_fetch(tmp_path, built):
    hub = _Hub({"config.json": b"{}", "model.safetensors": b"W"})
    loader = HubModelLoader(tmp_path)
    loader(MODEL, "cpu", hub.fetch)
    hub.requested.clear()

    loader(MODEL, "cpu", hub.fetch)
    assert hub.requested == []
    assert len(built) == 2


def test_loader_falls_back_to_pytorch_bin(tmp_path, built):
    hub = _Hub({"config.json": b"{}", "pytorch_model.bin": b"B"})
    HubModelLoader(tmp_path)(MODEL, "cpu", hub.fetch)
    assert (tmp_path / model_dirname(MODEL) / "pytorch_model.bin").exists()


def test_loader_without_weights_fails(tmp_path, built):
    hub = _Hub({"config.json": b"{}"})
    with pytest.raises(ModelLoadError, match="No weights"):
        HubModelLoader(tmp_path)(MODEL, "cpu", hub.fetch)
    assert not (tmp_path / model_dirname(MODEL) / ".complete").exists()


def test_loader_missing_config_propagates_http_error(tmp_path, built):
    hub = _Hub({"model.safetensors": b"W"})
    with pytest.raises(urllib.error.HTTPError):
        HubModelLoader(tmp_path)(MODEL, "cpu", hub.fetch)


def test_loader_offline_requires_cached_files(tmp_path, built):
    hub = _Hub({"config.json": b"{}", "model.safetensors": b"W"})
    with pytest.raises(ModelLoadError, match="allow_remote"):
        HubModelLoader(tmp_path, allow_remote=False)(MODEL, "cpu", hub.fetch)
    assert hub.requested == []
