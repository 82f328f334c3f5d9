"""Tests for the blogsearch config loader."""

from __future__ import annotations

import warnings
from pathlib import Path

import pytest
import yaml

from blogsearch.config import (
    DEFAULT_MODEL_ID,
    BlogSearchConfig,
    ConfigError,
    load_config,
    write_project_config,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data), encoding="utf-8")


def _load(tmp_path: Path, global_data: dict | None = None) -> BlogSearchConfig:
    global_path = tmp_path / "global.yaml"
    if global_data is not None:
        _write_yaml(global_path, global_data)
    return load_config(tmp_path, global_config_path=global_path)


# ---------------------------------------------------------------------------
# Defaults and layering
# ---------------------------------------------------------------------------


def test_defaults_without_files(tmp_path: Path) -> None:
    cfg = _load(tmp_path)
    assert cfg.embedding.model == DEFAULT_MODEL_ID
    assert cfg.embedding.device == "cpu"
    assert cfg.embedding.dimensions == 384
    assert cfg.worker.timeout == 60.0
    assert cfg.search.limit == 10
    assert cfg.search.excerpt_length == 180
    assert cfg.database.path == ".blogsearch.db"


def test_project_overrides_global(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "blogsearch.yaml", {"embedding": {"device": "cuda"}})
    cfg = _load(tmp_path, {"embedding": {"model": "org/global", "device": "mps"}})
    assert cfg.embedding.model == "org/global"
    assert cfg.embedding.device == "cuda"


def test_partial_section_keeps_other_defaults(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "blogsearch.yaml", {"search": {"limit": 3}, "worker": None})
    cfg = _load(tmp_path)
    assert cfg.search.limit == 3
    assert cfg.search.excerpt_length == 180
    assert cfg.worker.timeout == 60.0


def test_env_overrides_files(tmp_path: Path, monkeypatch) -> None:
    _write_yaml(tmp_path / "blogsearch.yaml", {"embedding": {"model": "org/file"}})
    monkeypatch.setenv("BLOGSEARCH_EMBEDDING_MODEL", "org/env")
    monkeypatch.setenv("BLOGSEARCH_DEVICE", "cuda")
    monkeypatch.setenv("BLOGSEARCH_DB", "/tmp/other.db")
    cfg = _load(tmp_path)
    assert cfg.embedding.model == "org/env"
    assert cfg.embedding.device == "cuda"
    assert cfg.database.path == "/tmp/other.db"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("key", ["api_key", "hf_token", "password"])
def test_global_config_rejects_credentials(tmp_path: Path, key: str) -> None:
    with pytest.raises(ConfigError, match=key):
        _load(tmp_path, {"embedding": {key: "x"}})


def test_unknown_top_level_key_warns(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "blogsearch.yaml", {"bogus": 1})
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        _load(tmp_path)
    assert any("bogus" in str(w.message) for w in caught)


@pytest.mark.parametrize(
    "data,match",
    [
        ({"embedding": {"dimensions": 0}}, "dimensions"),
        ({"embedding": {"pooling": "max"}}, "pooling"),
        ({"worker": {"timeout": 0}}, "timeout"),
        ({"search": {"limit": 0}}, "limit"),
    ],
)
def test_out_of_range_values_rejected(tmp_path: Path, data: dict, match: str) -> None:
    _write_yaml(tmp_path / "blogsearch.yaml", data)
    with pytest.raises(ConfigError, match=match):
        _load(tmp_path)


# ---------------------------------------------------------------------------
# write_project_config
# ---------------------------------------------------------------------------


def test_write_project_config_round_trips(tmp_path: Path) -> None:
    path = write_project_config(tmp_path)
    assert path == tmp_path / "blogsearch.yaml"
    cfg = _load(tmp_path)
    assert cfg.embedding.model == DEFAULT_MODEL_ID


def test_write_project_config_keeps_existing(tmp_path: Path) -> None:
    target = tmp_path / "blogsearch.yaml"
    target.write_text("search:\n  limit: 4\n", encoding="utf-8")
    write_project_config(tmp_path)
    assert target.read_text(encoding="utf-8") == "search:\n  limit: 4\n"
