"""blogsearch configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (BLOGSEARCH_EMBEDDING_MODEL, BLOGSEARCH_DEVICE, BLOGSEARCH_DB)
  3. Per-project blogsearch.yaml
  4. Global ~/.blogsearch/config.yaml
  5. Hardcoded defaults

Global config must never contain credentials (e.g. a Hugging Face token);
use environment variables instead. All YAML reads use yaml.safe_load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from blogsearch.errors import BlogSearchError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_MODEL_ID = "sentence-transformers/paraphrase-multilingual-MiniLM-L12-v2"
DEFAULT_DEVICE = "cpu"
EMBEDDING_DIMENSIONS = 384

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".blogsearch"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "blogsearch.yaml"
_DEFAULT_CACHE_DIR: Path = Path.home() / ".cache" / "blogsearch" / "models"

# api_key, api-key, *_token, token, *_secret, secret, password, credential(s).
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["embedding", "worker", "search", "chunking", "database"]
)

_VALID_POOLING: frozenset[str] = frozenset(["mean", "cls"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(BlogSearchError, ValueError):
    """Raised when a config file contains an invalid or forbidden value."""

    code = "ConfigError"


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (blogsearch.yaml: embedding:).

    Attributes:
        model: Hugging Face model id loaded by the worker.
        device: Torch device the worker runs the model on ("cpu", "cuda", "mps").
        dimensions: Fixed vector length shared by the search and ingest paths.
        pooling: Token pooling strategy ("mean" or "cls").
        normalize: Whether vectors are L2-normalized.
        query_prefix: Text prepended to search queries before embedding.
        cache_dir: Directory holding downloaded model files.
        allow_remote: Whether missing model files may be fetched from the hub.
    """

    model: str = DEFAULT_MODEL_ID
    device: str = DEFAULT_DEVICE
    dimensions: int = EMBEDDING_DIMENSIONS
    pooling: str = "mean"
    normalize: bool = True
    query_prefix: str = ""
    cache_dir: str = str(_DEFAULT_CACHE_DIR)
    allow_remote: bool = True


@dataclass
class WorkerCfg:
    """Embedding worker RPC configuration (blogsearch.yaml: worker:)."""

    timeout: float = 60.0
    load_timeout: float = 600.0  # first run downloads the model


@dataclass
class SearchCfg:
    """Semantic search configuration (blogsearch.yaml: search:)."""

    limit: int = 10
    excerpt_length: int = 180


@dataclass
class ChunkingCfg:
    """Markdown chunker configuration (blogsearch.yaml: chunking:)."""

    chunk_size: int = 256
    overlap: float = 0.10


@dataclass
class DatabaseCfg:
    """Store location (blogsearch.yaml: database:)."""

    path: str = ".blogsearch.db"


@dataclass
class BlogSearchConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    worker: WorkerCfg = field(default_factory=WorkerCfg)
    search: SearchCfg = field(default_factory=SearchCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    database: DatabaseCfg = field(default_factory=DatabaseCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any credential-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  Credentials must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: BlogSearchConfig) -> None:
    if cfg.embedding.dimensions < 1:
        raise ConfigError(
            f"embedding.dimensions must be >= 1, got {cfg.embedding.dimensions}"
        )
    if cfg.embedding.pooling not in _VALID_POOLING:
        raise ConfigError(
            f"embedding.pooling must be one of {sorted(_VALID_POOLING)}, "
            f"got '{cfg.embedding.pooling}'"
        )
    if cfg.worker.timeout <= 0:
        raise ConfigError(f"worker.timeout must be > 0, got {cfg.worker.timeout}")
    if cfg.search.limit < 1:
        raise ConfigError(f"search.limit must be >= 1, got {cfg.search.limit}")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> BlogSearchConfig:
    """Build a *BlogSearchConfig* from a merged raw YAML dict."""
    cfg = BlogSearchConfig()

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            device=str(e.get("device", cfg.embedding.device)),
            dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
            pooling=str(e.get("pooling", cfg.embedding.pooling)),
            normalize=bool(e.get("normalize", cfg.embedding.normalize)),
            query_prefix=str(e.get("query_prefix", cfg.embedding.query_prefix)),
            cache_dir=str(e.get("cache_dir", cfg.embedding.cache_dir)),
            allow_remote=bool(e.get("allow_remote", cfg.embedding.allow_remote)),
        )

    if "worker" in data:
        w = data["worker"] or {}
        cfg.worker = WorkerCfg(
            timeout=float(w.get("timeout", cfg.worker.timeout)),
            load_timeout=float(w.get("load_timeout", cfg.worker.load_timeout)),
        )

    if "search" in data:
        s = data["search"] or {}
        cfg.search = SearchCfg(
            limit=int(s.get("limit", cfg.search.limit)),
            excerpt_length=int(s.get("excerpt_length", cfg.search.excerpt_length)),
        )

    if "chunking" in data:
        c = data["chunking"] or {}
        cfg.chunking = ChunkingCfg(
            chunk_size=int(c.get("chunk_size", cfg.chunking.chunk_size)),
            overlap=float(c.get("overlap", cfg.chunking.overlap)),
        )

    if "database" in data:
        d = data["database"] or {}
        cfg.database = DatabaseCfg(path=str(d.get("path", cfg.database.path)))

    return cfg


def _apply_env_overrides(cfg: BlogSearchConfig) -> BlogSearchConfig:
    """Apply BLOGSEARCH_* environment variable overrides."""
    if model := os.environ.get("BLOGSEARCH_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if device := os.environ.get("BLOGSEARCH_DEVICE"):
        cfg.embedding.device = device
    if db := os.environ.get("BLOGSEARCH_DB"):
        cfg.database.path = db
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> BlogSearchConfig:
    """Load and return a merged *BlogSearchConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *blogsearch.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains credential-like fields, or a
            value is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _apply_env_overrides(_cfg_from_dict(merged))
    _validate(cfg)
    return cfg


def write_project_config(project_dir: Path, cfg: BlogSearchConfig | None = None) -> Path:
    """Write a starter *blogsearch.yaml* into *project_dir* if none exists.

    Returns:
        Path to the project config file.
    """
    cfg = cfg or BlogSearchConfig()
    target = project_dir / _PROJECT_CONFIG_NAME
    if target.exists():
        return target

    data = {
        "embedding": {
            "model": cfg.embedding.model,
            "device": cfg.embedding.device,
            "dimensions": cfg.embedding.dimensions,
        },
        "search": {"limit": cfg.search.limit},
        "database": {"path": cfg.database.path},
    }
    content = (
        "# blogsearch project configuration.\n"
        "# Credentials (e.g. HF_TOKEN) belong in environment variables.\n\n"
        + yaml.safe_dump(data, sort_keys=False)
    )
    target.write_text(content, encoding="utf-8")
    return target
