"""Configuration management for kindex."""

import os
from pathlib import Path
from typing import Any

import yaml

from .models import DEFAULT_CATEGORIES, IndexConfig


DEFAULT_CONFIG = {
    "root_path": "~/.kindex/store",
    "log_level": "INFO",
    "chunking": {"max_chunk_size": 500, "overlap": 50},
    "embedding": {
        "enabled": False,
        "provider": "sentence-transformers",
        "model": "intfloat/e5-large-v2",
        "timeout": 30.0,
    },
    "search": {"default_limit": 5, "min_similarity": 0.3},
    "categories": list(DEFAULT_CATEGORIES),
}


def _find_config_file() -> Path | None:
    """Look for config.yaml in standard locations."""
    candidates = [
        Path.cwd() / "config" / "config.yaml",
        Path.cwd() / "config.yaml",
        Path.home() / ".kindex" / "config.yaml",
    ]
    for p in candidates:
        if p.exists():
            return p
    return None


def load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Load configuration, merging defaults with file and env vars."""
    cfg = copy_config(DEFAULT_CONFIG)

    path = Path(config_path) if config_path else _find_config_file()
    if path and path.exists():
        with open(path) as f:
            file_cfg = yaml.safe_load(f) or {}
        _deep_merge(cfg, file_cfg)

    # Env overrides
    if root := os.environ.get("KINDEX_ROOT"):
        cfg["root_path"] = root

    cfg["root_path"] = str(Path(cfg["root_path"]).expanduser().resolve())
    return cfg


def index_defaults(config: dict[str, Any]) -> tuple[IndexConfig, list[str]]:
    """Build the config and category set a freshly created index starts with."""
    chunking = config.get("chunking", {})
    embedding = config.get("embedding", {})
    search = config.get("search", {})
    index_config = IndexConfig(
        max_chunk_size=int(chunking.get("max_chunk_size", 500)),
        overlap=int(chunking.get("overlap", 50)),
        embedding_provider=embedding.get("provider", "sentence-transformers"),
        embedding_model=embedding.get("model", "intfloat/e5-large-v2"),
        default_limit=int(search.get("default_limit", 5)),
        min_similarity=float(search.get("min_similarity", 0.3)),
    )
    categories = list(config.get("categories") or DEFAULT_CATEGORIES)
    return index_config, categories


def copy_config(cfg: dict) -> dict:
    return {k: copy_config(v) if isinstance(v, dict) else (list(v) if isinstance(v, list) else v) for k, v in cfg.items()}


def _deep_merge(base: dict, override: dict) -> None:
    """Merge override into base in-place."""
    for k, v in override.items():
        if k in base and isinstance(base[k], dict) and isinstance(v, dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
