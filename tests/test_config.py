"""Tests for configuration loading."""

import tempfile
from pathlib import Path

import yaml

from kindex.config import DEFAULT_CONFIG, load_config, index_defaults


def test_defaults_merge_with_file(monkeypatch):
    monkeypatch.delenv("KINDEX_ROOT", raising=False)
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "config.yaml"
        path.write_text(yaml.dump({
            "root_path": tmpdir,
            "chunking": {"max_chunk_size": 800},
            "categories": ["alpha", "beta"],
        }))
        cfg = load_config(path)

    assert cfg["chunking"] == {"max_chunk_size": 800, "overlap": 50}
    assert cfg["search"] == DEFAULT_CONFIG["search"]
    assert cfg["root_path"] == str(Path(tmpdir).resolve())

    index_config, categories = index_defaults(cfg)
    assert index_config.max_chunk_size == 800
    assert index_config.overlap == 50
    assert categories == ["alpha", "beta"]


def test_load_does_not_mutate_defaults(monkeypatch):
    monkeypatch.delenv("KINDEX_ROOT", raising=False)
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "config.yaml"
        path.write_text(yaml.dump({"chunking": {"overlap": 10}}))
        load_config(path)
    assert DEFAULT_CONFIG["chunking"]["overlap"] == 50


def test_env_root_override(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        monkeypatch.setenv("KINDEX_ROOT", tmpdir)
        path = Path(tmpdir) / "empty.yaml"
        path.write_text("")
        cfg = load_config(path)
        assert cfg["root_path"] == str(Path(tmpdir).resolve())
