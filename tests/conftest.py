import time

import pytest

from kindex.config import DEFAULT_CONFIG, copy_config
from kindex.service import KnowledgeBase


class KeywordEmbedder:
    """Deterministic embedder: one dimension per known keyword."""

    model_name = "keyword-test"
    vocabulary = ("python", "finance", "health")

    def _vector(self, text: str) -> list[float]:
        text = text.lower()
        return [float(text.count(word)) for word in self.vocabulary]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._vector(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        return self._vector(text)


class FailingEmbedder(KeywordEmbedder):
    def embed_documents(self, texts):
        raise RuntimeError("provider unavailable")

    def embed_query(self, text):
        raise RuntimeError("provider unavailable")


class SlowEmbedder(KeywordEmbedder):
    def embed_documents(self, texts):
        time.sleep(0.5)
        return super().embed_documents(texts)


@pytest.fixture
def kb(tmp_path):
    return KnowledgeBase(tmp_path / "store")


@pytest.fixture
def make_kb(tmp_path):
    def _make(embedder=None, **overrides):
        config = copy_config(DEFAULT_CONFIG)
        for section, values in overrides.items():
            config[section].update(values)
        return KnowledgeBase(tmp_path / "store", config=config, embedder=embedder)
    return _make


@pytest.fixture
def write_file(tmp_path):
    def _write(name: str, content: str) -> str:
        path = tmp_path / "inbox" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return str(path)
    return _write
