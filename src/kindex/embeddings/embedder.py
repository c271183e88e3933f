"""Embedding providers and the timeout guard around them."""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, Callable, Protocol, TypeVar, runtime_checkable

import numpy as np

from ..errors import ExternalServiceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 30.0


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for embedding model providers.

    Allows swapping between local models (sentence-transformers),
    API-based models or test doubles.
    """

    @property
    def model_name(self) -> str:
        """Return identifier for the model used."""
        ...

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of passages."""
        ...

    def embed_query(self, text: str) -> list[float]:
        """Embed a search query."""
        ...


class SentenceTransformerEmbedder:
    """Embeds text with a lazily loaded sentence-transformers model."""

    def __init__(self, model_name: str = "intfloat/e5-large-v2", batch_size: int = 32):
        self._model_name = model_name
        self.batch_size = batch_size
        self._model = None

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def model(self):
        """Lazy-load the embedding model."""
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            self._model = SentenceTransformer(self._model_name)
        return self._model

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        # e5 models need "passage: " prefix for documents
        prefixed = [f"passage: {t}" for t in texts]
        vectors = []
        for i in range(0, len(prefixed), self.batch_size):
            vectors.extend(self.model.encode(prefixed[i:i + self.batch_size]).tolist())
        return vectors

    def embed_query(self, text: str) -> list[float]:
        # e5 models need "query: " prefix for queries
        return self.model.encode(f"query: {text}").tolist()


def get_embedder(config: dict[str, Any]) -> EmbeddingProvider | None:
    """Factory: return the configured provider, or None if embeddings are off."""
    emb_cfg = config.get("embedding", {})
    if not emb_cfg.get("enabled", False):
        return None

    provider = emb_cfg.get("provider", "sentence-transformers")
    if provider == "sentence-transformers":
        return SentenceTransformerEmbedder(emb_cfg.get("model", "intfloat/e5-large-v2"))
    raise ValueError(f"Unknown embedding provider: {provider}")


# Shared by every provider call; a hung provider can pin at most this many threads
PROVIDER_WORKERS = 4
_provider_pool = ThreadPoolExecutor(max_workers=PROVIDER_WORKERS, thread_name_prefix="kindex-embed")


def call_with_timeout(
    fn: Callable[..., T],
    *args: Any,
    timeout: float = DEFAULT_TIMEOUT,
    executor: ThreadPoolExecutor | None = None,
) -> T:
    """Run a provider call on a bounded worker pool, waiting at most ``timeout`` seconds.

    A call still queued behind busy workers when the timeout expires is
    cancelled rather than left to run later.

    Raises:
        ExternalServiceError: If the call raises or does not finish in time.
    """
    future = (executor or _provider_pool).submit(fn, *args)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout as e:
        future.cancel()
        raise ExternalServiceError(f"Embedding provider timed out after {timeout}s") from e
    except Exception as e:
        raise ExternalServiceError(f"Embedding provider failed: {e}") from e


def mean_vector(vectors: list[list[float]]) -> list[float]:
    """Item-level vector: the mean of its chunk vectors."""
    if not vectors:
        return []
    return np.asarray(vectors, dtype=np.float64).mean(axis=0).tolist()
