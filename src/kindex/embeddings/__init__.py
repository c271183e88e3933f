"""Embedding provider boundary."""

from .embedder import (
    EmbeddingProvider,
    SentenceTransformerEmbedder,
    call_with_timeout,
    get_embedder,
    mean_vector,
)

__all__ = [
    "EmbeddingProvider",
    "SentenceTransformerEmbedder",
    "call_with_timeout",
    "get_embedder",
    "mean_vector",
]
