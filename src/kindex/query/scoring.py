"""Pluggable relevance scorers."""

from typing import Protocol, Sequence, runtime_checkable

import numpy as np

from ..models import KnowledgeItem

TITLE_WEIGHT = 2
DESCRIPTION_WEIGHT = 1
TAG_WEIGHT = 1


@runtime_checkable
class Scorer(Protocol):
    """Scores one knowledge item against a query."""

    mode: str

    def score(self, item: KnowledgeItem) -> float:
        ...

    def keep(self, score: float) -> bool:
        """Whether a score is high enough to appear in results."""
        ...


class LexicalScorer:
    """Case-insensitive substring matching on title, description and tags.

    The query is matched as given, surrounding whitespace included.
    """

    mode = "lexical"

    def __init__(self, query: str):
        self.needle = query.lower()

    def score(self, item: KnowledgeItem) -> float:
        if not self.needle:
            return 0
        score = 0
        if self.needle in item.title.lower():
            score += TITLE_WEIGHT
        if self.needle in item.description.lower():
            score += DESCRIPTION_WEIGHT
        if any(self.needle in tag.lower() for tag in item.tags):
            score += TAG_WEIGHT
        return score

    def keep(self, score: float) -> bool:
        return score > 0


class VectorScorer:
    """Cosine similarity between a query vector and each item's embedding."""

    mode = "vector"

    def __init__(self, query_vector: Sequence[float], min_similarity: float = 0.0):
        self.query_vector = np.asarray(query_vector, dtype=np.float64)
        self.min_similarity = min_similarity

    def score(self, item: KnowledgeItem) -> float:
        if item.embedding is None:
            return 0.0
        return cosine_similarity(self.query_vector, item.embedding)

    def keep(self, score: float) -> bool:
        return score >= self.min_similarity


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Compute cosine similarity between two vectors.

    Defined as 0 when either norm is 0 or the lengths differ.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape or a.size == 0:
        return 0.0
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))
