"""Scoring and search over the index."""

from .scoring import LexicalScorer, Scorer, VectorScorer, cosine_similarity
from .search import SORT_KEYS, QueryEngine

__all__ = ["LexicalScorer", "QueryEngine", "SORT_KEYS", "Scorer", "VectorScorer", "cosine_similarity"]
