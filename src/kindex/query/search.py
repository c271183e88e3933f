"""Keyword and semantic search over the knowledge index."""

import logging
from typing import Iterable

from ..embeddings.embedder import DEFAULT_TIMEOUT, EmbeddingProvider, call_with_timeout
from ..errors import ExternalServiceError
from ..models import KnowledgeIndex, KnowledgeItem, SearchResult
from .scoring import LexicalScorer, Scorer, VectorScorer

logger = logging.getLogger(__name__)

SORT_KEYS = {
    "createdAt": lambda item: item.created_at,
    "updatedAt": lambda item: item.updated_at,
    "usageCount": lambda item: item.usage.times_referenced,
}


def _matches(
    item: KnowledgeItem,
    category: str | None = None,
    tags: Iterable[str] | None = None,
    status: str | None = None,
) -> bool:
    if category and item.category != category:
        return False
    if status and item.processing.status != status:
        return False
    if tags:
        wanted = {t.lower() for t in tags}
        if not wanted & {t.lower() for t in item.tags}:
            return False
    return True


class QueryEngine:
    """Filters and ranks index records.

    Vector scoring is used only when an embedder is configured and every
    candidate has an embedding; otherwise, or when the provider fails, the
    lexical scorer answers.
    """

    def __init__(self, embedder: EmbeddingProvider | None = None, timeout: float = DEFAULT_TIMEOUT):
        self.embedder = embedder
        self.timeout = timeout

    def select_scorer(self, query: str, candidates: list[KnowledgeItem], min_similarity: float = 0.0) -> Scorer:
        if self.embedder is None or not candidates:
            return LexicalScorer(query)
        if any(item.embedding is None for item in candidates):
            return LexicalScorer(query)
        try:
            vector = call_with_timeout(self.embedder.embed_query, query, timeout=self.timeout)
        except ExternalServiceError as e:
            logger.warning("Falling back to keyword search: %s", e)
            return LexicalScorer(query)
        return VectorScorer(vector, min_similarity=min_similarity)

    def search(
        self,
        index: KnowledgeIndex,
        query: str,
        category: str | None = None,
        tags: Iterable[str] | None = None,
        limit: int | None = None,
    ) -> list[SearchResult]:
        """Rank items against ``query``, best first, at most ``limit`` results."""
        if limit is None:
            limit = index.config.default_limit
        if limit <= 0 or not query.strip():
            return []

        tags = list(tags or [])
        candidates = index.filter(lambda item: _matches(item, category=category, tags=tags))
        scorer = self.select_scorer(query, candidates, index.config.min_similarity)

        results = []
        for item in candidates:
            score = scorer.score(item)
            if scorer.keep(score):
                results.append(SearchResult(item=item, score=score, mode=scorer.mode))

        # sorted() is stable, so equal scores keep insertion order
        results = sorted(results, key=lambda r: r.score, reverse=True)
        logger.debug("Search %r (%s): %d hit(s)", query, scorer.mode, len(results))
        return results[:limit]

    def list_items(
        self,
        index: KnowledgeIndex,
        category: str | None = None,
        status: str | None = None,
        sort_by: str = "createdAt",
    ) -> list[KnowledgeItem]:
        """Filter and sort items, most recent or most used first."""
        if sort_by not in SORT_KEYS:
            raise ValueError(f"Unknown sort key: {sort_by} (expected one of {', '.join(SORT_KEYS)})")
        items = index.filter(lambda item: _matches(item, category=category, status=status))
        return sorted(items, key=SORT_KEYS[sort_by], reverse=True)
