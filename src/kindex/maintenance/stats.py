"""Index statistics."""

from typing import Any

from ..models import KnowledgeIndex


def index_stats(index: KnowledgeIndex) -> dict[str, Any]:
    """Get index statistics."""
    per_category = {category: 0 for category in index.categories}
    stats: dict[str, Any] = {
        "totalItems": len(index),
        "totalChunks": 0,
        "perCategoryCounts": per_category,
        "totalReferences": 0,
        "totalGeneratedPosts": 0,
        "embeddedItems": 0,
        "config": index.config.to_dict(),
    }
    for item in index:
        stats["totalChunks"] += item.processing.chunk_count
        per_category[item.category] = per_category.get(item.category, 0) + 1
        stats["totalReferences"] += item.usage.times_referenced
        stats["totalGeneratedPosts"] += item.usage.generated_posts_count
        if item.processing.embedded:
            stats["embeddedItems"] += 1
    return stats
