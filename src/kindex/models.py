"""Data models used throughout kindex.

Everything persisted to disk goes through ``to_dict`` / ``from_dict`` so the
JSON documents keep camelCase keys while Python code uses snake_case.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterator

from .errors import DuplicateContent, NotFound

INDEX_VERSION = "1.0"

DEFAULT_CATEGORIES = ("article", "case-study", "report", "research", "notes", "data", "other")

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_ERROR = "error"
STATUSES = (STATUS_PENDING, STATUS_COMPLETED, STATUS_ERROR)


def utc_now() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat()


def new_item_id() -> str:
    return uuid.uuid4().hex


def chunk_id(source_id: str, index: int) -> str:
    """Deterministic chunk id for position ``index`` of ``source_id``."""
    return f"{source_id}_chunk_{index}"


@dataclass
class Chunk:
    """A contiguous slice of one document's extracted text."""
    id: str
    index: int
    content: str
    start_offset: int
    end_offset: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "index": self.index,
            "content": self.content,
            "startOffset": self.start_offset,
            "endOffset": self.end_offset,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Chunk":
        return cls(
            id=data["id"],
            index=int(data["index"]),
            content=data["content"],
            start_offset=int(data["startOffset"]),
            end_offset=int(data["endOffset"]),
        )


@dataclass
class SourceInfo:
    """Where the stored copy of a document lives and what its bytes hash to."""
    type: str
    path: str  # relative to the store root
    original_name: str
    size_bytes: int
    content_hash: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "path": self.path,
            "originalName": self.original_name,
            "sizeBytes": self.size_bytes,
            "contentHash": self.content_hash,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SourceInfo":
        return cls(
            type=data["type"],
            path=data["path"],
            original_name=data.get("originalName", ""),
            size_bytes=int(data.get("sizeBytes", 0)),
            content_hash=data["contentHash"],
        )


@dataclass
class ProcessingState:
    status: str = STATUS_PENDING
    chunked: bool = False
    embedded: bool = False
    chunk_count: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "status": self.status,
            "chunked": self.chunked,
            "embedded": self.embedded,
            "chunkCount": self.chunk_count,
        }
        if self.error:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProcessingState":
        status = data.get("status", STATUS_PENDING)
        if status not in STATUSES:
            raise ValueError(f"Unknown processing status: {status}")
        return cls(
            status=status,
            chunked=bool(data.get("chunked", False)),
            embedded=bool(data.get("embedded", False)),
            chunk_count=int(data.get("chunkCount", 0)),
            error=data.get("error"),
        )


@dataclass
class UsageStats:
    times_referenced: int = 0
    generated_posts_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "timesReferenced": self.times_referenced,
            "generatedPostsCount": self.generated_posts_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UsageStats":
        return cls(
            times_referenced=int(data.get("timesReferenced", 0)),
            generated_posts_count=int(data.get("generatedPostsCount", 0)),
        )


@dataclass
class KnowledgeItem:
    """One registered document."""
    id: str
    title: str
    category: str
    source: SourceInfo
    description: str = ""
    tags: list[str] = field(default_factory=list)
    post_types: list[str] = field(default_factory=list)
    processing: ProcessingState = field(default_factory=ProcessingState)
    usage: UsageStats = field(default_factory=UsageStats)
    embedding: list[float] | None = None
    created_at: str = field(default_factory=utc_now)
    updated_at: str = ""

    def __post_init__(self):
        self.tags = sorted(set(self.tags))
        if not self.updated_at or self.updated_at < self.created_at:
            self.updated_at = self.created_at

    def touch(self) -> None:
        """Bump ``updated_at``, never moving it before ``created_at``."""
        self.updated_at = max(utc_now(), self.created_at)

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "category": self.category,
            "tags": list(self.tags),
            "status": self.processing.status,
            "chunkCount": self.processing.chunk_count,
            "embedded": self.processing.embedded,
            "timesReferenced": self.usage.times_referenced,
            "createdAt": self.created_at,
        }

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "tags": list(self.tags),
            "postTypes": list(self.post_types),
            "source": self.source.to_dict(),
            "processing": self.processing.to_dict(),
            "usage": self.usage.to_dict(),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.embedding is not None:
            data["embedding"] = list(self.embedding)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KnowledgeItem":
        embedding = data.get("embedding")
        return cls(
            id=data["id"],
            title=data["title"],
            description=data.get("description", ""),
            category=data["category"],
            tags=list(data.get("tags", [])),
            post_types=list(data.get("postTypes", [])),
            source=SourceInfo.from_dict(data["source"]),
            processing=ProcessingState.from_dict(data.get("processing", {})),
            usage=UsageStats.from_dict(data.get("usage", {})),
            embedding=[float(x) for x in embedding] if embedding is not None else None,
            created_at=data["createdAt"],
            updated_at=data.get("updatedAt", ""),
        )


@dataclass
class IndexConfig:
    """Chunking, embedding and search parameters stored with the index."""
    max_chunk_size: int = 500
    overlap: int = 50
    embedding_provider: str = "sentence-transformers"
    embedding_model: str = "intfloat/e5-large-v2"
    default_limit: int = 5
    min_similarity: float = 0.3

    def to_dict(self) -> dict[str, Any]:
        return {
            "chunking": {"maxChunkSize": self.max_chunk_size, "overlap": self.overlap},
            "embedding": {"provider": self.embedding_provider, "model": self.embedding_model},
            "search": {"defaultLimit": self.default_limit, "minSimilarity": self.min_similarity},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IndexConfig":
        chunking = data.get("chunking", {})
        embedding = data.get("embedding", {})
        search = data.get("search", {})
        defaults = cls()
        return cls(
            max_chunk_size=int(chunking.get("maxChunkSize", defaults.max_chunk_size)),
            overlap=int(chunking.get("overlap", defaults.overlap)),
            embedding_provider=embedding.get("provider", defaults.embedding_provider),
            embedding_model=embedding.get("model", defaults.embedding_model),
            default_limit=int(search.get("defaultLimit", defaults.default_limit)),
            min_similarity=float(search.get("minSimilarity", defaults.min_similarity)),
        )


@dataclass
class KnowledgeIndex:
    """In-memory snapshot of the index document.

    Items keep their insertion order, which is also the tie-break order for
    search results.
    """
    items: list[KnowledgeItem] = field(default_factory=list)
    config: IndexConfig = field(default_factory=IndexConfig)
    categories: list[str] = field(default_factory=lambda: list(DEFAULT_CATEGORIES))
    version: str = INDEX_VERSION
    last_updated: str | None = None

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[KnowledgeItem]:
        return iter(self.items)

    def insert(self, item: KnowledgeItem) -> None:
        existing = self.find_by_hash(item.source.content_hash)
        if existing is not None:
            raise DuplicateContent(item.source.content_hash, existing.id)
        if self.find_by_id(item.id) is not None:
            raise ValueError(f"Item id already present: {item.id}")
        self.items.append(item)

    def remove(self, item_id: str) -> KnowledgeItem:
        for i, item in enumerate(self.items):
            if item.id == item_id:
                return self.items.pop(i)
        raise NotFound(f"Knowledge item not found: {item_id}")

    def find_by_hash(self, content_hash: str) -> KnowledgeItem | None:
        for item in self.items:
            if item.source.content_hash == content_hash:
                return item
        return None

    def find_by_id(self, item_id: str) -> KnowledgeItem | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def get(self, item_id: str) -> KnowledgeItem:
        item = self.find_by_id(item_id)
        if item is None:
            raise NotFound(f"Knowledge item not found: {item_id}")
        return item

    def filter(self, predicate: Callable[[KnowledgeItem], bool]) -> list[KnowledgeItem]:
        return [item for item in self.items if predicate(item)]

    def content_hashes(self) -> set[str]:
        return {item.source.content_hash for item in self.items}

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "lastUpdated": self.last_updated,
            "totalItems": len(self.items),
            "items": [item.to_dict() for item in self.items],
            "config": self.config.to_dict(),
            "categories": list(self.categories),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KnowledgeIndex":
        if not isinstance(data, dict):
            raise ValueError("Index document must be a JSON object")
        return cls(
            items=[KnowledgeItem.from_dict(d) for d in data.get("items", [])],
            config=IndexConfig.from_dict(data.get("config", {})),
            categories=list(data.get("categories") or DEFAULT_CATEGORIES),
            version=data.get("version", INDEX_VERSION),
            last_updated=data.get("lastUpdated"),
        )


@dataclass
class SearchResult:
    """A scored knowledge item."""
    item: KnowledgeItem
    score: float
    mode: str = "lexical"

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.item.id,
            "title": self.item.title,
            "category": self.item.category,
            "tags": list(self.item.tags),
            "score": self.score,
        }


@dataclass
class ScanReport:
    """Drift between the content store and the index."""
    untracked: list[str] = field(default_factory=list)
    orphaned: list[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.untracked and not self.orphaned
