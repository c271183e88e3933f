"""Knowledge base facade: the operations callers use."""

import logging
from pathlib import Path
from typing import Any, Iterable

from .config import DEFAULT_CONFIG, copy_config, index_defaults
from .embeddings.embedder import DEFAULT_TIMEOUT, EmbeddingProvider, call_with_timeout, mean_vector
from .errors import DuplicateContent, ExternalServiceError, InvalidCategory, InvalidConfig, NotFound, StorageError
from .index.chunks import ChunkStore
from .index.store import IndexStore
from .ingest.chunker import chunk_text
from .ingest.parsers import extract_text
from .maintenance.reconciler import Reconciler
from .maintenance.stats import index_stats
from .models import (
    STATUS_COMPLETED,
    STATUS_ERROR,
    Chunk,
    KnowledgeIndex,
    KnowledgeItem,
    SourceInfo,
    new_item_id,
)
from .query.search import QueryEngine
from .store.content import ContentStore, declared_type_for, fingerprint_file

logger = logging.getLogger(__name__)


class KnowledgeBase:
    """Ingest, search and maintain a knowledge store rooted at ``root``.

    Every mutation runs inside one index transaction. Embedding calls happen
    before the transaction opens so a slow provider never holds the lock.
    """

    def __init__(
        self,
        root: str | Path,
        config: dict[str, Any] | None = None,
        embedder: EmbeddingProvider | None = None,
    ):
        self.root = Path(root)
        self.config = config if config is not None else copy_config(DEFAULT_CONFIG)
        self.embedder = embedder
        self.timeout = float(self.config.get("embedding", {}).get("timeout", DEFAULT_TIMEOUT))

        defaults, categories = index_defaults(self.config)
        self.content_store = ContentStore(self.root)
        self.index_store = IndexStore(self.root, defaults=defaults, categories=categories)
        self.chunk_store = ChunkStore(self.root)
        self.query_engine = QueryEngine(embedder=embedder, timeout=self.timeout)
        self.reconciler = Reconciler(self.content_store, self.index_store, self.chunk_store)

    def initialize(self) -> None:
        """Create the store layout and an empty index if none exists."""
        self.content_store.sources_path.mkdir(parents=True, exist_ok=True)
        self.chunk_store.chunks_path.mkdir(parents=True, exist_ok=True)
        with self.index_store.transaction():
            pass

    # Ingestion

    def add(
        self,
        file_path: str | Path,
        title: str,
        category: str,
        tags: Iterable[str] = (),
        description: str = "",
        post_types: Iterable[str] = (),
        text: str | None = None,
    ) -> dict[str, Any]:
        """Register a document.

        Args:
            file_path: The source file; its bytes are the dedup key.
            title: Display title.
            category: One of the index's categories.
            tags: Free-form tags.
            description: Short description, searched with weight 1.
            post_types: Kinds of generated posts the item is meant for.
            text: Pre-extracted text, for formats without a built-in parser.

        Returns:
            The new item's summary.

        Raises:
            NotFound: The file does not exist.
            InvalidCategory: The category is not in the index's set.
            DuplicateContent: The same bytes are already indexed.
            StorageError: Copying the file failed; the index is untouched.
        """
        src = Path(file_path)
        if not src.is_file():
            raise NotFound(f"Source file not found: {src}")

        snapshot = self.index_store.load()
        if category not in snapshot.categories:
            raise InvalidCategory(f"Unknown category '{category}' (expected one of {', '.join(snapshot.categories)})")

        try:
            content_hash = fingerprint_file(src)
            size_bytes = src.stat().st_size
        except OSError as e:
            raise StorageError(f"Failed to read {src}: {e}") from e

        existing = snapshot.find_by_hash(content_hash)
        if existing is not None:
            raise DuplicateContent(content_hash, existing.id)

        declared_type = declared_type_for(src)
        stored_path = self.content_store.store(src, declared_type)
        item = KnowledgeItem(
            id=new_item_id(),
            title=title,
            category=category,
            description=description,
            tags=list(tags),
            post_types=list(post_types),
            source=SourceInfo(
                type=declared_type,
                path=stored_path,
                original_name=src.name,
                size_bytes=size_bytes,
                content_hash=content_hash,
            ),
        )

        try:
            chunks = self._chunk(item, snapshot, text)
            if chunks and self.embedder is not None:
                self._embed(item, chunks)
            with self.index_store.transaction() as index:
                # Re-checked under the lock: another writer may have won the race
                index.insert(item)
        except BaseException:
            self.chunk_store.delete(item.id)
            self.content_store.discard(stored_path)
            raise

        logger.info("Added %s '%s' (%d chunk(s))", item.id, item.title, item.processing.chunk_count)
        return item.summary()

    def _chunk(self, item: KnowledgeItem, index: KnowledgeIndex, text: str | None) -> list[Chunk]:
        """Extract, chunk and persist the chunk document for a new item."""
        if text is None:
            try:
                text = extract_text(self.content_store.resolve(item.source.path))
            except (OSError, ValueError) as e:
                logger.warning("Text extraction failed for %s: %s", item.source.original_name, e)
                item.processing.status = STATUS_ERROR
                item.processing.error = str(e)
                return []
            if text is None:
                logger.info("No text extractor for %s; item stays pending", item.source.original_name)
                return []

        chunks = chunk_text(
            text,
            max_size=index.config.max_chunk_size,
            overlap=index.config.overlap,
            source_id=item.id,
        )
        self.chunk_store.write(item.id, chunks)
        item.processing.chunked = True
        item.processing.chunk_count = len(chunks)
        item.processing.status = STATUS_COMPLETED
        return chunks

    def _embed(self, item: KnowledgeItem, chunks: list[Chunk]) -> bool:
        try:
            vectors = call_with_timeout(
                self.embedder.embed_documents,
                [c.content for c in chunks],
                timeout=self.timeout,
            )
        except ExternalServiceError as e:
            logger.warning("Embedding failed for %s, continuing without: %s", item.id, e)
            item.processing.embedded = False
            return False
        item.embedding = mean_vector(vectors)
        item.processing.embedded = True
        return True

    def embed_pending(self) -> int:
        """Embed chunked items that have no embedding yet.

        Returns the number of items embedded.
        """
        if self.embedder is None:
            raise InvalidConfig("No embedding provider configured")

        snapshot = self.index_store.load()
        vectors: dict[str, list[float]] = {}
        for item in snapshot.filter(lambda i: i.processing.chunked and not i.processing.embedded):
            chunks = self.chunk_store.read(item.id)
            if chunks and self._embed(item, chunks):
                vectors[item.id] = item.embedding

        if not vectors:
            return 0

        with self.index_store.transaction() as index:
            for item_id, vector in vectors.items():
                item = index.find_by_id(item_id)
                if item is None:
                    continue
                item.embedding = vector
                item.processing.embedded = True
                item.touch()
        return len(vectors)

    # Queries

    def search(
        self,
        query: str,
        category: str | None = None,
        tags: Iterable[str] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        index = self.index_store.load()
        results = self.query_engine.search(index, query, category=category, tags=tags, limit=limit)
        return [r.summary() for r in results]

    def list_items(
        self,
        category: str | None = None,
        status: str | None = None,
        sort_by: str = "createdAt",
    ) -> list[dict[str, Any]]:
        index = self.index_store.load()
        items = self.query_engine.list_items(index, category=category, status=status, sort_by=sort_by)
        return [item.summary() for item in items]

    def get(self, item_id: str) -> KnowledgeItem:
        return self.index_store.load().get(item_id)

    def get_chunks(self, item_id: str) -> list[Chunk]:
        self.get(item_id)
        return self.chunk_store.read(item_id)

    # Mutations

    def delete(self, item_id: str, remove_file: bool = False) -> dict[str, Any]:
        """Remove an item from the index.

        The stored copy is kept unless ``remove_file`` is set, in which case
        the next sync will not report it as untracked.
        """
        with self.index_store.transaction() as index:
            item = index.remove(item_id)
        self.chunk_store.delete(item_id)
        if remove_file:
            self.content_store.discard(item.source.path)
        logger.info("Deleted %s '%s'", item.id, item.title)
        return {"deleted": item.id, "title": item.title, "fileRemoved": remove_file}

    def record_usage(self, item_id: str, generated_post: bool = False) -> KnowledgeItem:
        """Count a reference to an item, and optionally a generated post."""
        with self.index_store.transaction() as index:
            item = index.get(item_id)
            item.usage.times_referenced += 1
            if generated_post:
                item.usage.generated_posts_count += 1
            item.touch()
        return item

    def sync(self, force: bool = False) -> dict[str, Any]:
        report = self.reconciler.reconcile(force=force)
        return {
            "newFiles": len(report.untracked),
            "orphaned": len(report.orphaned),
            "untracked": list(report.untracked),
            "orphanedIds": list(report.orphaned),
        }

    def stats(self) -> dict[str, Any]:
        return index_stats(self.index_store.load())
