"""Index maintenance: detect and repair drift between the store and the index."""

import logging

from ..index.chunks import ChunkStore
from ..index.store import IndexStore
from ..models import KnowledgeIndex, ScanReport
from ..store.content import ContentStore

logger = logging.getLogger(__name__)


class Reconciler:
    """Compares stored files against index records.

    Untracked files are only reported: registering them needs a title and a
    category that only the caller can supply.
    """

    def __init__(self, content_store: ContentStore, index_store: IndexStore, chunk_store: ChunkStore):
        self.content_store = content_store
        self.index_store = index_store
        self.chunk_store = chunk_store

    def scan(self, index: KnowledgeIndex | None = None) -> ScanReport:
        """Find untracked files and orphaned items without changing anything."""
        if index is None:
            index = self.index_store.load()
        report = ScanReport()

        known = index.content_hashes()
        for path in self.content_store.iter_files():
            if self.content_store.fingerprint_file(path) not in known:
                report.untracked.append(self.content_store.relative(path))

        for item in index:
            if not self.content_store.exists(item.source.path):
                report.orphaned.append(item.id)

        return report

    def reconcile(self, force: bool = False) -> ScanReport:
        """Remove orphaned items and report untracked files.

        Returns the scan the repair was based on.
        """
        if force:
            logger.info("Forced reconciliation requested; re-processing is not available, running a normal pass")

        with self.index_store.transaction() as index:
            report = self.scan(index)
            for item_id in report.orphaned:
                item = index.remove(item_id)
                self.chunk_store.delete(item_id)
                logger.info("Removed orphaned item %s (%s): %s is gone", item_id, item.title, item.source.path)

        for path in report.untracked:
            logger.info("Untracked file in store: %s", path)
        return report
