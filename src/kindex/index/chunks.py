"""One chunk document per knowledge item."""

import json
import logging
from pathlib import Path

from ..errors import CorruptIndex, NotFound, StorageError
from ..models import Chunk
from .store import atomic_write_json

logger = logging.getLogger(__name__)

CHUNKS_DIR = "chunks"


class ChunkStore:
    """Reads and writes ``<root>/chunks/<source_id>.json``."""

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self.chunks_path = self.root / CHUNKS_DIR

    def path_for(self, source_id: str) -> Path:
        return self.chunks_path / f"{source_id}.json"

    def write(self, source_id: str, chunks: list[Chunk]) -> Path:
        path = self.path_for(source_id)
        atomic_write_json(path, {
            "sourceId": source_id,
            "chunks": [c.to_dict() for c in chunks],
        })
        return path

    def read(self, source_id: str) -> list[Chunk]:
        path = self.path_for(source_id)
        if not path.exists():
            raise NotFound(f"No chunks stored for {source_id}")
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return [Chunk.from_dict(c) for c in data["chunks"]]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise CorruptIndex(f"Cannot parse chunk document {path}: {e}") from e

    def count(self, source_id: str) -> int:
        try:
            return len(self.read(source_id))
        except NotFound:
            return 0

    def delete(self, source_id: str) -> bool:
        """Remove a chunk document. Returns False if there was none."""
        path = self.path_for(source_id)
        if not path.exists():
            return False
        try:
            path.unlink()
        except OSError as e:
            raise StorageError(f"Failed to remove {path}: {e}") from e
        logger.debug("Removed chunks for %s", source_id)
        return True
