"""Durable JSON index with serialised writers and atomic saves."""

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from ..errors import CorruptIndex, StorageError
from ..models import DEFAULT_CATEGORIES, IndexConfig, KnowledgeIndex, utc_now

try:
    import fcntl
except ImportError:  # Windows: only the in-process lock applies
    fcntl = None

logger = logging.getLogger(__name__)

INDEX_FILE = "index.json"
LOCK_FILE = ".index.lock"


class _RootLock:
    """Writer lock shared by every IndexStore pointing at the same root."""

    def __init__(self):
        self.mutex = threading.RLock()
        self.depth = 0
        self.fd: int | None = None


_root_locks: dict[str, _RootLock] = {}
_root_locks_guard = threading.Lock()


def _lock_for(root: Path) -> _RootLock:
    key = str(root.resolve())
    with _root_locks_guard:
        if key not in _root_locks:
            _root_locks[key] = _RootLock()
        return _root_locks[key]


def atomic_write_json(path: Path, data: Any) -> None:
    """Write JSON to a sibling temp file and rename it over ``path``.

    Readers either see the previous document or the new one, never a mix.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except OSError as e:
        Path(tmp_name).unlink(missing_ok=True)
        raise StorageError(f"Failed to write {path}: {e}") from e
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class IndexStore:
    """Loads and saves the single index document under ``root``."""

    def __init__(
        self,
        root: str | Path,
        defaults: IndexConfig | None = None,
        categories: list[str] | None = None,
    ):
        self.root = Path(root)
        self.path = self.root / INDEX_FILE
        self.defaults = defaults or IndexConfig()
        self.categories = list(categories or DEFAULT_CATEGORIES)
        self._lock = _lock_for(self.root)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> KnowledgeIndex:
        """Load the last saved snapshot.

        Returns a default-initialised index when nothing has been saved yet.
        """
        if not self.path.exists():
            return KnowledgeIndex(
                config=IndexConfig(**vars(self.defaults)),
                categories=list(self.categories),
            )
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            return KnowledgeIndex.from_dict(data)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Index at %s is corrupt, refusing to continue: %s", self.path, e)
            raise CorruptIndex(f"Cannot parse index {self.path}: {e}") from e
        except OSError as e:
            raise StorageError(f"Failed to read {self.path}: {e}") from e

    def save(self, index: KnowledgeIndex) -> None:
        """Persist the full index, stamping ``lastUpdated`` and ``totalItems``."""
        index.last_updated = utc_now()
        atomic_write_json(self.path, index.to_dict())
        logger.debug("Saved index with %d item(s)", len(index))

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold the writer lock (in-process and, where available, advisory file lock)."""
        state = self._lock
        with state.mutex:
            if state.depth == 0 and fcntl is not None:
                self.root.mkdir(parents=True, exist_ok=True)
                state.fd = os.open(self.root / LOCK_FILE, os.O_RDWR | os.O_CREAT, 0o644)
                fcntl.flock(state.fd, fcntl.LOCK_EX)
            state.depth += 1
            try:
                yield
            finally:
                state.depth -= 1
                if state.depth == 0 and state.fd is not None:
                    fcntl.flock(state.fd, fcntl.LOCK_UN)
                    os.close(state.fd)
                    state.fd = None

    @contextmanager
    def transaction(self) -> Iterator[KnowledgeIndex]:
        """Load-mutate-save under the writer lock.

        The index is saved only when the block exits without an exception.
        """
        with self.locked():
            index = self.load()
            yield index
            self.save(index)
