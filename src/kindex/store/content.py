"""Canonical copies of source files and their content fingerprints."""

import hashlib
import logging
import re
import shutil
from pathlib import Path
from typing import Iterator

from ..errors import NotFound, StorageError

logger = logging.getLogger(__name__)

SOURCES_DIR = "sources"

TYPE_BY_EXTENSION = {
    ".md": "markdown",
    ".markdown": "markdown",
    ".txt": "text",
    ".text": "text",
    ".log": "text",
    ".csv": "text",
    ".json": "json",
    ".pdf": "pdf",
    ".xls": "spreadsheet",
    ".xlsx": "spreadsheet",
    ".doc": "document",
    ".docx": "document",
}

_READ_BLOCK = 1 << 16


def fingerprint(data: bytes) -> str:
    """SHA256 hash of raw bytes for dedup."""
    return hashlib.sha256(data).hexdigest()


def fingerprint_file(file_path: Path) -> str:
    """SHA256 hash of a file's bytes, read in blocks."""
    digest = hashlib.sha256()
    with open(file_path, "rb") as f:
        for block in iter(lambda: f.read(_READ_BLOCK), b""):
            digest.update(block)
    return digest.hexdigest()


def declared_type_for(file_path: Path) -> str:
    """Type partition a file lands in, derived from its extension."""
    ext = file_path.suffix.lower()
    if ext in TYPE_BY_EXTENSION:
        return TYPE_BY_EXTENSION[ext]
    return ext.lstrip(".") or "other"


class ContentStore:
    """Owns the stored copies under ``<root>/sources/<type>/``."""

    fingerprint = staticmethod(fingerprint)
    fingerprint_file = staticmethod(fingerprint_file)

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self.sources_path = self.root / SOURCES_DIR

    def store(self, file_path: str | Path, declared_type: str) -> str:
        """Copy a file into its type partition.

        Returns the stored path relative to the store root.
        """
        src = Path(file_path)
        if not src.is_file():
            raise NotFound(f"Source file not found: {src}")

        target_dir = self.sources_path / self._sanitize(declared_type or "other")
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            target = self._reserve_name(target_dir, src.name)
        except OSError as e:
            raise StorageError(f"Failed to reserve a name for {src} in store: {e}") from e
        try:
            shutil.copy2(src, target)
        except OSError as e:
            target.unlink(missing_ok=True)
            raise StorageError(f"Failed to copy {src} into store: {e}") from e

        relative = target.relative_to(self.root).as_posix()
        logger.debug("Stored %s as %s", src, relative)
        return relative

    def resolve(self, relative: str) -> Path:
        return self.root / relative

    def exists(self, relative: str) -> bool:
        return self.resolve(relative).is_file()

    def discard(self, relative: str) -> None:
        """Remove a stored copy if it is still there."""
        path = self.resolve(relative)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to remove {relative}: {e}") from e

    def iter_files(self) -> Iterator[Path]:
        """All stored files, sorted, skipping dot-files."""
        if not self.sources_path.exists():
            return
        for path in sorted(self.sources_path.rglob("*")):
            if path.is_file() and not path.name.startswith("."):
                yield path

    def relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    @staticmethod
    def _reserve_name(target_dir: Path, name: str) -> Path:
        """Atomically claim a file name that no other copy uses.

        The claimed path exists as an empty file when this returns, so two
        concurrent stores of same-named files never share a target.
        """
        candidate = target_dir / name
        stem, suffix = candidate.stem, candidate.suffix
        counter = 1
        while True:
            try:
                with open(candidate, "xb"):
                    return candidate
            except FileExistsError:
                candidate = target_dir / f"{stem}_{counter}{suffix}"
                counter += 1

    @staticmethod
    def _sanitize(name: str) -> str:
        name = re.sub(r'[<>:"/\\|?*]', '', name).strip(". ")
        return name or "other"
