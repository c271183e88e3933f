"""Exception types raised by the knowledge index."""


class KindexError(Exception):
    """Base class for all knowledge index errors."""


class NotFound(KindexError):
    """A source file or knowledge item id does not exist."""


class DuplicateContent(KindexError):
    """The fingerprint of a file is already indexed."""

    def __init__(self, content_hash: str, existing_id: str):
        super().__init__(f"Content already indexed as {existing_id} (sha256 {content_hash[:12]}...)")
        self.content_hash = content_hash
        self.existing_id = existing_id


class InvalidConfig(KindexError, ValueError):
    """Chunking or search parameters that cannot work."""


class InvalidCategory(KindexError, ValueError):
    """Category is not part of the index's closed category set."""


class CorruptIndex(KindexError):
    """The persisted index exists but cannot be parsed."""


class StorageError(KindexError, OSError):
    """Copying or writing a file failed."""


class ExternalServiceError(KindexError):
    """The embedding provider failed or timed out."""
