"""kindex - knowledge index and retrieval engine."""

from .errors import (
    CorruptIndex,
    DuplicateContent,
    ExternalServiceError,
    InvalidCategory,
    InvalidConfig,
    KindexError,
    NotFound,
    StorageError,
)
from .service import KnowledgeBase

__version__ = "0.1.0"

__all__ = [
    "CorruptIndex",
    "DuplicateContent",
    "ExternalServiceError",
    "InvalidCategory",
    "InvalidConfig",
    "KindexError",
    "KnowledgeBase",
    "NotFound",
    "StorageError",
]
