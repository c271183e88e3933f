"""Content-addressed storage for source files."""

from .content import ContentStore, declared_type_for, fingerprint, fingerprint_file

__all__ = ["ContentStore", "declared_type_for", "fingerprint", "fingerprint_file"]
