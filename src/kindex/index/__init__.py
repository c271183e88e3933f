"""Durable index of knowledge items and their chunk documents."""

from .chunks import ChunkStore
from .store import IndexStore, atomic_write_json

__all__ = ["ChunkStore", "IndexStore", "atomic_write_json"]
