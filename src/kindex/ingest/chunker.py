"""Fixed-size text chunking with overlapping windows."""

from typing import Iterator

from ..errors import InvalidConfig
from ..models import Chunk, chunk_id


def validate_chunking(max_size: int, overlap: int) -> None:
    """Reject parameters for which the window would stall or move backward."""
    if max_size <= 0:
        raise InvalidConfig(f"max_size must be positive, got {max_size}")
    if overlap < 0:
        raise InvalidConfig(f"overlap must not be negative, got {overlap}")
    if overlap >= max_size:
        raise InvalidConfig(f"overlap ({overlap}) must be smaller than max_size ({max_size})")


def iter_chunks(text: str, max_size: int = 500, overlap: int = 50, source_id: str = "") -> Iterator[Chunk]:
    """Yield consecutive windows ``[start, min(start + max_size, len(text)))``.

    Each window after the first starts ``overlap`` characters before the end of
    the previous one. The last window may be shorter than ``max_size``.
    """
    validate_chunking(max_size, overlap)

    length = len(text)
    start = 0
    index = 0
    while start < length:
        end = min(start + max_size, length)
        yield Chunk(
            id=chunk_id(source_id, index),
            index=index,
            content=text[start:end],
            start_offset=start,
            end_offset=end,
        )
        if end == length:
            break
        start = end - overlap
        index += 1


def chunk_text(text: str, max_size: int = 500, overlap: int = 50, source_id: str = "") -> list[Chunk]:
    """Split text into overlapping chunks.

    Args:
        text: The extracted text to chunk.
        max_size: Maximum characters per chunk.
        overlap: Characters shared by consecutive chunks.
        source_id: Id of the knowledge item, used to derive chunk ids.

    Returns:
        List of chunks, empty for empty text.

    Raises:
        InvalidConfig: If the parameters cannot terminate.
    """
    return list(iter_chunks(text, max_size=max_size, overlap=overlap, source_id=source_id))


def reconstruct(chunks: list[Chunk], overlap: int) -> str:
    """Rebuild the original text by dropping each successor's overlap."""
    parts = []
    for chunk in chunks:
        parts.append(chunk.content if chunk.index == 0 else chunk.content[overlap:])
    return "".join(parts)
