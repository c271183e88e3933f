"""Text extractors for the formats handled in-process.

Other formats (PDF, spreadsheets) are expected to arrive as text from the
caller.
"""

from pathlib import Path

from .json_parser import JsonParser
from .markdown import MarkdownParser
from .text import TextParser

PARSERS = {
    ".md": MarkdownParser,
    ".markdown": MarkdownParser,
    ".txt": TextParser,
    ".text": TextParser,
    ".log": TextParser,
    ".csv": TextParser,
    ".json": JsonParser,
}


def extract_text(file_path: Path) -> str | None:
    """Extract text from a file, or None if its format has no parser."""
    parser_cls = PARSERS.get(file_path.suffix.lower())
    if parser_cls is None:
        return None
    return parser_cls().parse(file_path)["content"]


__all__ = ["PARSERS", "extract_text", "MarkdownParser", "TextParser", "JsonParser"]
