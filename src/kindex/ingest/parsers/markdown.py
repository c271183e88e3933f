"""Markdown file parser."""

import re
from pathlib import Path
from typing import Any

import yaml


class MarkdownParser:
    """Parse markdown files, separating YAML frontmatter from the body."""

    def parse(self, file_path: Path) -> dict[str, Any]:
        text = file_path.read_text(encoding="utf-8", errors="replace")
        metadata: dict[str, Any] = {"source_type": "markdown"}

        fm_match = re.match(r"^---\s*\n(.*?)\n---\s*\n", text, re.DOTALL)
        if fm_match:
            try:
                fm = yaml.safe_load(fm_match.group(1)) or {}
            except yaml.YAMLError:
                fm = None
            # Only treat the block as frontmatter when it is a mapping
            if isinstance(fm, dict):
                metadata.update(fm)
                text = text[fm_match.end():]

        return {"content": text, "metadata": metadata}
