"""JSON parser."""

import json
from pathlib import Path
from typing import Any


class JsonParser:
    """Parse JSON files into a stable, pretty-printed text form."""

    def parse(self, file_path: Path) -> dict[str, Any]:
        text = file_path.read_text(encoding="utf-8", errors="replace")
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            # Not valid JSON, index the raw text
            return {"content": text, "metadata": {"source_type": "text"}}
        content = json.dumps(data, indent=2, ensure_ascii=False, sort_keys=True)
        return {"content": content, "metadata": {"source_type": "json"}}
