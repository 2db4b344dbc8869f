"""JSON file-based document store.

Each document lives in its own file under a root directory:
``{root}/{key}.json``. Writes are atomic (temp file + rename); unreadable
files are reported as missing so callers fall back to empty defaults.
"""

import json
import tempfile
from pathlib import Path
from typing import Any

from tactician.core.logging import get_logger
from tactician.store.base import DocumentStore

_logger = get_logger("store.json")


class JsonDocumentStore(DocumentStore):
    """JSON file-based document storage."""

    def __init__(self, root: Path) -> None:
        """Initialize the JSON store.

        Args:
            root: Directory holding the document files. Created lazily on
                first write.
        """
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        """Get the file path of a document, sanitizing each key segment."""
        segments = [
            "".join(c if c.isalnum() or c in "-_." else "_" for c in part)
            for part in key.split("/")
            if part and part not in (".", "..")
        ]
        if not segments:
            raise ValueError(f"Invalid document key: {key!r}")
        return self.root.joinpath(*segments[:-1], f"{segments[-1]}.json")

    async def read(self, key: str) -> Any | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            _logger.warning("document_unreadable", key=key, path=str(path), error=str(e))
            return None

    async def write(self, key: str, document: Any) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        ) as f:
            temp_path = Path(f.name)
            try:
                json.dump(document, f, indent=2)
                f.write("\n")
            except BaseException:
                f.close()
                temp_path.unlink(missing_ok=True)
                raise
        temp_path.replace(path)

    async def delete(self, key: str) -> bool:
        path = self.path_for(key)
        if path.exists():
            path.unlink()
            return True
        return False
