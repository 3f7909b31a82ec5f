# price_dashboard/store.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

from .logger import log


class JsonStore:
    """
    Small key/value store backing the dashboard's saved choices.

    With a path, every write rewrites the JSON file; without one it is a
    plain in-memory dict.
    """

    def __init__(self, path: Path | str | None = None):
        self.path: Optional[Path] = Path(path) if path else None
        self._data: Dict[str, Any] = {}
        if self.path and self.path.exists():
            with open(self.path, "r", encoding="utf-8") as f:
                self._data = json.load(f)
            log(f"Loaded state from {self.path}", context="store")

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._flush()

    def delete(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._flush()

    def _flush(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, ensure_ascii=False, indent=2)
