"""
JSON File Local Store

The local durable store for desktop use: every key lives in one JSON
object on disk. Writes go to a temporary file first and are moved into
place, so a crash mid-write leaves the previous snapshot intact.
"""

import json
import os
from pathlib import Path
from typing import Optional

import structlog

from src.services.storage.interface import LocalStoreInterface


logger = structlog.get_logger(__name__)


class JsonFileLocalStore(LocalStoreInterface):
    """Local key-value store persisted as a single JSON file."""

    def __init__(self, path: Path):
        self._path = Path(path)
        self._items: dict[str, str] = self._load()

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error("local_store_unreadable", path=str(self._path), error=str(e))
            return {}
        if not isinstance(raw, dict):
            logger.error("local_store_unreadable", path=str(self._path), error="not an object")
            return {}
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(self._items, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp_path, self._path)

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value
        self._flush()
