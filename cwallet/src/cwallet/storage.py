"""
JSON record storage for the wallet.
"""

from __future__ import annotations

import asyncio
import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from loguru import logger


class JsonStorage(ABC):
    """Key-value store of JSON records."""

    @abstractmethod
    async def get(self, key: str) -> dict[str, Any] | None:
        """Get the record stored under key, None if absent"""

    @abstractmethod
    async def set(self, key: str, record: dict[str, Any]) -> None:
        """Store a record under key, replacing any previous one"""

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Remove the record under key if present"""


class MemoryJsonStorage(JsonStorage):
    def __init__(self) -> None:
        self._records: dict[str, str] = {}

    async def get(self, key: str) -> dict[str, Any] | None:
        raw = self._records.get(key)
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, record: dict[str, Any]) -> None:
        self._records[key] = json.dumps(record)

    async def remove(self, key: str) -> None:
        self._records.pop(key, None)


class FileJsonStorage(JsonStorage):
    """
    One JSON file per key inside a data directory.

    Files hold the wallet seed, so they are written owner-readable only.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir).expanduser()

    def _path(self, key: str) -> Path:
        if not key or "/" in key or key.startswith("."):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.data_dir / key

    async def get(self, key: str) -> dict[str, Any] | None:
        path = self._path(key)
        if not path.exists():
            return None
        text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        return json.loads(text)

    async def set(self, key: str, record: dict[str, Any]) -> None:
        await asyncio.to_thread(self._write, self._path(key), json.dumps(record, indent=2))

    def _write(self, path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".tmp")

        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_path, path)

        logger.debug(f"Saved {path}")

    async def remove(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            await asyncio.to_thread(path.unlink)
            logger.debug(f"Removed {path}")
