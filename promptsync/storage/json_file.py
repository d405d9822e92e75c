"""JSON-file backed key-value store used by the command line front end."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path

logger = logging.getLogger(__name__)


class JsonFileStore:
    """``KeyValueStore`` persisted as one JSON object in a file.

    Every operation re-reads the file so that several processes (a running
    sync and a ``status --watch`` observer) see each other's writes. Writes go
    through a temporary file and ``os.replace`` so readers never observe a
    half-written file.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        # Serialize read-modify-write cycles within this process.
        self._lock = asyncio.Lock()

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        raw = self.path.read_text(encoding="utf-8")
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            msg = f"Store file {self.path} is not valid JSON: {exc}"
            raise ValueError(msg) from exc
        if not isinstance(data, dict):
            msg = f"Store file {self.path} must contain a JSON object"
            raise ValueError(msg)
        return data

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f".{self.path.name}.tmp")
        tmp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)

    async def get(self, keys: Sequence[str] | None = None) -> dict[str, Any]:
        data = await asyncio.to_thread(self._read)
        if keys is None:
            return data
        return {key: data[key] for key in keys if key in data}

    async def set(self, items: Mapping[str, Any]) -> None:
        # Round-trip through JSON first so unserializable values fail before
        # anything is written.
        encoded = json.loads(json.dumps(dict(items)))
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            data.update(encoded)
            await asyncio.to_thread(self._write, data)

    async def remove(self, keys: Sequence[str]) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            removed = [key for key in keys if key in data]
            if not removed:
                return
            for key in removed:
                del data[key]
            await asyncio.to_thread(self._write, data)
            logger.debug("Removed %d key(s) from %s", len(removed), self.path.name)
