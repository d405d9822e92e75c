"""In-memory key-value store. State is lost on restart."""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence


class InMemoryStore:
    """Dict-backed ``KeyValueStore``.

    Values are deep-copied on the way in and out so callers cannot mutate
    stored state through a reference, matching serializing host storage.
    Safe under asyncio's single-threaded model: no method suspends.
    """

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(dict(initial or {}))

    async def get(self, keys: Sequence[str] | None = None) -> dict[str, Any]:
        if keys is None:
            return copy.deepcopy(self._data)
        return {key: copy.deepcopy(self._data[key]) for key in keys if key in self._data}

    async def set(self, items: Mapping[str, Any]) -> None:
        for key, value in items.items():
            self._data[key] = copy.deepcopy(value)

    async def remove(self, keys: Sequence[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    def snapshot(self) -> dict[str, Any]:
        """Synchronous copy of the whole store, for inspection."""
        return copy.deepcopy(self._data)
