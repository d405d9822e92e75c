"""Key-value store contract shared by the durable settings and local state scopes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence


@runtime_checkable
class KeyValueStore(Protocol):
    """Asynchronous key-value storage with JSON-compatible values.

    Mirrors the host storage API the engine was designed against: values go in
    and come out as plain JSON data, and callers never share references with
    the store.
    """

    async def get(self, keys: Sequence[str] | None = None) -> dict[str, Any]:
        """Return the stored values for ``keys`` (every entry when None).

        Missing keys are absent from the result.
        """
        ...

    async def set(self, items: Mapping[str, Any]) -> None:
        """Store every key/value pair of ``items``."""
        ...

    async def remove(self, keys: Sequence[str]) -> None:
        """Delete ``keys``; unknown keys are ignored."""
        ...


@dataclass(frozen=True)
class StorageScopes:
    """The two storage domains the engine works with."""

    settings: KeyValueStore
    """Durable settings: credentials, sync path, auto-sync flag."""

    local: KeyValueStore
    """Local state: prompt/category collections, status records, notifications."""
