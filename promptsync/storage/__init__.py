"""Key-value storage backends for promptsync."""

from promptsync.storage.base import KeyValueStore, StorageScopes
from promptsync.storage.json_file import JsonFileStore
from promptsync.storage.memory import InMemoryStore

__all__ = [
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueStore",
    "StorageScopes",
]
