"""Transient success/error notifications mirrored into local state."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from promptsync.schemas.sync import NotificationRecord, SyncState
from promptsync.services.datetime_service import unique_millis
from promptsync.storage.keys import NOTIFICATION_KEY_PREFIX

if TYPE_CHECKING:
    from promptsync.storage.base import KeyValueStore

logger = logging.getLogger(__name__)


class NotificationService:
    """Writes uniquely keyed notification records that remove themselves after ``ttl``.

    Removal runs in background tasks owned by this service. Records whose
    removal never ran (process exit) are cleared by
    ``SyncStateService.clear_transient``.
    """

    def __init__(self, store: KeyValueStore, ttl: float = 5.0) -> None:
        self.store = store
        self.ttl = ttl
        self._pending: set[asyncio.Task[None]] = set()

    async def publish(self, state: SyncState, text: str) -> str:
        """Store a notification and schedule its removal. Returns the storage key."""
        if not state.is_terminal:
            msg = f"Only success/error notifications are stored, got {state}"
            raise ValueError(msg)
        stamp = unique_millis()
        key = f"{NOTIFICATION_KEY_PREFIX}{stamp}"
        record = NotificationRecord(
            id=f"message_{stamp}",
            status=state,
            message=text,
            completed_time=stamp,
        )
        await self.store.set({key: record.to_record()})

        task = asyncio.create_task(self._expire(key))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return key

    async def success(self, text: str) -> str:
        return await self.publish(SyncState.SUCCESS, text)

    async def error(self, text: str) -> str:
        return await self.publish(SyncState.ERROR, text)

    async def _expire(self, key: str) -> None:
        await asyncio.sleep(self.ttl)
        try:
            await self.store.remove([key])
        except Exception:
            logger.exception("Failed to remove notification %s", key)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def aclose(self) -> None:
        """Cancel outstanding removals."""
        tasks = list(self._pending)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._pending.clear()
