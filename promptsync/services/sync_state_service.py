"""Sync state store: one status record per direction in the local state scope."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from promptsync.schemas.sync import SyncState, SyncStatus
from promptsync.services.datetime_service import now_millis
from promptsync.storage.keys import NOTIFICATION_KEY_PREFIX, STATUS_KEYS, status_key

if TYPE_CHECKING:
    from promptsync.schemas.sync import SyncDirection
    from promptsync.storage.base import KeyValueStore

logger = logging.getLogger(__name__)


class SyncStateService:
    """Reads and writes ``SyncStatus`` records.

    Records are never deleted by a sync; the next operation in the same
    direction overwrites the previous record under the same key.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    async def read_key(self, key: str) -> SyncStatus | None:
        """Return the record stored at ``key``, None when missing or unreadable."""
        data = await self.store.get([key])
        raw = data.get(key)
        if raw is None:
            return None
        try:
            return SyncStatus.model_validate(raw)
        except ValidationError:
            logger.warning("Ignoring malformed sync status record at %s", key)
            return None

    async def read(self, direction: SyncDirection) -> SyncStatus | None:
        return await self.read_key(status_key(direction))

    async def write(self, direction: SyncDirection, status: SyncStatus) -> None:
        await self.store.set({status_key(direction): status.to_record()})

    async def mark_in_progress(
        self, direction: SyncDirection, sync_id: str, message: str
    ) -> SyncStatus:
        status = SyncStatus(
            id=sync_id,
            status=SyncState.IN_PROGRESS,
            message=message,
            start_time=now_millis(),
        )
        await self.write(direction, status)
        return status

    async def mark_success(
        self, direction: SyncDirection, sync_id: str, message: str
    ) -> SyncStatus:
        status = SyncStatus(
            id=sync_id,
            status=SyncState.SUCCESS,
            message=message,
            completed_time=now_millis(),
        )
        await self.write(direction, status)
        return status

    async def mark_error(
        self, direction: SyncDirection, sync_id: str, message: str, error: str
    ) -> SyncStatus:
        status = SyncStatus(
            id=sync_id,
            status=SyncState.ERROR,
            message=message,
            error=error,
            completed_time=now_millis(),
        )
        await self.write(direction, status)
        return status

    async def clear_transient(self) -> int:
        """Remove both status records and every transient notification.

        Meant to run when a front end starts, so records left behind by a
        process that died mid-sync do not linger. Returns the number of keys
        removed.
        """
        data = await self.store.get(None)
        status_keys = set(STATUS_KEYS.values())
        keys_to_remove = [
            key for key in data if key.startswith(NOTIFICATION_KEY_PREFIX) or key in status_keys
        ]
        if keys_to_remove:
            await self.store.remove(keys_to_remove)
            logger.info(
                "Cleared %d transient message(s) and sync status record(s)", len(keys_to_remove)
            )
        return len(keys_to_remove)
