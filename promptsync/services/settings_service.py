"""Credentials and auto-sync flag in the durable settings scope."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from promptsync.schemas.sync import DEFAULT_SYNC_PATH, WebDAVCredentials
from promptsync.storage.keys import (
    AUTO_SYNC_ENABLED_KEY,
    CREDENTIAL_KEYS,
    PASSWORD_KEY,
    SERVER_URL_KEY,
    SYNC_PATH_KEY,
    USERNAME_KEY,
)

if TYPE_CHECKING:
    from promptsync.storage.base import KeyValueStore

logger = logging.getLogger(__name__)


class SettingsService:
    """Thin typed layer over the durable settings store."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    async def load_credentials(self) -> WebDAVCredentials:
        """Load credentials, falling back to empty values and the default sync path."""
        data = await self.store.get(list(CREDENTIAL_KEYS))
        return WebDAVCredentials(
            server_url=data.get(SERVER_URL_KEY) or "",
            username=data.get(USERNAME_KEY) or "",
            password=data.get(PASSWORD_KEY) or "",
            sync_path=data.get(SYNC_PATH_KEY) or DEFAULT_SYNC_PATH,
        )

    async def save_credentials(self, credentials: WebDAVCredentials) -> None:
        await self.store.set(
            {
                SERVER_URL_KEY: credentials.server_url,
                USERNAME_KEY: credentials.username,
                PASSWORD_KEY: credentials.password,
                SYNC_PATH_KEY: credentials.sync_path,
            }
        )
        logger.info("Saved WebDAV settings for %s", credentials.base_url)

    async def is_auto_sync_enabled(self) -> bool:
        data = await self.store.get([AUTO_SYNC_ENABLED_KEY])
        return bool(data.get(AUTO_SYNC_ENABLED_KEY, False))

    async def set_auto_sync_enabled(self, enabled: bool) -> None:
        await self.store.set({AUTO_SYNC_ENABLED_KEY: enabled})
        logger.info("WebDAV auto-sync %s", "enabled" if enabled else "disabled")
