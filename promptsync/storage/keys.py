"""Storage keys used by the sync engine."""

from __future__ import annotations

from promptsync.schemas.sync import SyncDirection

# Durable settings scope
SERVER_URL_KEY = "webdavServerUrl"
USERNAME_KEY = "webdavUsername"
PASSWORD_KEY = "webdavPassword"
SYNC_PATH_KEY = "webdavSyncPath"
AUTO_SYNC_ENABLED_KEY = "webdavAutoSyncEnabled"

CREDENTIAL_KEYS = (SERVER_URL_KEY, USERNAME_KEY, PASSWORD_KEY, SYNC_PATH_KEY)

# Local state scope
PUSH_STATUS_KEY = "webdav_sync_status"
PULL_STATUS_KEY = "webdav_from_sync_status"
NOTIFICATION_KEY_PREFIX = "temp_webdav_message_"

STATUS_KEYS: dict[SyncDirection, str] = {
    SyncDirection.PUSH: PUSH_STATUS_KEY,
    SyncDirection.PULL: PULL_STATUS_KEY,
}


def status_key(direction: SyncDirection) -> str:
    """Local-state key holding the status record for ``direction``."""
    return STATUS_KEYS[direction]
