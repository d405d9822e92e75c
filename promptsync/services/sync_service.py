"""Sync orchestrator: drives push (local -> remote) and pull (remote -> local) operations."""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from promptsync.config import Settings
from promptsync.exceptions import (
    AlreadyRunningError,
    ConfigurationMissingError,
    SyncCancelledError,
    SyncError,
)
from promptsync.schemas.sync import MergeMode, SyncDirection, SyncDocument
from promptsync.services.datetime_service import format_iso, now_utc, parse_datetime, unique_millis
from promptsync.services.merge_service import MergedCollections, merge_document
from promptsync.services.notification_service import NotificationService
from promptsync.services.settings_service import SettingsService
from promptsync.services.status_poller import StatusPoller
from promptsync.services.sync_state_service import SyncStateService
from promptsync.storage.keys import status_key

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from promptsync.schemas.sync import SyncStatus, WebDAVCredentials
    from promptsync.storage.base import StorageScopes
    from promptsync.webdav.client import WebDAVClient

logger = logging.getLogger(__name__)

PUSH_IN_PROGRESS_MESSAGE = "Syncing local data to WebDAV..."
PULL_IN_PROGRESS_MESSAGES = {
    MergeMode.REPLACE: "Syncing from WebDAV (overwriting local data)...",
    MergeMode.APPEND: "Syncing from WebDAV (appending to local data)...",
}
SUCCESS_MESSAGES = {
    SyncDirection.PUSH: "Synced to WebDAV successfully",
    SyncDirection.PULL: "Synced from WebDAV successfully",
}
FAILURE_MESSAGES = {
    SyncDirection.PUSH: "Sync to WebDAV failed",
    SyncDirection.PULL: "Sync from WebDAV failed",
}
SETTINGS_SAVED_MESSAGE = "Connection successful, WebDAV settings saved"
CONNECTION_FAILED_MESSAGE = "WebDAV connection test failed"

_SHARED_GUARD_SLOT = "shared"


@dataclass
class SyncResult:
    """Outcome of a successful sync."""

    direction: SyncDirection
    status: SyncStatus
    prompt_count: int
    category_count: int
    mode: MergeMode | None = None
    added_prompts: int = 0
    added_categories: int = 0
    remote_exported_at: datetime | None = None


class SyncService:
    """Runs sync operations and records their lifecycle in the state store.

    The in-flight guard is an explicit slot on this instance: one per direction,
    or a single slot shared by push and pull when ``share_direction_guard`` is
    set. Acquiring and releasing the slot never suspends, so under asyncio's
    single-threaded model only one coroutine can win it. Do NOT share one
    instance across OS threads.

    Args:
        scopes: Durable settings and local state stores.
        client: WebDAV transport.
        settings: Engine settings; defaults to ``Settings()``.
        on_reload: Called ``reload_delay_seconds`` after a successful pull so
            the consuming view can reload its data.
    """

    def __init__(
        self,
        *,
        scopes: StorageScopes,
        client: WebDAVClient,
        settings: Settings | None = None,
        on_reload: Callable[[], Any] | None = None,
    ) -> None:
        self._settings = settings if settings is not None else Settings()
        self._settings.validate_storage_keys()
        self.scopes = scopes
        self.client = client
        self.preferences = SettingsService(scopes.settings)
        self.state = SyncStateService(scopes.local)
        self.notifications = NotificationService(
            scopes.local, ttl=self._settings.notification_ttl_seconds
        )
        self.poller = StatusPoller(
            self.state,
            interval=self._settings.poll_interval_seconds,
            timeout=self._settings.poll_timeout_seconds,
        )
        self._on_reload = on_reload
        self._reload_handle: asyncio.TimerHandle | None = None
        self._in_flight: dict[str, str] = {}

    async def __aenter__(self) -> SyncService:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    # ── In-flight guard ──────────────────────────────────

    def _guard_slot(self, direction: SyncDirection) -> str:
        if self._settings.share_direction_guard:
            return _SHARED_GUARD_SLOT
        return str(direction)

    def current_sync_id(self, direction: SyncDirection) -> str | None:
        """Id of the sync currently holding ``direction``'s guard, if any."""
        return self._in_flight.get(self._guard_slot(direction))

    def _acquire(self, direction: SyncDirection) -> str:
        slot = self._guard_slot(direction)
        held = self._in_flight.get(slot)
        if held is not None:
            logger.info("Rejecting %s: sync %s is still in progress", direction, held)
            raise AlreadyRunningError(held)
        sync_id = f"sync_{unique_millis()}"
        self._in_flight[slot] = sync_id
        return sync_id

    def _release(self, direction: SyncDirection, sync_id: str) -> None:
        slot = self._guard_slot(direction)
        if self._in_flight.get(slot) == sync_id:
            del self._in_flight[slot]

    # ── Local collections ────────────────────────────────

    async def _read_collections(self) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        prompts_key = self._settings.prompts_key
        categories_key = self._settings.categories_key
        data = await self.scopes.local.get([prompts_key, categories_key])
        prompts = data.get(prompts_key) or []
        categories = data.get(categories_key) or []
        for key, value in ((prompts_key, prompts), (categories_key, categories)):
            if not isinstance(value, list):
                msg = f"Local collection {key!r} is not a list"
                raise ValueError(msg)
        return prompts, categories

    async def _write_collections(self, merged: MergedCollections) -> None:
        await self.scopes.local.set(
            {
                self._settings.prompts_key: merged.prompts,
                self._settings.categories_key: merged.categories,
            }
        )

    # ── Operations ───────────────────────────────────────

    async def _require_credentials(self) -> WebDAVCredentials:
        credentials = await self.preferences.load_credentials()
        if not credentials.is_complete:
            raise ConfigurationMissingError()
        return credentials

    async def push(self) -> SyncResult:
        """Upload the entire local dataset, replacing the remote document.

        Raises:
            ConfigurationMissingError: Credentials are incomplete (nothing recorded).
            AlreadyRunningError: Another sync holds the guard (nothing recorded).
            SyncError: The upload failed; an ``error`` status has been recorded.
        """
        direction = SyncDirection.PUSH
        credentials = await self._require_credentials()
        sync_id = self._acquire(direction)
        logger.info("Starting sync %s to %s", sync_id, credentials.document_url)
        try:
            await self.state.mark_in_progress(direction, sync_id, PUSH_IN_PROGRESS_MESSAGE)
            prompts, categories = await self._read_collections()
            document = SyncDocument(
                exported_at=format_iso(now_utc()),
                prompts=prompts,
                categories=categories,
            )
            await self.client.ensure_collection(credentials)
            await self.client.upload(credentials, document)
            status = await self.state.mark_success(direction, sync_id, SUCCESS_MESSAGES[direction])
        except (Exception, asyncio.CancelledError) as exc:
            await self._record_failure(direction, sync_id, exc)
            raise
        finally:
            self._release(direction, sync_id)

        await self._notify_success(direction, sync_id)
        self._watch(direction, sync_id)
        logger.info("Sync %s uploaded %d prompt(s)", sync_id, len(prompts))
        return SyncResult(
            direction=direction,
            status=status,
            prompt_count=len(prompts),
            category_count=len(categories),
        )

    async def pull(self, mode: MergeMode | str = MergeMode.REPLACE) -> SyncResult:
        """Download the remote document and merge it into local collections.

        Raises:
            ValueError: ``mode`` is not a merge mode (nothing recorded).
            ConfigurationMissingError: Credentials are incomplete (nothing recorded).
            AlreadyRunningError: Another sync holds the guard (nothing recorded).
            SyncError: The download failed; an ``error`` status has been recorded.
        """
        direction = SyncDirection.PULL
        mode = MergeMode(mode)
        credentials = await self._require_credentials()
        sync_id = self._acquire(direction)
        logger.info("Starting sync %s from %s (mode=%s)", sync_id, credentials.document_url, mode)
        try:
            await self.state.mark_in_progress(direction, sync_id, PULL_IN_PROGRESS_MESSAGES[mode])
            document = await self.client.download(credentials)
            if mode is MergeMode.APPEND:
                local_prompts, local_categories = await self._read_collections()
            else:
                local_prompts, local_categories = [], []
            merged = merge_document(mode, document, local_prompts, local_categories)
            await self._write_collections(merged)
            status = await self.state.mark_success(direction, sync_id, SUCCESS_MESSAGES[direction])
        except (Exception, asyncio.CancelledError) as exc:
            await self._record_failure(direction, sync_id, exc)
            raise
        finally:
            self._release(direction, sync_id)

        await self._notify_success(direction, sync_id)
        self._watch(direction, sync_id)
        self._schedule_reload()
        logger.info(
            "Sync %s merged %d new prompt(s), %d new categories",
            sync_id,
            merged.added_prompts,
            merged.added_categories,
        )
        return SyncResult(
            direction=direction,
            status=status,
            mode=mode,
            prompt_count=len(merged.prompts),
            category_count=len(merged.categories),
            added_prompts=merged.added_prompts,
            added_categories=merged.added_categories,
            remote_exported_at=(
                parse_datetime(document.exported_at) if document.exported_at else None
            ),
        )

    async def _notify_success(self, direction: SyncDirection, sync_id: str) -> None:
        try:
            await self.notifications.success(SUCCESS_MESSAGES[direction])
        except Exception:
            # The sync itself has completed and its status is recorded.
            logger.exception("Failed to publish success notification for sync %s", sync_id)

    async def _record_failure(
        self, direction: SyncDirection, sync_id: str, exc: BaseException
    ) -> None:
        """Write the terminal ``error`` status and notification for a failed sync."""
        if isinstance(exc, asyncio.CancelledError):
            error_text = SyncCancelledError().message
            logger.warning("Sync %s cancelled", sync_id)
        elif isinstance(exc, SyncError):
            error_text = exc.message
            logger.error("Sync %s failed: %s", sync_id, error_text)
        else:
            error_text = str(exc) or type(exc).__name__
            logger.exception("Sync %s failed unexpectedly", sync_id)

        failure_message = FAILURE_MESSAGES[direction]
        try:
            await self.state.mark_error(direction, sync_id, failure_message, error_text)
            await self.notifications.error(f"{failure_message}: {error_text}")
        except Exception:
            # The original error is re-raised by the caller.
            logger.exception("Failed to record failure of sync %s", sync_id)
            return
        self._watch(direction, sync_id)

    def _watch(self, direction: SyncDirection, sync_id: str) -> None:
        self.poller.watch(
            sync_id,
            status_key(direction),
            functools.partial(self._on_watch_finished, sync_id),
        )

    @staticmethod
    def _on_watch_finished(sync_id: str, record: SyncStatus | None) -> None:
        if record is None:
            logger.debug("Stopped watching sync %s", sync_id)
        else:
            logger.debug("Sync %s settled as %s", sync_id, record.status)

    def _schedule_reload(self) -> None:
        if self._on_reload is None:
            return
        if self._reload_handle is not None:
            self._reload_handle.cancel()
        loop = asyncio.get_running_loop()
        delay = self._settings.reload_delay_seconds
        self._reload_handle = loop.call_later(delay, self._fire_reload)

    def _fire_reload(self) -> None:
        self._reload_handle = None
        if self._on_reload is None:
            return
        try:
            self._on_reload()
        except Exception:
            logger.exception("Reload callback failed")

    # ── Settings ─────────────────────────────────────────

    async def verify_connection(self, credentials: WebDAVCredentials | None = None) -> None:
        """Test the given (or saved) credentials against the server.

        Raises:
            ConfigurationMissingError, AuthFailedError, ServerError, TransportFailureError
        """
        if credentials is None:
            credentials = await self.preferences.load_credentials()
        if not credentials.is_complete:
            raise ConfigurationMissingError()
        await self.client.test_connection(credentials)

    async def save_settings(self, credentials: WebDAVCredentials) -> None:
        """Persist credentials, but only after they pass a connection test."""
        try:
            await self.verify_connection(credentials)
        except ConfigurationMissingError as exc:
            await self.notifications.error(exc.message)
            raise
        except SyncError as exc:
            await self.notifications.error(f"{CONNECTION_FAILED_MESSAGE}: {exc.message}")
            raise
        await self.preferences.save_credentials(credentials)
        await self.notifications.success(SETTINGS_SAVED_MESSAGE)

    async def set_auto_sync_enabled(self, enabled: bool) -> None:
        """Persist the auto-sync flag. Nothing in the engine schedules syncs from it."""
        await self.preferences.set_auto_sync_enabled(enabled)

    async def aclose(self) -> None:
        """Cancel watches, pending notification removals and the pending reload."""
        if self._reload_handle is not None:
            self._reload_handle.cancel()
            self._reload_handle = None
        await self.poller.aclose()
        await self.notifications.aclose()
