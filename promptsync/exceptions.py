"""Sync error taxonomy.

Convention:
- Every failure the engine reports is a ``SyncError``. ``category`` is the
  short user-facing label (e.g. "WebDAV authentication failed") and ``detail``
  the underlying HTTP status or transport message, when there is one.
- ``str(exc)`` combines both and is what ends up in the ``error`` field of a
  terminal sync status record and in the error notification.
- ``ConfigurationMissingError`` and ``AlreadyRunningError`` are raised before
  any status record is written or any request is sent.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for every error surfaced by the sync engine."""

    category = "WebDAV sync failed"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail
        super().__init__(self.message)

    @property
    def message(self) -> str:
        if self.detail:
            return f"{self.category}: {self.detail}"
        return self.category


class ConfigurationMissingError(SyncError):
    """Raised when server URL, username or password is not configured."""

    category = "WebDAV is not configured"


class AlreadyRunningError(SyncError):
    """Raised when a sync is requested while another one is still in flight."""

    category = "A sync task is already in progress"

    def __init__(self, sync_id: str) -> None:
        self.sync_id = sync_id
        super().__init__(f"sync id {sync_id}")


class AuthFailedError(SyncError):
    """Raised when the WebDAV server answers 401."""

    category = "WebDAV authentication failed"
    status_code = 401


class RemoteNotFoundError(SyncError):
    """Raised when the remote sync document does not exist (HTTP 404)."""

    category = "Remote sync file does not exist"
    status_code = 404


class MalformedRemoteDocumentError(SyncError):
    """Raised when the downloaded document is not a usable sync document."""

    category = "Invalid WebDAV data format"


class TransportFailureError(SyncError):
    """Raised on network-level failures (DNS, TLS, connect, timeout)."""

    category = "WebDAV server unreachable"


class ServerError(SyncError):
    """Raised for any other non-success HTTP status."""

    category = "WebDAV request failed"

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}")


class SyncCancelledError(SyncError):
    """Recorded as the terminal error when a running sync task is cancelled.

    Never raised to callers: the task re-raises ``asyncio.CancelledError``.
    """

    category = "Sync cancelled"
