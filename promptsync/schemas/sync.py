"""Sync schemas: credentials, the wire document and status records."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_SYNC_PATH = "/quick-prompt/prompts.json"
SYNC_DOCUMENT_VERSION = 1


class SyncDirection(StrEnum):
    """Which way a sync moves data."""

    PUSH = "push"  # local -> remote
    PULL = "pull"  # remote -> local


class MergeMode(StrEnum):
    """How a downloaded document combines with local collections."""

    REPLACE = "replace"
    APPEND = "append"


class SyncState(StrEnum):
    """Lifecycle state of a sync status record."""

    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not SyncState.IN_PROGRESS


class WebDAVCredentials(BaseModel):
    """Connection settings for the WebDAV server."""

    model_config = ConfigDict(frozen=True)

    server_url: str = ""
    username: str = ""
    password: str = Field(default="", repr=False)
    sync_path: str = DEFAULT_SYNC_PATH

    @field_validator("server_url", "username", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("sync_path", mode="before")
    @classmethod
    def _normalize_sync_path(cls, value: Any) -> Any:
        if value is None:
            return DEFAULT_SYNC_PATH
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return DEFAULT_SYNC_PATH
            if not value.startswith("/"):
                return f"/{value}"
        return value

    @property
    def is_complete(self) -> bool:
        """Whether server URL, username and password are all set."""
        return bool(self.server_url and self.username and self.password)

    @property
    def base_url(self) -> str:
        return self.server_url.rstrip("/")

    @property
    def document_url(self) -> str:
        """URL of the sync document (PUT/GET target)."""
        return self.base_url + self.sync_path

    @property
    def collection_url(self) -> str | None:
        """URL of the document's parent collection, None when it is the server root."""
        parent = self.sync_path[: self.sync_path.rfind("/")]
        if not parent:
            return None
        return self.base_url + parent


class SyncDocument(BaseModel):
    """The single JSON document holding the whole synchronized dataset.

    Prompt and category records are opaque apart from their ``id`` field.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    version: Any = SYNC_DOCUMENT_VERSION
    exported_at: str | None = Field(default=None, alias="exportedAt")
    prompts: list[dict[str, Any]]
    categories: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("exported_at", mode="before")
    @classmethod
    def _ignore_non_string_export_time(cls, value: Any) -> Any:
        return value if isinstance(value, str) else None

    @field_validator("categories", mode="before")
    @classmethod
    def _default_categories(cls, value: Any) -> Any:
        return [] if value is None else value

    def to_wire(self) -> dict[str, Any]:
        """Serialize with the camelCase field names used on the server."""
        return self.model_dump(by_alias=True, exclude_none=True)


class SyncStatus(BaseModel):
    """Lifecycle record of one sync operation, stored in the local state scope."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    status: SyncState
    start_time: int | None = Field(default=None, alias="startTime")
    completed_time: int | None = Field(default=None, alias="completedTime")
    message: str | None = None
    error: str | None = None

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class NotificationRecord(BaseModel):
    """Short-lived success/error message a presentation layer may show as a toast."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    status: SyncState
    message: str
    completed_time: int = Field(alias="completedTime")

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
