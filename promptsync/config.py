"""Engine configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """promptsync engine settings.

    Credentials are not part of the environment configuration: they live in the
    durable settings scope of the key-value store and are managed by
    ``SettingsService``.
    """

    model_config = SettingsConfigDict(
        env_prefix="PROMPTSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    debug: bool = False

    # Storage
    data_dir: Path = Path("./data")
    prompts_key: str = Field(default="userPrompts", min_length=1)
    categories_key: str = Field(default="userCategories", min_length=1)

    # Transport
    request_timeout_seconds: float | None = Field(default=30.0, gt=0)
    max_retries: int = Field(default=0, ge=0, le=10)
    retry_backoff_seconds: float = Field(default=0.5, ge=0)

    # Status tracking
    poll_interval_seconds: float = Field(default=2.0, gt=0)
    poll_timeout_seconds: float | None = Field(default=None, gt=0)
    notification_ttl_seconds: float = Field(default=5.0, ge=0)
    reload_delay_seconds: float = Field(default=1.5, ge=0)

    # One in-flight guard shared by push and pull
    share_direction_guard: bool = True

    @property
    def settings_store_path(self) -> Path:
        """JSON file backing the durable settings scope."""
        return self.data_dir / "settings.json"

    @property
    def local_store_path(self) -> Path:
        """JSON file backing the local state scope."""
        return self.data_dir / "local.json"

    def validate_storage_keys(self) -> None:
        """Reject configurations where both collections share one storage key."""
        if self.prompts_key == self.categories_key:
            msg = (
                "PROMPTS_KEY and CATEGORIES_KEY must differ "
                f"(both are {self.prompts_key!r})"
            )
            raise ValueError(msg)
