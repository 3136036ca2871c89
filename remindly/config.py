"""Application configuration via pydantic-settings.

All deployment settings are loaded from environment variables (.env file).
Settings are organized into logical groups and composed into a single Settings object.

User-editable preferences (webhook URL, remote store location) are NOT here —
they live in the persisted AppSettings entity (see remindly.schemas.settings).
"""

from __future__ import annotations

import math

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Local database and Redis connection settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./remindly.db",
        description="Async SQLAlchemy URL for the local record store",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection string (in-flight dispatch guard)",
    )

    @property
    def database_url_sync(self) -> str:
        """Synchronous database URL for Alembic migrations."""
        return self.database_url.replace("+aiosqlite", "").replace("+asyncpg", "")


class RemoteSettings(BaseSettings):
    """Git-hosting contents API used by the remote file store."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    github_api_url: str = Field(default="https://api.github.com", description="Contents API base URL")
    remote_timeout: float = Field(default=10.0, description="Remote store request timeout in seconds")
    remote_max_bytes: int = Field(
        default=1_048_576,
        description="Largest encoded snapshot accepted by the contents API (1 MiB)",
    )


class ReminderSettings(BaseSettings):
    """Outbound reminder webhook settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    webhook_timeout: float = Field(default=15.0, description="Reminder webhook timeout in seconds")
    inflight_ttl: int | None = Field(
        default=None,
        description="Seconds an in-flight dispatch lock survives if never released (floor: the slowest trigger)",
    )


class SecuritySettings(BaseSettings):
    """Encryption settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    encryption_key: str = Field(
        default="",
        description="32-byte AES key, base64 encoded (protects the remote credential at rest)",
    )


class Settings(BaseSettings):
    """Root settings composing all sub-settings.

    Usage:
        settings = Settings()
        settings.storage.database_url
        settings.reminders.webhook_timeout
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)

    # Composed settings (loaded from same .env)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    remote: RemoteSettings = Field(default_factory=RemoteSettings)
    reminders: ReminderSettings = Field(default_factory=ReminderSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            msg = f"Invalid log level: {v}. Must be one of {valid}"
            raise ValueError(msg)
        return upper

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def inflight_lock_ttl(self) -> int:
        """Lock lifetime covering the slowest trigger.

        A trigger makes at most five remote round trips (settings and
        appointments reads, then mark_sent's two reads and one write) plus
        the webhook call. A configured ``inflight_ttl`` can only raise it.
        """
        slowest = math.ceil(self.reminders.webhook_timeout + 5 * self.remote.remote_timeout)
        return max(self.reminders.inflight_ttl or 0, slowest)


# Module-level singleton — import this wherever settings are needed.
settings = Settings()
