"""
Astral Application Settings

Configuration management using Pydantic Settings.
All values can be overridden with ASTRAL_* environment variables.

SECURITY: Never log or expose settings containing secrets.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class CrisisSettings(BaseSettings):
    """Crisis analysis and escalation configuration."""

    model_config = SettingsConfigDict(env_prefix="ASTRAL_CRISIS_")

    min_analysis_length: int = Field(default=10, ge=1, le=1000, description="Shortest text that is analyzed")
    debounce_ms: int = Field(default=500, ge=0, le=10000, description="Debounce window for typed input")
    constrained_debounce_ms: int = Field(
        default=1000,
        ge=0,
        le=10000,
        description="Debounce window on low-end devices or slow connections",
    )
    history_size: int = Field(default=100, ge=1, le=10000, description="Analysis ring buffer capacity")
    alert_threshold: Literal["low", "medium", "high", "critical"] = Field(
        default="low",
        description="Lowest risk level that surfaces an alert",
    )
    ruleset_path: Optional[str] = Field(default=None, description="Optional JSON keyword ruleset")


class SyncSettings(BaseSettings):
    """Offline sync queue configuration."""

    model_config = SettingsConfigDict(env_prefix="ASTRAL_SYNC_")

    endpoint_url: str = Field(default="http://localhost:8080/api/sync", description="Remote sync endpoint")
    api_token: SecretStr = Field(default=SecretStr(""), description="Bearer token for the sync endpoint")
    request_timeout_seconds: float = Field(default=10.0, gt=0, le=120)
    base_delay_seconds: float = Field(default=1.0, gt=0, le=600)
    backoff_multiplier: float = Field(default=2.0, ge=1.0, le=10.0)
    max_delay_seconds: float = Field(default=60.0, gt=0, le=3600)
    max_retries: int = Field(default=5, ge=1, le=50)
    flush_interval_seconds: float = Field(default=30.0, gt=0, le=3600)


class NetworkSettings(BaseSettings):
    """Connectivity monitoring configuration."""

    model_config = SettingsConfigDict(env_prefix="ASTRAL_NETWORK_")

    coalesce_window_ms: int = Field(default=300, ge=0, le=5000, description="Flap suppression window")
    check_interval_seconds: float = Field(default=15.0, gt=0, le=3600)


class StorageSettings(BaseSettings):
    """Durable local storage configuration."""

    model_config = SettingsConfigDict(env_prefix="ASTRAL_STORAGE_")

    url: str = Field(default="sqlite+aiosqlite:///./astral_offline.db", description="SQLAlchemy async URL")
    usage_refresh_seconds: float = Field(default=30.0, gt=0, le=3600)
    quota_bytes: int = Field(default=50 * 1024 * 1024, ge=0, description="Fallback quota when no estimate exists")


class ResourceSettings(BaseSettings):
    """Crisis resource catalogue configuration."""

    model_config = SettingsConfigDict(env_prefix="ASTRAL_RESOURCES_")

    catalogue_path: Optional[str] = Field(default=None, description="Optional JSON resource catalogue")
    default_country: str = Field(default="US", min_length=2, max_length=4)
    default_language: str = Field(default="en", min_length=2, max_length=8)


class SentrySettings(BaseSettings):
    """Sentry error tracking configuration."""

    model_config = SettingsConfigDict(env_prefix="ASTRAL_SENTRY_")

    dsn: SecretStr = Field(default=SecretStr(""), description="Sentry DSN (disabled when empty)")
    traces_sample_rate: float = Field(default=0.0, ge=0.0, le=1.0)


class Settings(BaseSettings):
    """
    Main application settings.

    All configuration is loaded from environment variables with ASTRAL_ prefix.
    Sensitive values use SecretStr to prevent accidental logging.

    Usage:
        settings = get_settings()
        delay = settings.sync.base_delay_seconds
    """

    model_config = SettingsConfigDict(
        env_prefix="ASTRAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    env: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    debug: bool = Field(default=False, description="Debug mode - NEVER enable in production")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level"
    )
    api_version: str = Field(default="v1", description="API version prefix")
    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    # Nested settings
    crisis: CrisisSettings = Field(default_factory=CrisisSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    network: NetworkSettings = Field(default_factory=NetworkSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    resources: ResourceSettings = Field(default_factory=ResourceSettings)
    sentry: SentrySettings = Field(default_factory=SentrySettings)

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.
    For testing, construct Settings directly and inject it.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
