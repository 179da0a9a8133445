"""
Application settings management using Pydantic Settings.

Loads configuration from environment variables with type validation.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Upstream (Gripp API)
    # =========================================================================
    upstream_url: str = Field(
        default="https://api.gripp.com/public/api3.php",
        description="Gripp JSON-RPC endpoint",
    )
    upstream_api_key: SecretStr = Field(..., description="Gripp API token")
    upstream_timeout: float = Field(
        default=60.0, gt=0, description="Per-request timeout in seconds"
    )
    upstream_page_size: int = Field(
        default=250, ge=1, le=250, description="Rows per page (API maximum is 250)"
    )
    upstream_max_page_failures: int = Field(
        default=10, ge=1, description="Consecutive failed pages before a fetch aborts"
    )
    upstream_deadline: Optional[float] = Field(
        default=None, gt=0, description="Per-attempt deadline for sync fetches in seconds"
    )

    # =========================================================================
    # Retry and rate limiting
    # =========================================================================
    upstream_max_attempts: int = Field(
        default=3, ge=1, description="Attempts per request, including the first"
    )
    upstream_retry_delay: float = Field(
        default=1.0, ge=0, description="Initial backoff delay in seconds"
    )
    upstream_retry_max_delay: float = Field(
        default=30.0, ge=0, description="Upper bound for a single backoff delay"
    )
    upstream_retry_jitter: float = Field(
        default=1.0, ge=0, description="Maximum random jitter added to each delay"
    )
    upstream_rate_limit_requests: int = Field(
        default=5, ge=1, description="Requests allowed per rate-limit window"
    )
    upstream_rate_limit_window: float = Field(
        default=1.0, gt=0, description="Rate-limit window in seconds"
    )

    # =========================================================================
    # Local store
    # =========================================================================
    database_path: Path = Field(
        default=Path("data/mirror.sqlite"), description="SQLite database file"
    )

    # =========================================================================
    # Cache
    # =========================================================================
    cache_dir: Path = Field(
        default=Path("data/cache"), description="Directory for cache snapshots"
    )
    cache_persist: bool = Field(
        default=True, description="Mirror the data cache to a snapshot file"
    )
    cache_default_ttl: int = Field(
        default=86400, ge=1, description="Data cache TTL in seconds"
    )
    response_cache_ttl: int = Field(
        default=300, ge=1, description="Response cache TTL in seconds"
    )

    # =========================================================================
    # Sync
    # =========================================================================
    auto_sync_interval: int = Field(
        default=0, ge=0, description="Seconds between automatic syncs (0 disables)"
    )
    auto_sync_entities: list[str] = Field(
        default_factory=list,
        description="Entity types for automatic syncs (empty means all)",
    )
    incremental_lookback_days: int = Field(
        default=7, ge=0, description="Days before the last sync an incremental sync re-fetches"
    )
    sync_require_complete_pages: bool = Field(
        default=False,
        description="Fail a sync when any page could not be fetched instead of saving the rest",
    )

    # =========================================================================
    # Hours accounting
    # =========================================================================
    actual_hours_include_leave: bool = Field(
        default=False,
        description="Report actual hours as written + leave instead of written only",
    )

    # =========================================================================
    # Application Settings
    # =========================================================================
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Application environment"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3002, description="Server port")

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def auto_sync_enabled(self) -> bool:
        """Whether the periodic sync timer should run."""
        return self.auto_sync_interval > 0


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.
    
    Returns:
        Settings: Application configuration instance
    """
    return Settings()
