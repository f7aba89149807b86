"""Application configuration using pydantic-settings."""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite:///./provider_sync.db"

    # Provider calls
    PROVIDER_TIMEOUT_SECONDS: float = 30.0
    MAX_PAGINATION_PAGES: int = 100

    # Transaction fetch window
    FULL_HISTORY_DAYS: int = 3 * 365
    INCREMENTAL_OVERLAP_DAYS: int = 30
    INCREMENTAL_MIN_EXISTING: int = 10

    # Sync bookkeeping
    MAX_RECORDED_ERRORS: int = 10
    SYNC_STALE_AFTER_MINUTES: int = 60

    # Zero-balance inactivity heuristic
    INACTIVITY_ENABLED: bool = True
    INACTIVITY_THRESHOLD: int = 3

    # Background work (rq)
    REDIS_URL: str = "redis://localhost:6379/0"
    BACKGROUND_QUEUE_NAME: str = "account_syncs"
    BACKGROUND_JOB_TIMEOUT: int = 600
    BACKGROUND_TASK_MODULE: str = "tasks"

    # Instrument resolution
    SECURITY_RESOLVER_ENABLED: bool = True

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize LOG_LEVEL to an uppercase Python logging level."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"LOG_LEVEL must be one of {valid}, got {v!r}")
        return v.upper()

    @field_validator("MAX_PAGINATION_PAGES", "INACTIVITY_THRESHOLD")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Reject ceilings and thresholds that would never trip."""
        if v < 1:
            raise ValueError(f"must be at least 1, got {v}")
        return v

    # App settings
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"


settings = Settings()
