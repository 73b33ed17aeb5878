"""Application settings powered by Pydantic BaseSettings."""

from datetime import timedelta
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from lostfound.retry import RetryPolicy


class AppSettings(BaseSettings):
    """Centralized environment configuration (``LOSTFOUND_*`` variables)."""

    model_config = SettingsConfigDict(
        env_prefix="LOSTFOUND_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    db_path: Path = Path("state/lostfound.sqlite")
    donation_age_days: int = Field(default=365, ge=1)
    archive_retention_days: int = Field(default=365, ge=1)
    archive_batch_size: int = Field(default=500, ge=1)
    store_max_batch_ops: int = Field(default=1000, ge=2)
    search_window: int = Field(default=1000, ge=1)
    default_page_size: int = Field(default=50, ge=1, le=1000)
    cache_ttl_seconds: float = Field(default=300.0, ge=0)
    donation_stats_ttl_seconds: float = Field(default=600.0, ge=0)
    retry_max_retries: int = Field(default=3, ge=0, le=10)
    retry_initial_delay_ms: int = Field(default=1000, ge=0)
    retry_max_delay_ms: int = Field(default=10000, ge=0)
    retry_factor: float = Field(default=2.0, ge=1.0)
    io_workers: int = Field(default=4, ge=1)
    compute_workers: int = Field(default=2, ge=1)
    log_json: bool = True
    log_level: str = "INFO"

    def retry_policy(self) -> RetryPolicy:
        """Retry policy built from the ``retry_*`` settings."""
        return RetryPolicy(
            max_retries=self.retry_max_retries,
            initial_delay_ms=self.retry_initial_delay_ms,
            max_delay_ms=self.retry_max_delay_ms,
            factor=self.retry_factor,
        )

    def donation_age(self) -> timedelta:
        """Minimum item age for donation eligibility."""
        return timedelta(days=self.donation_age_days)

    def archive_retention(self) -> timedelta:
        """Ledger entries older than this are archived."""
        return timedelta(days=self.archive_retention_days)


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
