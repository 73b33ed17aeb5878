"""Unit tests for application settings and logging setup."""

import io
import json
import logging
from datetime import timedelta
from pathlib import Path

import pydantic
import pytest
import structlog

from lostfound.observability import (
    bind_job_context,
    clear_job_context,
    configure_logging,
    level_from_name,
)
from lostfound.settings import AppSettings


class TestAppSettings:
    """Tests for AppSettings."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test default values."""
        monkeypatch.chdir(tmp_path)
        settings = AppSettings()

        assert settings.donation_age() == timedelta(days=365)
        assert settings.archive_retention() == timedelta(days=365)
        assert settings.archive_batch_size == 500
        assert settings.store_max_batch_ops == 1000
        assert settings.retry_policy().max_retries == 3

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test LOSTFOUND_* variables override defaults."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("LOSTFOUND_DONATION_AGE_DAYS", "30")
        monkeypatch.setenv("LOSTFOUND_RETRY_MAX_RETRIES", "1")
        monkeypatch.setenv("LOSTFOUND_DB_PATH", str(tmp_path / "x.sqlite"))

        settings = AppSettings()

        assert settings.donation_age() == timedelta(days=30)
        assert settings.retry_policy().max_retries == 1
        assert settings.db_path == tmp_path / "x.sqlite"

    def test_invalid_value(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test out-of-range values are rejected."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("LOSTFOUND_ARCHIVE_BATCH_SIZE", "0")
        with pytest.raises(pydantic.ValidationError):
            AppSettings()


class TestLogging:
    """Tests for structlog configuration."""

    def test_json_output_with_job_context(self) -> None:
        """Test JSON lines carry bound job context."""
        output = io.StringIO()
        configure_logging(level=logging.INFO, output=output, json_format=True)
        bind_job_context("run-1", "eligibility-sweep")
        try:
            structlog.get_logger().info("sweep_started", threshold_days=365)
        finally:
            clear_job_context()

        record = json.loads(output.getvalue().strip().splitlines()[-1])
        assert record["event"] == "sweep_started"
        assert record["job_id"] == "run-1"
        assert record["job_name"] == "eligibility-sweep"
        assert record["level"] == "info"

    def test_level_filtering(self) -> None:
        """Test events below the level are dropped."""
        output = io.StringIO()
        configure_logging(level=logging.WARNING, output=output, json_format=True)
        structlog.get_logger().info("quiet")
        assert output.getvalue() == ""

    def test_level_from_name(self) -> None:
        """Test level names translate to logging levels."""
        assert level_from_name("debug") == logging.DEBUG
        assert level_from_name("nonsense") == logging.INFO
