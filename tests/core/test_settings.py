"""Tests for BulkSettings and the cached settings factory."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from bulkops.core.config import BulkSettings, LogFormat, OutputFormat, get_settings
from bulkops.core.errors import InvalidConcurrencyError


class TestBulkSettings:
    def test_defaults(self):
        s = BulkSettings()
        assert s.concurrency == 4
        assert s.dry_run is False
        assert s.stop_on_first_error is False
        assert s.show_progress is True
        assert s.output_format is OutputFormat.TABLE
        assert s.log_format is LogFormat.CONSOLE

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("BULKOPS_CONCURRENCY", "8")
        monkeypatch.setenv("BULKOPS_DRY_RUN", "true")
        monkeypatch.setenv("BULKOPS_OUTPUT_FORMAT", "json")
        s = BulkSettings()
        assert s.concurrency == 8
        assert s.dry_run is True
        assert s.output_format is OutputFormat.JSON

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("BULKOPS_STOP_ON_FIRST_ERROR=1\n")
        assert BulkSettings().stop_on_first_error is True

    def test_rejects_zero_concurrency(self, monkeypatch):
        monkeypatch.setenv("BULKOPS_CONCURRENCY", "0")
        with pytest.raises(ValidationError):
            BulkSettings()


class TestExecutorConfig:
    def test_uses_settings_values(self):
        cfg = BulkSettings(concurrency=2, dry_run=True).executor_config()
        assert cfg.concurrency == 2
        assert cfg.dry_run is True
        assert cfg.stop_on_first_error is False

    def test_explicit_values_win_and_none_is_ignored(self):
        cfg = BulkSettings(concurrency=2, dry_run=True).executor_config(
            concurrency=6, dry_run=False, stop_on_first_error=None
        )
        assert cfg.concurrency == 6
        assert cfg.dry_run is False

    def test_invalid_override_raises_config_error(self):
        with pytest.raises(InvalidConcurrencyError):
            BulkSettings().executor_config(concurrency=0)


class TestGetSettings:
    def test_cached(self):
        assert get_settings() is get_settings()

    def test_force_reload(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("BULKOPS_CONCURRENCY", "3")
        assert get_settings() is first
        assert get_settings(_force_reload=True).concurrency == 3
