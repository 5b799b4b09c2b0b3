"""
Centralized settings for bulkops.

:class:`BulkSettings` is the one validated, cached source of truth for
the values a caller feeds into :class:`~bulkops.execution.executor.BulkExecutor`
(concurrency, dry-run, stop-on-first-error) plus the CLI's own knobs
(progress display, output format, log level).

The execution core never reads settings itself. Callers resolve a
:class:`BulkSettings`, then pass explicit values in through
:meth:`BulkSettings.executor_config`.
"""

from __future__ import annotations

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from bulkops.execution.models import ExecutorConfig


class OutputFormat(str, Enum):
    """How run summaries and log listings are printed."""

    TABLE = "table"
    JSON = "json"
    QUIET = "quiet"


class LogFormat(str, Enum):
    CONSOLE = "console"
    JSON = "json"


class BulkSettings(BaseSettings):
    """bulkops configuration.

    All fields can be set via ``BULKOPS_*`` environment variables (e.g.
    ``BULKOPS_CONCURRENCY=8``) or through a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="BULKOPS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Execution ────────────────────────────────────────────────
    concurrency: int = Field(default=4, ge=1, description="Max in-flight operations")
    dry_run: bool = Field(default=False)
    stop_on_first_error: bool = Field(default=False)

    # ── Display ──────────────────────────────────────────────────
    show_progress: bool = Field(default=True)
    output_format: OutputFormat = Field(default=OutputFormat.TABLE)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: LogFormat = Field(default=LogFormat.CONSOLE)

    # ── Paths ────────────────────────────────────────────────────
    log_dir: str = Field(default="logs", description="Where transaction logs are written")

    def executor_config(self, **overrides: object) -> ExecutorConfig:
        """Build an :class:`ExecutorConfig`, letting explicit values win."""
        values = {
            "concurrency": self.concurrency,
            "dry_run": self.dry_run,
            "stop_on_first_error": self.stop_on_first_error,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return ExecutorConfig(**values)


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, BulkSettings] = {}


def get_settings(*, _force_reload: bool = False) -> BulkSettings:
    """Load, validate, and cache a :class:`BulkSettings` instance."""
    if _force_reload or "default" not in _settings_cache:
        _settings_cache["default"] = BulkSettings()
    return _settings_cache["default"]


def clear_settings_cache() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    _settings_cache.clear()
