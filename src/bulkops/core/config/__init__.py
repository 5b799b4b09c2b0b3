"""Centralized configuration.

Quick start::

    from bulkops.core.config import get_settings

    settings = get_settings()
    executor = BulkExecutor.from_config(settings.executor_config())
"""

from .settings import (
    BulkSettings,
    LogFormat,
    OutputFormat,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "BulkSettings",
    "LogFormat",
    "OutputFormat",
    "clear_settings_cache",
    "get_settings",
]
