"""
Shared pytest fixtures for bulkops tests.

Provides:
- Logging routed to an in-memory buffer so worker threads never write to
  a stream a previous test closed
- Settings cache isolation
- Item / log factories
"""

import io
import sys
from pathlib import Path
from typing import Generator

import pytest

# Ensure bulkops package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from bulkops.core.config import clear_settings_cache
from bulkops.core.logging import configure_logging
from bulkops.execution.ledger import JsonlTransactionLog, MemoryTransactionLog
from bulkops.execution.models import ItemEnvelope


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark every test without an explicit marker as a unit test."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def log_buffer() -> Generator[io.StringIO, None, None]:
    """Send structured logs to a fresh buffer for every test."""
    buf = io.StringIO()
    configure_logging(level="DEBUG", json_format=True, output=buf)
    yield buf


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[None, None, None]:
    """Drop cached settings and any BULKOPS_* variables from the environment."""
    import os

    for key in list(os.environ):
        if key.startswith("BULKOPS_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    yield
    clear_settings_cache()


# =============================================================================
# Factories
# =============================================================================


def _make_items(count: int, prefix: str = "item") -> list[ItemEnvelope]:
    return [ItemEnvelope(id=f"{prefix}-{i}", payload={"n": i}) for i in range(count)]


@pytest.fixture
def make_items():
    """Factory: ``make_items(3)`` gives ids ``item-0`` .. ``item-2`` with payload ``{"n": i}``."""
    return _make_items


@pytest.fixture
def memory_log() -> MemoryTransactionLog:
    return MemoryTransactionLog()


@pytest.fixture
def jsonl_log(tmp_path: Path) -> Generator[JsonlTransactionLog, None, None]:
    log = JsonlTransactionLog(tmp_path / "logs" / "run.jsonl")
    yield log
    log.close()
