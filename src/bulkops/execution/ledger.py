"""Transaction log — durable, append-only record of per-item outcomes.

WHY
───
A bulk run that dies halfway through (crash, Ctrl-C, full disk) must
leave behind an exact account of which items were touched and how.
Without it a re-run cannot tell completed items from pending ones and
would either skip work or mutate the same remote object twice.

ARCHITECTURE
────────────
::

    TransactionLog (protocol)
      ├── .open()        ─ fail fast if the sink is unusable
      ├── .append(rec)   ─ atomic, thread-safe, one record per call
      ├── .read_all()    ─ replay every record written so far
      └── .close()

    JsonlTransactionLog(path)    one JSON object per line, fsync per append
    MemoryTransactionLog()       list-backed, for tests and embedding

    completed_item_ids(records)  ─ resume helper: ids that already succeeded

The log is a pure recorder: it never deduplicates or validates outcomes.
Any failure to open, write or read raises
:class:`~bulkops.core.errors.LogSinkError`, which aborts the run.

Record format (one line)::

    {"timestamp": "...", "run_id": "...", "item_id": "PROJ-1", "attempt": 1,
     "outcome": "failed", "error_kind": "RemoteRejected", "message": "..."}

Related modules:
    models.py    — TransactionRecord
    scheduler.py — appends one record per item, before publishing progress
"""

from __future__ import annotations

import json
import os
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import IO, Protocol, runtime_checkable

from bulkops.core.errors import LogSinkError
from bulkops.core.logging import get_logger
from bulkops.execution.models import OutcomeTag, TransactionRecord

logger = get_logger(__name__)


@runtime_checkable
class TransactionLog(Protocol):
    """Sink for transaction records; must be internally synchronised."""

    def open(self) -> None: ...

    def append(self, record: TransactionRecord) -> None: ...

    def read_all(self) -> list[TransactionRecord]: ...

    def close(self) -> None: ...


class JsonlTransactionLog:
    """Append-only JSON-lines file.

    Each :meth:`append` writes one complete line under a lock, flushes and
    fsyncs before returning, so a record is durable by the time anyone is
    told about it.  Appending to an existing file keeps earlier runs'
    records; ``run_id`` tells them apart.
    """

    def __init__(self, path: str | Path, *, fsync: bool = True):
        self.path = Path(path)
        self._fsync = fsync
        self._lock = threading.Lock()
        self._handle: IO[str] | None = None

    def open(self) -> None:
        """Open (creating parent directories) for appending.

        A torn final line left by a crashed writer is truncated first, so
        new records always start on a line of their own.

        Raises:
            LogSinkError: If the file cannot be created or opened
        """
        with self._lock:
            if self._handle is not None:
                return
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._truncate_torn_tail()
                self._handle = self.path.open("a", encoding="utf-8")
            except OSError as e:
                raise LogSinkError(
                    f"cannot open transaction log {self.path}: {e}", cause=e
                ).with_context(path=str(self.path)) from e

    def _truncate_torn_tail(self) -> None:
        if not self.path.is_file():
            return
        with self.path.open("rb+") as handle:
            size = handle.seek(0, os.SEEK_END)
            if size == 0:
                return
            handle.seek(size - 1)
            if handle.read(1) == b"\n":
                return
            handle.seek(0)
            keep = handle.read().rfind(b"\n") + 1
            handle.truncate(keep)
            handle.flush()
            if self._fsync:
                os.fsync(handle.fileno())
        logger.warning("bulk.log.torn_line_truncated", path=str(self.path), dropped_bytes=size - keep)

    def append(self, record: TransactionRecord) -> None:
        """Durably append one record.

        Raises:
            LogSinkError: If the line cannot be fully written and synced
        """
        line = json.dumps(record.to_dict(), default=str, ensure_ascii=False) + "\n"
        if self._handle is None:
            self.open()
        with self._lock:
            handle = self._handle
            if handle is None:
                raise LogSinkError(f"transaction log {self.path} is closed").with_context(
                    path=str(self.path), item_id=record.item_id
                )
            try:
                handle.write(line)
                handle.flush()
                if self._fsync:
                    os.fsync(handle.fileno())
            except (OSError, ValueError) as e:
                logger.error(
                    "bulk.log.write_failed",
                    path=str(self.path),
                    item_id=record.item_id,
                    error=str(e),
                )
                raise LogSinkError(
                    f"cannot write transaction log {self.path}: {e}", cause=e
                ).with_context(path=str(self.path), item_id=record.item_id) from e

    def read_all(self) -> list[TransactionRecord]:
        """Replay every record in the file, in the order they were appended.

        A torn final line (process killed mid-write) is ignored; any other
        malformed line raises.

        Raises:
            LogSinkError: If the file cannot be read or a line is malformed
        """
        if not self.path.exists():
            return []
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                lines = handle.read().split("\n")
        except OSError as e:
            raise LogSinkError(
                f"cannot read transaction log {self.path}: {e}", cause=e
            ).with_context(path=str(self.path)) from e

        records: list[TransactionRecord] = []
        last = len(lines) - 1
        for lineno, line in enumerate(lines):
            if not line.strip():
                continue
            try:
                records.append(TransactionRecord.from_dict(json.loads(line)))
            except (ValueError, KeyError, TypeError) as e:
                if lineno == last:
                    logger.warning("bulk.log.torn_line", path=str(self.path), line=lineno + 1)
                    break
                raise LogSinkError(
                    f"malformed record on line {lineno + 1} of {self.path}: {e}", cause=e
                ).with_context(path=str(self.path)) from e
        return records

    def close(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.close()
                self._handle = None

    def __enter__(self) -> JsonlTransactionLog:
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class MemoryTransactionLog:
    """In-memory log; records live only as long as the object."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: list[TransactionRecord] = []

    def open(self) -> None:
        return None

    def append(self, record: TransactionRecord) -> None:
        with self._lock:
            self._records.append(record)

    def read_all(self) -> list[TransactionRecord]:
        with self._lock:
            return list(self._records)

    def close(self) -> None:
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


# ── Resume helpers ───────────────────────────────────────────────────────


def completed_item_ids(records: Iterable[TransactionRecord]) -> set[str]:
    """Ids that reached ``Success`` in any of the given records."""
    return {r.item_id for r in records if r.outcome.tag is OutcomeTag.SUCCESS}


def run_ids(records: Iterable[TransactionRecord]) -> list[str]:
    """Distinct run ids in first-seen order."""
    seen: dict[str, None] = {}
    for record in records:
        seen.setdefault(record.run_id, None)
    return list(seen)
