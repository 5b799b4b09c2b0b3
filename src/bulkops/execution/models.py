"""Execution models — value types shared by the bulk execution core.

WHY
───
Every component of a bulk run speaks in the same handful of values: the
item being worked on, the classified outcome of working on it, the audit
record written for it, and the summary handed back at the end.  Keeping
them together (and free of behaviour) means the scheduler, log, progress
reporter and renderers never depend on each other just to share a type.

ARCHITECTURE
────────────
::

    ItemEnvelope(id, payload)          ─ one unit of work, equality by id
    Outcome = Success | Failed | Skipped | DryRun
    TransactionRecord(run_id, timestamp, item_id, outcome, attempt)
    ProgressSnapshot / ProgressEvent   ─ counters + per-item event
    FailureInfo                        ─ item_id, error_kind, message
    RunSummary                         ─ aggregate over outcomes
    ExecutorConfig                     ─ concurrency, dry_run, stop_on_first_error

Related modules:
    ledger.py     — serialises TransactionRecord one JSON object per line
    progress.py   — produces ProgressSnapshot / ProgressEvent
    executor.py   — produces RunSummary
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Union

from bulkops.core.errors import InvalidConcurrencyError, InvalidItemIdError


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


# ── Item Envelope ────────────────────────────────────────────────────────


@dataclass(frozen=True, eq=False)
class ItemEnvelope:
    """One unit of remote work submitted to a bulk run.

    ``payload`` is whatever the operation callback needs; the core never
    reads or mutates it.  Equality and hashing use ``id`` only.
    """

    id: str
    payload: Any = None

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            raise InvalidItemIdError(self.id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ItemEnvelope):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


# ── Outcomes ─────────────────────────────────────────────────────────────


class OutcomeTag(str, Enum):
    """Discriminator written to the transaction log for each outcome."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
    DRY_RUN = "dry_run"


class SkipReason:
    """Reasons recorded on ``Skipped`` outcomes produced by the core."""

    ABORTED = "aborted"
    CANCELLED = "cancelled"
    ALREADY_COMPLETED = "already-completed"


@dataclass(frozen=True)
class Success:
    detail: Any = None
    tag = OutcomeTag.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return {"outcome": self.tag.value, "detail": self.detail}


@dataclass(frozen=True)
class Failed:
    error_kind: str
    message: str
    tag = OutcomeTag.FAILED

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.tag.value,
            "error_kind": self.error_kind,
            "message": self.message,
        }


@dataclass(frozen=True)
class Skipped:
    reason: str
    tag = OutcomeTag.SKIPPED

    def to_dict(self) -> dict[str, Any]:
        return {"outcome": self.tag.value, "reason": self.reason}


@dataclass(frozen=True)
class DryRun:
    would_do: Any = None
    tag = OutcomeTag.DRY_RUN

    def to_dict(self) -> dict[str, Any]:
        return {"outcome": self.tag.value, "would_do": self.would_do}


Outcome = Union[Success, Failed, Skipped, DryRun]


def outcome_from_dict(data: dict[str, Any]) -> Outcome:
    """Rebuild an outcome from its ``to_dict()`` form.

    Raises:
        ValueError: If the ``outcome`` tag is missing or unknown
    """
    tag = OutcomeTag(data.get("outcome"))
    if tag is OutcomeTag.SUCCESS:
        return Success(detail=data.get("detail"))
    if tag is OutcomeTag.FAILED:
        return Failed(error_kind=data.get("error_kind") or "", message=data.get("message") or "")
    if tag is OutcomeTag.SKIPPED:
        return Skipped(reason=data.get("reason") or "")
    return DryRun(would_do=data.get("would_do"))


# ── Transaction Record ───────────────────────────────────────────────────


@dataclass(frozen=True)
class TransactionRecord:
    """One durable, append-only audit entry per item outcome.

    ``(run_id, item_id)`` is unique: the scheduler writes exactly one
    record per item per run.  ``attempt`` is always 1; failed items are
    never retried within a run.
    """

    run_id: str
    item_id: str
    outcome: Outcome
    timestamp: datetime = field(default_factory=utcnow)
    attempt: int = 1

    @property
    def key(self) -> tuple[str, str]:
        return (self.run_id, self.item_id)

    def to_dict(self) -> dict[str, Any]:
        """Flatten to a single self-describing JSON object."""
        data: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "run_id": self.run_id,
            "item_id": self.item_id,
            "attempt": self.attempt,
        }
        data.update(self.outcome.to_dict())
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransactionRecord:
        return cls(
            run_id=data["run_id"],
            item_id=data["item_id"],
            outcome=outcome_from_dict(data),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            attempt=int(data.get("attempt", 1)),
        )


# ── Progress ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ProgressSnapshot:
    """Point-in-time copy of the progress counters."""

    dispatched: int = 0
    completed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    dry_run: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "dispatched": self.dispatched,
            "completed": self.completed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "dry_run": self.dry_run,
        }


@dataclass(frozen=True)
class ProgressEvent:
    """Published once per item completion, after its record is durable."""

    item_id: str
    outcome: Outcome
    counters: ProgressSnapshot

    @property
    def outcome_tag(self) -> OutcomeTag:
        return self.outcome.tag

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "outcome": self.outcome_tag.value,
            "counters": self.counters.to_dict(),
        }


# ── Run Summary ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FailureInfo:
    item_id: str
    error_kind: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"item_id": self.item_id, "error_kind": self.error_kind, "message": self.message}


@dataclass(frozen=True)
class RunSummary:
    """Aggregate result of one run, computed once all items are drained."""

    run_id: str
    total: int
    succeeded: int
    failed: int
    skipped: int
    dry_run: int
    duration_seconds: float
    first_error: FailureInfo | None = None
    failures: tuple[FailureInfo, ...] = ()
    cancelled: bool = False
    aborted: bool = False

    @property
    def is_complete_success(self) -> bool:
        return self.failed == 0

    @property
    def exit_code(self) -> int:
        """Process exit status a CLI should report for this run."""
        return 0 if self.failed == 0 else 1

    @classmethod
    def from_records(cls, records: list[TransactionRecord], run_id: str | None = None) -> RunSummary:
        """Rebuild a summary by replaying transaction records.

        Args:
            records: Records from :meth:`TransactionLog.read_all`
            run_id: Only count records of this run (default: the run of the
                last record)
        """
        if run_id is None and records:
            run_id = records[-1].run_id
        selected = [r for r in records if r.run_id == run_id]

        counts = {tag: 0 for tag in OutcomeTag}
        failures: list[FailureInfo] = []
        reasons: set[str] = set()
        for record in selected:
            counts[record.outcome.tag] += 1
            if isinstance(record.outcome, Failed):
                failures.append(
                    FailureInfo(record.item_id, record.outcome.error_kind, record.outcome.message)
                )
            elif isinstance(record.outcome, Skipped):
                reasons.add(record.outcome.reason)

        duration = 0.0
        if selected:
            stamps = [r.timestamp for r in selected]
            duration = (max(stamps) - min(stamps)).total_seconds()

        return cls(
            run_id=run_id or "",
            total=len(selected),
            succeeded=counts[OutcomeTag.SUCCESS],
            failed=counts[OutcomeTag.FAILED],
            skipped=counts[OutcomeTag.SKIPPED],
            dry_run=counts[OutcomeTag.DRY_RUN],
            duration_seconds=duration,
            first_error=failures[0] if failures else None,
            failures=tuple(failures),
            cancelled=SkipReason.CANCELLED in reasons,
            aborted=SkipReason.ABORTED in reasons,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise for logging / JSON output."""
        return {
            "run_id": self.run_id,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "dry_run": self.dry_run,
            "duration_seconds": self.duration_seconds,
            "first_error": self.first_error.to_dict() if self.first_error else None,
            "failures": [f.to_dict() for f in self.failures],
            "cancelled": self.cancelled,
            "aborted": self.aborted,
        }


# ── Configuration ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ExecutorConfig:
    """Caller-supplied knobs for one run.

    Defaults follow the bulk CLI: four workers, real execution, keep going
    after failures.
    """

    concurrency: int = 4
    dry_run: bool = False
    stop_on_first_error: bool = False

    def __post_init__(self) -> None:
        if (
            not isinstance(self.concurrency, int)
            or isinstance(self.concurrency, bool)
            or self.concurrency < 1
        ):
            raise InvalidConcurrencyError(self.concurrency)
