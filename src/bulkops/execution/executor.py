"""Bulk executor — one entry point that drives a run to its summary.

WHY
───
Callers (a CLI command that transitions issues, a script that deletes
stale branches) want to say "apply this operation to these items" and
get back counts and the first error.  The facade validates the
configuration, wires the transaction log, progress reporter and
scheduler together, and turns the scheduler's per-item outcomes into a
:class:`~bulkops.execution.models.RunSummary`.

ARCHITECTURE
────────────
::

    BulkExecutor(concurrency, dry_run, stop_on_first_error, log=...)
      ├── .run(items, operation)  ─ validate → open log → schedule → summary
      ├── .cancel()               ─ cooperative, from any thread
      ├── .progress               ─ live ProgressReporter (snapshot/subscribe)
      ├── .run_id                 ─ key prefix for this run's records
      └── .reset()                ─ fresh run id + counters for another run

    One instance performs exactly one run; call reset() (or build a new
    executor) before running again, so records of two runs never share
    a run id.

Error handling
──────────────
- Configuration errors (concurrency < 1, empty/duplicate ids in a
  sequence, reuse) raise before anything is dispatched or logged.
- An unwritable log raises :class:`LogSinkError` before dispatch, or
  aborts the run if it fails midway.
- Callback failures are never raised: they are counted in the summary.

Example::

    executor = BulkExecutor(concurrency=4, log=JsonlTransactionLog("run.jsonl"))
    summary = executor.run(envelopes(keys), BulkOperation(apply=transition, preview=describe))
    if summary.failed:
        print(summary.first_error)
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Collection, Iterable, Sequence

from bulkops.core.errors import (
    BulkOpsError,
    DuplicateItemError,
    ExecutorReusedError,
    InvalidItemIdError,
    categorize_error,
)
from bulkops.core.logging import LogContext, get_logger
from bulkops.execution.ledger import MemoryTransactionLog, TransactionLog
from bulkops.execution.models import ExecutorConfig, ItemEnvelope, RunSummary
from bulkops.execution.operation import Operation
from bulkops.execution.progress import ProgressListener, ProgressReporter
from bulkops.execution.scheduler import CancellationToken, ConcurrencyScheduler

logger = get_logger(__name__)


class BulkExecutor:
    """Apply one operation to many items with bounded concurrency.

    Parameters
    ----------
    concurrency : int
        Maximum simultaneous operation callbacks (default 4).
    dry_run : bool
        Ask the operation for previews instead of mutating anything.
    stop_on_first_error : bool
        Stop dispatching once any item fails.
    log : TransactionLog, optional
        Where transaction records go (default: in-memory).
    listeners : list, optional
        Progress listeners subscribed before the run starts.
    completed_ids : collection of str, optional
        Ids already completed by an earlier run; reported as
        ``Skipped("already-completed")`` without invoking the operation.
    run_id : str, optional
        Identifier stamped on every record (default: a fresh uuid4 hex).
    """

    def __init__(
        self,
        concurrency: int = 4,
        dry_run: bool = False,
        *,
        stop_on_first_error: bool = False,
        log: TransactionLog | None = None,
        listeners: list[ProgressListener] | None = None,
        completed_ids: Collection[str] | None = None,
        run_id: str | None = None,
    ) -> None:
        self._config = ExecutorConfig(
            concurrency=concurrency,
            dry_run=dry_run,
            stop_on_first_error=stop_on_first_error,
        )
        self._log: TransactionLog = log if log is not None else MemoryTransactionLog()
        self._listeners = list(listeners or [])
        self._completed_ids = frozenset(completed_ids or ())
        self._token = CancellationToken()
        self._run_id = run_id or uuid.uuid4().hex
        self._progress = ProgressReporter(self._listeners)
        self._used = False

    @classmethod
    def from_config(cls, config: ExecutorConfig, **kwargs) -> BulkExecutor:
        """Build an executor from an :class:`ExecutorConfig`."""
        return cls(
            concurrency=config.concurrency,
            dry_run=config.dry_run,
            stop_on_first_error=config.stop_on_first_error,
            **kwargs,
        )

    # ── Inspection ───────────────────────────────────────────────────

    @property
    def config(self) -> ExecutorConfig:
        return self._config

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def progress(self) -> ProgressReporter:
        return self._progress

    @property
    def log(self) -> TransactionLog:
        return self._log

    # ── Control ──────────────────────────────────────────────────────

    def cancel(self) -> None:
        """Stop dispatching new items; in-flight operations finish normally."""
        if not self._token.cancelled:
            logger.info("bulk.run.cancel_requested", run_id=self._run_id)
        self._token.cancel()

    def reset(self) -> None:
        """Prepare for another run with a fresh run id and counters."""
        self._token = CancellationToken()
        self._run_id = uuid.uuid4().hex
        self._progress = ProgressReporter(self._listeners)
        self._used = False

    # ── Execution ────────────────────────────────────────────────────

    def run(self, items: Iterable[ItemEnvelope], operation: Operation) -> RunSummary:
        """Drive one run to completion and summarise it.

        Blocks until every item has a recorded outcome, or the run is
        cancelled (items pulled after the cancel are recorded as skipped).

        Raises:
            ConfigError: Invalid input or executor reuse; nothing ran
            LogSinkError: The transaction log could not be written
        """
        if self._used:
            raise ExecutorReusedError(self._run_id)
        self._used = True

        if isinstance(items, Sequence):
            _validate_ids(items)

        with LogContext(run_id=self._run_id):
            self._log.open()
            logger.info(
                "bulk.run.start",
                concurrency=self._config.concurrency,
                dry_run=self._config.dry_run,
                stop_on_first_error=self._config.stop_on_first_error,
                total=len(items) if isinstance(items, Sequence) else None,
            )

            scheduler = ConcurrencyScheduler(
                self._config,
                operation,
                run_id=self._run_id,
                log=self._log,
                progress=self._progress,
                token=self._token,
                completed_ids=self._completed_ids,
            )
            started = time.monotonic()
            try:
                scheduler.run(items)
            except Exception as e:
                logger.error(
                    "bulk.run.aborted",
                    error=str(e),
                    error_type=type(e).__name__,
                    category=categorize_error(e).value,
                    context=e.context.to_dict() if isinstance(e, BulkOpsError) else None,
                )
                raise
            finally:
                self._log.close()
            duration = time.monotonic() - started

            summary = self._summarise(duration, scheduler)
            if summary.cancelled:
                logger.warning("bulk.run.cancelled", skipped=summary.skipped)
            log_method = logger.warning if summary.failed else logger.info
            log_method(
                "bulk.run.complete",
                total=summary.total,
                succeeded=summary.succeeded,
                failed=summary.failed,
                skipped=summary.skipped,
                dry_run=summary.dry_run,
                duration_seconds=round(summary.duration_seconds, 3),
            )
            return summary

    def _summarise(self, duration: float, scheduler: ConcurrencyScheduler) -> RunSummary:
        snap = self._progress.snapshot()
        failures = self._progress.failures
        return RunSummary(
            run_id=self._run_id,
            total=snap.completed,
            succeeded=snap.succeeded,
            failed=snap.failed,
            skipped=snap.skipped,
            dry_run=snap.dry_run,
            duration_seconds=duration,
            first_error=failures[0] if failures else None,
            failures=failures,
            cancelled=scheduler.cancelled,
            aborted=scheduler.aborted,
        )


def _validate_ids(items: Sequence[ItemEnvelope]) -> None:
    seen: set[str] = set()
    for item in items:
        item_id = getattr(item, "id", None)
        if not isinstance(item_id, str) or not item_id:
            raise InvalidItemIdError(item_id)
        if item_id in seen:
            raise DuplicateItemError(item_id)
        seen.add(item_id)
