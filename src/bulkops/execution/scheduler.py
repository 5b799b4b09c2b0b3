"""Concurrency scheduler — bounded worker pool producing one outcome per item.

WHY
───
Bulk operations against remote APIs are I/O bound and the callbacks
block on the network, so real parallelism comes from a fixed pool of
threads.  The pool size is the ceiling on simultaneous callback
invocations: each worker runs at most one callback at a time.

ARCHITECTURE
────────────
::

    ConcurrencyScheduler.run(items)
      │
      ├── ThreadPoolExecutor(max_workers=concurrency)
      │     └── N × _worker()  ─ pull next item from the shared source
      │
      └── per item:
            aborted?            → Skipped("aborted")
            cancelled?          → Skipped("cancelled")
            already completed?  → Skipped("already-completed")
            dry_run?            → operation(payload, True)  → DryRun
            else                → operation(payload, False) → Success | Failed
            log.append(record)  → progress.record(...)   (in that order)

The source is shared behind a lock, so a lazily produced sequence is
consumed one item at a time and idle workers simply block waiting for
the next one.  No separate buffer exists; the pool bounds in-flight work.

Stopping
────────
- ``stop_on_first_error``: the first ``Failed`` outcome trips the abort
  flag.  In-flight callbacks finish; items pulled afterwards are
  recorded as ``Skipped("aborted")``.
- Cancellation: :class:`CancellationToken` is checked before each
  dispatch.  Running callbacks are never interrupted; items pulled
  afterwards are recorded as ``Skipped("cancelled")``.
- After either stop, an in-memory ``Sequence`` is still drained so every
  item gets a record.  Any other iterable (a generator, paged remote
  results) is not pulled again, so an unbounded source still lets
  :meth:`run` return.
- Fatal errors (log sink failure, duplicate id from a lazy source, a
  source that raises) halt all workers; nothing more is pulled and the
  error is raised from :meth:`run` once in-flight work has finished.

Related modules:
    operation.py — apply_operation() classifies callback results
    ledger.py    — TransactionLog
    progress.py  — ProgressReporter
    executor.py  — BulkExecutor facade that owns one scheduler per run
"""

from __future__ import annotations

import concurrent.futures
import threading
from collections.abc import Collection, Iterable, Iterator, Sequence

from bulkops.core.errors import ConfigError, DuplicateItemError, LogSinkError
from bulkops.core.logging import LogContext, get_logger
from bulkops.execution.ledger import TransactionLog
from bulkops.execution.models import (
    ExecutorConfig,
    Failed,
    ItemEnvelope,
    Outcome,
    Skipped,
    SkipReason,
    TransactionRecord,
)
from bulkops.execution.operation import Operation, apply_operation
from bulkops.execution.progress import ProgressReporter

logger = get_logger(__name__)


class CancellationToken:
    """Cooperative cancellation signal shared between a caller and a run."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class ConcurrencyScheduler:
    """Fan items out to a fixed pool of workers.

    One scheduler handles one run.  ``log`` and ``progress`` are the only
    objects shared between workers and both synchronise internally.
    """

    def __init__(
        self,
        config: ExecutorConfig,
        operation: Operation,
        *,
        run_id: str,
        log: TransactionLog,
        progress: ProgressReporter,
        token: CancellationToken | None = None,
        completed_ids: Collection[str] = frozenset(),
    ):
        self._config = config
        self._operation = operation
        self._run_id = run_id
        self._log = log
        self._progress = progress
        self._token = token or CancellationToken()
        self._completed_ids = completed_ids

        self._source_lock = threading.Lock()
        self._source: Iterator[ItemEnvelope] | None = None
        self._drain = False
        self._exhausted = False
        self._stopped_early = False
        self._seen: set[str] = set()

        self._abort = threading.Event()
        self._halt = threading.Event()
        self._state_lock = threading.Lock()
        self._fatal: BaseException | None = None
        self._cancel_skips = 0

    # ── State ────────────────────────────────────────────────────────

    @property
    def aborted(self) -> bool:
        """True once ``stop_on_first_error`` has been tripped."""
        return self._abort.is_set()

    @property
    def cancelled(self) -> bool:
        """True if cancellation left items unprocessed.

        A cancel that arrives after the last item was recorded does not count.
        """
        return self._stopped_early or self._cancel_skips > 0

    # ── Execution ────────────────────────────────────────────────────

    def run(self, items: Iterable[ItemEnvelope]) -> None:
        """Process every item, blocking until all are accounted for.

        Raises:
            LogSinkError: If a record could not be written
            DuplicateItemError: If a lazy source yields the same id twice
        """
        self._drain = isinstance(items, Sequence)
        self._source = iter(items)

        with concurrent.futures.ThreadPoolExecutor(
            max_workers=self._config.concurrency,
            thread_name_prefix="bulkops-worker",
        ) as pool:
            futures = [pool.submit(self._worker) for _ in range(self._config.concurrency)]
            concurrent.futures.wait(futures)

        for future in futures:
            error = future.exception()
            if error is not None:
                self._set_fatal(error)

        if self._fatal is not None:
            raise self._fatal

    def _worker(self) -> None:
        with LogContext(run_id=self._run_id):
            while not self._halt.is_set():
                item = self._next_item()
                if item is None:
                    return
                try:
                    self._process(item)
                except LogSinkError as e:
                    self._set_fatal(e)
                    return

    def _next_item(self) -> ItemEnvelope | None:
        """Pull the next item from the shared source, or None when done."""
        with self._source_lock:
            if self._exhausted or self._halt.is_set() or self._source is None:
                return None
            if not self._drain and (self._token.cancelled or self._abort.is_set()):
                # Never pull a lazy source past a stop.
                self._exhausted = True
                self._stopped_early = self._token.cancelled
                logger.info(
                    "bulk.source.stopped",
                    reason="cancelled" if self._token.cancelled else "aborted",
                )
                return None
            try:
                item = next(self._source)
            except StopIteration:
                self._exhausted = True
                return None
            except Exception as e:
                self._exhausted = True
                logger.error("bulk.source.failed", error=str(e))
                self._set_fatal(e)
                return None

            if not isinstance(item, ItemEnvelope):
                self._exhausted = True
                self._set_fatal(
                    ConfigError(f"work source yielded {type(item).__name__}, expected ItemEnvelope")
                )
                return None
            if item.id in self._seen:
                self._exhausted = True
                self._set_fatal(DuplicateItemError(item.id).with_context(run_id=self._run_id))
                return None
            self._seen.add(item.id)
            return item

    def _process(self, item: ItemEnvelope) -> None:
        outcome = self._decide(item)

        record = TransactionRecord(run_id=self._run_id, item_id=item.id, outcome=outcome)
        self._log.append(record)
        self._progress.record(item.id, outcome)

    def _decide(self, item: ItemEnvelope) -> Outcome:
        if self._abort.is_set():
            return Skipped(reason=SkipReason.ABORTED)
        if self._token.cancelled:
            with self._state_lock:
                self._cancel_skips += 1
            return Skipped(reason=SkipReason.CANCELLED)
        if item.id in self._completed_ids:
            return Skipped(reason=SkipReason.ALREADY_COMPLETED)

        self._progress.mark_dispatched()
        logger.debug("bulk.item.dispatch", item_id=item.id, dry_run=self._config.dry_run)
        outcome = apply_operation(self._operation, item.payload, self._config.dry_run)

        if isinstance(outcome, Failed):
            logger.warning(
                "bulk.item.failed",
                item_id=item.id,
                error_kind=outcome.error_kind,
                error=outcome.message,
            )
            if self._config.stop_on_first_error and not self._abort.is_set():
                self._abort.set()
                logger.warning("bulk.run.stopping", item_id=item.id, reason="stop_on_first_error")
        return outcome

    def _set_fatal(self, error: BaseException) -> None:
        with self._state_lock:
            if self._fatal is None:
                self._fatal = error
        self._halt.set()
