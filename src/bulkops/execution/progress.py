"""Progress reporter — thread-safe counters plus one event per completed item.

WHY
───
A live display needs to read "how far along are we" at any moment while
a pool of workers is updating it.  Counters live in one explicitly owned
object handed to the workers, never in module globals, and every update
happens under a single lock so two workers finishing at once cannot lose
an increment.

ARCHITECTURE
────────────
::

    ProgressReporter
      ├── .subscribe(listener)   ─ listener(ProgressEvent), e.g. a renderer
      ├── .mark_dispatched()     ─ an item was handed to the callback
      ├── .record(item_id, outcome) ─ increment + publish, atomically
      ├── .snapshot()            ─ consistent ProgressSnapshot copy
      └── .first_failure / .failures

Ordering: the scheduler calls :meth:`record` only after the item's
transaction record has been appended, so progress never outruns the log.

Listeners run on the worker thread that completed the item while the
reporter's lock is held; they must be quick and must not call back into
the reporter.

Related modules:
    scheduler.py  — the only writer
    cli/render.py — rich / JSON / quiet listeners
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from bulkops.core.logging import get_logger
from bulkops.execution.models import (
    Failed,
    FailureInfo,
    Outcome,
    OutcomeTag,
    ProgressEvent,
    ProgressSnapshot,
)

logger = get_logger(__name__)

ProgressListener = Callable[[ProgressEvent], None]


class ProgressReporter:
    """Linearizable counters for one run."""

    def __init__(self, listeners: list[ProgressListener] | None = None) -> None:
        self._lock = threading.Lock()
        self._listeners: list[ProgressListener] = list(listeners or [])
        self._dispatched = 0
        self._counts = {tag: 0 for tag in OutcomeTag}
        self._failures: list[FailureInfo] = []

    def subscribe(self, listener: ProgressListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    # ── Updates ──────────────────────────────────────────────────────

    def mark_dispatched(self) -> None:
        with self._lock:
            self._dispatched += 1

    def record(self, item_id: str, outcome: Outcome) -> ProgressEvent:
        """Count one completed item and publish its event.

        The increment and the event are produced under the same lock, so a
        snapshot never shows a count whose event has not been published.
        """
        with self._lock:
            self._counts[outcome.tag] += 1
            if isinstance(outcome, Failed):
                self._failures.append(FailureInfo(item_id, outcome.error_kind, outcome.message))
            event = ProgressEvent(item_id=item_id, outcome=outcome, counters=self._snapshot_locked())
            for listener in self._listeners:
                try:
                    listener(event)
                except Exception as e:
                    logger.warning("bulk.progress.listener_failed", item_id=item_id, error=str(e))
        return event

    # ── Reading ──────────────────────────────────────────────────────

    def snapshot(self) -> ProgressSnapshot:
        with self._lock:
            return self._snapshot_locked()

    def _snapshot_locked(self) -> ProgressSnapshot:
        return ProgressSnapshot(
            dispatched=self._dispatched,
            completed=sum(self._counts.values()),
            succeeded=self._counts[OutcomeTag.SUCCESS],
            failed=self._counts[OutcomeTag.FAILED],
            skipped=self._counts[OutcomeTag.SKIPPED],
            dry_run=self._counts[OutcomeTag.DRY_RUN],
        )

    @property
    def first_failure(self) -> FailureInfo | None:
        with self._lock:
            return self._failures[0] if self._failures else None

    @property
    def failures(self) -> tuple[FailureInfo, ...]:
        with self._lock:
            return tuple(self._failures)
