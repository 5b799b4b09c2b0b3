"""Tests for ConcurrencyScheduler used directly, without the executor facade."""

from __future__ import annotations

import pytest

from bulkops.core.errors import ConfigError
from bulkops.execution.ledger import MemoryTransactionLog
from bulkops.execution.models import ExecutorConfig, ItemEnvelope, Skipped, SkipReason
from bulkops.execution.progress import ProgressReporter
from bulkops.execution.scheduler import CancellationToken, ConcurrencyScheduler


def _scheduler(operation, *, concurrency=2, token=None, completed_ids=frozenset(), **config):
    log = MemoryTransactionLog()
    progress = ProgressReporter()
    scheduler = ConcurrencyScheduler(
        ExecutorConfig(concurrency=concurrency, **config),
        operation,
        run_id="sched-run",
        log=log,
        progress=progress,
        token=token,
        completed_ids=completed_ids,
    )
    return scheduler, log, progress


class TestCancellationToken:
    def test_cancel_is_sticky(self):
        token = CancellationToken()
        assert not token.cancelled
        token.cancel()
        token.cancel()
        assert token.cancelled


class TestConcurrencyScheduler:
    def test_processes_every_item(self, make_items):
        scheduler, log, progress = _scheduler(lambda p, d: None, concurrency=3)
        scheduler.run(make_items(25))
        assert len(log) == 25
        assert progress.snapshot().succeeded == 25
        assert not scheduler.aborted
        assert not scheduler.cancelled

    def test_pre_cancelled_token_skips_everything(self, make_items):
        token = CancellationToken()
        token.cancel()
        calls = []
        scheduler, log, progress = _scheduler(lambda p, d: calls.append(p), token=token)
        scheduler.run(make_items(4))

        assert calls == []
        assert progress.snapshot().dispatched == 0
        assert all(r.outcome == Skipped(SkipReason.CANCELLED) for r in log.read_all())

    def test_completed_ids_do_not_count_as_dispatched(self, make_items):
        scheduler, log, progress = _scheduler(lambda p, d: None, completed_ids={"item-1"})
        scheduler.run(make_items(3))
        snap = progress.snapshot()
        assert snap.dispatched == 2
        assert snap.skipped == 1

    def test_source_exception_is_fatal(self, make_items, log_buffer):
        def source():
            yield from make_items(2)
            raise OSError("items feed disconnected")

        scheduler, log, _ = _scheduler(lambda p, d: None, concurrency=1)
        with pytest.raises(OSError, match="disconnected"):
            scheduler.run(source())
        assert len(log) == 2
        assert "bulk.source.failed" in log_buffer.getvalue()

    def test_non_envelope_item_is_fatal(self):
        scheduler, log, _ = _scheduler(lambda p, d: None, concurrency=1)
        with pytest.raises(ConfigError, match="expected ItemEnvelope"):
            scheduler.run([ItemEnvelope("a"), "b"])
        assert [r.item_id for r in log.read_all()] == ["a"]

    def test_stop_on_first_error_sets_aborted(self, make_items, log_buffer):
        def op(payload, dry_run):
            raise RuntimeError("nope")

        scheduler, log, progress = _scheduler(op, concurrency=1, stop_on_first_error=True)
        scheduler.run(make_items(5))

        assert scheduler.aborted
        assert progress.snapshot().failed == 1
        assert progress.snapshot().skipped == 4
        assert "bulk.run.stopping" in log_buffer.getvalue()

    def test_lazy_source_is_not_pulled_after_cancel(self):
        token = CancellationToken()
        token.cancel()
        pulled = []

        def source():
            for n in range(3):
                pulled.append(n)
                yield ItemEnvelope(f"lazy-{n}")

        scheduler, log, _ = _scheduler(lambda p, d: None, token=token)
        scheduler.run(source())

        assert pulled == []
        assert len(log) == 0
        assert scheduler.cancelled

    def test_drained_sequence_without_cancel_is_not_cancelled(self, make_items):
        scheduler, _, _ = _scheduler(lambda p, d: None)
        scheduler.run(make_items(3))
        assert not scheduler.cancelled
