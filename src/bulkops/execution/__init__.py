"""Bulk execution core.

::

    from bulkops.execution import BulkExecutor, BulkOperation, envelopes

    executor = BulkExecutor(concurrency=4, dry_run=True)
    summary = executor.run(envelopes(["PROJ-1", "PROJ-2"]), BulkOperation(apply, preview))

Modules:

    models.py     ItemEnvelope, outcomes, TransactionRecord, RunSummary
    operation.py  operation callback contract + BulkOperation adapter
    ledger.py     TransactionLog: JSON-lines file / in-memory
    progress.py   ProgressReporter
    scheduler.py  ConcurrencyScheduler + CancellationToken
    executor.py   BulkExecutor facade
    items.py      work-source helpers
    shell.py      ShellOperation (command per item)
"""

from bulkops.execution.executor import BulkExecutor
from bulkops.execution.items import envelopes, read_items_file
from bulkops.execution.ledger import (
    JsonlTransactionLog,
    MemoryTransactionLog,
    TransactionLog,
    completed_item_ids,
)
from bulkops.execution.models import (
    DryRun,
    ExecutorConfig,
    Failed,
    FailureInfo,
    ItemEnvelope,
    Outcome,
    OutcomeTag,
    ProgressEvent,
    ProgressSnapshot,
    RunSummary,
    SkipReason,
    Skipped,
    Success,
    TransactionRecord,
)
from bulkops.execution.operation import BulkOperation, Operation, apply_operation
from bulkops.execution.progress import ProgressReporter
from bulkops.execution.scheduler import CancellationToken, ConcurrencyScheduler

__all__ = [
    "BulkExecutor",
    "BulkOperation",
    "CancellationToken",
    "ConcurrencyScheduler",
    "DryRun",
    "ExecutorConfig",
    "Failed",
    "FailureInfo",
    "ItemEnvelope",
    "JsonlTransactionLog",
    "MemoryTransactionLog",
    "Operation",
    "Outcome",
    "OutcomeTag",
    "ProgressEvent",
    "ProgressReporter",
    "ProgressSnapshot",
    "RunSummary",
    "SkipReason",
    "Skipped",
    "Success",
    "TransactionLog",
    "TransactionRecord",
    "apply_operation",
    "completed_item_ids",
    "envelopes",
    "read_items_file",
]
