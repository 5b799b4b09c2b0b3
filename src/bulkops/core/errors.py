"""
Structured error types for bulkops.

Provides a small hierarchy of typed errors with enough metadata to tell
run-level fatal conditions apart from per-item operation failures.

Bulk runs have exactly two kinds of trouble:

- **Run-level fatal errors** stop the run before or during dispatch.
  Invalid configuration (concurrency below 1, empty or duplicate item
  ids, reusing an executor) and an unwritable transaction log are both
  fatal. These propagate out of ``BulkExecutor.run()``.
- **Per-item failures** are data. An operation callback raises
  :class:`OperationError` (or any other exception) and the scheduler
  turns it into a ``Failed`` outcome for that one item. They never
  propagate past the scheduler.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                       BulkOpsError                           │
        │            (category, context, cause)                        │
        ├─────────────────────────────────────────────────────────────┤
        │                                                              │
        │  ConfigError              LogSinkError      OperationError   │
        │  (CONFIG, fatal)          (STORAGE, fatal)  (OPERATION,      │
        │       │                                      per-item)       │
        │  InvalidConcurrencyError                                     │
        │  InvalidItemIdError                                          │
        │  DuplicateItemError                                          │
        │  ExecutorReusedError                                         │
        └─────────────────────────────────────────────────────────────┘

Usage:
    from bulkops.core.errors import OperationError

    def transition(payload, dry_run):
        if dry_run:
            return f"would move {payload['key']} to Done"
        resp = client.post(...)
        if resp.status_code == 409:
            raise OperationError("transition rejected", error_kind="RemoteRejected")
        return resp.json()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing.

    Attributes:
        CONFIG: Invalid executor configuration or input (fatal)
        STORAGE: Transaction log could not be opened, written or read (fatal)
        OPERATION: A classified per-item failure reported by a callback
        NETWORK: Connection, timeout, DNS
        VALIDATION: Bad values handed to a callback
        INTERNAL: Bugs, unexpected state
        UNKNOWN: Uncategorized errors
    """

    CONFIG = "CONFIG"
    STORAGE = "STORAGE"
    OPERATION = "OPERATION"
    NETWORK = "NETWORK"
    VALIDATION = "VALIDATION"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Only non-None fields are serialized by :meth:`to_dict`; anything that
    has no dedicated field goes into ``metadata``.
    """

    run_id: str | None = None
    item_id: str | None = None
    path: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, excluding None values."""
        result: dict[str, Any] = {}
        for key in ("run_id", "item_id", "path"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        result.update(self.metadata)
        return result


class BulkOpsError(Exception):
    """Base exception for all bulkops errors.

    Subclasses set ``default_category`` to classify themselves; callers can
    override it per instance. ``cause`` is chained onto ``__cause__`` so
    tracebacks show the underlying exception.

    Example:
        >>> error = BulkOpsError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(run_id="abc").context.run_id
        'abc'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> BulkOpsError:
        """Add context to this error (fluent API)."""
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS (fatal, no run occurs)
# =============================================================================


class ConfigError(BulkOpsError):
    """Invalid executor configuration or input."""

    default_category = ErrorCategory.CONFIG


class InvalidConcurrencyError(ConfigError):
    """Concurrency limit is not a positive integer."""

    def __init__(self, value: Any):
        super().__init__(f"concurrency must be a positive integer, got {value!r}")
        self.value = value


class InvalidItemIdError(ConfigError):
    """An item envelope was submitted with an empty id."""

    def __init__(self, item_id: Any):
        super().__init__(f"item id must be a non-empty string, got {item_id!r}")
        self.item_id = item_id


class DuplicateItemError(ConfigError):
    """The same item id was submitted twice within one run."""

    def __init__(self, item_id: str):
        super().__init__(f"duplicate item id submitted: {item_id!r}")
        self.item_id = item_id
        self.context.item_id = item_id


class ExecutorReusedError(ConfigError):
    """A BulkExecutor instance was asked to perform a second run."""

    def __init__(self, run_id: str):
        super().__init__(
            f"executor already performed run {run_id}; create a new executor per run"
        )
        self.context.run_id = run_id


# =============================================================================
# LOG SINK ERRORS (fatal, run aborts)
# =============================================================================


class LogSinkError(BulkOpsError):
    """The transaction log could not be opened, written, or read.

    Losing the audit trail means a re-run can no longer tell completed
    items from pending ones, so this always aborts the run.
    """

    default_category = ErrorCategory.STORAGE


# =============================================================================
# PER-ITEM OPERATION ERRORS (recovered into Failed outcomes)
# =============================================================================


class OperationError(BulkOpsError):
    """A classified failure raised by an operation callback.

    ``error_kind`` is copied verbatim into the item's ``Failed`` outcome
    (e.g. ``"RemoteRejected"``, ``"NotFound"``).
    """

    default_category = ErrorCategory.OPERATION

    def __init__(
        self,
        message: str,
        *,
        error_kind: str = "OperationFailed",
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, context=context, cause=cause)
        self.error_kind = error_kind

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["error_kind"] = self.error_kind
        return result


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, BulkOpsError):
        return error.category
    if isinstance(error, (ConnectionError, TimeoutError)):
        return ErrorCategory.NETWORK
    if isinstance(error, (ValueError, TypeError, KeyError)):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


def error_kind_for(error: Exception) -> str:
    """Derive the ``error_kind`` recorded for a failed item.

    :class:`OperationError` carries an explicit kind. Other exceptions are
    identified by their class name, which is what shows up in the
    transaction log and run summary.
    """
    if isinstance(error, OperationError):
        return error.error_kind
    return type(error).__name__


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "BulkOpsError",
    "ConfigError",
    "InvalidConcurrencyError",
    "InvalidItemIdError",
    "DuplicateItemError",
    "ExecutorReusedError",
    "LogSinkError",
    "OperationError",
    "categorize_error",
    "error_kind_for",
]
