"""Operation callbacks — the single injected capability of a bulk run.

WHY
───
The executor knows nothing about Jira transitions or branch deletions.
Callers pick the behaviour by handing in one callable with the contract
``(payload, dry_run) -> result``; the executor never needs subclassing.

Contract
────────
- ``dry_run=False``: perform the mutation.  Return a success detail
  (any JSON-friendly value, or ``None``), return a :class:`Failed`
  outcome, or raise :class:`~bulkops.core.errors.OperationError` with an
  ``error_kind``.  Any other exception is classified as ``Failed`` with
  the exception's class name as ``error_kind``.
- ``dry_run=True``: must not mutate remote state.  Return a preview of
  what would happen.  Raise ``NotImplementedError`` when no preview is
  available; the item is still recorded as ``DryRun`` with no detail.
  A preview that raises anything else, or returns ``Failed``, is recorded
  as ``DryRun`` whose detail is ``{"preview_error": kind, "message": ...}``.
  Dry-run never produces ``Success`` or ``Failed``.
- The callable is invoked concurrently from several worker threads and
  must be safe for that.

Related modules:
    scheduler.py — calls :func:`apply_operation` once per dispatched item
    shell.py     — ShellOperation, a concrete operation for the CLI
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from bulkops.core.errors import error_kind_for
from bulkops.execution.models import DryRun, Failed, Outcome, Skipped, Success


class Operation(Protocol):
    """Anything callable as ``operation(payload, dry_run)``."""

    def __call__(self, payload: Any, dry_run: bool) -> Any: ...


@dataclass(frozen=True)
class BulkOperation:
    """Adapt separate ``apply`` / ``preview`` functions to the callback contract.

    Example:
        >>> op = BulkOperation(
        ...     apply=lambda key: client.delete_branch(key),
        ...     preview=lambda key: f"would delete branch {key}",
        ... )
        >>> executor.run(items, op)
    """

    apply: Callable[[Any], Any]
    preview: Callable[[Any], Any] | None = None

    def __call__(self, payload: Any, dry_run: bool) -> Any:
        if dry_run:
            if self.preview is None:
                raise NotImplementedError("operation has no preview")
            return self.preview(payload)
        return self.apply(payload)


def apply_operation(operation: Operation, payload: Any, dry_run: bool) -> Outcome:
    """Invoke ``operation`` once and classify what it did.

    Never raises for callback failures; they become ``Failed`` outcomes.
    Under ``dry_run`` only ``DryRun`` or ``Skipped`` is produced.
    """
    try:
        result = operation(payload, dry_run)
    except NotImplementedError:
        if dry_run:
            return DryRun(would_do=None)
        return Failed(error_kind="NotImplementedError", message="operation is not implemented")
    except Exception as e:
        if dry_run:
            return _preview_error(error_kind_for(e), str(e))
        return Failed(error_kind=error_kind_for(e), message=str(e))

    if dry_run:
        if isinstance(result, Failed):
            return _preview_error(result.error_kind, result.message)
        if isinstance(result, DryRun):
            return result
        if isinstance(result, Success):
            return DryRun(would_do=result.detail)
        if isinstance(result, Skipped):
            return result
        return DryRun(would_do=result)
    if isinstance(result, (Success, Failed, Skipped)):
        return result
    if isinstance(result, DryRun):
        return Failed(
            error_kind="ContractViolation",
            message="operation returned a dry-run preview outside dry-run mode",
        )
    return Success(detail=result)


def _preview_error(error_kind: str, message: str) -> DryRun:
    return DryRun(would_do={"preview_error": error_kind, "message": message})
