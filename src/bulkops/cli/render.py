"""
CLI rendering — progress listeners and summary/record output.

The execution core emits :class:`ProgressEvent` values and returns a
:class:`RunSummary`; everything here decides how they look on a
terminal.  Three formats are supported:

- ``table``: a rich progress bar on stderr while running, rich tables after
- ``json``:  one JSON object per line on stdout (events, then the summary)
- ``quiet``: no progress; only the ids of failed items are printed
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

import typer
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from bulkops.core.config.settings import OutputFormat
from bulkops.execution.models import ProgressEvent, RunSummary, TransactionRecord

console = Console()
err_console = Console(stderr=True)


# ── Progress listeners ───────────────────────────────────────────────────


class RichProgressRenderer:
    """Progress bar fed by executor events; use as a context manager."""

    def __init__(self, total: int | None = None, *, description: str = "bulk") -> None:
        self._description = description
        self._progress = Progress(
            SpinnerColumn(),
            TimeElapsedColumn(),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("{task.description}"),
            console=err_console,
        )
        self._task = self._progress.add_task(description, total=total)

    def __enter__(self) -> RichProgressRenderer:
        self._progress.start()
        return self

    def __exit__(self, *args: Any) -> None:
        self._progress.stop()

    def __call__(self, event: ProgressEvent) -> None:
        c = event.counters
        self._progress.update(
            self._task,
            advance=1,
            description=(
                f"{self._description} ok={c.succeeded} failed={c.failed}"
                f" skipped={c.skipped} dry_run={c.dry_run}"
            ),
        )


class JsonEventRenderer:
    """Writes each event as one JSON line on stdout."""

    def __call__(self, event: ProgressEvent) -> None:
        typer.echo(json.dumps({"event": "item", **event.to_dict()}))


# ── Output helpers ───────────────────────────────────────────────────────


def output_summary(summary: RunSummary, fmt: OutputFormat) -> None:
    """Print the final summary of a run."""
    if fmt is OutputFormat.JSON:
        typer.echo(json.dumps({"event": "summary", **summary.to_dict()}, default=str))
        return
    if fmt is OutputFormat.QUIET:
        for failure in summary.failures:
            typer.echo(failure.item_id)
        return

    table = Table(title=f"Run {summary.run_id}", show_lines=False, pad_edge=False)
    for col in ("total", "succeeded", "failed", "skipped", "dry_run", "duration"):
        table.add_column(col, justify="right")
    table.add_row(
        str(summary.total),
        str(summary.succeeded),
        str(summary.failed),
        str(summary.skipped),
        str(summary.dry_run),
        f"{summary.duration_seconds:.2f}s",
    )
    console.print(table)

    if summary.failures:
        failures = Table(title="Failures", pad_edge=False)
        failures.add_column("item_id")
        failures.add_column("error_kind")
        failures.add_column("message", overflow="fold")
        for failure in summary.failures:
            failures.add_row(failure.item_id, failure.error_kind, failure.message)
        console.print(failures)

    if summary.cancelled:
        console.print("[yellow]Run cancelled; remaining items were not run.[/yellow]")
    elif summary.aborted:
        console.print("[yellow]Stopped after the first failure; remaining items were not run.[/yellow]")
    elif summary.failed == 0:
        console.print("[green]All items completed without failures.[/green]")


def output_records(records: Iterable[TransactionRecord], *, as_json: bool = False) -> None:
    """Print transaction records as a table or JSON lines."""
    records = list(records)
    if as_json:
        for record in records:
            typer.echo(json.dumps(record.to_dict(), default=str))
        return
    if not records:
        console.print("[dim]No records.[/dim]")
        return

    table = Table(pad_edge=False)
    for col in ("timestamp", "run", "item_id", "outcome", "detail"):
        table.add_column(col, overflow="fold")
    for record in records:
        table.add_row(
            record.timestamp.isoformat(timespec="seconds"),
            record.run_id[:8],
            record.item_id,
            record.outcome.tag.value,
            _detail(record),
        )
    console.print(table)


def _detail(record: TransactionRecord) -> str:
    data = record.outcome.to_dict()
    data.pop("outcome")
    values = [v for v in data.values() if v is not None]
    if not values:
        return ""
    return ": ".join(v if isinstance(v, str) else json.dumps(v, default=str) for v in values)
