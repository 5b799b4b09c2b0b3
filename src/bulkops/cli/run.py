"""
CLI: ``bulkops run`` — execute a command template for every item in a file.

Exit status: 0 when nothing failed, 1 when any item failed, 2 for
configuration or transaction-log errors, 130 when cancelled with Ctrl-C.
"""

from __future__ import annotations

import signal
import uuid
from contextlib import ExitStack
from pathlib import Path

import typer

from bulkops.cli.render import JsonEventRenderer, RichProgressRenderer, err_console, output_summary
from bulkops.core.config.settings import OutputFormat, get_settings
from bulkops.core.errors import BulkOpsError
from bulkops.execution.executor import BulkExecutor
from bulkops.execution.items import read_items_file
from bulkops.execution.ledger import JsonlTransactionLog, completed_item_ids
from bulkops.execution.shell import ShellOperation, with_ids

EXIT_FAILURES = 1
EXIT_CONFIG = 2
EXIT_CANCELLED = 130


def run_command(
    items_file: Path = typer.Argument(..., help="Items file: JSON lines or one id per line"),
    command: str = typer.Option(..., "--command", "-c", help="Template; {id} and {payload} are substituted"),
    concurrency: int | None = typer.Option(None, "--concurrency", "-j"),
    dry_run: bool | None = typer.Option(None, "--dry-run/--no-dry-run"),
    stop_on_first_error: bool | None = typer.Option(None, "--stop-on-first-error/--keep-going"),
    log_path: Path | None = typer.Option(None, "--log", help="Transaction log (JSON lines)"),
    resume_from: Path | None = typer.Option(None, "--resume-from", help="Skip ids that succeeded in this log"),
    output: OutputFormat | None = typer.Option(None, "--format", "-f"),
    progress: bool | None = typer.Option(None, "--progress/--no-progress"),
    timeout: float | None = typer.Option(None, "--timeout", help="Per-command timeout in seconds"),
) -> None:
    """Run COMMAND once per item in ITEMS_FILE."""
    settings = get_settings()
    fmt = output or settings.output_format
    show_progress = settings.show_progress if progress is None else progress

    if not items_file.is_file():
        _fail(f"items file not found: {items_file}")

    try:
        config = settings.executor_config(
            concurrency=concurrency,
            dry_run=dry_run,
            stop_on_first_error=stop_on_first_error,
        )
        operation = ShellOperation(command, timeout=timeout)
        completed: set[str] = set()
        if resume_from is not None:
            completed = completed_item_ids(JsonlTransactionLog(resume_from).read_all())
    except BulkOpsError as e:
        _fail(e.message)

    run_id = uuid.uuid4().hex
    log = JsonlTransactionLog(log_path or Path(settings.log_dir) / f"{run_id}.jsonl")
    executor = BulkExecutor.from_config(config, log=log, completed_ids=completed, run_id=run_id)

    previous = signal.signal(signal.SIGINT, lambda signum, frame: executor.cancel())
    try:
        with ExitStack() as stack:
            if fmt is OutputFormat.JSON and show_progress:
                executor.progress.subscribe(JsonEventRenderer())
            elif fmt is OutputFormat.TABLE and show_progress:
                renderer = stack.enter_context(RichProgressRenderer(description=items_file.name))
                executor.progress.subscribe(renderer)
            summary = executor.run(with_ids(read_items_file(items_file)), operation)
    except BulkOpsError as e:
        _fail(e.message)
    finally:
        signal.signal(signal.SIGINT, previous)

    output_summary(summary, fmt)
    if fmt is OutputFormat.TABLE:
        err_console.print(f"[dim]Transaction log: {log.path}[/dim]")

    if summary.cancelled:
        raise typer.Exit(code=EXIT_CANCELLED)
    if summary.exit_code:
        raise typer.Exit(code=EXIT_FAILURES)


def _fail(message: str) -> None:
    err_console.print(f"[bold red]Error[/bold red]: {message}")
    raise typer.Exit(code=EXIT_CONFIG)
