"""
CLI: ``bulkops log`` — inspect transaction logs written by ``bulkops run``.
"""

from __future__ import annotations

from pathlib import Path

import typer

from bulkops.cli.render import err_console, output_records, output_summary
from bulkops.core.config.settings import OutputFormat
from bulkops.core.errors import LogSinkError
from bulkops.execution.ledger import JsonlTransactionLog, completed_item_ids, run_ids
from bulkops.execution.models import OutcomeTag, RunSummary, TransactionRecord

app = typer.Typer(no_args_is_help=True)


def _load(path: Path, run: str | None) -> list[TransactionRecord]:
    if not path.is_file():
        err_console.print(f"[bold red]Error[/bold red]: no transaction log at {path}")
        raise typer.Exit(code=2)
    try:
        records = JsonlTransactionLog(path).read_all()
    except LogSinkError as e:
        err_console.print(f"[bold red]Error[/bold red]: {e.message}")
        raise typer.Exit(code=2) from e
    if run is not None:
        records = [r for r in records if r.run_id == run or r.run_id.startswith(run)]
    return records


@app.command("show")
def show(
    path: Path = typer.Argument(..., help="Transaction log file"),
    run: str | None = typer.Option(None, "--run", "-r", help="Run id (or prefix)"),
    tag: OutcomeTag | None = typer.Option(None, "--tag", "-t"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List transaction records."""
    records = _load(path, run)
    if tag is not None:
        records = [r for r in records if r.outcome.tag is tag]
    output_records(records, as_json=json_out)


@app.command("summary")
def summary(
    path: Path = typer.Argument(..., help="Transaction log file"),
    run: str | None = typer.Option(None, "--run", "-r", help="Run id (or prefix); default: last run"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Rebuild the run summary from a transaction log."""
    records = _load(path, run)
    run_id = run_ids(records)[-1] if records else None
    result = RunSummary.from_records(records, run_id=run_id)
    output_summary(result, OutputFormat.JSON if json_out else OutputFormat.TABLE)


@app.command("completed")
def completed(
    path: Path = typer.Argument(..., help="Transaction log file"),
) -> None:
    """Print the ids of items that succeeded (one per line)."""
    for item_id in sorted(completed_item_ids(_load(path, None))):
        typer.echo(item_id)
