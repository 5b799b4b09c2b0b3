"""
Root Typer application for the bulkops CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from bulkops.core.config.settings import LogFormat, get_settings
from bulkops.core.logging import configure_logging

app = Typer(
    name="bulkops",
    help="bulkops — apply one operation to many items, safely.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("bulkops")
        except PackageNotFoundError:
            v = "0.1.0"
        typer.echo(f"bulkops {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING, ERROR"),
) -> None:
    """bulkops CLI — run bulk operations and inspect transaction logs."""
    settings = get_settings()
    configure_logging(
        level=log_level or settings.log_level,
        json_format=settings.log_format is LogFormat.JSON,
    )


# ── Sub-command registration ─────────────────────────────────────────────

from bulkops.cli.log import app as log_app  # noqa: E402
from bulkops.cli.run import run_command  # noqa: E402

app.command("run")(run_command)
app.add_typer(log_app, name="log", help="Inspect transaction logs.")
