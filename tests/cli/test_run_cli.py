"""
Tests for ``bulkops run``.

Uses typer's CliRunner with ``--format json`` so stdout can be parsed line
by line; commands are small Python one-liners run through the current
interpreter.
"""

from __future__ import annotations

import json
import shlex
import sys
from pathlib import Path

import pytest
from typer.testing import CliRunner

from bulkops.cli.app import app
from bulkops.execution.ledger import JsonlTransactionLog

runner = CliRunner()

PY = shlex.quote(sys.executable)
SUCCEED = f"{PY} -c 'import sys; print(sys.argv[1])' {{id}}"
FAIL_ON_B = f"{PY} -c 'import sys; sys.exit(4 if sys.argv[1] == \"b\" else 0)' {{id}}"


@pytest.fixture
def items_file(tmp_path: Path) -> Path:
    path = tmp_path / "items.txt"
    path.write_text("a\nb\nc\n")
    return path


def _invoke(*args: str, env: dict[str, str] | None = None):
    return runner.invoke(app, ["--log-level", "ERROR", "run", *args], env=env)


def _json_lines(output: str) -> list[dict]:
    return [json.loads(line) for line in output.splitlines() if line.startswith("{")]


def _summary(output: str) -> dict:
    (summary,) = [e for e in _json_lines(output) if e["event"] == "summary"]
    return summary


class TestRunCommand:
    def test_all_succeed(self, items_file, tmp_path):
        log_path = tmp_path / "run.jsonl"
        result = _invoke(str(items_file), "-c", SUCCEED, "-j", "2", "--log", str(log_path), "-f", "json")

        assert result.exit_code == 0, result.output
        summary = _summary(result.stdout)
        assert summary["succeeded"] == 3
        assert summary["failed"] == 0

        records = JsonlTransactionLog(log_path).read_all()
        assert sorted(r.item_id for r in records) == ["a", "b", "c"]
        assert {r.run_id for r in records} == {summary["run_id"]}
        by_id = {r.item_id: r.outcome.detail for r in records}
        assert by_id["b"]["stdout"] == "b"

    def test_progress_events_in_json_mode(self, items_file, tmp_path):
        result = _invoke(str(items_file), "-c", SUCCEED, "--log", str(tmp_path / "r.jsonl"), "-f", "json")
        events = [e for e in _json_lines(result.stdout) if e["event"] == "item"]
        assert sorted(e["item_id"] for e in events) == ["a", "b", "c"]
        assert events[-1]["counters"]["completed"] == 3

    def test_no_progress_suppresses_item_events(self, items_file, tmp_path):
        result = _invoke(
            str(items_file), "-c", SUCCEED, "--log", str(tmp_path / "r.jsonl"), "-f", "json", "--no-progress"
        )
        assert [e["event"] for e in _json_lines(result.stdout)] == ["summary"]

    def test_failure_exit_code(self, items_file, tmp_path):
        result = _invoke(
            str(items_file), "-c", FAIL_ON_B, "--log", str(tmp_path / "r.jsonl"), "-f", "json", "--no-progress"
        )

        assert result.exit_code == 1
        summary = _summary(result.stdout)
        assert summary["failed"] == 1
        assert summary["succeeded"] == 2
        assert summary["first_error"]["item_id"] == "b"
        assert summary["first_error"]["error_kind"] == "CommandFailed"

    def test_stop_on_first_error(self, tmp_path):
        items = tmp_path / "items.txt"
        items.write_text("b\nc\nd\n")
        result = _invoke(
            str(items), "-c", FAIL_ON_B, "-j", "1", "--stop-on-first-error",
            "--log", str(tmp_path / "r.jsonl"), "-f", "json", "--no-progress",
        )
        assert result.exit_code == 1
        summary = _summary(result.stdout)
        assert summary["aborted"] is True
        assert summary["failed"] == 1
        # the items file is streamed, so nothing is read past the failure
        assert summary["total"] == 1
        assert [r.item_id for r in JsonlTransactionLog(tmp_path / "r.jsonl").read_all()] == ["b"]

    def test_dry_run_executes_nothing(self, items_file, tmp_path):
        marker = tmp_path / "touched"
        command = f"{PY} -c 'import pathlib, sys; pathlib.Path(sys.argv[1]).touch()' {shlex.quote(str(marker))}"
        log_path = tmp_path / "r.jsonl"
        result = _invoke(str(items_file), "-c", command, "--dry-run", "--log", str(log_path), "-f", "json")

        assert result.exit_code == 0, result.output
        assert not marker.exists()
        assert _summary(result.stdout)["dry_run"] == 3
        would_do = {r.outcome.would_do for r in JsonlTransactionLog(log_path).read_all()}
        assert len(would_do) == 1
        assert str(marker) in would_do.pop()

    def test_quiet_prints_failed_ids(self, items_file, tmp_path):
        result = _invoke(str(items_file), "-c", FAIL_ON_B, "--log", str(tmp_path / "r.jsonl"), "-f", "quiet")
        assert result.exit_code == 1
        assert result.stdout.split() == ["b"]

    def test_table_output(self, items_file, tmp_path):
        result = _invoke(str(items_file), "-c", SUCCEED, "--log", str(tmp_path / "r.jsonl"), "--no-progress")
        assert result.exit_code == 0, result.output
        assert "succeeded" in result.output
        assert "All items completed" in result.output

    def test_resume_skips_completed(self, items_file, tmp_path):
        first_log = tmp_path / "first.jsonl"
        _invoke(str(items_file), "-c", FAIL_ON_B, "--log", str(first_log), "-f", "quiet")

        second_log = tmp_path / "second.jsonl"
        result = _invoke(
            str(items_file), "-c", SUCCEED, "--resume-from", str(first_log),
            "--log", str(second_log), "-f", "json", "--no-progress",
        )

        assert result.exit_code == 0, result.output
        summary = _summary(result.stdout)
        assert summary["succeeded"] == 1
        assert summary["skipped"] == 2
        reasons = {r.item_id: r.outcome.to_dict().get("reason") for r in JsonlTransactionLog(second_log).read_all()}
        assert reasons == {"a": "already-completed", "b": None, "c": "already-completed"}

    def test_default_log_location(self, items_file, tmp_path):
        result = _invoke(str(items_file), "-c", SUCCEED, "-f", "json", "--no-progress")
        run_id = _summary(result.stdout)["run_id"]
        assert (tmp_path / "logs" / f"{run_id}.jsonl").is_file()

    def test_settings_from_environment(self, items_file, tmp_path):
        result = _invoke(
            str(items_file), "-c", SUCCEED, "--log", str(tmp_path / "r.jsonl"),
            env={"BULKOPS_OUTPUT_FORMAT": "json", "BULKOPS_SHOW_PROGRESS": "false", "BULKOPS_DRY_RUN": "true"},
        )
        assert result.exit_code == 0, result.output
        events = _json_lines(result.stdout)
        assert [e["event"] for e in events] == ["summary"]
        assert events[0]["dry_run"] == 3


class TestRunCommandErrors:
    def test_missing_items_file(self, tmp_path):
        result = _invoke(str(tmp_path / "missing.txt"), "-c", SUCCEED)
        assert result.exit_code == 2
        assert "items file not found" in result.output

    def test_invalid_concurrency(self, items_file):
        result = _invoke(str(items_file), "-c", SUCCEED, "-j", "0")
        assert result.exit_code == 2
        assert "concurrency" in result.output

    def test_empty_command(self, items_file):
        result = _invoke(str(items_file), "-c", "  ")
        assert result.exit_code == 2

    def test_unwritable_log(self, items_file, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        result = _invoke(str(items_file), "-c", SUCCEED, "--log", str(blocker / "run.jsonl"), "-f", "json")
        assert result.exit_code == 2
        assert "cannot open transaction log" in result.output

    def test_duplicate_ids_in_file(self, tmp_path):
        items = tmp_path / "items.txt"
        items.write_text("a\nb\na\n")
        result = _invoke(str(items), "-c", SUCCEED, "--log", str(tmp_path / "r.jsonl"), "-j", "1")
        assert result.exit_code == 2
        assert "duplicate item id" in result.output


class TestRootApp:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.output.startswith("bulkops ")

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert "run" in result.output
        assert "log" in result.output
