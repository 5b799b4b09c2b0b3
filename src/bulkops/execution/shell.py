"""Shell operation — run one command per item.

Used by ``bulkops run`` so that any existing CLI (an Atlassian client,
``gh``, ``git push --delete``) can be driven through the bulk executor
with concurrency, dry-run and a transaction log for free.

The template is split once with :func:`shlex.split`; ``{id}`` and
``{payload}`` are substituted inside each argument, so values are never
re-parsed by a shell::

    ShellOperation("git push origin --delete {id}")

Dry-run returns the rendered command line instead of running it.
"""

from __future__ import annotations

import json
import shlex
import subprocess
from collections.abc import Iterable, Iterator
from typing import Any

from bulkops.core.errors import ConfigError, OperationError
from bulkops.execution.models import ItemEnvelope


class ShellOperation:
    """Operation callback that executes a command template."""

    def __init__(self, template: str, *, timeout: float | None = None):
        try:
            self._argv = shlex.split(template)
        except ValueError as e:
            raise ConfigError(f"invalid command template: {e}", cause=e) from e
        if not self._argv:
            raise ConfigError("command template is empty")
        self.template = template
        self.timeout = timeout

    def render(self, payload: Any) -> list[str]:
        """Substitute the item into the template."""
        item_id, text = _placeholders(payload)
        return [arg.replace("{id}", item_id).replace("{payload}", text) for arg in self._argv]

    def __call__(self, payload: Any, dry_run: bool) -> Any:
        argv = self.render(payload)
        if dry_run:
            return shlex.join(argv)

        try:
            completed = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise OperationError(str(e), error_kind="CommandNotFound", cause=e) from e
        except subprocess.TimeoutExpired as e:
            raise OperationError(
                f"command timed out after {self.timeout}s", error_kind="CommandTimeout", cause=e
            ) from e

        if completed.returncode != 0:
            stderr = completed.stderr.strip().splitlines()
            message = stderr[-1] if stderr else f"exit status {completed.returncode}"
            raise OperationError(message, error_kind="CommandFailed").with_context(
                returncode=completed.returncode
            )
        return {"returncode": 0, "stdout": completed.stdout.strip()[-500:]}


def _placeholders(payload: Any) -> tuple[str, str]:
    """Return the {id} and {payload} substitutions for one item.

    Accepts a plain string (used for both), or the ``{"id": ..., "payload": ...}``
    mapping built by :func:`with_ids`.
    """
    if isinstance(payload, str):
        return payload, payload
    if isinstance(payload, dict) and "id" in payload:
        inner = payload.get("payload")
        text = inner if isinstance(inner, str) else json.dumps(inner, sort_keys=True, default=str)
        return str(payload["id"]), text
    text = json.dumps(payload, sort_keys=True, default=str)
    return text, text


def with_ids(items: Iterable[ItemEnvelope]) -> Iterator[ItemEnvelope]:
    """Fold each item's id into its payload so the template can use ``{id}``."""
    for item in items:
        yield ItemEnvelope(id=item.id, payload={"id": item.id, "payload": item.payload})
