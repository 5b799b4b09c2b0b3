"""Work sources — turning caller data into item envelopes.

The executor only ever sees :class:`ItemEnvelope` values.  These helpers
adapt the two shapes work usually arrives in: an in-memory iterable of
keys or records, and an items file on disk.

Items file format (one item per line, blank lines and ``#`` comments
ignored)::

    {"id": "PROJ-1", "payload": {"transition": "Done"}}   # JSON object
    PROJ-2                                                # plain text

A plain-text line is used as both the id and the payload.  Both
functions are lazy, so large files are streamed straight into the
scheduler.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path
from typing import Any

from bulkops.core.errors import ConfigError
from bulkops.execution.models import ItemEnvelope


def envelopes(
    values: Iterable[Any],
    key: Callable[[Any], str] | None = None,
) -> Iterator[ItemEnvelope]:
    """Wrap arbitrary values; ``key`` derives the id (default ``str(value)``)."""
    derive = key or str
    for value in values:
        if isinstance(value, ItemEnvelope):
            yield value
        else:
            yield ItemEnvelope(id=derive(value), payload=value)


def read_items_file(path: str | Path) -> Iterator[ItemEnvelope]:
    """Stream envelopes from an items file.

    Raises:
        ConfigError: If the file is missing or a JSON line has no ``id``
    """
    path = Path(path)
    try:
        handle = path.open("r", encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot read items file {path}: {e}", cause=e).with_context(
            path=str(path)
        ) from e

    with handle:
        for lineno, raw in enumerate(handle, start=1):
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith("{"):
                yield _parse_json_line(line, path, lineno)
            else:
                yield ItemEnvelope(id=line, payload=line)


def _parse_json_line(line: str, path: Path, lineno: int) -> ItemEnvelope:
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise ConfigError(f"{path}:{lineno}: invalid JSON: {e}", cause=e) from e
    if not isinstance(data, dict) or "id" not in data:
        raise ConfigError(f"{path}:{lineno}: JSON items need an 'id' field")
    return ItemEnvelope(id=str(data["id"]), payload=data.get("payload", data))
