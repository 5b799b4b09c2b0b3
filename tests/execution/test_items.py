"""Tests for work-source helpers."""

from __future__ import annotations

import pytest

from bulkops.core.errors import ConfigError, InvalidItemIdError
from bulkops.execution.items import envelopes, read_items_file
from bulkops.execution.models import ItemEnvelope


class TestEnvelopes:
    def test_wraps_values(self):
        items = list(envelopes(["PROJ-1", "PROJ-2"]))
        assert [i.id for i in items] == ["PROJ-1", "PROJ-2"]
        assert items[0].payload == "PROJ-1"

    def test_key_function(self):
        rows = [{"key": "A-1", "to": "Done"}]
        (item,) = envelopes(rows, key=lambda r: r["key"])
        assert item.id == "A-1"
        assert item.payload is rows[0]

    def test_envelopes_pass_through(self):
        env = ItemEnvelope("x", 1)
        assert list(envelopes([env])) == [env]

    def test_is_lazy(self):
        def source():
            yield "a"
            raise AssertionError("consumed too far")

        it = envelopes(source())
        assert next(it).id == "a"

    def test_empty_key_is_rejected(self):
        with pytest.raises(InvalidItemIdError):
            list(envelopes([""]))


class TestReadItemsFile:
    def test_mixed_lines(self, tmp_path):
        path = tmp_path / "items.txt"
        path.write_text(
            "# branches to delete\n"
            "\n"
            "feature/old\n"
            '{"id": "PROJ-1", "payload": {"transition": "Done"}}\n'
            '{"id": 42, "owner": "ops"}\n'
        )
        items = list(read_items_file(path))
        assert [i.id for i in items] == ["feature/old", "PROJ-1", "42"]
        assert items[0].payload == "feature/old"
        assert items[1].payload == {"transition": "Done"}
        assert items[2].payload == {"id": 42, "owner": "ops"}

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            list(read_items_file(tmp_path / "missing.txt"))

    def test_json_without_id(self, tmp_path):
        path = tmp_path / "items.jsonl"
        path.write_text('{"name": "x"}\n')
        with pytest.raises(ConfigError, match="'id'"):
            list(read_items_file(path))

    def test_invalid_json_reports_line(self, tmp_path):
        path = tmp_path / "items.jsonl"
        path.write_text('a\n{"id": \n')
        with pytest.raises(ConfigError, match=":2:"):
            list(read_items_file(path))
