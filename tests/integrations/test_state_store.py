"""Tests for the key-value stores."""

from __future__ import annotations

import json

import pytest

from logos.integrations.store import MemoryStore, StateStore, decode_jsonb

pytestmark = pytest.mark.unit


class TestDecodeJsonb:
    def test_passes_through_decoded_values(self):
        assert decode_jsonb({"a": 1}) == {"a": 1}
        assert decode_jsonb(None) is None

    def test_decodes_json_text(self):
        assert decode_jsonb('{"a": 1}') == {"a": 1}

    def test_double_encoded(self, caplog):
        assert decode_jsonb(json.dumps(json.dumps([1, 2]))) == [1, 2]
        assert "Double-encoded" in caplog.text

    def test_plain_json_string_survives(self):
        assert decode_jsonb(json.dumps("hello")) == "hello"


class TestStateStore:
    async def test_get_decodes_value(self, mock_pool):
        mock_pool.fetchval.return_value = '{"enabled": true}'
        assert await StateStore(mock_pool).get("k") == {"enabled": True}
        assert mock_pool.fetchval.await_args.args == (
            "SELECT value FROM state WHERE key = $1",
            "k",
        )

    async def test_get_missing_key(self, mock_pool):
        assert await StateStore(mock_pool).get("missing") is None

    async def test_set_upserts_json(self, mock_pool):
        await StateStore(mock_pool).set("k", {"n": [1, 2]})
        sql, key, value = mock_pool.execute.await_args.args
        assert "ON CONFLICT (key) DO UPDATE" in sql
        assert key == "k"
        assert json.loads(value) == {"n": [1, 2]}

    async def test_delete(self, mock_pool):
        await StateStore(mock_pool).delete("k")
        assert mock_pool.execute.await_args.args == ("DELETE FROM state WHERE key = $1", "k")


class TestMemoryStore:
    async def test_values_are_copied_in_and_out(self):
        store = MemoryStore()
        value = {"items": [1]}
        await store.set("k", value)
        value["items"].append(2)

        loaded = await store.get("k")
        loaded["items"].append(3)

        assert await store.get("k") == {"items": [1]}

    async def test_initial_data_and_delete(self):
        store = MemoryStore({"k": 1})
        assert await store.get("k") == 1
        await store.delete("k")
        await store.delete("k")
        assert await store.get("k") is None
