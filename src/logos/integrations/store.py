"""Key-value storage for integration settings and logs.

``StateStore`` persists JSON values in the ``state`` table (JSONB);
``MemoryStore`` keeps them in a dict for tests and database-less runs. Both
satisfy :class:`KeyValueStore`, which is all the integration services see.
"""

from __future__ import annotations

import copy
import json
import logging
from typing import Any, Protocol

import asyncpg

logger = logging.getLogger(__name__)


def decode_jsonb(val: Any) -> Any:
    """Decode a JSONB value, handling potential double-encoding.

    asyncpg returns JSONB columns as Python strings when no custom codec is
    registered.  Normally one ``json.loads`` pass suffices; a value stored as a
    JSON string containing JSON text needs a second pass.
    """
    if not isinstance(val, str):
        return val
    val = json.loads(val)
    if isinstance(val, str):
        logger.warning("Double-encoded JSONB detected, applying second decode pass")
        try:
            val = json.loads(val)
        except (json.JSONDecodeError, ValueError):
            pass
    return val


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def delete(self, key: str) -> None: ...


class StateStore:
    """``KeyValueStore`` over the ``state`` table."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def get(self, key: str) -> Any | None:
        """Return the value for *key*, or ``None`` if the key does not exist."""
        row = await self._pool.fetchval("SELECT value FROM state WHERE key = $1", key)
        if row is None:
            return None
        return decode_jsonb(row)

    async def set(self, key: str, value: Any) -> None:
        """Upsert *key* with any JSON-serialisable *value*."""
        await self._pool.execute(
            """
            INSERT INTO state (key, value, updated_at)
            VALUES ($1, $2::jsonb, now())
            ON CONFLICT (key) DO UPDATE
                SET value = EXCLUDED.value,
                    updated_at = now()
            """,
            key,
            json.dumps(value),
        )

    async def delete(self, key: str) -> None:
        """Delete *key*.  No-op if the key does not exist."""
        await self._pool.execute("DELETE FROM state WHERE key = $1", key)


class MemoryStore:
    """``KeyValueStore`` backed by a dict; values are deep-copied in and out."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, key: str) -> Any | None:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)
