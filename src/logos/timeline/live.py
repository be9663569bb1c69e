"""Live timeline updates over PostgreSQL LISTEN/NOTIFY.

Row-change triggers on the CRM tables publish a small reference payload on
``crm_<table>_changes`` channels::

    {"type": "INSERT" | "UPDATE" | "DELETE", "table": "activities",
     "id": "...", "client_id": "..." | null, "project_id": "..." | null}

NOTIFY payloads are capped at 8000 bytes, so the row itself is never sent.
:class:`LiveUpdateBridge` listens on the channels relevant to one entity,
re-reads each matching INSERT/UPDATE row with the same query and mapper the
fetchers use, and hands the event to a callback. Consumers upsert by ``id``.
There is no replay: notifications sent while no listener is attached are lost
until the next page fetch.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import asyncpg

from logos.timeline.fetchers import SOURCE_SPECS
from logos.timeline.mappers import MAPPERS
from logos.timeline.models import EntityType, EventSource, TimelineEvent, TimelineFilters

logger = logging.getLogger(__name__)

TABLE_SOURCES: dict[str, EventSource] = {
    "activities": EventSource.ACTIVITY,
    "touchpoints": EventSource.TOUCHPOINT,
    "tasks": EventSource.TASK,
    "donations": EventSource.DONATION,
}

_UPSERT_OPS = frozenset({"INSERT", "UPDATE"})

OnUpdate = Callable[[TimelineEvent], None]
Unsubscribe = Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class ChangeNotice:
    """A relevant row change, identified by table and primary key."""

    op: str
    table: str
    record_id: str

    @property
    def source(self) -> EventSource:
        return TABLE_SOURCES[self.table]


def channel_name(table: str) -> str:
    return f"crm_{table}_changes"


def tables_for(filters: TimelineFilters) -> list[str]:
    """Tables whose changes can affect the timeline described by *filters*."""
    if not filters.is_scoped:
        return list(TABLE_SOURCES)
    if filters.entity_type is EntityType.PROJECT:
        return ["activities", "tasks"]
    return ["activities", "touchpoints", "donations"]


def record_in_scope(table: str, record: dict[str, Any], filters: TimelineFilters) -> bool:
    if not filters.is_scoped:
        return True
    column = "project_id" if filters.entity_type is EntityType.PROJECT else "client_id"
    if table not in tables_for(filters):
        return False
    value = record.get(column)
    return value is not None and str(value) == filters.entity_id


def decode_change(payload: str, filters: TimelineFilters) -> ChangeNotice | None:
    """Parse one notification payload, or return ``None`` when it is not relevant.

    DELETE notifications and rows outside the entity scope are ignored
    silently; malformed payloads are logged and ignored.
    """
    try:
        change = json.loads(payload)
    except json.JSONDecodeError:
        logger.warning("Ignoring non-JSON change notification: %.200s", payload)
        return None
    if not isinstance(change, dict):
        logger.warning("Ignoring change notification that is not an object: %.200s", payload)
        return None

    op = change.get("type")
    table = change.get("table")
    record_id = change.get("id")
    if op == "DELETE":
        return None
    if op not in _UPSERT_OPS or table not in TABLE_SOURCES or not record_id:
        logger.warning(
            "Ignoring malformed change notification (type=%r, table=%r)", op, table
        )
        return None
    if not record_in_scope(table, change, filters):
        return None
    return ChangeNotice(op=op, table=table, record_id=str(record_id))


class LiveUpdateBridge:
    """Subscribes timelines to row changes on a dedicated pool connection."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def load_event(self, notice: ChangeNotice) -> TimelineEvent | None:
        """Read the changed row and map it, or ``None`` if it is gone or unmappable."""
        spec = SOURCE_SPECS[notice.source]
        try:
            row = await self._pool.fetchrow(
                f"{spec.select_sql} WHERE r.id = $1::uuid", notice.record_id
            )
        except (asyncpg.PostgresError, OSError):
            logger.warning(
                "Could not load %s change on %s %s",
                notice.op,
                notice.table,
                notice.record_id,
                exc_info=True,
            )
            return None
        if row is None:
            # Deleted before we got to it.
            return None
        try:
            return MAPPERS[notice.source](row)
        except (KeyError, TypeError, ValueError):
            logger.warning("Could not map %s change on %s", notice.op, notice.table, exc_info=True)
            return None

    async def subscribe(
        self,
        entity_id: str,
        entity_type: EntityType | str,
        on_update: OnUpdate,
    ) -> Unsubscribe:
        """Start delivering events for one entity to *on_update*.

        Returns an async ``unsubscribe()`` that removes every listener,
        cancels deliveries still in flight and releases the connection;
        calling it more than once is harmless.
        """
        filters = TimelineFilters(entity_type=EntityType(entity_type), entity_id=entity_id)
        tables = tables_for(filters)

        conn = await self._pool.acquire()
        listeners: list[tuple[str, Callable[..., None]]] = []
        inflight: set[asyncio.Task[None]] = set()

        async def _teardown() -> None:
            for channel, callback in listeners:
                try:
                    await conn.remove_listener(channel, callback)
                except Exception:
                    logger.warning("Failed to remove listener on %s", channel, exc_info=True)
            listeners.clear()
            for task in inflight:
                task.cancel()
            await self._pool.release(conn)

        try:
            for table in tables:
                channel = channel_name(table)
                callback = self._listener(filters, on_update, inflight)
                await conn.add_listener(channel, callback)
                listeners.append((channel, callback))
        except BaseException:
            await _teardown()
            raise

        logger.debug(
            "Subscribed %s %s to %s", filters.entity_type, entity_id, ", ".join(tables)
        )
        closed = False

        async def unsubscribe() -> None:
            nonlocal closed
            if closed:
                return
            closed = True
            await _teardown()
            logger.debug("Unsubscribed %s %s", filters.entity_type, entity_id)

        return unsubscribe

    async def _deliver(self, notice: ChangeNotice, on_update: OnUpdate) -> None:
        event = await self.load_event(notice)
        if event is None:
            return
        try:
            on_update(event)
        except Exception:
            logger.exception("Timeline update callback failed for %s", event.id)

    def _listener(
        self,
        filters: TimelineFilters,
        on_update: OnUpdate,
        inflight: set[asyncio.Task[None]],
    ) -> Callable[..., None]:
        def _on_notify(connection: Any, pid: int, channel: str, payload: str) -> None:
            notice = decode_change(payload, filters)
            if notice is None:
                return
            task = asyncio.get_running_loop().create_task(self._deliver(notice, on_update))
            inflight.add(task)
            task.add_done_callback(inflight.discard)

        return _on_notify
