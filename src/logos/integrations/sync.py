"""Chat/meeting platform synchronisation.

:class:`IntegrationSyncService` owns the sync settings and the rolling sync
log, both persisted through a :class:`~logos.integrations.store.KeyValueStore`,
and drives a :class:`SyncTransport` for the actual data movement.
:class:`HttpSyncTransport` talks to the platform's PostgREST-style API with
httpx: it pushes new local activities and pulls remote clients and projects,
upserting them locally by ``external_id``.
"""

from __future__ import annotations

import enum
import json
import logging
import time
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

import asyncpg
import httpx
from pydantic import BaseModel, Field, ValidationError

from logos.core.logging import sync_run_context
from logos.integrations.store import KeyValueStore

logger = logging.getLogger(__name__)

CONFIG_KEY = "integrations.sync.config"
LOGS_KEY = "integrations.sync.logs"
LAST_SYNC_KEY = "integrations.sync.last_sync"
LAST_PUSH_KEY = "integrations.sync.last_push"

MAX_LOG_ENTRIES = 100
RECENT_LOG_ENTRIES = 10


class SyncInProgressError(Exception):
    """Raised when a sync is requested while another one is running."""

    def __init__(self) -> None:
        super().__init__("Sync already in progress")


class SyncNotConfiguredError(Exception):
    """Raised when no sync endpoint is configured."""


class SyncDirection(enum.StrEnum):
    LOGOS_TO_PULSE = "logos_to_pulse"
    PULSE_TO_LOGOS = "pulse_to_logos"
    BIDIRECTIONAL = "bidirectional"


class SyncFrequency(enum.StrEnum):
    REALTIME = "realtime"
    MANUAL = "manual"
    FIVE_MINUTES = "5min"
    FIFTEEN_MINUTES = "15min"
    HOURLY = "hourly"


class ConflictResolution(enum.StrEnum):
    LOGOS_WINS = "logos_wins"
    PULSE_WINS = "pulse_wins"
    NEWEST_WINS = "newest_wins"


class SyncOutcome(enum.StrEnum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


SCHEDULE_INTERVALS: dict[SyncFrequency, timedelta] = {
    SyncFrequency.FIVE_MINUTES: timedelta(minutes=5),
    SyncFrequency.FIFTEEN_MINUTES: timedelta(minutes=15),
    SyncFrequency.HOURLY: timedelta(hours=1),
}


class SyncSettings(BaseModel):
    """User-editable sync configuration."""

    enabled: bool = True
    sync_direction: SyncDirection = SyncDirection.BIDIRECTIONAL
    sync_frequency: SyncFrequency = SyncFrequency.MANUAL
    auto_sync_on_load: bool = True
    conflict_resolution: ConflictResolution = ConflictResolution.NEWEST_WINS
    sync_team_members: bool = True
    sync_projects: bool = True
    sync_clients: bool = True
    sync_activities: bool = True
    sync_meetings: bool = True
    sync_documents: bool = False


class SyncLogEntry(BaseModel):
    id: str
    timestamp: datetime
    direction: SyncDirection
    status: SyncOutcome
    items_synced: int = 0
    items_failed: int = 0
    duration_ms: int = 0
    details: str | None = None
    error: str | None = None


class SyncStatistics(BaseModel):
    total_syncs: int = 0
    successful_syncs: int = 0
    failed_syncs: int = 0
    items_synced: int = 0


class SyncStatus(BaseModel):
    is_connected: bool
    last_sync_time: datetime | None = None
    next_scheduled_sync: datetime | None = None
    is_syncing: bool = False
    current_operation: str = "idle"
    recent_logs: list[SyncLogEntry] = Field(default_factory=list)
    statistics: SyncStatistics = Field(default_factory=SyncStatistics)


class SyncTransport(Protocol):
    async def check_connection(self) -> bool: ...

    async def push(self, settings: SyncSettings, since: datetime | None) -> int: ...

    async def pull(self, settings: SyncSettings) -> int: ...


def _utcnow() -> datetime:
    return datetime.now(UTC)


def next_scheduled_sync(
    settings: SyncSettings, last_sync: datetime | None, now: datetime
) -> datetime | None:
    """When the next automatic sync is due, or ``None`` when none is scheduled."""
    if not settings.enabled:
        return None
    interval = SCHEDULE_INTERVALS.get(settings.sync_frequency)
    if interval is None:
        return None
    return (last_sync or now) + interval


def compute_statistics(logs: list[SyncLogEntry]) -> SyncStatistics:
    return SyncStatistics(
        total_syncs=len(logs),
        successful_syncs=sum(1 for entry in logs if entry.status is SyncOutcome.SUCCESS),
        failed_syncs=sum(1 for entry in logs if entry.status is SyncOutcome.FAILED),
        items_synced=sum(entry.items_synced for entry in logs),
    )


class IntegrationSyncService:
    """Runs syncs and keeps their settings and history.

    Parameters
    ----------
    store:
        Persists settings, the rolling log and the sync watermarks.
    transport:
        Moves the data; ``None`` when no endpoint is configured, in which
        case every sync is recorded as failed.
    clock:
        Returns "now"; injectable for tests.
    """

    def __init__(
        self,
        store: KeyValueStore,
        transport: SyncTransport | None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._transport = transport
        self._clock = clock
        self._syncing = False
        self._current_operation = "idle"

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def get_settings(self) -> SyncSettings:
        raw = await self._store.get(CONFIG_KEY)
        if raw is None:
            return SyncSettings()
        try:
            return SyncSettings.model_validate(raw)
        except ValidationError:
            logger.warning("Stored sync settings are invalid; using defaults", exc_info=True)
            return SyncSettings()

    async def update_settings(self, settings: SyncSettings) -> SyncSettings:
        await self._store.set(CONFIG_KEY, settings.model_dump(mode="json"))
        logger.info(
            "Sync settings updated: enabled=%s direction=%s frequency=%s",
            settings.enabled,
            settings.sync_direction,
            settings.sync_frequency,
        )
        return settings

    # ------------------------------------------------------------------
    # Log
    # ------------------------------------------------------------------

    async def _load_logs(self) -> list[SyncLogEntry]:
        raw = await self._store.get(LOGS_KEY) or []
        entries: list[SyncLogEntry] = []
        for item in raw:
            try:
                entries.append(SyncLogEntry.model_validate(item))
            except ValidationError:
                logger.warning("Dropping unreadable sync log entry: %r", item)
        return entries

    async def get_logs(self, limit: int = RECENT_LOG_ENTRIES) -> list[SyncLogEntry]:
        return (await self._load_logs())[:limit]

    async def clear_logs(self) -> None:
        await self._store.delete(LOGS_KEY)
        logger.info("Sync log cleared")

    async def _append_log(self, entry: SyncLogEntry) -> None:
        logs = [entry, *await self._load_logs()][:MAX_LOG_ENTRIES]
        await self._store.set(LOGS_KEY, [item.model_dump(mode="json") for item in logs])

    async def last_sync_time(self) -> datetime | None:
        raw = await self._store.get(LAST_SYNC_KEY)
        return datetime.fromisoformat(raw) if raw else None

    async def last_push_time(self) -> datetime | None:
        """Start of the last push that succeeded; activities after it are unsent."""
        raw = await self._store.get(LAST_PUSH_KEY)
        return datetime.fromisoformat(raw) if raw else None

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def check_connection(self) -> bool:
        if self._transport is None:
            return False
        try:
            return await self._transport.check_connection()
        except httpx.HTTPError:
            logger.warning("Sync connection check failed", exc_info=True)
            return False

    async def perform_full_sync(self) -> SyncLogEntry:
        """Push and/or pull according to the configured direction.

        Push sends activities created since the last successful push, so a
        failed push is retried in full on the next run. Each failing step
        counts one failed item; the run is ``failed`` on a fatal error,
        ``partial`` when any step failed and ``success`` otherwise. The
        entry is prepended to the rolling log.

        Raises
        ------
        SyncInProgressError
            If another sync is running.
        """
        if self._syncing:
            raise SyncInProgressError()
        self._syncing = True
        self._current_operation = "Initializing sync"
        sync_id = f"sync-{uuid.uuid4().hex[:12]}"
        try:
            with sync_run_context(sync_id):
                return await self._run(sync_id)
        finally:
            self._syncing = False

    async def _run(self, sync_id: str) -> SyncLogEntry:
        started = time.monotonic()
        settings = SyncSettings()
        items_synced = 0
        items_failed = 0
        error: str | None = None
        try:
            settings = await self.get_settings()
            if self._transport is None:
                raise SyncNotConfiguredError("Sync endpoint is not configured")

            if settings.sync_direction is not SyncDirection.PULSE_TO_LOGOS:
                self._current_operation = "Syncing Logos to Pulse"
                since = await self.last_push_time()
                push_started = self._clock()
                try:
                    items_synced += await self._transport.push(settings, since)
                except Exception:
                    logger.warning("Logos to Pulse sync failed", exc_info=True)
                    items_failed += 1
                else:
                    await self._store.set(LAST_PUSH_KEY, push_started.isoformat())

            if settings.sync_direction is not SyncDirection.LOGOS_TO_PULSE:
                self._current_operation = "Syncing Pulse to Logos"
                try:
                    items_synced += await self._transport.pull(settings)
                except Exception:
                    logger.warning("Pulse to Logos sync failed", exc_info=True)
                    items_failed += 1
        except Exception as exc:
            error = str(exc) or type(exc).__name__
            logger.error("Full sync failed: %s", error)

        try:
            duration_ms = int((time.monotonic() - started) * 1000)
            now = self._clock()
            if error is not None:
                status = SyncOutcome.FAILED
            elif items_failed:
                status = SyncOutcome.PARTIAL
            else:
                status = SyncOutcome.SUCCESS

            entry = SyncLogEntry(
                id=sync_id,
                timestamp=now,
                direction=settings.sync_direction,
                status=status,
                items_synced=items_synced,
                items_failed=items_failed,
                duration_ms=duration_ms,
                details=f"Synced {items_synced} items in {duration_ms}ms",
                error=error,
            )
            await self._store.set(LAST_SYNC_KEY, now.isoformat())
            await self._append_log(entry)
            logger.info(
                "Sync %s: %d synced, %d failed in %dms",
                status,
                items_synced,
                items_failed,
                duration_ms,
            )
            return entry
        finally:
            self._current_operation = "Sync failed" if error else "Sync complete"

    async def status(self) -> SyncStatus:
        settings = await self.get_settings()
        logs = await self._load_logs()
        last_sync = await self.last_sync_time()
        return SyncStatus(
            is_connected=await self.check_connection(),
            last_sync_time=last_sync,
            next_scheduled_sync=next_scheduled_sync(settings, last_sync, self._clock()),
            is_syncing=self._syncing,
            current_operation=self._current_operation,
            recent_logs=logs[:RECENT_LOG_ENTRIES],
            statistics=compute_statistics(logs),
        )


# ---------------------------------------------------------------------------
# HTTP transport
# ---------------------------------------------------------------------------

_PUSH_ACTIVITIES_SQL = """
SELECT id, type, title, notes, activity_date, activity_time, client_id, project_id, status
FROM activities
WHERE $1::timestamptz IS NULL OR created_at > $1::timestamptz
ORDER BY created_at
"""

_UPSERT_CLIENT_SQL = """
INSERT INTO clients (external_id, name, email, phone)
VALUES ($1, $2, $3, $4)
ON CONFLICT (external_id) DO UPDATE
    SET name = EXCLUDED.name,
        email = EXCLUDED.email,
        phone = EXCLUDED.phone,
        updated_at = now()
"""

_UPSERT_PROJECT_SQL = """
INSERT INTO projects (external_id, name, description, status)
VALUES ($1, $2, $3, COALESCE($4, 'Planning'))
ON CONFLICT (external_id) DO UPDATE
    SET name = EXCLUDED.name,
        description = EXCLUDED.description,
        status = EXCLUDED.status,
        updated_at = now()
"""


class HttpSyncTransport:
    """PostgREST-style remote with local upserts through asyncpg."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        api_key: str | None,
        pool: asyncpg.Pool,
    ) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._pool = pool

    def _headers(self, **extra: str) -> dict[str, str]:
        headers = {"Content-Type": "application/json", **extra}
        if self._api_key:
            headers["apikey"] = self._api_key
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _url(self, path: str) -> str:
        return f"{self._base_url}/rest/v1/{path}"

    async def check_connection(self) -> bool:
        response = await self._client.head(self._url(""), headers=self._headers())
        return response.is_success

    async def _get_rows(self, table: str) -> list[dict[str, Any]]:
        response = await self._client.get(
            self._url(table), params={"select": "*"}, headers=self._headers()
        )
        response.raise_for_status()
        rows = response.json()
        if not isinstance(rows, list):
            raise ValueError(f"Expected a list of {table} rows, got {type(rows).__name__}")
        return rows

    async def push(self, settings: SyncSettings, since: datetime | None) -> int:
        """POST local activities created since *since*; returns the count sent."""
        if not settings.sync_activities:
            return 0
        rows = await self._pool.fetch(_PUSH_ACTIVITIES_SQL, since)
        if not rows:
            return 0
        payload = [{**dict(row), "logos_id": str(row["id"])} for row in rows]
        for item in payload:
            item.pop("id")
        response = await self._client.post(
            self._url("logos_activities"),
            params={"on_conflict": "logos_id"},
            content=json.dumps(payload, default=str),
            headers=self._headers(Prefer="resolution=merge-duplicates"),
        )
        response.raise_for_status()
        logger.info("Pushed %d activities", len(payload))
        return len(payload)

    async def pull(self, settings: SyncSettings) -> int:
        """Upsert remote clients and projects locally; returns the count upserted."""
        synced = 0
        if settings.sync_clients:
            for row in await self._get_rows("contacts"):
                await self._pool.execute(
                    _UPSERT_CLIENT_SQL,
                    str(row["id"]),
                    row.get("name") or "",
                    row.get("email"),
                    row.get("phone"),
                )
                synced += 1
        if settings.sync_projects:
            for row in await self._get_rows("projects"):
                await self._pool.execute(
                    _UPSERT_PROJECT_SQL,
                    str(row["id"]),
                    row.get("name") or "",
                    row.get("description"),
                    row.get("status"),
                )
                synced += 1
        logger.info("Pulled %d records", synced)
        return synced
