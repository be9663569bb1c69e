"""Timeline aggregation service.

``TimelineService.fetch_timeline`` is a lazy k-way merge: each enabled source
becomes a stream that pulls keyset-paginated batches from its fetcher on
demand, and the merge repeatedly takes the greatest head across streams in
the total order ``(timestamp, source, event_id)``. A source with more recent
events than one batch simply refills, so nothing is starved by a per-source
ceiling, and a page cursor is an exact position rather than a bare
timestamp.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter, deque
from collections.abc import Callable, Mapping
from datetime import UTC, datetime, timedelta
from typing import Protocol

import asyncpg

from logos.config import TimelineConfig
from logos.core.telemetry import get_tracer
from logos.timeline.fetchers import FETCHERS
from logos.timeline.mappers import map_activity
from logos.timeline.models import (
    ActivityCreate,
    ActivityEvent,
    DateRange,
    EventSource,
    FetchError,
    Participant,
    SourceResult,
    TimelineEvent,
    TimelineFilters,
    TimelinePage,
    TimelinePaginationCursor,
    TimelineSummaryStats,
)

logger = logging.getLogger(__name__)

_CREATE_ACTIVITY_SQL = """
WITH inserted AS (
    INSERT INTO activities (
        type, title, notes, activity_date, activity_time,
        project_id, client_id, created_by_id, status, shared_with_client
    )
    VALUES ($1, $2, $3, $4, $5, $6::uuid, $7::uuid, $8::uuid, 'Completed', false)
    RETURNING *
)
SELECT inserted.*, tm.name AS created_by_name
FROM inserted
LEFT JOIN team_members tm ON tm.id = inserted.created_by_id
"""


class Fetcher(Protocol):
    """Anything that can serve keyset-paginated batches of one source."""

    @property
    def source(self) -> EventSource: ...

    async def fetch(
        self,
        pool: asyncpg.Pool,
        filters: TimelineFilters,
        after: TimelinePaginationCursor | None = None,
        limit: int = ...,
    ) -> SourceResult: ...


def _utcnow() -> datetime:
    return datetime.now(UTC)


class _SourceStream:
    """Lazily refilled, filtered view of one source in descending order."""

    def __init__(
        self,
        fetcher: Fetcher,
        pool: asyncpg.Pool,
        filters: TimelineFilters,
        batch_size: int,
        after: TimelinePaginationCursor | None,
    ) -> None:
        self.fetcher = fetcher
        self.pool = pool
        self.filters = filters
        self.batch_size = batch_size
        self.position = after
        self.buffer: deque[TimelineEvent] = deque()
        self.exhausted = False
        self.error: FetchError | None = None

    async def fill(self) -> None:
        source = self.fetcher.source
        try:
            result = await self.fetcher.fetch(
                self.pool, self.filters, after=self.position, limit=self.batch_size
            )
        except Exception as exc:
            logger.warning("Timeline fetcher for %s raised", source, exc_info=True)
            result = SourceResult(
                source=source,
                error=FetchError(
                    source=source,
                    message=str(exc) or type(exc).__name__,
                    error_type=type(exc).__name__,
                ),
            )
        if not result.ok:
            self.error = result.error
            self.exhausted = True
            return

        events = result.events
        if len(events) < self.batch_size:
            self.exhausted = True
        if events:
            # Advance on raw rows so filtered-out events are not fetched again.
            self.position = events[-1].cursor
        self.buffer.extend(event for event in events if self.filters.matches(event))

    async def head(self) -> TimelineEvent | None:
        while not self.buffer and not self.exhausted:
            await self.fill()
        return self.buffer[0] if self.buffer else None


class TimelineService:
    """Aggregates per-source events into pages, stats and writes.

    Parameters
    ----------
    pool:
        asyncpg pool handed to every fetcher.
    fetchers:
        Fetcher per source; defaults to the SQL fetchers.
    config:
        Batch size, page size bounds and stats settings.
    clock:
        Returns "now" for the recent-activity window.
    """

    def __init__(
        self,
        pool: asyncpg.Pool,
        fetchers: Mapping[EventSource, Fetcher] | None = None,
        config: TimelineConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._pool = pool
        self._fetchers: Mapping[EventSource, Fetcher] = (
            fetchers if fetchers is not None else FETCHERS
        )
        self._config = config or TimelineConfig()
        self._clock = clock

    @property
    def config(self) -> TimelineConfig:
        return self._config

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    async def fetch_timeline(
        self,
        filters: TimelineFilters,
        cursor: TimelinePaginationCursor | None = None,
        page_size: int | None = None,
    ) -> TimelinePage:
        """Return one page of the merged timeline, newest first.

        Raises ``ValueError`` when *page_size* is outside ``1..max_page_size``.
        """
        if page_size is None:
            page_size = self._config.default_page_size
        if not 1 <= page_size <= self._config.max_page_size:
            raise ValueError(
                f"page_size must be between 1 and {self._config.max_page_size}, got {page_size}"
            )

        tracer = get_tracer()
        with tracer.start_as_current_span("logos.timeline.fetch") as span:
            span.set_attribute("timeline.entity_type", filters.entity_type.value)
            span.set_attribute("timeline.entity_id", filters.entity_id)
            span.set_attribute("timeline.page_size", page_size)
            span.set_attribute("timeline.has_cursor", cursor is not None)

            collected, degraded = await self._merge(filters, cursor, page_size + 1)

            has_more = len(collected) > page_size
            events = collected[:page_size]
            next_cursor = events[-1].cursor if has_more and events else None

            span.set_attribute("timeline.events", len(events))
            span.set_attribute("timeline.degraded_sources", len(degraded))

        if degraded:
            logger.warning(
                "Timeline page for %s %s degraded: %s",
                filters.entity_type,
                filters.entity_id,
                ", ".join(error.source for error in degraded),
            )
        return TimelinePage(
            events=events,
            next_cursor=next_cursor,
            has_more=has_more,
            total_count=len(collected),
            degraded_sources=degraded,
        )

    async def _merge(
        self,
        filters: TimelineFilters,
        cursor: TimelinePaginationCursor | None,
        wanted: int,
    ) -> tuple[list[TimelineEvent], list[FetchError]]:
        """Take up to *wanted* events after *cursor* across all enabled sources."""
        batch_size = max(wanted, self._config.fetch_limit)
        streams = [
            _SourceStream(self._fetchers[source], self._pool, filters, batch_size, cursor)
            for source in dict.fromkeys(filters.event_sources)
            if source in self._fetchers
        ]
        await asyncio.gather(*(stream.fill() for stream in streams))

        collected: list[TimelineEvent] = []
        while len(collected) < wanted:
            best: _SourceStream | None = None
            best_head: TimelineEvent | None = None
            for stream in streams:
                head = await stream.head()
                if head is None:
                    continue
                if best_head is None or head.sort_key > best_head.sort_key:
                    best, best_head = stream, head
            if best is None:
                break
            collected.append(best.buffer.popleft())

        degraded = [stream.error for stream in streams if stream.error is not None]
        return collected, degraded

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    async def get_summary_stats(
        self, entity_id: str, filters: TimelineFilters | None = None
    ) -> TimelineSummaryStats:
        """Recompute summary stats over up to ``stats_limit`` events.

        Search is ignored; every other filter in *filters* applies.
        """
        base = filters or TimelineFilters()
        scoped = base.model_copy(update={"entity_id": entity_id, "search_query": None})

        tracer = get_tracer()
        with tracer.start_as_current_span("logos.timeline.stats") as span:
            span.set_attribute("timeline.entity_id", entity_id)
            events, degraded = await self._merge(scoped, None, self._config.stats_limit)

        event_counts = {source: 0 for source in EventSource}
        for event in events:
            event_counts[EventSource(event.source)] += 1

        timestamps = [event.timestamp for event in events]
        date_range = DateRange(
            earliest=min(timestamps) if timestamps else None,
            latest=max(timestamps) if timestamps else None,
        )

        names: Counter[str] = Counter()
        participant_ids: dict[str, str] = {}
        for event in events:
            if not event.created_by_name:
                continue
            names[event.created_by_name] += 1
            participant_ids.setdefault(
                event.created_by_name, event.created_by or event.created_by_name
            )
        top = [
            Participant(id=participant_ids[name], name=name, count=count)
            for name, count in names.most_common(self._config.top_participants)
        ]

        window_start = self._clock() - timedelta(days=self._config.recent_days)
        recent = sum(1 for event in events if event.timestamp >= window_start)

        return TimelineSummaryStats(
            total_events=len(events),
            event_counts=event_counts,
            date_range=date_range,
            top_participants=top,
            recent_activity=recent,
            degraded_sources=degraded,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_activity(self, data: ActivityCreate) -> ActivityEvent:
        """Insert a completed activity and return it as a timeline event.

        Raises ``ValueError`` for references or values the database rejects.
        """
        try:
            row = await self._pool.fetchrow(
                _CREATE_ACTIVITY_SQL,
                data.type,
                data.title,
                data.description,
                data.activity_date,
                data.activity_time,
                data.project_id,
                data.client_id,
                data.created_by_id,
            )
        except asyncpg.ForeignKeyViolationError as exc:
            raise ValueError(f"Invalid activity reference: {exc}") from exc
        except asyncpg.DataError as exc:
            raise ValueError(f"Invalid activity data: {exc}") from exc

        event = map_activity(row)
        logger.info("Created activity %s (%s)", event.event_id, event.event_type)
        return event
