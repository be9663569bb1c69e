"""Shared fixtures for the logos test suite.

Provides:
- ``make_event``: factory for timeline events of any source
- ``fake_fetcher``: factory for in-memory fetchers that honour the keyset
  contract of the SQL fetchers (strictly-after positions, descending order,
  ``limit``)
- ``mock_pool``: an ``AsyncMock`` standing in for an asyncpg pool
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock

import pytest

from logos.timeline.models import (
    ActivityEvent,
    CalendarEvent,
    CommunicationLogEvent,
    DonationEvent,
    EventSource,
    FetchError,
    MilestoneEvent,
    SourceResult,
    TaskEvent,
    TimelineEvent,
    TimelineFilters,
    TimelinePaginationCursor,
    TouchpointEvent,
)

_EVENT_MODELS = {
    EventSource.ACTIVITY: ActivityEvent,
    EventSource.TOUCHPOINT: TouchpointEvent,
    EventSource.TASK: TaskEvent,
    EventSource.DONATION: DonationEvent,
    EventSource.PROJECT_MILESTONE: MilestoneEvent,
    EventSource.COMMUNICATION_LOG: CommunicationLogEvent,
    EventSource.CALENDAR_EVENT: CalendarEvent,
}

DEFAULT_TS = datetime(2024, 11, 15, 12, 0, tzinfo=UTC)


def build_event(
    source: EventSource = EventSource.ACTIVITY,
    event_id: str = "1",
    timestamp: datetime = DEFAULT_TS,
    **fields: Any,
) -> TimelineEvent:
    values: dict[str, Any] = {
        "id": f"{source.value}-{event_id}",
        "event_id": event_id,
        "timestamp": timestamp,
        "title": f"{source.value} {event_id}",
        "event_type": source.value,
        "color": "#6b7280",
        "icon": "activity",
    }
    if source is EventSource.DONATION:
        values["amount"] = 100.0
    values.update(fields)
    return _EVENT_MODELS[source](**values)


class FakeFetcher:
    """In-memory fetcher over a fixed event list."""

    def __init__(
        self,
        source: EventSource,
        events: Iterable[TimelineEvent] = (),
        error: str | None = None,
    ) -> None:
        self.source = source
        self.events = sorted(events, key=lambda event: event.sort_key, reverse=True)
        self.error = error
        self.calls: list[tuple[TimelinePaginationCursor | None, int]] = []

    async def fetch(
        self,
        pool: Any,
        filters: TimelineFilters,
        after: TimelinePaginationCursor | None = None,
        limit: int = 100,
    ) -> SourceResult:
        self.calls.append((after, limit))
        if self.error is not None:
            return SourceResult(
                source=self.source,
                error=FetchError(source=self.source, message=self.error, error_type="OSError"),
            )
        remaining = [
            event
            for event in self.events
            if after is None or event.sort_key < after.sort_key
        ]
        return SourceResult(source=self.source, events=remaining[:limit])


@pytest.fixture
def make_event() -> Callable[..., TimelineEvent]:
    return build_event


@pytest.fixture
def fake_fetcher() -> Callable[..., FakeFetcher]:
    return FakeFetcher


@pytest.fixture
def mock_pool() -> AsyncMock:
    pool = AsyncMock()
    pool.fetch = AsyncMock(return_value=[])
    pool.fetchrow = AsyncMock(return_value=None)
    pool.fetchval = AsyncMock(return_value=None)
    pool.execute = AsyncMock(return_value="OK")
    return pool
