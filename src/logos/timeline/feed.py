"""In-memory timeline feed.

Holds the event list a consumer renders: the first page, appended pages and
live upserts. Each ``reload`` starts a new generation; a page that completes
after a newer generation has started is discarded instead of overwriting the
state of the newer filters.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Protocol

from logos.timeline.models import (
    FetchError,
    TimelineEvent,
    TimelineFilters,
    TimelinePage,
    TimelinePaginationCursor,
)

logger = logging.getLogger(__name__)


class PageSource(Protocol):
    async def fetch_timeline(
        self,
        filters: TimelineFilters,
        cursor: TimelinePaginationCursor | None = None,
        page_size: int | None = None,
    ) -> TimelinePage: ...


class TimelineFeed:
    """Paged, upsertable event list for one set of filters at a time."""

    def __init__(self, source: PageSource, page_size: int = 20) -> None:
        self._source = source
        self.page_size = page_size
        self.filters: TimelineFilters | None = None
        self.events: list[TimelineEvent] = []
        self.next_cursor: TimelinePaginationCursor | None = None
        self.has_more = False
        self.degraded_sources: list[FetchError] = []
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def _is_stale(self, generation: int) -> bool:
        if generation != self._generation:
            logger.debug(
                "Discarding timeline page from generation %d (current %d)",
                generation,
                self._generation,
            )
            return True
        return False

    def _apply_paging(self, page: TimelinePage) -> None:
        self.next_cursor = page.next_cursor
        self.has_more = page.has_more
        self.degraded_sources = list(page.degraded_sources)

    async def reload(self, filters: TimelineFilters) -> bool:
        """Replace the feed with the first page for *filters*.

        Returns ``False`` when a newer reload superseded this one.
        """
        self._generation += 1
        generation = self._generation
        self.filters = filters

        page = await self._source.fetch_timeline(filters, None, self.page_size)
        if self._is_stale(generation):
            return False

        self.events = []
        self._append(page.events)
        self._apply_paging(page)
        return True

    async def load_more(self) -> bool:
        """Append the next page; ``False`` when there is none or it went stale."""
        if self.filters is None or not self.has_more or self.next_cursor is None:
            return False
        generation = self._generation

        page = await self._source.fetch_timeline(self.filters, self.next_cursor, self.page_size)
        if self._is_stale(generation):
            return False

        self._append(page.events)
        self._apply_paging(page)
        return True

    def _append(self, events: list[TimelineEvent]) -> None:
        seen = {event.id for event in self.events}
        for event in events:
            if event.id not in seen:
                seen.add(event.id)
                self.events.append(event)

    def upsert(self, event: TimelineEvent) -> bool:
        """Replace the event with the same ``id`` in place, or prepend it.

        Returns ``True`` when the event was new.
        """
        for index, existing in enumerate(self.events):
            if existing.id == event.id:
                self.events[index] = event
                return False
        self.events.insert(0, event)
        return True

    def grouped_by_date(self) -> list[tuple[date, list[TimelineEvent]]]:
        """Group events by UTC calendar day, newest day first."""
        groups: dict[date, list[TimelineEvent]] = {}
        for event in self.events:
            groups.setdefault(event.timestamp.date(), []).append(event)
        return sorted(groups.items(), key=lambda item: item[0], reverse=True)
