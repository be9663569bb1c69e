"""Tests for the in-memory TimelineFeed."""

from __future__ import annotations

import asyncio
from datetime import date, timedelta

import pytest

from logos.timeline.feed import TimelineFeed
from logos.timeline.models import EventSource, TimelineFilters, TimelinePage

pytestmark = pytest.mark.unit


class ScriptedSource:
    """Returns queued pages; a page may wait on an event before returning."""

    def __init__(self, *pages):
        self.pages = list(pages)
        self.calls = []
        self.gates: dict[int, asyncio.Event] = {}

    async def fetch_timeline(self, filters, cursor=None, page_size=None):
        index = len(self.calls)
        self.calls.append((filters, cursor, page_size))
        gate = self.gates.get(index)
        if gate is not None:
            await gate.wait()
        return self.pages[index]


def _page(events, has_more=False):
    return TimelinePage(
        events=events,
        next_cursor=events[-1].cursor if has_more else None,
        has_more=has_more,
        total_count=len(events) + int(has_more),
    )


async def test_reload_replaces_events(make_event):
    first = [make_event(EventSource.ACTIVITY, "a")]
    second = [make_event(EventSource.TASK, "t")]
    source = ScriptedSource(_page(first), _page(second))
    feed = TimelineFeed(source, page_size=10)

    assert await feed.reload(TimelineFilters()) is True
    assert await feed.reload(TimelineFilters(search_query="x")) is True

    assert [e.id for e in feed.events] == ["task-t"]
    assert feed.filters.search_query == "x"
    assert source.calls[0][1:] == (None, 10)


async def test_load_more_appends_next_page(make_event):
    base = make_event().timestamp
    page1 = [make_event(EventSource.ACTIVITY, str(i), base - timedelta(hours=i)) for i in range(2)]
    page2 = [make_event(EventSource.ACTIVITY, "2", base - timedelta(hours=2))]
    source = ScriptedSource(_page(page1, has_more=True), _page(page2))
    feed = TimelineFeed(source, page_size=2)

    await feed.reload(TimelineFilters())
    assert feed.has_more is True
    assert await feed.load_more() is True

    assert [e.id for e in feed.events] == ["activity-0", "activity-1", "activity-2"]
    assert source.calls[1][1] == page1[-1].cursor
    assert feed.has_more is False
    assert await feed.load_more() is False
    assert len(source.calls) == 2


async def test_load_more_before_reload_does_nothing():
    feed = TimelineFeed(ScriptedSource())
    assert await feed.load_more() is False


async def test_stale_reload_is_discarded(make_event):
    old = [make_event(EventSource.ACTIVITY, "old")]
    new = [make_event(EventSource.ACTIVITY, "new")]
    source = ScriptedSource(_page(old), _page(new))
    gate = asyncio.Event()
    source.gates[0] = gate
    feed = TimelineFeed(source)

    slow = asyncio.create_task(feed.reload(TimelineFilters(search_query="old")))
    await asyncio.sleep(0)
    assert await feed.reload(TimelineFilters(search_query="new")) is True
    gate.set()

    assert await slow is False
    assert [e.id for e in feed.events] == ["activity-new"]
    assert feed.generation == 2


async def test_duplicate_ids_are_skipped_on_append(make_event):
    event = make_event(EventSource.DONATION, "d")
    source = ScriptedSource(_page([event], has_more=True), _page([event]))
    feed = TimelineFeed(source)

    await feed.reload(TimelineFilters())
    await feed.load_more()

    assert [e.id for e in feed.events] == ["donation-d"]


def test_upsert_replaces_in_place_or_prepends(make_event):
    feed = TimelineFeed(ScriptedSource())
    feed.events = [make_event(EventSource.ACTIVITY, "1"), make_event(EventSource.ACTIVITY, "2")]

    updated = make_event(EventSource.ACTIVITY, "2", title="Renamed")
    assert feed.upsert(updated) is False
    assert feed.events[1].title == "Renamed"

    created = make_event(EventSource.TASK, "9")
    assert feed.upsert(created) is True
    assert [e.id for e in feed.events] == ["task-9", "activity-1", "activity-2"]


def test_grouped_by_date_newest_day_first(make_event):
    base = make_event().timestamp
    feed = TimelineFeed(ScriptedSource())
    feed.events = [
        make_event(EventSource.ACTIVITY, "1", base),
        make_event(EventSource.ACTIVITY, "2", base - timedelta(hours=1)),
        make_event(EventSource.ACTIVITY, "3", base - timedelta(days=3)),
    ]

    groups = feed.grouped_by_date()

    assert [day for day, _ in groups] == [date(2024, 11, 15), date(2024, 11, 12)]
    assert [e.id for e in groups[0][1]] == ["activity-1", "activity-2"]
