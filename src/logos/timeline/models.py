"""Timeline value types.

Provides the unified event sum type (one variant per ``EventSource``), the
query descriptor ``TimelineFilters``, the keyset ``TimelinePaginationCursor``,
page/stats results, and the per-source ``SourceResult``/``FetchError`` pair
used to report degraded sources instead of swallowing their failures.

Events are totally ordered by ``(timestamp, source, event_id)``; pagination
and the merge in :mod:`logos.timeline.service` rely on that key.
"""

from __future__ import annotations

import base64
import binascii
import enum
import json
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class EventSource(enum.StrEnum):
    """Origin table/category of a timeline event."""

    ACTIVITY = "activity"
    TOUCHPOINT = "touchpoint"
    TASK = "task"
    DONATION = "donation"
    PROJECT_MILESTONE = "project_milestone"
    COMMUNICATION_LOG = "communication_log"
    CALENDAR_EVENT = "calendar_event"


ALL_SOURCES: tuple[EventSource, ...] = tuple(EventSource)


class EntityType(enum.StrEnum):
    """Kind of record a timeline is scoped to."""

    CONTACT = "contact"
    ORGANIZATION = "organization"
    PROJECT = "project"


# Entity ids that disable scoping (whole-store and demo/preview timelines).
ALL_ENTITIES = "all"
DEMO_ENTITY_PREFIX = "demo-"


# ---------------------------------------------------------------------------
# Pagination cursor
# ---------------------------------------------------------------------------


class TimelinePaginationCursor(BaseModel):
    """Position of an event in the timeline's total order.

    The cursor of a page is the position of its last event; the next page
    holds only events strictly after it in descending order.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    source: EventSource
    event_id: str

    @property
    def sort_key(self) -> tuple[datetime, str, str]:
        return (self.timestamp, self.source.value, self.event_id)

    def encode(self) -> str:
        """Serialise to an opaque URL-safe token."""
        raw = self.model_dump_json().encode()
        return base64.urlsafe_b64encode(raw).decode().rstrip("=")

    @classmethod
    def decode(cls, token: str) -> TimelinePaginationCursor:
        """Parse a token produced by :meth:`encode`.

        Raises ``ValueError`` for anything that is not a valid cursor.
        """
        padded = token + "=" * (-len(token) % 4)
        try:
            payload = json.loads(base64.urlsafe_b64decode(padded.encode()))
            cursor = cls.model_validate(payload)
        except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
            raise ValueError(f"Invalid timeline cursor: {token!r}") from exc
        if cursor.timestamp.tzinfo is None:
            raise ValueError(f"Invalid timeline cursor: {token!r} (naive timestamp)")
        return cursor


# ---------------------------------------------------------------------------
# Unified timeline event (tagged union keyed by ``source``)
# ---------------------------------------------------------------------------


class _TimelineEventBase(BaseModel):
    """Fields shared by every timeline event variant.

    ``id`` is ``"<prefix>-<event_id>"`` and depends on nothing else, so
    re-mapping the same origin row always yields the same ``id``.
    ``color`` and ``icon`` are display hints derived from source/event type.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    event_id: str
    timestamp: datetime
    title: str
    description: str | None = None
    client_id: str | None = None
    project_id: str | None = None
    event_type: str
    created_by: str | None = None
    created_by_name: str | None = None
    color: str
    icon: str

    @property
    def cursor(self) -> TimelinePaginationCursor:
        return TimelinePaginationCursor(
            timestamp=self.timestamp,
            source=EventSource(self.source),  # type: ignore[attr-defined]
            event_id=self.event_id,
        )

    @property
    def sort_key(self) -> tuple[datetime, str, str]:
        return (self.timestamp, self.source, self.event_id)  # type: ignore[attr-defined]


class ActivityEvent(_TimelineEventBase):
    """A call, email, meeting or note logged against a client or project."""

    source: Literal["activity"] = "activity"
    status: str | None = None


class TouchpointEvent(_TimelineEventBase):
    """A donor cultivation interaction."""

    source: Literal["touchpoint"] = "touchpoint"
    donor_move_id: str | None = None
    sentiment: str | None = None
    engagement_level: str | None = None


class TaskEvent(_TimelineEventBase):
    source: Literal["task"] = "task"
    status: str | None = None
    priority: str | None = None


class DonationEvent(_TimelineEventBase):
    source: Literal["donation"] = "donation"
    amount: float


class MilestoneEvent(_TimelineEventBase):
    source: Literal["project_milestone"] = "project_milestone"
    status: str | None = None
    amount: float | None = None


class CommunicationLogEvent(_TimelineEventBase):
    source: Literal["communication_log"] = "communication_log"
    direction: str | None = None


class CalendarEvent(_TimelineEventBase):
    source: Literal["calendar_event"] = "calendar_event"
    location: str | None = None


TimelineEvent = Annotated[
    ActivityEvent
    | TouchpointEvent
    | TaskEvent
    | DonationEvent
    | MilestoneEvent
    | CommunicationLogEvent
    | CalendarEvent,
    Field(discriminator="source"),
]


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


class TimelineFilters(BaseModel):
    """Query descriptor for one timeline.

    ``event_sources`` selects which fetchers run. The list filters
    (``event_types``, ``status_filters``, ``priority_filters``,
    ``team_member_ids``, ``project_ids``) are applied to mapped events; an
    empty list disables the filter. ``date_from``/``date_to`` are inclusive
    calendar dates applied in the query.
    """

    model_config = ConfigDict(frozen=True)

    entity_type: EntityType = EntityType.CONTACT
    entity_id: str = ALL_ENTITIES
    event_sources: tuple[EventSource, ...] = ALL_SOURCES
    event_types: tuple[str, ...] = ()
    date_from: date | None = None
    date_to: date | None = None
    team_member_ids: tuple[str, ...] = ()
    project_ids: tuple[str, ...] = ()
    status_filters: tuple[str, ...] = ()
    priority_filters: tuple[str, ...] = ()
    search_query: str | None = None

    @property
    def is_scoped(self) -> bool:
        """False for the ``all`` entity and demo/preview entities."""
        return self.entity_id != ALL_ENTITIES and not self.entity_id.startswith(
            DEMO_ENTITY_PREFIX
        )

    def matches(self, event: _TimelineEventBase) -> bool:
        """Apply the post-fetch filters (search and list filters) to *event*."""
        query = (self.search_query or "").strip().lower()
        if query:
            title = event.title.lower()
            description = (event.description or "").lower()
            if query not in title and query not in description:
                return False

        if self.event_types and event.event_type not in self.event_types:
            return False
        if self.status_filters and getattr(event, "status", None) not in self.status_filters:
            return False
        if self.priority_filters and getattr(event, "priority", None) not in self.priority_filters:
            return False
        if self.team_member_ids and event.created_by not in self.team_member_ids:
            return False
        if self.project_ids and event.project_id not in self.project_ids:
            return False
        return True


# ---------------------------------------------------------------------------
# Fetch results
# ---------------------------------------------------------------------------


class FetchError(BaseModel):
    """A failed source fetch, reported alongside the page it degraded."""

    source: EventSource
    message: str
    error_type: str


@dataclass
class SourceResult:
    """Outcome of one source fetch: events, or the error that replaced them."""

    source: EventSource
    events: list[TimelineEvent] = field(default_factory=list)
    error: FetchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class TimelinePage(BaseModel):
    """One page of the merged timeline."""

    events: list[TimelineEvent]
    next_cursor: TimelinePaginationCursor | None = None
    has_more: bool = False
    total_count: int = 0
    degraded_sources: list[FetchError] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Summary stats
# ---------------------------------------------------------------------------


class DateRange(BaseModel):
    earliest: datetime | None = None
    latest: datetime | None = None


class Participant(BaseModel):
    """A creator ranked by how many timeline events carry their name."""

    id: str
    name: str
    count: int


class TimelineSummaryStats(BaseModel):
    total_events: int
    event_counts: dict[EventSource, int]
    date_range: DateRange
    top_participants: list[Participant]
    recent_activity: int
    degraded_sources: list[FetchError] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


class ActivityCreate(BaseModel):
    """Request body for logging a new activity."""

    type: str = Field(min_length=1)
    title: str = Field(min_length=1)
    description: str | None = None
    activity_date: date
    activity_time: time | None = None
    project_id: str | None = None
    client_id: str | None = None
    created_by_id: str | None = None
