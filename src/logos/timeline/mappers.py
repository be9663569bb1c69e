"""Raw row -> timeline event mappers.

One pure function per source. Rows come either from a query (native
``date``/``datetime``/``Decimal`` values) or from a change notification
(JSON-decoded strings); both shapes are accepted. A row missing its
timestamp raises ``TypeError``; there is no separate validation layer.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import UTC, date, datetime, time
from decimal import Decimal
from typing import Any

from logos.timeline.display import display_hints
from logos.timeline.models import (
    ActivityEvent,
    CalendarEvent,
    CommunicationLogEvent,
    DonationEvent,
    EventSource,
    MilestoneEvent,
    TaskEvent,
    TimelineEvent,
    TouchpointEvent,
)

Row = Mapping[str, Any]

ID_PREFIXES: dict[EventSource, str] = {
    EventSource.ACTIVITY: "activity",
    EventSource.TOUCHPOINT: "touchpoint",
    EventSource.TASK: "task",
    EventSource.DONATION: "donation",
    EventSource.PROJECT_MILESTONE: "milestone",
    EventSource.COMMUNICATION_LOG: "communication",
    EventSource.CALENDAR_EVENT: "calendar",
}

_DONE_STATUS = "Done"


def event_key(source: EventSource, event_id: Any) -> str:
    """Return the globally unique event id for an origin row id."""
    return f"{ID_PREFIXES[source]}-{event_id}"


def to_timestamp(value: date | datetime | str | None, at: time | str | None = None) -> datetime:
    """Coerce a date/datetime (optionally plus a time of day) to an aware UTC datetime.

    Naive values are taken to be UTC.
    """
    if value is None:
        raise TypeError("timeline row has no timestamp")
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value)
    elif isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time())
    else:
        raise TypeError(f"Unsupported timestamp value: {value!r}")

    if at is not None:
        clock = time.fromisoformat(at) if isinstance(at, str) else at
        parsed = datetime.combine(parsed.date(), clock.replace(tzinfo=None), tzinfo=parsed.tzinfo)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _opt_str(value: Any) -> str | None:
    return None if value is None else str(value)


def _opt_float(value: Any) -> float | None:
    return None if value is None else float(value)


def format_amount(amount: float | Decimal | str) -> str:
    """Format a money amount with thousands separators, dropping zero cents."""
    text = f"{float(amount):,.2f}"
    return text.rstrip("0").rstrip(".") if "." in text else text


def map_activity(row: Row) -> ActivityEvent:
    event_type = (row.get("type") or "activity").lower()
    color, icon = display_hints(EventSource.ACTIVITY, event_type)
    return ActivityEvent(
        id=event_key(EventSource.ACTIVITY, row["id"]),
        event_id=str(row["id"]),
        title=row.get("title") or "",
        description=row.get("notes"),
        timestamp=to_timestamp(row.get("activity_date"), row.get("activity_time")),
        client_id=_opt_str(row.get("client_id")),
        project_id=_opt_str(row.get("project_id")),
        event_type=event_type,
        status=row.get("status"),
        created_by=_opt_str(row.get("created_by_id")),
        created_by_name=row.get("created_by_name"),
        color=color,
        icon=icon,
    )


def map_touchpoint(row: Row) -> TouchpointEvent:
    event_type = row.get("touchpoint_type") or "touchpoint"
    color, icon = display_hints(EventSource.TOUCHPOINT, event_type)
    title = row.get("subject") or f"{row.get('touchpoint_type')} - {row.get('direction')}"
    return TouchpointEvent(
        id=event_key(EventSource.TOUCHPOINT, row["id"]),
        event_id=str(row["id"]),
        title=title,
        description=row.get("description"),
        timestamp=to_timestamp(row.get("touchpoint_date")),
        client_id=_opt_str(row.get("client_id")),
        donor_move_id=_opt_str(row.get("donor_move_id")),
        event_type=event_type,
        sentiment=row.get("sentiment"),
        engagement_level=row.get("engagement_level"),
        created_by=_opt_str(row.get("recorded_by")),
        created_by_name=row.get("recorded_by_name"),
        color=color,
        icon=icon,
    )


def map_task(row: Row) -> TaskEvent:
    status = row.get("status")
    event_type = "task_completed" if status == _DONE_STATUS else "task_created"
    color, icon = display_hints(EventSource.TASK, event_type)
    return TaskEvent(
        id=event_key(EventSource.TASK, row["id"]),
        event_id=str(row["id"]),
        title=row.get("title") or row.get("description") or "",
        description=row.get("notes"),
        timestamp=to_timestamp(row.get("due_date")),
        project_id=_opt_str(row.get("project_id")),
        event_type=event_type,
        status=status,
        priority=row.get("priority"),
        created_by=_opt_str(row.get("team_member_id")),
        created_by_name=row.get("assigned_to_name"),
        color=color,
        icon=icon,
    )


def map_donation(row: Row) -> DonationEvent:
    color, icon = display_hints(EventSource.DONATION, "donation")
    amount = float(row["amount"])
    return DonationEvent(
        id=event_key(EventSource.DONATION, row["id"]),
        event_id=str(row["id"]),
        title=f"Donation: ${format_amount(amount)}",
        description=row.get("notes"),
        timestamp=to_timestamp(row.get("donation_date")),
        client_id=_opt_str(row.get("client_id")),
        event_type="donation",
        amount=amount,
        color=color,
        icon=icon,
    )


def map_milestone(row: Row) -> MilestoneEvent:
    event_type = (row.get("type") or "milestone").lower()
    color, icon = display_hints(EventSource.PROJECT_MILESTONE, event_type)
    return MilestoneEvent(
        id=event_key(EventSource.PROJECT_MILESTONE, row["id"]),
        event_id=str(row["id"]),
        title=row.get("name") or "",
        description=row.get("description"),
        timestamp=to_timestamp(row.get("due_date")),
        project_id=_opt_str(row.get("project_id")),
        event_type=event_type,
        status=row.get("status"),
        amount=_opt_float(row.get("amount")),
        color=color,
        icon=icon,
    )


def map_communication_log(row: Row) -> CommunicationLogEvent:
    event_type = row.get("type") or "communication"
    color, icon = display_hints(EventSource.COMMUNICATION_LOG, event_type)
    title = row.get("subject") or f"{row.get('type')} - {row.get('direction')}"
    return CommunicationLogEvent(
        id=event_key(EventSource.COMMUNICATION_LOG, row["id"]),
        event_id=str(row["id"]),
        title=title,
        description=row.get("content"),
        timestamp=to_timestamp(row.get("sent_at")),
        client_id=_opt_str(row.get("client_id")),
        event_type=event_type,
        direction=row.get("direction"),
        color=color,
        icon=icon,
    )


def map_calendar_event(row: Row) -> CalendarEvent:
    color, icon = display_hints(EventSource.CALENDAR_EVENT, "calendar_event")
    return CalendarEvent(
        id=event_key(EventSource.CALENDAR_EVENT, row["id"]),
        event_id=str(row["id"]),
        title=row.get("title") or "",
        description=row.get("description"),
        timestamp=to_timestamp(row.get("start_time")),
        client_id=_opt_str(row.get("client_id")),
        project_id=_opt_str(row.get("project_id")),
        event_type="calendar_event",
        location=row.get("location"),
        color=color,
        icon=icon,
    )


MAPPERS: dict[EventSource, Callable[[Row], TimelineEvent]] = {
    EventSource.ACTIVITY: map_activity,
    EventSource.TOUCHPOINT: map_touchpoint,
    EventSource.TASK: map_task,
    EventSource.DONATION: map_donation,
    EventSource.PROJECT_MILESTONE: map_milestone,
    EventSource.COMMUNICATION_LOG: map_communication_log,
    EventSource.CALENDAR_EVENT: map_calendar_event,
}
