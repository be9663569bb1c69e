"""Display hints for timeline events.

Colours and icons are looked up first by ``(source, event_type)`` and then by
source alone; anything unknown degrades to the neutral default.
"""

from __future__ import annotations

from logos.timeline.models import EventSource

DEFAULT_STYLE: tuple[str, str] = ("#6b7280", "activity")

EVENT_TYPE_STYLES: dict[tuple[EventSource, str], tuple[str, str]] = {
    (EventSource.ACTIVITY, "call"): ("#3b82f6", "phone"),
    (EventSource.ACTIVITY, "email"): ("#8b5cf6", "mail"),
    (EventSource.ACTIVITY, "meeting"): ("#10b981", "users"),
    (EventSource.ACTIVITY, "note"): ("#6b7280", "file-text"),
    (EventSource.TASK, "task_completed"): ("#f59e0b", "check-circle"),
    (EventSource.COMMUNICATION_LOG, "email"): ("#ec4899", "mail"),
}

SOURCE_STYLES: dict[EventSource, tuple[str, str]] = {
    EventSource.ACTIVITY: DEFAULT_STYLE,
    EventSource.TOUCHPOINT: ("#8b5cf6", "handshake"),
    EventSource.TASK: ("#f59e0b", "circle"),
    EventSource.DONATION: ("#22c55e", "dollar-sign"),
    EventSource.PROJECT_MILESTONE: ("#10b981", "flag"),
    EventSource.COMMUNICATION_LOG: ("#ec4899", "phone"),
    EventSource.CALENDAR_EVENT: ("#06b6d4", "calendar"),
}

SOURCE_LABELS: dict[EventSource, str] = {
    EventSource.ACTIVITY: "Activities",
    EventSource.TOUCHPOINT: "Touchpoints",
    EventSource.TASK: "Tasks",
    EventSource.PROJECT_MILESTONE: "Milestones",
    EventSource.CALENDAR_EVENT: "Calendar Events",
    EventSource.COMMUNICATION_LOG: "Communications",
    EventSource.DONATION: "Donations",
}


def display_hints(source: EventSource, event_type: str | None) -> tuple[str, str]:
    """Return ``(color, icon)`` for an event."""
    if event_type:
        style = EVENT_TYPE_STYLES.get((source, event_type.lower()))
        if style is not None:
            return style
    return SOURCE_STYLES.get(source, DEFAULT_STYLE)
