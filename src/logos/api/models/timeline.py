"""Timeline-specific API models.

The page cursor crosses the API as an opaque token (see
``TimelinePaginationCursor.encode``); pass ``meta.next_cursor`` back as the
``cursor`` query parameter to fetch the next page.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from logos.timeline.models import FetchError, TimelineEvent, TimelinePage


class TimelineMeta(BaseModel):
    next_cursor: str | None = None
    has_more: bool = False
    total_count: int = 0
    degraded_sources: list[FetchError] = Field(default_factory=list)


class TimelineResponse(BaseModel):
    """Cursor-paginated timeline response."""

    data: list[TimelineEvent]
    meta: TimelineMeta = Field(default_factory=TimelineMeta)

    @classmethod
    def from_page(cls, page: TimelinePage) -> TimelineResponse:
        return cls(
            data=page.events,
            meta=TimelineMeta(
                next_cursor=page.next_cursor.encode() if page.next_cursor else None,
                has_more=page.has_more,
                total_count=page.total_count,
                degraded_sources=page.degraded_sources,
            ),
        )


class SourceInfo(BaseModel):
    """Display metadata for one event source."""

    source: str
    label: str
    color: str
    icon: str
