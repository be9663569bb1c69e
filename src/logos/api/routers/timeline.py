"""Timeline endpoints: merged relationship timeline, stats, writes and live stream.

Provides:

- ``router``: endpoints under ``/api/timeline``

Pages are cursor-paginated with opaque tokens (``meta.next_cursor``). The
stream endpoint relays live row changes for one entity as Server-Sent
Events.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import AsyncGenerator
from datetime import date

from fastapi import APIRouter, Depends, Query
from starlette.requests import Request
from starlette.responses import StreamingResponse

from logos.api.models import ApiResponse
from logos.api.models.timeline import SourceInfo, TimelineResponse
from logos.core.logging import bind_timeline_context
from logos.timeline.display import SOURCE_LABELS, SOURCE_STYLES
from logos.timeline.live import LiveUpdateBridge
from logos.timeline.models import (
    ALL_ENTITIES,
    DEMO_ENTITY_PREFIX,
    ActivityCreate,
    ActivityEvent,
    EntityType,
    EventSource,
    TimelineEvent,
    TimelineFilters,
    TimelinePaginationCursor,
    TimelineSummaryStats,
)
from logos.timeline.service import TimelineService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/timeline", tags=["timeline"])

KEEPALIVE_SECONDS = 30.0
STREAM_QUEUE_SIZE = 256

# Sentinel object to signal generator shutdown (used in tests)
_SHUTDOWN = object()


def _get_timeline_service() -> TimelineService:
    """Dependency stub, overridden at app startup or in tests."""
    raise RuntimeError("TimelineService not initialized")


def _get_live_bridge() -> LiveUpdateBridge:
    """Dependency stub, overridden at app startup or in tests."""
    raise RuntimeError("LiveUpdateBridge not initialized")


def _validate_entity_id(entity_id: str) -> str:
    entity_id = entity_id.strip()
    if entity_id == ALL_ENTITIES or entity_id.startswith(DEMO_ENTITY_PREFIX):
        return entity_id
    try:
        return str(uuid.UUID(entity_id))
    except ValueError:
        raise ValueError(
            f"entity_id must be a UUID, {ALL_ENTITIES!r} or a {DEMO_ENTITY_PREFIX!r} id; "
            f"got {entity_id!r}"
        ) from None


async def timeline_filters(
    entity_type: EntityType = Query(EntityType.CONTACT, description="Kind of entity"),
    entity_id: str = Query(ALL_ENTITIES, description="Entity id, 'all' or a demo- id"),
    source: list[EventSource] | None = Query(None, description="Sources to include"),
    event_type: list[str] | None = Query(None, description="Filter by event type(s)"),
    date_from: date | None = Query(None, description="Inclusive start date"),
    date_to: date | None = Query(None, description="Inclusive end date"),
    team_member: list[str] | None = Query(None, description="Filter by creator id(s)"),
    project: list[str] | None = Query(None, description="Filter by project id(s)"),
    status: list[str] | None = Query(None, description="Filter by status(es)"),
    priority: list[str] | None = Query(None, description="Filter by priority(ies)"),
    q: str | None = Query(None, description="Case-insensitive title/description search"),
) -> TimelineFilters:
    """Build ``TimelineFilters`` from query parameters.

    Async so the entity context it binds is seen by the endpoint and the
    service; sync dependencies run in the threadpool on a copied context.
    """
    if date_from is not None and date_to is not None and date_from > date_to:
        raise ValueError(f"date_from ({date_from}) is after date_to ({date_to})")
    entity_id = _validate_entity_id(entity_id)
    bind_timeline_context(entity_type, entity_id)
    return TimelineFilters(
        entity_type=entity_type,
        entity_id=entity_id,
        event_sources=tuple(source) if source else tuple(EventSource),
        event_types=tuple(event_type or ()),
        date_from=date_from,
        date_to=date_to,
        team_member_ids=tuple(team_member or ()),
        project_ids=tuple(project or ()),
        status_filters=tuple(status or ()),
        priority_filters=tuple(priority or ()),
        search_query=q,
    )


# ---------------------------------------------------------------------------
# GET /api/timeline: merged page
# ---------------------------------------------------------------------------


@router.get("", response_model=TimelineResponse)
async def list_timeline(
    filters: TimelineFilters = Depends(timeline_filters),
    cursor: str | None = Query(None, description="Opaque cursor from meta.next_cursor"),
    limit: int = Query(20, ge=1, le=200, description="Max events to return"),
    service: TimelineService = Depends(_get_timeline_service),
) -> TimelineResponse:
    """Return one page of the entity's timeline, newest first.

    Sources that failed are listed in ``meta.degraded_sources``; the page is
    built from the rest.
    """
    position = TimelinePaginationCursor.decode(cursor) if cursor else None
    page = await service.fetch_timeline(filters, position, limit)
    return TimelineResponse.from_page(page)


@router.get("/stats", response_model=ApiResponse[TimelineSummaryStats])
async def timeline_stats(
    filters: TimelineFilters = Depends(timeline_filters),
    service: TimelineService = Depends(_get_timeline_service),
) -> ApiResponse[TimelineSummaryStats]:
    """Summary statistics over the entity's timeline (search is ignored)."""
    stats = await service.get_summary_stats(filters.entity_id, filters)
    return ApiResponse[TimelineSummaryStats](data=stats)


@router.get("/sources", response_model=ApiResponse[list[SourceInfo]])
async def list_sources() -> ApiResponse[list[SourceInfo]]:
    """Display label, colour and icon for every event source."""
    data = [
        SourceInfo(
            source=source.value,
            label=SOURCE_LABELS[source],
            color=SOURCE_STYLES[source][0],
            icon=SOURCE_STYLES[source][1],
        )
        for source in EventSource
    ]
    return ApiResponse[list[SourceInfo]](data=data)


@router.post("/activities", response_model=ApiResponse[ActivityEvent], status_code=201)
async def create_activity(
    body: ActivityCreate,
    service: TimelineService = Depends(_get_timeline_service),
) -> ApiResponse[ActivityEvent]:
    """Log a completed activity and return it as a timeline event."""
    event = await service.create_activity(body)
    return ApiResponse[ActivityEvent](data=event)


# ---------------------------------------------------------------------------
# GET /api/timeline/stream: Server-Sent Events
# ---------------------------------------------------------------------------


def _format_event(event: TimelineEvent) -> str:
    return f"event: timeline_event\ndata: {event.model_dump_json()}\n\n"


async def _event_generator(
    request: Request,
    bridge: LiveUpdateBridge,
    entity_type: EntityType,
    entity_id: str,
) -> AsyncGenerator[str, None]:
    """Yield SSE-formatted timeline events until the client disconnects."""
    queue: asyncio.Queue = asyncio.Queue(maxsize=STREAM_QUEUE_SIZE)

    def _enqueue(event: TimelineEvent) -> None:
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("Timeline stream queue full; dropping %s", event.id)

    unsubscribe = await bridge.subscribe(entity_id, entity_type, _enqueue)
    try:
        payload = {"status": "ok", "entity_type": entity_type.value, "entity_id": entity_id}
        yield f"event: connected\ndata: {json.dumps(payload)}\n\n"

        while True:
            if await request.is_disconnected():
                break
            try:
                event = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
                if event is _SHUTDOWN:
                    break
                yield _format_event(event)
            except TimeoutError:
                # Keepalive comment to prevent proxy/connection timeouts
                yield ": keepalive\n\n"
    finally:
        await unsubscribe()


@router.get("/stream")
async def timeline_stream(
    request: Request,
    entity_type: EntityType = Query(EntityType.CONTACT),
    entity_id: str = Query(ALL_ENTITIES),
    bridge: LiveUpdateBridge = Depends(_get_live_bridge),
) -> StreamingResponse:
    """Server-Sent Events stream of live timeline changes for one entity.

    Event types:
    - connected: Initial connection confirmation
    - timeline_event: An inserted or updated event (upsert by ``id``)
    - keepalive: Comment line every 30s, not a named event
    """
    entity_id = _validate_entity_id(entity_id)
    bind_timeline_context(entity_type, entity_id)
    return StreamingResponse(
        _event_generator(request, bridge, entity_type, entity_id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
