"""Per-source timeline fetchers.

Each source is described by a :class:`SourceSpec` (table, joins, timestamp
expression, entity scoping) and served by a :class:`SourceFetcher` that
builds one keyset-paginated query::

    SELECT ... WHERE <scope> AND <date bounds> AND <after position>
    ORDER BY <timestamp> DESC, id DESC LIMIT n

Positions follow the timeline's total order ``(timestamp, source, event_id)``
so a page boundary that falls on a timestamp shared by several sources
neither skips nor repeats events. Ids are compared byte-wise (``COLLATE "C"``)
to agree with Python string ordering.

Query failures never propagate: they come back as a ``SourceResult`` carrying
a ``FetchError`` and are logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import asyncpg

from logos.timeline.mappers import MAPPERS
from logos.timeline.models import (
    EntityType,
    EventSource,
    FetchError,
    SourceResult,
    TimelineFilters,
    TimelinePaginationCursor,
)

logger = logging.getLogger(__name__)

DEFAULT_FETCH_LIMIT = 100

_ID_SQL = 'r.id::text COLLATE "C"'


@dataclass(frozen=True)
class SourceSpec:
    """How one source table is queried.

    ``scopes`` maps an entity type to a condition template with a ``{param}``
    placeholder; entity types without an entry cannot be scoped and yield no
    events for a scoped timeline. ``backed=False`` marks a source whose table
    does not exist yet; its fetcher returns an empty result without querying.
    """

    source: EventSource
    select_sql: str
    timestamp_sql: str
    date_sql: str
    scopes: dict[EntityType, str] = field(default_factory=dict)
    base_conditions: tuple[str, ...] = ()
    backed: bool = True


def _client_scope() -> dict[EntityType, str]:
    return {
        EntityType.CONTACT: "r.client_id = {param}::uuid",
        EntityType.ORGANIZATION: "r.client_id = {param}::uuid",
    }


def _project_scope() -> dict[EntityType, str]:
    via_projects = "r.project_id IN (SELECT p.id FROM projects p WHERE p.client_id = {param}::uuid)"
    return {
        EntityType.CONTACT: via_projects,
        EntityType.ORGANIZATION: via_projects,
        EntityType.PROJECT: "r.project_id = {param}::uuid",
    }


SOURCE_SPECS: dict[EventSource, SourceSpec] = {
    EventSource.ACTIVITY: SourceSpec(
        source=EventSource.ACTIVITY,
        select_sql=(
            "SELECT r.*, tm.name AS created_by_name FROM activities r "
            "LEFT JOIN team_members tm ON tm.id = r.created_by_id"
        ),
        timestamp_sql=(
            "((r.activity_date + COALESCE(r.activity_time, TIME '00:00')) AT TIME ZONE 'UTC')"
        ),
        date_sql="r.activity_date",
        scopes={
            **_client_scope(),
            EntityType.PROJECT: "r.project_id = {param}::uuid",
        },
    ),
    EventSource.TOUCHPOINT: SourceSpec(
        source=EventSource.TOUCHPOINT,
        select_sql=(
            "SELECT r.*, tm.name AS recorded_by_name FROM touchpoints r "
            "LEFT JOIN team_members tm ON tm.id = r.recorded_by"
        ),
        timestamp_sql="r.touchpoint_date",
        date_sql="(r.touchpoint_date AT TIME ZONE 'UTC')::date",
        scopes=_client_scope(),
    ),
    EventSource.TASK: SourceSpec(
        source=EventSource.TASK,
        select_sql=(
            "SELECT r.*, tm.name AS assigned_to_name FROM tasks r "
            "LEFT JOIN team_members tm ON tm.id = r.team_member_id"
        ),
        timestamp_sql="(r.due_date::timestamp AT TIME ZONE 'UTC')",
        date_sql="r.due_date",
        scopes=_project_scope(),
        base_conditions=("r.due_date IS NOT NULL",),
    ),
    EventSource.DONATION: SourceSpec(
        source=EventSource.DONATION,
        select_sql="SELECT r.* FROM donations r",
        timestamp_sql="(r.donation_date::timestamp AT TIME ZONE 'UTC')",
        date_sql="r.donation_date",
        scopes=_client_scope(),
    ),
    # No project_milestones table yet.
    EventSource.PROJECT_MILESTONE: SourceSpec(
        source=EventSource.PROJECT_MILESTONE,
        select_sql=(
            "SELECT r.*, p.name AS project_name FROM project_milestones r "
            "LEFT JOIN projects p ON p.id = r.project_id"
        ),
        timestamp_sql="(r.due_date::timestamp AT TIME ZONE 'UTC')",
        date_sql="r.due_date",
        scopes=_project_scope(),
        backed=False,
    ),
    # No communication_logs table yet.
    EventSource.COMMUNICATION_LOG: SourceSpec(
        source=EventSource.COMMUNICATION_LOG,
        select_sql="SELECT r.* FROM communication_logs r",
        timestamp_sql="r.sent_at",
        date_sql="(r.sent_at AT TIME ZONE 'UTC')::date",
        scopes=_client_scope(),
        backed=False,
    ),
    # Calendar sync writes to the calendar provider only.
    EventSource.CALENDAR_EVENT: SourceSpec(
        source=EventSource.CALENDAR_EVENT,
        select_sql="SELECT r.* FROM calendar_events r",
        timestamp_sql="r.start_time",
        date_sql="(r.start_time AT TIME ZONE 'UTC')::date",
        scopes={**_client_scope(), EntityType.PROJECT: "r.project_id = {param}::uuid"},
        backed=False,
    ),
}


class SourceFetcher:
    """Fetches one page of one source's events, newest first."""

    def __init__(self, spec: SourceSpec) -> None:
        self.spec = spec

    @property
    def source(self) -> EventSource:
        return self.spec.source

    def _keyset_condition(
        self, after: TimelinePaginationCursor, args: list[object]
    ) -> str:
        """Condition selecting rows strictly after *after* in descending total order."""
        ts = self.spec.timestamp_sql
        args.append(after.timestamp)
        ts_param = f"${len(args)}"

        own = self.source.value
        if own < after.source.value:
            # Every row of this source at the cursor timestamp sorts after it.
            return f"{ts} <= {ts_param}"
        if own > after.source.value:
            return f"{ts} < {ts_param}"

        args.append(after.event_id)
        id_param = f"${len(args)}"
        return f"({ts} < {ts_param} OR ({ts} = {ts_param} AND {_ID_SQL} < {id_param}))"

    def build_query(
        self,
        filters: TimelineFilters,
        after: TimelinePaginationCursor | None = None,
        limit: int = DEFAULT_FETCH_LIMIT,
    ) -> tuple[str, list[object]] | None:
        """Return ``(sql, args)``, or ``None`` when the entity cannot be scoped."""
        conditions: list[str] = list(self.spec.base_conditions)
        args: list[object] = []

        if filters.is_scoped:
            template = self.spec.scopes.get(filters.entity_type)
            if template is None:
                return None
            args.append(filters.entity_id)
            conditions.append(template.format(param=f"${len(args)}"))

        if filters.date_from is not None:
            args.append(filters.date_from)
            conditions.append(f"{self.spec.date_sql} >= ${len(args)}")
        if filters.date_to is not None:
            args.append(filters.date_to)
            conditions.append(f"{self.spec.date_sql} <= ${len(args)}")

        if after is not None:
            conditions.append(self._keyset_condition(after, args))

        where = (" WHERE " + " AND ".join(conditions)) if conditions else ""
        args.append(limit)
        sql = (
            f"{self.spec.select_sql}{where} "
            f"ORDER BY {self.spec.timestamp_sql} DESC, {_ID_SQL} DESC "
            f"LIMIT ${len(args)}"
        )
        return sql, args

    async def fetch(
        self,
        pool: asyncpg.Pool,
        filters: TimelineFilters,
        after: TimelinePaginationCursor | None = None,
        limit: int = DEFAULT_FETCH_LIMIT,
    ) -> SourceResult:
        """Fetch up to *limit* events strictly after *after*.

        Unbacked sources and entity types the source cannot be scoped to
        return an empty, successful result without querying.
        """
        if not self.spec.backed:
            return SourceResult(source=self.source)

        query = self.build_query(filters, after, limit)
        if query is None:
            return SourceResult(source=self.source)
        sql, args = query

        mapper = MAPPERS[self.source]
        try:
            rows = await pool.fetch(sql, *args)
            events = [mapper(row) for row in rows]
        except Exception as exc:
            logger.warning("Timeline fetch failed for source %s", self.source, exc_info=True)
            return SourceResult(
                source=self.source,
                error=FetchError(
                    source=self.source,
                    message=str(exc) or type(exc).__name__,
                    error_type=type(exc).__name__,
                ),
            )
        return SourceResult(source=self.source, events=events)


FETCHERS: dict[EventSource, SourceFetcher] = {
    source: SourceFetcher(spec) for source, spec in SOURCE_SPECS.items()
}
