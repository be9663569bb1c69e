"""One-time load of the static seed dataset into the CRM database.

Every record is upserted on its ``external_id``, so a migration can be re-run
after a partial failure. Records are processed in batches; each record runs
in its own savepoint so one bad row fails alone and the rest of the batch
still lands.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

import asyncpg

from logos import seed

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50


class MigrationConfigError(Exception):
    """Raised when the migration cannot start (bad options or no database)."""


@dataclass(frozen=True)
class SeedJob:
    """One seed collection and the upsert that loads it."""

    kind: str
    sql: str
    columns: tuple[str, ...]
    records: list[seed.SeedRecord]

    def params(self, record: seed.SeedRecord) -> list[object]:
        return [record.get(column) for column in self.columns]


@dataclass
class BatchResult:
    kind: str
    index: int
    succeeded: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class JobResult:
    kind: str
    total: int
    batches: list[BatchResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(batch.succeeded for batch in self.batches)

    @property
    def failed(self) -> int:
        return sum(batch.failed for batch in self.batches)


_CLIENTS_SQL = """
INSERT INTO clients (external_id, name, contact_person, email, phone, location, is_active)
VALUES ($1, $2, $3, $4, $5, $6, true)
ON CONFLICT (external_id) DO UPDATE
    SET name = EXCLUDED.name,
        contact_person = EXCLUDED.contact_person,
        email = EXCLUDED.email,
        phone = EXCLUDED.phone,
        location = EXCLUDED.location,
        updated_at = now()
"""

_PROJECTS_SQL = """
INSERT INTO projects (external_id, name, description, client_id, status, start_date, end_date)
VALUES ($1, $2, $3, (SELECT id FROM clients WHERE external_id = $4), $5, $6, $7)
ON CONFLICT (external_id) DO UPDATE
    SET name = EXCLUDED.name,
        description = EXCLUDED.description,
        client_id = EXCLUDED.client_id,
        status = EXCLUDED.status,
        start_date = EXCLUDED.start_date,
        end_date = EXCLUDED.end_date,
        updated_at = now()
"""

_TASKS_SQL = """
INSERT INTO tasks (
    external_id, project_id, description, status, priority, phase, due_date, shared_with_client
)
VALUES ($1, (SELECT id FROM projects WHERE external_id = $2), $3, $4, $5, $6, $7, $8)
ON CONFLICT (external_id) DO UPDATE
    SET project_id = EXCLUDED.project_id,
        description = EXCLUDED.description,
        status = EXCLUDED.status,
        priority = EXCLUDED.priority,
        phase = EXCLUDED.phase,
        due_date = EXCLUDED.due_date,
        shared_with_client = EXCLUDED.shared_with_client
"""

_CASES_SQL = """
INSERT INTO cases (external_id, title, description, client_id, status, priority)
VALUES ($1, $2, $3, (SELECT id FROM clients WHERE external_id = $4), $5, $6)
ON CONFLICT (external_id) DO UPDATE
    SET title = EXCLUDED.title,
        description = EXCLUDED.description,
        client_id = EXCLUDED.client_id,
        status = EXCLUDED.status,
        priority = EXCLUDED.priority,
        updated_at = now()
"""

_DONATIONS_SQL = """
INSERT INTO donations (external_id, donor_name, client_id, amount, donation_date, campaign)
VALUES ($1, $2, (SELECT id FROM clients WHERE external_id = $3), $4, $5, $6)
ON CONFLICT (external_id) DO UPDATE
    SET donor_name = EXCLUDED.donor_name,
        client_id = EXCLUDED.client_id,
        amount = EXCLUDED.amount,
        donation_date = EXCLUDED.donation_date,
        campaign = EXCLUDED.campaign
"""

# Dependency order: projects resolve clients, tasks resolve projects.
JOBS: dict[str, SeedJob] = {
    "clients": SeedJob(
        kind="clients",
        sql=_CLIENTS_SQL,
        columns=("external_id", "name", "contact_person", "email", "phone", "location"),
        records=seed.CLIENTS,
    ),
    "projects": SeedJob(
        kind="projects",
        sql=_PROJECTS_SQL,
        columns=(
            "external_id",
            "name",
            "description",
            "client_external_id",
            "status",
            "start_date",
            "end_date",
        ),
        records=seed.PROJECTS,
    ),
    "tasks": SeedJob(
        kind="tasks",
        sql=_TASKS_SQL,
        columns=(
            "external_id",
            "project_external_id",
            "description",
            "status",
            "priority",
            "phase",
            "due_date",
            "shared_with_client",
        ),
        records=seed.TASKS,
    ),
    "cases": SeedJob(
        kind="cases",
        sql=_CASES_SQL,
        columns=("external_id", "title", "description", "client_external_id", "status", "priority"),
        records=seed.CASES,
    ),
    "donations": SeedJob(
        kind="donations",
        sql=_DONATIONS_SQL,
        columns=(
            "external_id",
            "donor_name",
            "client_external_id",
            "amount",
            "donation_date",
            "campaign",
        ),
        records=seed.DONATIONS,
    ),
}

KINDS = tuple(JOBS)


def select_jobs(kind: str) -> list[SeedJob]:
    """Jobs for *kind* (or every job for ``"all"``), in dependency order."""
    if kind == "all":
        return list(JOBS.values())
    try:
        return [JOBS[kind]]
    except KeyError:
        raise MigrationConfigError(
            f"Unknown kind {kind!r}; expected one of {', '.join(KINDS)} or 'all'"
        ) from None


def _batches(records: list[seed.SeedRecord], batch_size: int):
    for start in range(0, len(records), batch_size):
        yield records[start : start + batch_size]


async def _migrate_job(
    conn: asyncpg.Connection | None,
    job: SeedJob,
    batch_size: int,
    dry_run: bool,
    on_batch: Callable[[BatchResult], None] | None,
) -> JobResult:
    result = JobResult(kind=job.kind, total=len(job.records))
    for index, batch in enumerate(_batches(job.records, batch_size), start=1):
        outcome = BatchResult(kind=job.kind, index=index)
        for record in batch:
            if dry_run or conn is None:
                outcome.succeeded += 1
                continue
            try:
                async with conn.transaction():
                    await conn.execute(job.sql, *job.params(record))
            except asyncpg.PostgresError as exc:
                outcome.failed += 1
                outcome.errors.append(f"{record.get('external_id')}: {exc}")
                logger.warning(
                    "Seed %s record %s failed: %s", job.kind, record.get("external_id"), exc
                )
            else:
                outcome.succeeded += 1
        result.batches.append(outcome)
        if on_batch is not None:
            on_batch(outcome)
    return result


async def run_migration(
    conn: asyncpg.Connection | None,
    kind: str = "all",
    batch_size: int = DEFAULT_BATCH_SIZE,
    dry_run: bool = False,
    on_batch: Callable[[BatchResult], None] | None = None,
) -> list[JobResult]:
    """Upsert the seed records for *kind* and return per-job results.

    With ``dry_run`` nothing is written and *conn* may be ``None``; every
    record is reported as it would be attempted.
    """
    if batch_size <= 0:
        raise MigrationConfigError("--batch-size must be greater than 0")
    jobs = select_jobs(kind)
    if conn is None and not dry_run:
        raise MigrationConfigError("A database connection is required unless --dry-run is set")

    results = []
    for job in jobs:
        results.append(await _migrate_job(conn, job, batch_size, dry_run, on_batch))
        logger.info(
            "Seed %s: %d/%d succeeded", job.kind, results[-1].succeeded, results[-1].total
        )
    return results
