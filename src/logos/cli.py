"""CLI for Logos: run the API, load seed data and inspect timelines."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import asyncpg
import click

from logos import __version__
from logos.config import ConfigError, load_config
from logos.db import Database, database_configured, database_url
from logos.migrate import (
    DEFAULT_BATCH_SIZE,
    KINDS,
    BatchResult,
    JobResult,
    MigrationConfigError,
    run_migration,
)
from logos.timeline.feed import TimelineFeed
from logos.timeline.models import ALL_ENTITIES, EntityType, TimelineFilters
from logos.timeline.service import TimelineService

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """Logos: CRM relationship timeline service."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(name)s: %(message)s")


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address")
@click.option("--port", type=int, default=8000, show_default=True, help="Bind port")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to logos.toml",
)
def serve(host: str, port: int, config_path: Path | None) -> None:
    """Run the HTTP API."""
    import uvicorn

    from logos.api.app import create_app

    try:
        config = load_config(config_path)
    except ConfigError as exc:
        click.echo(f"Config error: {exc}", err=True)
        sys.exit(1)

    uvicorn.run(create_app(config=config), host=host, port=port)


def _echo_batch(batch: BatchResult) -> None:
    status = "ok" if not batch.failed else "FAILED"
    click.echo(
        f"  {batch.kind} batch {batch.index}: {batch.succeeded} succeeded, "
        f"{batch.failed} failed [{status}]"
    )
    for error in batch.errors:
        click.echo(f"    - {error}", err=True)


async def _migrate(kind: str, batch_size: int, dry_run: bool) -> list[JobResult]:
    if dry_run:
        return await run_migration(None, kind, batch_size, dry_run=True, on_batch=_echo_batch)

    if not database_configured():
        raise MigrationConfigError("Set DATABASE_URL or POSTGRES_HOST to run the migration")
    db = Database.from_env()
    pool = await db.connect()
    try:
        async with pool.acquire() as conn:
            return await run_migration(conn, kind, batch_size, on_batch=_echo_batch)
    finally:
        await db.close()


@cli.command("migrate-data")
@click.option(
    "--kind",
    type=click.Choice([*KINDS, "all"]),
    default="all",
    show_default=True,
    help="Which seed collection to load",
)
@click.option(
    "--batch-size",
    type=int,
    default=DEFAULT_BATCH_SIZE,
    show_default=True,
    help="Records per batch",
)
@click.option("--dry-run", is_flag=True, help="Report what would be loaded without writing")
def migrate_data(kind: str, batch_size: int, dry_run: bool) -> None:
    """Upsert the static seed dataset into the database."""
    if dry_run:
        click.echo("Dry run: nothing will be written")
    try:
        results = asyncio.run(_migrate(kind, batch_size, dry_run))
    except MigrationConfigError as exc:
        click.echo(f"Config error: {exc}", err=True)
        sys.exit(1)
    except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
        click.echo(f"Database error: {exc}", err=True)
        sys.exit(1)

    click.echo("")
    for result in results:
        click.echo(f"{result.kind}: {result.succeeded}/{result.total} migrated")
    succeeded = sum(result.succeeded for result in results)
    failed = sum(result.failed for result in results)
    click.echo(f"Total: {succeeded} succeeded, {failed} failed")
    if failed:
        sys.exit(1)


async def _load_feed(filters: TimelineFilters, pages: int, page_size: int) -> TimelineFeed:
    config = load_config()
    db = Database.from_env()
    pool = await db.connect()
    try:
        feed = TimelineFeed(TimelineService(pool, config=config.timeline), page_size=page_size)
        await feed.reload(filters)
        for _ in range(pages - 1):
            if not await feed.load_more():
                break
        return feed
    finally:
        await db.close()


@cli.command()
@click.argument("entity_id", default=ALL_ENTITIES)
@click.option(
    "--type",
    "entity_type",
    type=click.Choice([t.value for t in EntityType]),
    default=EntityType.CONTACT.value,
    show_default=True,
)
@click.option("--pages", type=click.IntRange(min=1), default=1, show_default=True)
@click.option("--page-size", type=click.IntRange(1, 200), default=20, show_default=True)
def timeline(entity_id: str, entity_type: str, pages: int, page_size: int) -> None:
    """Print an entity's timeline grouped by day, newest first."""
    filters = TimelineFilters(entity_type=EntityType(entity_type), entity_id=entity_id)
    try:
        feed = asyncio.run(_load_feed(filters, pages, page_size))
    except ConfigError as exc:
        click.echo(f"Config error: {exc}", err=True)
        sys.exit(1)
    except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
        click.echo(f"Database error: {exc}", err=True)
        sys.exit(1)

    if not feed.events:
        click.echo("No events.")
    for day, events in feed.grouped_by_date():
        click.echo(day.isoformat())
        for event in events:
            click.echo(f"  {event.timestamp:%H:%M}  {event.source:<18} {event.title}")
    for error in feed.degraded_sources:
        click.echo(f"Source {error.source.value} unavailable: {error.message}", err=True)
    if feed.has_more:
        click.echo("(more events available)")


@cli.command("db-upgrade")
@click.option("--revision", default="head", show_default=True, help="Target revision")
def db_upgrade(revision: str) -> None:
    """Apply schema migrations to the configured database."""
    from logos.migrations import run_migrations

    if not database_configured():
        click.echo("Config error: set DATABASE_URL or POSTGRES_HOST", err=True)
        sys.exit(1)
    run_migrations(database_url(), revision)
    click.echo(f"Database upgraded to {revision}")
