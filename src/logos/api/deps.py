"""Service singletons and FastAPI dependency wiring.

Services are explicit objects built once in the app lifespan from the loaded
configuration, a shared asyncpg pool and a shared ``httpx.AsyncClient``.
Routers declare ``_get_*`` dependency stubs; ``wire_dependencies`` points
them at these singletons, and tests override them with fakes.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import asyncpg
import httpx

from logos.config import LogosConfig, load_config
from logos.db import Database
from logos.integrations.geocoding import Geocoder
from logos.integrations.store import KeyValueStore, MemoryStore, StateStore
from logos.integrations.summarizer import Summarizer
from logos.integrations.sync import HttpSyncTransport, IntegrationSyncService
from logos.timeline.live import LiveUpdateBridge
from logos.timeline.service import TimelineService

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)

HTTP_TIMEOUT_SECONDS = 15.0

# ---------------------------------------------------------------------------
# Module-level singletons for FastAPI dependency injection
# ---------------------------------------------------------------------------

_config: LogosConfig | None = None
_database: Database | None = None
_pool: asyncpg.Pool | None = None
_http_client: httpx.AsyncClient | None = None
_timeline_service: TimelineService | None = None
_live_bridge: LiveUpdateBridge | None = None
_sync_service: IntegrationSyncService | None = None
_geocoder: Geocoder | None = None
_summarizer: Summarizer | None = None


def init_config(config: LogosConfig | None = None) -> LogosConfig:
    """Install *config*, or load ``logos.toml`` when none is given."""
    global _config  # noqa: PLW0603
    _config = config or load_config()
    return _config


def get_config() -> LogosConfig:
    if _config is None:
        raise RuntimeError("Config not initialized; call init_config() first")
    return _config


async def init_services(config: LogosConfig) -> None:
    """Connect the database and build every service.

    A database that cannot be reached leaves the timeline endpoints
    unavailable; geocoding, summarization and sync settings (kept in memory)
    still work.
    """
    global _database, _pool, _http_client  # noqa: PLW0603
    global _timeline_service, _live_bridge, _sync_service, _geocoder, _summarizer  # noqa: PLW0603

    _http_client = httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS)

    database = Database.from_env()
    try:
        _pool = await database.connect()
        _database = database
    except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError):
        logger.warning(
            "Database %s unavailable; timeline endpoints disabled", database.db_name, exc_info=True
        )
        _pool = None

    if _pool is not None:
        _timeline_service = TimelineService(_pool, config=config.timeline)
        _live_bridge = LiveUpdateBridge(_pool)

    store: KeyValueStore = StateStore(_pool) if _pool is not None else MemoryStore()
    transport = None
    if config.sync.enabled and config.sync.base_url and _pool is not None:
        transport = HttpSyncTransport(
            _http_client, config.sync.base_url, config.sync.api_key, _pool
        )
    _sync_service = IntegrationSyncService(store, transport)

    _geocoder = Geocoder(_http_client, config.geocoding.api_key)
    _summarizer = Summarizer(_http_client, config.summarizer.api_key, config.summarizer.model)
    logger.info(
        "Services initialized (database=%s, sync=%s)",
        "up" if _pool is not None else "down",
        "configured" if transport is not None else "not configured",
    )


async def shutdown_services() -> None:
    """Close the HTTP client and database pool. Called during app shutdown."""
    global _database, _pool, _http_client  # noqa: PLW0603
    global _timeline_service, _live_bridge, _sync_service, _geocoder, _summarizer  # noqa: PLW0603

    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None
    if _database is not None:
        await _database.close()
        _database = None
    _pool = None
    _timeline_service = None
    _live_bridge = None
    _sync_service = None
    _geocoder = None
    _summarizer = None


def get_timeline_service() -> TimelineService:
    """FastAPI dependency: provides the TimelineService singleton."""
    if _timeline_service is None:
        raise RuntimeError("TimelineService not initialized; is the database reachable?")
    return _timeline_service


def get_live_bridge() -> LiveUpdateBridge:
    if _live_bridge is None:
        raise RuntimeError("LiveUpdateBridge not initialized; is the database reachable?")
    return _live_bridge


def get_sync_service() -> IntegrationSyncService:
    if _sync_service is None:
        raise RuntimeError("IntegrationSyncService not initialized; call init_services() first")
    return _sync_service


def get_geocoder() -> Geocoder:
    if _geocoder is None:
        raise RuntimeError("Geocoder not initialized; call init_services() first")
    return _geocoder


def get_summarizer() -> Summarizer:
    if _summarizer is None:
        raise RuntimeError("Summarizer not initialized; call init_services() first")
    return _summarizer


def wire_dependencies(app: FastAPI) -> None:
    """Override every router-level ``_get_*`` stub with its singleton."""
    from logos.api.routers import geocode, integrations, search, timeline

    app.dependency_overrides[timeline._get_timeline_service] = get_timeline_service
    app.dependency_overrides[timeline._get_live_bridge] = get_live_bridge
    app.dependency_overrides[integrations._get_sync_service] = get_sync_service
    app.dependency_overrides[geocode._get_geocoder] = get_geocoder
    app.dependency_overrides[search._get_summarizer] = get_summarizer
