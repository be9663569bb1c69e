"""Integration sync endpoints under ``/api/integrations/sync``."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from logos.api.models import ApiResponse
from logos.integrations.sync import (
    MAX_LOG_ENTRIES,
    RECENT_LOG_ENTRIES,
    IntegrationSyncService,
    SyncLogEntry,
    SyncSettings,
    SyncStatus,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/integrations/sync", tags=["integrations"])


def _get_sync_service() -> IntegrationSyncService:
    """Dependency stub, overridden at app startup or in tests."""
    raise RuntimeError("IntegrationSyncService not initialized")


@router.get("/config", response_model=ApiResponse[SyncSettings])
async def get_sync_config(
    service: IntegrationSyncService = Depends(_get_sync_service),
) -> ApiResponse[SyncSettings]:
    return ApiResponse[SyncSettings](data=await service.get_settings())


@router.put("/config", response_model=ApiResponse[SyncSettings])
async def update_sync_config(
    body: SyncSettings,
    service: IntegrationSyncService = Depends(_get_sync_service),
) -> ApiResponse[SyncSettings]:
    return ApiResponse[SyncSettings](data=await service.update_settings(body))


@router.get("/status", response_model=ApiResponse[SyncStatus])
async def get_sync_status(
    service: IntegrationSyncService = Depends(_get_sync_service),
) -> ApiResponse[SyncStatus]:
    """Connection, last/next sync, recent log entries and statistics."""
    return ApiResponse[SyncStatus](data=await service.status())


@router.post("/run", response_model=ApiResponse[SyncLogEntry])
async def run_sync(
    service: IntegrationSyncService = Depends(_get_sync_service),
) -> ApiResponse[SyncLogEntry]:
    """Run a full sync now; 409 when one is already running."""
    settings = await service.get_settings()
    if not settings.enabled:
        raise ValueError("Sync is disabled; enable it in the sync config first")
    entry = await service.perform_full_sync()
    return ApiResponse[SyncLogEntry](data=entry)


@router.get("/logs", response_model=ApiResponse[list[SyncLogEntry]])
async def list_sync_logs(
    limit: int = Query(RECENT_LOG_ENTRIES, ge=1, le=MAX_LOG_ENTRIES),
    service: IntegrationSyncService = Depends(_get_sync_service),
) -> ApiResponse[list[SyncLogEntry]]:
    """Most recent sync log entries, newest first."""
    return ApiResponse[list[SyncLogEntry]](data=await service.get_logs(limit))


@router.delete("/logs", status_code=204)
async def clear_sync_logs(
    service: IntegrationSyncService = Depends(_get_sync_service),
) -> None:
    await service.clear_logs()
