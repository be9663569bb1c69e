"""Geocoding endpoint: ``GET /api/geocode?address=...``."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from logos.api.models import ApiResponse
from logos.integrations.geocoding import Geocoder, GeoPoint

router = APIRouter(prefix="/api/geocode", tags=["geocode"])


def _get_geocoder() -> Geocoder:
    """Dependency stub, overridden at app startup or in tests."""
    raise RuntimeError("Geocoder not initialized")


@router.get("", response_model=ApiResponse[GeoPoint])
async def geocode_address(
    address: str = Query(..., min_length=1, description="Free-form postal address"),
    geocoder: Geocoder = Depends(_get_geocoder),
) -> ApiResponse[GeoPoint]:
    """Resolve *address* to coordinates.

    404 when the provider finds no match; 502 with remediation steps when the
    provider denies the request.
    """
    return ApiResponse[GeoPoint](data=await geocoder.geocode(address))
