"""Tests for GET /api/geocode."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from logos.api.routers.geocode import _get_geocoder
from logos.integrations.geocoding import (
    GeocodeNotFoundError,
    GeocodePermissionError,
    GeocodingError,
    GeoPoint,
)

pytestmark = pytest.mark.unit


@pytest.fixture
def geocoder(app):
    geocoder = AsyncMock()
    app.dependency_overrides[_get_geocoder] = lambda: geocoder
    return geocoder


async def test_returns_point(client, geocoder):
    geocoder.geocode.return_value = GeoPoint(lat=51.5, lng=-0.12, formatted_address="London, UK")

    resp = await client.get("/api/geocode", params={"address": "London"})

    assert resp.status_code == 200
    assert resp.json()["data"] == {"lat": 51.5, "lng": -0.12, "formatted_address": "London, UK"}
    geocoder.geocode.assert_awaited_once_with("London")


async def test_missing_address_is_400(client, geocoder):
    resp = await client.get("/api/geocode")
    assert resp.status_code == 400


async def test_no_match_is_404(client, geocoder):
    geocoder.geocode.side_effect = GeocodeNotFoundError("No location found for address: 'x'")
    resp = await client.get("/api/geocode", params={"address": "x"})
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "GEOCODE_NOT_FOUND"


async def test_permission_denied_is_502_with_remediation(client, geocoder):
    geocoder.geocode.side_effect = GeocodePermissionError("API key invalid")

    resp = await client.get("/api/geocode", params={"address": "x"})

    assert resp.status_code == 502
    error = resp.json()["error"]
    assert error["code"] == "GEOCODING_PERMISSION_DENIED"
    assert "billing account" in error["message"]
    assert error["details"] == {"provider_message": "API key invalid"}


async def test_provider_failure_is_502(client, geocoder):
    geocoder.geocode.side_effect = GeocodingError("Geocoding failed with status UNKNOWN_ERROR")
    resp = await client.get("/api/geocode", params={"address": "x"})
    assert resp.status_code == 502
    assert resp.json()["error"]["code"] == "GEOCODING_FAILED"
