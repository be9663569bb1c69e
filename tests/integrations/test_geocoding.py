"""Tests for the Geocoder."""

from __future__ import annotations

import httpx
import pytest

from logos.integrations.geocoding import (
    PERMISSION_REMEDIATION,
    GeocodeNotFoundError,
    GeocodePermissionError,
    Geocoder,
    GeocodingError,
    normalize_address,
)

pytestmark = pytest.mark.unit

OK_BODY = {
    "status": "OK",
    "results": [
        {
            "formatted_address": "1600 Amphitheatre Pkwy, Mountain View, CA 94043, USA",
            "geometry": {"location": {"lat": 37.422, "lng": -122.084}},
        }
    ],
}


def _geocoder(handler, api_key="maps-key"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return Geocoder(client, api_key)


def test_normalize_address():
    assert normalize_address("  12 Main St\n Springfield ") == "12 main st springfield"


async def test_returns_first_result_and_caches_it():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json=OK_BODY)

    geocoder = _geocoder(handler)
    point = await geocoder.geocode("1600 Amphitheatre Parkway")
    again = await geocoder.geocode("  1600 amphitheatre   PARKWAY ")

    assert (point.lat, point.lng) == (37.422, -122.084)
    assert point.formatted_address.startswith("1600 Amphitheatre")
    assert again == point
    assert len(requests) == 1
    assert requests[0].url.params["address"] == "1600 Amphitheatre Parkway"
    assert requests[0].url.params["key"] == "maps-key"


async def test_blank_address_rejected():
    with pytest.raises(ValueError):
        await _geocoder(lambda request: httpx.Response(200, json=OK_BODY)).geocode("   ")


@pytest.mark.parametrize("body", [{"status": "ZERO_RESULTS", "results": []}, {"status": "OK"}])
async def test_no_match(body):
    geocoder = _geocoder(lambda request: httpx.Response(200, json=body))
    with pytest.raises(GeocodeNotFoundError):
        await geocoder.geocode("Nowhere")


async def test_request_denied_carries_remediation():
    body = {"status": "REQUEST_DENIED", "error_message": "Billing not enabled"}
    geocoder = _geocoder(lambda request: httpx.Response(200, json=body))

    with pytest.raises(GeocodePermissionError) as exc_info:
        await geocoder.geocode("Somewhere")

    assert str(exc_info.value) == PERMISSION_REMEDIATION
    assert exc_info.value.provider_message == "Billing not enabled"


async def test_missing_key_is_a_permission_error():
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(GeocodePermissionError):
        await _geocoder(handler, api_key=None).geocode("Somewhere")


async def test_other_status_is_a_geocoding_error():
    body = {"status": "OVER_QUERY_LIMIT", "error_message": "Slow down"}
    geocoder = _geocoder(lambda request: httpx.Response(200, json=body))
    with pytest.raises(GeocodingError, match="OVER_QUERY_LIMIT: Slow down"):
        await geocoder.geocode("Somewhere")


async def test_failures_are_not_cached():
    responses = iter(
        [
            httpx.Response(200, json={"status": "REQUEST_DENIED"}),
            httpx.Response(200, json=OK_BODY),
        ]
    )
    geocoder = _geocoder(lambda request: next(responses))

    with pytest.raises(GeocodePermissionError):
        await geocoder.geocode("Mountain View")
    assert (await geocoder.geocode("Mountain View")).lat == 37.422


async def test_transport_failure_is_wrapped():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(GeocodingError, match="Geocoding request failed"):
        await _geocoder(handler).geocode("Somewhere")
