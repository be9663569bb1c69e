"""Address geocoding through the Google Geocoding JSON API."""

from __future__ import annotations

import logging

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

PERMISSION_REMEDIATION = (
    "The map provider refused the request. Please check the following for the "
    "Google Cloud project associated with your API key:\n"
    "1. A valid billing account is linked.\n"
    "2. The 'Maps JavaScript API' is enabled.\n"
    "3. The 'Geocoding API' is enabled.\n"
    "4. The API key is valid and its restrictions allow this server.\n"
    "These can be configured in the Google Cloud Console."
)


class GeocodingError(Exception):
    """Geocoding failed for a reason other than a missing match or permissions."""


class GeocodeNotFoundError(GeocodingError, LookupError):
    """The provider found no match for the address."""


class GeocodePermissionError(GeocodingError, PermissionError):
    """The provider denied the request (key, enabled APIs or billing)."""

    def __init__(self, provider_message: str | None = None) -> None:
        self.provider_message = provider_message
        super().__init__(PERMISSION_REMEDIATION)


class GeoPoint(BaseModel):
    lat: float
    lng: float
    formatted_address: str


def normalize_address(address: str) -> str:
    return " ".join(address.split()).lower()


class Geocoder:
    """Resolves addresses to coordinates, caching successful lookups in memory.

    Failures are never cached, so a fixed key or billing account takes effect
    on the next request.
    """

    def __init__(self, client: httpx.AsyncClient, api_key: str | None) -> None:
        self._client = client
        self._api_key = api_key
        self._cache: dict[str, GeoPoint] = {}

    async def geocode(self, address: str) -> GeoPoint:
        """Return the best match for *address*.

        Raises
        ------
        ValueError
            If *address* is blank.
        GeocodeNotFoundError
            On ``ZERO_RESULTS``.
        GeocodePermissionError
            On ``REQUEST_DENIED`` or a missing API key.
        GeocodingError
            On any other provider status or transport failure.
        """
        key = normalize_address(address)
        if not key:
            raise ValueError("address must not be empty")
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        if not self._api_key:
            raise GeocodePermissionError("No geocoding API key configured")

        try:
            response = await self._client.get(
                GEOCODE_URL, params={"address": address.strip(), "key": self._api_key}
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise GeocodingError(f"Geocoding request failed: {exc}") from exc

        status = body.get("status")
        if status == "OK" and body.get("results"):
            first = body["results"][0]
            location = first["geometry"]["location"]
            point = GeoPoint(
                lat=location["lat"],
                lng=location["lng"],
                formatted_address=first.get("formatted_address") or address.strip(),
            )
            self._cache[key] = point
            return point
        if status in ("OK", "ZERO_RESULTS"):
            raise GeocodeNotFoundError(f"No location found for address: {address.strip()!r}")
        if status == "REQUEST_DENIED":
            logger.error("Geocoding request denied: %s", body.get("error_message"))
            raise GeocodePermissionError(body.get("error_message"))
        raise GeocodingError(
            f"Geocoding failed with status {status}: {body.get('error_message', '')}".rstrip(": ")
        )
