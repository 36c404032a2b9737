"""Client for the Google Maps Geocoding API (precise, keyed)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from app.clients.geocoding_errors import (
    GeocodingError,
    GeocodingRateLimitError,
    GeocodingSchemaError,
    GeocodingTimeoutError,
)
from app.clients.http import build_timeout
from app.models.tournament import Coordinates

logger = logging.getLogger("app.clients.google_geocoding")

NO_MATCH_STATUSES = frozenset({"ZERO_RESULTS"})
QUOTA_STATUSES = frozenset({"OVER_QUERY_LIMIT", "OVER_DAILY_LIMIT"})


class GoogleGeocodingClient:
    """Minimal address → coordinates client."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://maps.googleapis.com",
        timeout: float = 10.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("GOOGLE_MAPS_API_KEY is required to create a GoogleGeocodingClient.")
        self._api_key = api_key
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.Client(
            base_url=base_url.rstrip("/"), timeout=build_timeout(timeout)
        )

    def close(self) -> None:
        if self._owns_http_client:
            self._http.close()

    def geocode(self, address: str) -> Coordinates | None:
        """Return coordinates for a full address, or None when the address is not recognized."""
        cleaned = " ".join((address or "").split())
        if not cleaned:
            raise ValueError("address must be a non-empty string.")

        try:
            response = self._http.get(
                "/maps/api/geocode/json",
                params={"address": cleaned, "key": self._api_key},
            )
        except httpx.TimeoutException as exc:
            raise GeocodingTimeoutError() from exc
        except httpx.HTTPError as exc:
            raise GeocodingError(f"HTTP error calling Google Geocoding: {exc}") from exc

        if response.status_code == 429:
            raise GeocodingRateLimitError()
        if response.status_code >= 400:
            raise GeocodingError(f"Google Geocoding request failed: {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise GeocodingSchemaError("Failed to decode Google Geocoding response JSON.") from exc
        if not isinstance(payload, dict):
            raise GeocodingSchemaError()

        status = payload.get("status")
        if status in NO_MATCH_STATUSES:
            return None
        if status in QUOTA_STATUSES:
            raise GeocodingRateLimitError(payload.get("error_message") or "Google quota exhausted")
        if status != "OK":
            raise GeocodingError(
                f"Google Geocoding returned status {status}: {payload.get('error_message', '')}".strip(),
                code=f"GOOGLE_{status or 'UNKNOWN'}",
            )
        return _parse_first_location(payload.get("results"))

    def __enter__(self) -> GoogleGeocodingClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _parse_first_location(results: Any) -> Coordinates | None:
    if not isinstance(results, list):
        raise GeocodingSchemaError("`results` missing from Google Geocoding response.")
    if not results:
        return None
    try:
        location = results[0]["geometry"]["location"]
        return Coordinates(float(location["lat"]), float(location["lng"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise GeocodingSchemaError("Malformed geometry in Google Geocoding response.") from exc
