"""Client for the public OpenStreetMap Nominatim search API.

Nominatim is unauthenticated and its usage policy allows at most one request
per second per application; callers are expected to gate `search` through a
shared rate limiter. The client itself performs exactly one HTTP call per
`search` invocation.
"""

from __future__ import annotations

import httpx

from app.clients.geocoding_errors import (
    GeocodingError,
    GeocodingRateLimitError,
    GeocodingSchemaError,
    GeocodingTimeoutError,
)
from app.clients.http import build_http_client
from app.models.tournament import Coordinates


class NominatimClient:
    """City/country → coordinates lookup."""

    def __init__(
        self,
        *,
        base_url: str = "https://nominatim.openstreetmap.org",
        user_agent: str,
        timeout: float = 10.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        if not user_agent:
            raise ValueError("A descriptive User-Agent is required by the Nominatim usage policy.")
        self._owns_http_client = http_client is None
        self._http = http_client or build_http_client(
            base_url=base_url,
            timeout_seconds=timeout,
            user_agent=user_agent,
            accept="application/json",
        )

    def close(self) -> None:
        if self._owns_http_client:
            self._http.close()

    def search(self, *, city: str, country_code: str | None = None) -> Coordinates | None:
        """Return the best match for a city, or None when Nominatim has no result."""
        params: dict[str, str | int] = {"city": city, "format": "jsonv2", "limit": 1}
        if country_code:
            params["countrycodes"] = country_code.lower()

        try:
            response = self._http.get("/search", params=params)
        except httpx.TimeoutException as exc:
            raise GeocodingTimeoutError("Nominatim request timed out") from exc
        except httpx.HTTPError as exc:
            raise GeocodingError(f"HTTP error calling Nominatim: {exc}") from exc

        if response.status_code == 429:
            raise GeocodingRateLimitError("Rate limited by Nominatim")
        if response.status_code >= 400:
            raise GeocodingError(f"Nominatim request failed: {response.status_code}")

        try:
            results = response.json()
        except ValueError as exc:
            raise GeocodingSchemaError("Failed to decode Nominatim response JSON.") from exc
        if not isinstance(results, list):
            raise GeocodingSchemaError("Nominatim search must return a JSON array.")
        if not results:
            return None
        first = results[0]
        try:
            return Coordinates(float(first["lat"]), float(first["lon"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise GeocodingSchemaError("Malformed coordinates in Nominatim response.") from exc

    def __enter__(self) -> NominatimClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
