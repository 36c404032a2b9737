from __future__ import annotations

import httpx
import pytest

from app.clients.geocoding_errors import (
    GeocodingError,
    GeocodingRateLimitError,
    GeocodingSchemaError,
    GeocodingTimeoutError,
)
from app.clients.google_geocoding import GoogleGeocodingClient
from app.clients.nominatim import NominatimClient
from app.models.tournament import Coordinates


def _google(handler) -> GoogleGeocodingClient:
    http_client = httpx.Client(
        transport=httpx.MockTransport(handler), base_url="https://maps.googleapis.com"
    )
    return GoogleGeocodingClient("test-key", http_client=http_client)


def _nominatim(handler) -> NominatimClient:
    http_client = httpx.Client(
        transport=httpx.MockTransport(handler), base_url="https://nominatim.openstreetmap.org"
    )
    return NominatimClient(user_agent="tests/1.0", http_client=http_client)


def test_google_returns_first_result_on_ok():
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(dict(request.url.params))
        return httpx.Response(
            200,
            json={
                "status": "OK",
                "results": [{"geometry": {"location": {"lat": 12.97, "lng": 77.59}}}],
            },
        )

    with _google(handler) as client:
        assert client.geocode("12  MG Road, Bengaluru") == Coordinates(12.97, 77.59)
    assert seen == {"address": "12 MG Road, Bengaluru", "key": "test-key"}


def test_google_zero_results_is_a_miss():
    client = _google(lambda request: httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []}))
    assert client.geocode("Nowhere Lane") is None


@pytest.mark.parametrize(
    ("response", "error"),
    [
        (httpx.Response(200, json={"status": "OVER_QUERY_LIMIT"}), GeocodingRateLimitError),
        (httpx.Response(429), GeocodingRateLimitError),
        (httpx.Response(500), GeocodingError),
        (httpx.Response(200, text="<html>"), GeocodingSchemaError),
        (
            httpx.Response(200, json={"status": "OK", "results": [{"geometry": {}}]}),
            GeocodingSchemaError,
        ),
    ],
)
def test_google_error_mapping(response, error):
    client = _google(lambda request: response)
    with pytest.raises(error):
        client.geocode("1 Main St")


def test_google_request_denied_carries_status_code():
    client = _google(
        lambda request: httpx.Response(
            200, json={"status": "REQUEST_DENIED", "error_message": "API key invalid"}
        )
    )
    with pytest.raises(GeocodingError) as excinfo:
        client.geocode("1 Main St")
    assert excinfo.value.code == "GOOGLE_REQUEST_DENIED"


def test_google_timeout_maps_to_timeout_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(GeocodingTimeoutError):
        _google(handler).geocode("1 Main St")


def test_google_requires_api_key():
    with pytest.raises(ValueError):
        GoogleGeocodingClient("")


def test_nominatim_search_sends_city_and_country_filter():
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(dict(request.url.params))
        return httpx.Response(200, json=[{"lat": "45.7578", "lon": "4.8320"}])

    with _nominatim(handler) as client:
        assert client.search(city="Lyon", country_code="FR") == Coordinates(45.7578, 4.8320)
    assert seen["city"] == "Lyon"
    assert seen["countrycodes"] == "fr"
    assert seen["limit"] == "1"


def test_nominatim_empty_result_is_a_miss():
    client = _nominatim(lambda request: httpx.Response(200, json=[]))
    assert client.search(city="Smalltown") is None


@pytest.mark.parametrize(
    ("response", "error"),
    [
        (httpx.Response(429), GeocodingRateLimitError),
        (httpx.Response(503), GeocodingError),
        (httpx.Response(200, json={"error": "bad"}), GeocodingSchemaError),
        (httpx.Response(200, json=[{"lat": "north"}]), GeocodingSchemaError),
    ],
)
def test_nominatim_error_mapping(response, error):
    client = _nominatim(lambda request: response)
    with pytest.raises(error):
        client.search(city="Lyon")
