from __future__ import annotations

import httpx
import pytest

from app.clients.geocoding_errors import GeocodingRateLimitError, GeocodingTimeoutError
from app.models.tournament import Coordinates, ResolutionTier
from pipelines.ingest import resolver as resolver_module
from pipelines.ingest.geocode_cache import GeocodeCache
from pipelines.ingest.rate_limiter import RateLimiter
from pipelines.ingest.resolver import (
    CityCacheStrategy,
    CoordinateResolver,
    ExactAddressStrategy,
    FreeGeocoderStrategy,
    LocationQuery,
    RegionCentroidStrategy,
    build_resolver,
)
from tests.helpers.ingest_fakes import StubGoogleClient, StubNominatimClient
from tests.helpers.metrics_stub import StubMetrics

XY_CENTROID = Coordinates(10.0, 20.0)


def _resolver(
    *,
    google: StubGoogleClient | None = None,
    nominatim: StubNominatimClient | None = None,
    cache: GeocodeCache | None = None,
) -> CoordinateResolver:
    cache = cache or GeocodeCache()
    return CoordinateResolver(
        [
            ExactAddressStrategy(google or StubGoogleClient()),
            CityCacheStrategy(cache, hubs={}),
            FreeGeocoderStrategy(
                nominatim or StubNominatimClient(),
                rate_limiter=RateLimiter(0.0),
                cache=cache,
            ),
            RegionCentroidStrategy(
                states={"karnataka|IN": Coordinates(12.97, 77.59)},
                countries={"XY": XY_CENTROID, "IN": Coordinates(20.59, 78.96)},
            ),
        ]
    )


def test_exact_address_match_uses_precise_geocoder():
    google = StubGoogleClient(result=Coordinates(12.97, 77.59))
    nominatim = StubNominatimClient()
    resolver = _resolver(google=google, nominatim=nominatim)

    resolution = resolver.resolve(
        LocationQuery(city="Bengaluru", country_code="IN", address="12 MG Road, Bengaluru")
    )

    assert resolution.tier is ResolutionTier.EXACT
    assert resolution.coordinates == Coordinates(12.97, 77.59)
    assert google.calls == ["12 MG Road, Bengaluru"]
    assert nominatim.calls == []


def test_city_cache_hit_makes_no_external_calls():
    cache = GeocodeCache()
    cache.seed({"paris|FR": Coordinates(48.8566, 2.3522)})
    google = StubGoogleClient(result=Coordinates(0.0, 0.0))
    nominatim = StubNominatimClient()
    resolver = _resolver(google=google, nominatim=nominatim, cache=cache)

    resolution = resolver.resolve(LocationQuery(city="PARIS", country_code="FR"))

    assert resolution.tier is ResolutionTier.CITY_CACHE
    assert resolution.coordinates == Coordinates(48.8566, 2.3522)
    assert google.calls == []
    assert nominatim.calls == []


def test_curated_hub_table_answers_city_cache_tier():
    resolver = CoordinateResolver([CityCacheStrategy(GeocodeCache())])
    resolution = resolver.resolve(LocationQuery(city="Paris", country_code="FR"))
    assert resolution.tier is ResolutionTier.CITY_CACHE
    assert resolution.coordinates == Coordinates(48.8566, 2.3522)


def test_full_fallback_to_region_centroid():
    nominatim = StubNominatimClient()
    resolver = _resolver(nominatim=nominatim)

    resolution = resolver.resolve(LocationQuery(city="Smalltown", country_code="XY"))

    assert resolution.tier is ResolutionTier.REGION_CENTROID
    assert resolution.coordinates == XY_CENTROID
    assert nominatim.calls == [("Smalltown", "XY")]


def test_state_centroid_preferred_over_country():
    resolver = _resolver()
    resolution = resolver.resolve(
        LocationQuery(city="Hubballi", state="Karnataka", country_code="IN")
    )
    assert resolution.tier is ResolutionTier.REGION_CENTROID
    assert resolution.coordinates == Coordinates(12.97, 77.59)


def test_geocoder_success_is_cached_for_later_queries():
    nominatim = StubNominatimClient(results={"mysuru": Coordinates(12.2958, 76.6394)})
    resolver = _resolver(nominatim=nominatim)

    first = resolver.resolve(LocationQuery(city="Mysuru", country_code="IN"))
    second = resolver.resolve(LocationQuery(city="mysuru", country_code="IN"))

    assert first.tier is ResolutionTier.GEOCODER
    assert second.tier is ResolutionTier.CITY_CACHE
    assert second.coordinates == first.coordinates
    assert len(nominatim.calls) == 1


def test_client_errors_are_treated_as_misses(monkeypatch):
    stub_metrics = StubMetrics()
    monkeypatch.setattr(resolver_module, "metrics", stub_metrics)
    google = StubGoogleClient(error=GeocodingRateLimitError())
    nominatim = StubNominatimClient(error=GeocodingTimeoutError())
    resolver = _resolver(google=google, nominatim=nominatim)

    resolution = resolver.resolve(
        LocationQuery(city="Smalltown", country_code="XY", address="1 Main St")
    )

    assert resolution.tier is ResolutionTier.REGION_CENTROID
    errored_tiers = [
        call["tags"]["tier"]
        for call in stub_metrics.increment_calls
        if call["metric"] == "resolver.tier_error"
    ]
    assert errored_tiers == ["exact", "geocoder"]
    timed_tiers = [
        call["tags"]["tier"]
        for call in stub_metrics.timing_calls
        if call["metric"] == "resolver.tier.latency_ms"
    ]
    assert "exact" in timed_tiers
    assert "geocoder" in timed_tiers


def test_transport_errors_are_treated_as_misses():
    nominatim = StubNominatimClient(error=httpx.ConnectError("boom"))
    resolver = _resolver(nominatim=nominatim)
    resolution = resolver.resolve(LocationQuery(city="Smalltown", country_code="XY"))
    assert resolution.tier is ResolutionTier.REGION_CENTROID


def test_unresolvable_query_is_memoized():
    nominatim = StubNominatimClient()
    resolver = _resolver(nominatim=nominatim)
    query = LocationQuery(city="Nowhere")

    first = resolver.resolve(query)
    second = resolver.resolve(query)

    assert first.tier is ResolutionTier.NONE
    assert first.coordinates is None
    assert second.tier is ResolutionTier.NONE
    assert len(nominatim.calls) == 1


def test_every_outcome_is_a_configured_tier_or_none():
    resolver = _resolver(
        google=StubGoogleClient(result=Coordinates(1.0, 1.0)),
        nominatim=StubNominatimClient(results={"lyon": Coordinates(45.76, 4.83)}),
    )
    queries = [
        LocationQuery(city="Bengaluru", country_code="IN", address="Hall 1"),
        LocationQuery(city="Lyon", country_code="FR"),
        LocationQuery(city="Smalltown", country_code="XY"),
        LocationQuery(city=None, country_code=None),
        LocationQuery(city="   ", country_code="ZZ"),
    ]
    allowed = set(resolver.tiers) | {ResolutionTier.NONE}
    for query in queries:
        resolution = resolver.resolve(query)
        assert resolution.tier in allowed
        assert (resolution.coordinates is None) == (resolution.tier is ResolutionTier.NONE)


def test_build_resolver_skips_tiers_without_clients():
    resolver = build_resolver(cache=GeocodeCache())
    assert resolver.tiers == [ResolutionTier.CITY_CACHE, ResolutionTier.REGION_CENTROID]


def test_build_resolver_respects_configured_order():
    resolver = build_resolver(
        ["region-centroid", "geocoder"],
        cache=GeocodeCache(),
        nominatim_client=StubNominatimClient(),
        rate_limiter=RateLimiter(0.0),
    )
    assert resolver.tiers == [ResolutionTier.REGION_CENTROID, ResolutionTier.GEOCODER]


def test_build_resolver_rejects_unknown_tier():
    with pytest.raises(ValueError):
        build_resolver(["telepathy"], cache=GeocodeCache())
