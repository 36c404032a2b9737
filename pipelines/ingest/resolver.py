"""Tiered coordinate resolution for normalized tournament locations."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from threading import Lock
from typing import Protocol

import httpx

from app.clients.geocoding_errors import GeocodingError
from app.models.tournament import (
    Coordinates,
    Resolution,
    ResolutionTier,
    TournamentDraft,
)
from app.observability.metrics import metrics
from pipelines.ingest.centroids import CHESS_HUB_CITIES, COUNTRY_CENTROIDS, STATE_CENTROIDS
from pipelines.ingest.geocode_cache import GeocodeCache, place_key
from pipelines.ingest.rate_limiter import RateLimiter

logger = logging.getLogger("pipelines.ingest.resolver")

DEFAULT_TIER_ORDER = ("exact", "city-cache", "geocoder", "region-centroid")


@dataclass(frozen=True)
class LocationQuery:
    """What the resolver knows about a place."""

    city: str | None = None
    country_code: str | None = None
    state: str | None = None
    country: str | None = None
    address: str | None = None

    @classmethod
    def from_draft(cls, draft: TournamentDraft) -> LocationQuery:
        return cls(
            city=draft.city,
            country_code=draft.country_code,
            state=draft.state,
            country=draft.country,
            address=draft.venue_address,
        )

    @property
    def memo_key(self) -> tuple[str, ...]:
        return tuple(
            (part or "").strip().casefold()
            for part in (self.address, self.city, self.state, self.country_code)
        )

    def full_address(self) -> str | None:
        """Venue address extended with locality parts it does not already mention."""
        if not self.address or not self.address.strip():
            return None
        parts = [self.address.strip()]
        lowered = self.address.casefold()
        for extra in (self.city, self.state, self.country):
            if extra and extra.strip() and extra.strip().casefold() not in lowered:
                parts.append(extra.strip())
        return ", ".join(parts)


class ResolutionStrategy(Protocol):
    tier: ResolutionTier

    def resolve(self, query: LocationQuery) -> Coordinates | None:
        ...


class GoogleClientProtocol(Protocol):
    def geocode(self, address: str) -> Coordinates | None:
        ...


class NominatimClientProtocol(Protocol):
    def search(self, *, city: str, country_code: str | None = None) -> Coordinates | None:
        ...


class ExactAddressStrategy:
    """Paid precise geocoding; only for listings that carry a venue address."""

    tier = ResolutionTier.EXACT

    def __init__(self, client: GoogleClientProtocol) -> None:
        self._client = client

    def resolve(self, query: LocationQuery) -> Coordinates | None:
        address = query.full_address()
        if address is None:
            return None
        return self._client.geocode(address)


class CityCacheStrategy:
    """Case-insensitive exact city match against the geocode cache and curated hubs."""

    tier = ResolutionTier.CITY_CACHE

    def __init__(
        self,
        cache: GeocodeCache,
        hubs: Mapping[str, Coordinates] | None = None,
    ) -> None:
        self._cache = cache
        self._hubs = CHESS_HUB_CITIES if hubs is None else hubs

    def resolve(self, query: LocationQuery) -> Coordinates | None:
        if not query.city or not query.city.strip():
            return None
        cached = self._cache.get(query.city, query.country_code)
        if cached is not None:
            return cached
        if query.country_code:
            return self._hubs.get(place_key(query.city, query.country_code))
        prefix = place_key(query.city) + "|"
        for key, coordinates in self._hubs.items():
            if key.startswith(prefix):
                return coordinates
        return None


class FreeGeocoderStrategy:
    """Rate-limited public geocoder; successes are written back to the cache."""

    tier = ResolutionTier.GEOCODER

    def __init__(
        self,
        client: NominatimClientProtocol,
        *,
        rate_limiter: RateLimiter,
        cache: GeocodeCache,
    ) -> None:
        self._client = client
        self._rate_limiter = rate_limiter
        self._cache = cache
        self._misses: set[str] = set()
        self._lock = Lock()

    def resolve(self, query: LocationQuery) -> Coordinates | None:
        if not query.city or not query.city.strip():
            return None
        key = place_key(query.city, query.country_code)
        with self._lock:
            if key in self._misses:
                return None
        self._rate_limiter.acquire()
        coordinates = self._client.search(city=query.city.strip(), country_code=query.country_code)
        if coordinates is None:
            with self._lock:
                self._misses.add(key)
            return None
        self._cache.put(query.city, query.country_code, coordinates)
        return coordinates


class RegionCentroidStrategy:
    """Fixed state or country centroid; trades accuracy for coverage."""

    tier = ResolutionTier.REGION_CENTROID

    def __init__(
        self,
        *,
        states: Mapping[str, Coordinates] | None = None,
        countries: Mapping[str, Coordinates] | None = None,
    ) -> None:
        self._states = STATE_CENTROIDS if states is None else states
        self._countries = COUNTRY_CENTROIDS if countries is None else countries

    def resolve(self, query: LocationQuery) -> Coordinates | None:
        if not query.country_code:
            return None
        if query.state and query.state.strip():
            hit = self._states.get(place_key(query.state, query.country_code))
            if hit is not None:
                return hit
        return self._countries.get(query.country_code.strip().upper())


class CoordinateResolver:
    """Tries strategies in order and stops at the first success.

    Never raises for client failures: provider errors are logged and treated as
    a miss for that tier. Queries that exhaust every tier are remembered and
    answered with tier `none` without re-running the chain.
    """

    def __init__(self, strategies: Sequence[ResolutionStrategy]) -> None:
        self._strategies = list(strategies)
        self._unresolvable: set[tuple[str, ...]] = set()
        self._lock = Lock()

    @property
    def tiers(self) -> list[ResolutionTier]:
        return [strategy.tier for strategy in self._strategies]

    def resolve(self, query: LocationQuery) -> Resolution:
        memo_key = query.memo_key
        with self._lock:
            if memo_key in self._unresolvable:
                return Resolution.unresolved()

        for strategy in self._strategies:
            started = time.perf_counter()
            try:
                coordinates = strategy.resolve(query)
            except (GeocodingError, httpx.HTTPError) as exc:
                logger.warning(
                    "resolver.tier_error",
                    extra={
                        "tier": strategy.tier.value,
                        "code": getattr(exc, "code", type(exc).__name__),
                        "city": query.city,
                        "country_code": query.country_code,
                    },
                )
                metrics.increment("resolver.tier_error", tags={"tier": strategy.tier.value})
                continue
            finally:
                metrics.timing(
                    "resolver.tier.latency_ms",
                    (time.perf_counter() - started) * 1000,
                    tags={"tier": strategy.tier.value},
                )
            if coordinates is not None:
                metrics.increment("resolver.resolved", tags={"tier": strategy.tier.value})
                return Resolution(coordinates=coordinates, tier=strategy.tier)

        with self._lock:
            self._unresolvable.add(memo_key)
        metrics.increment("resolver.resolved", tags={"tier": ResolutionTier.NONE.value})
        logger.info(
            "resolver.unresolved",
            extra={"city": query.city, "state": query.state, "country_code": query.country_code},
        )
        return Resolution.unresolved()


def build_resolver(
    tier_names: Sequence[str] = DEFAULT_TIER_ORDER,
    *,
    cache: GeocodeCache,
    google_client: GoogleClientProtocol | None = None,
    nominatim_client: NominatimClientProtocol | None = None,
    rate_limiter: RateLimiter | None = None,
) -> CoordinateResolver:
    """Assemble a resolver from an ordered list of tier names."""
    strategies: list[ResolutionStrategy] = []
    for raw_name in tier_names:
        name = raw_name.strip().lower()
        if name == ResolutionTier.EXACT.value:
            if google_client is None:
                logger.info("resolver.tier_disabled", extra={"tier": name, "reason": "no_api_key"})
                continue
            strategies.append(ExactAddressStrategy(google_client))
        elif name == ResolutionTier.CITY_CACHE.value:
            strategies.append(CityCacheStrategy(cache))
        elif name == ResolutionTier.GEOCODER.value:
            if nominatim_client is None or rate_limiter is None:
                logger.info("resolver.tier_disabled", extra={"tier": name, "reason": "no_client"})
                continue
            strategies.append(
                FreeGeocoderStrategy(nominatim_client, rate_limiter=rate_limiter, cache=cache)
            )
        elif name == ResolutionTier.REGION_CENTROID.value:
            strategies.append(RegionCentroidStrategy())
        else:
            raise ValueError(f"Unknown resolver tier: {raw_name}")
    return CoordinateResolver(strategies)
