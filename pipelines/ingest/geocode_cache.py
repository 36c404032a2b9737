"""Read-through cache of city → coordinate resolutions."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Protocol

from app.models.tournament import Coordinates

logger = logging.getLogger("pipelines.ingest.geocode_cache")


class GeocodeCacheStore(Protocol):
    """Optional persistence for cache entries across runs."""

    def load_all(self) -> dict[str, Coordinates]:
        ...

    def save(self, place_key: str, coordinates: Coordinates) -> None:
        ...


def place_key(city: str, country_code: str | None = None) -> str:
    """Normalize a place into a cache key: lower-cased city, optional upper-cased country."""
    normalized_city = " ".join(city.split()).casefold()
    if not normalized_city:
        raise ValueError("city must be non-empty to build a place key.")
    if country_code and country_code.strip():
        return f"{normalized_city}|{country_code.strip().upper()}"
    return normalized_city


class GeocodeCache:
    """Entries never expire within a process; writes are idempotent."""

    def __init__(self, store: GeocodeCacheStore | None = None) -> None:
        self._entries: dict[str, Coordinates] = {}
        self._lock = Lock()
        self._store = store
        self._loaded = store is None

    def get(self, city: str, country_code: str | None = None) -> Coordinates | None:
        """Country-qualified entry first, then a city-only entry."""
        self._ensure_loaded()
        keys = [place_key(city, country_code)]
        if country_code:
            keys.append(place_key(city))
        with self._lock:
            for key in keys:
                hit = self._entries.get(key)
                if hit is not None:
                    return hit
        return None

    def put(self, city: str, country_code: str | None, coordinates: Coordinates) -> None:
        key = place_key(city, country_code)
        with self._lock:
            if key in self._entries:
                return
            self._entries[key] = coordinates
        if self._store is not None:
            try:
                self._store.save(key, coordinates)
            except Exception:
                logger.warning("geocode_cache.persist_failed", extra={"place_key": key}, exc_info=True)

    def seed(self, entries: dict[str, Coordinates]) -> None:
        """Pre-populate entries keyed by `place_key` strings without persisting them."""
        with self._lock:
            for key, coordinates in entries.items():
                self._entries.setdefault(key, coordinates)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        with self._lock:
            if self._loaded:
                return
            self._loaded = True
            try:
                persisted = self._store.load_all() if self._store else {}
            except Exception:
                logger.warning("geocode_cache.load_failed", exc_info=True)
                return
            for key, coordinates in persisted.items():
                self._entries.setdefault(key, coordinates)
            logger.info("geocode_cache.loaded", extra={"entries": len(persisted)})
