from __future__ import annotations

import pytest

from app.models.tournament import Coordinates
from pipelines.ingest.geocode_cache import GeocodeCache, place_key


class RecordingStore:
    def __init__(self, persisted: dict[str, Coordinates] | None = None, *, fail: bool = False) -> None:
        self.persisted = dict(persisted or {})
        self.saves: list[str] = []
        self.loads = 0
        self.fail = fail

    def load_all(self) -> dict[str, Coordinates]:
        self.loads += 1
        return dict(self.persisted)

    def save(self, place_key: str, coordinates: Coordinates) -> None:
        if self.fail:
            raise RuntimeError("disk full")
        self.saves.append(place_key)
        self.persisted[place_key] = coordinates


def test_place_key_normalizes_case_and_whitespace():
    assert place_key("  New   York ", "us") == "new york|US"
    assert place_key("Paris") == "paris"
    with pytest.raises(ValueError):
        place_key("   ")


def test_get_prefers_country_qualified_entry():
    cache = GeocodeCache()
    cache.seed({"paris": Coordinates(1.0, 1.0), "paris|FR": Coordinates(48.8566, 2.3522)})

    assert cache.get("Paris", "FR") == Coordinates(48.8566, 2.3522)
    assert cache.get("Paris", "US") == Coordinates(1.0, 1.0)
    assert cache.get("Lyon", "FR") is None


def test_put_is_idempotent_and_persists_once():
    store = RecordingStore()
    cache = GeocodeCache(store=store)

    cache.put("Lyon", "FR", Coordinates(45.76, 4.83))
    cache.put("LYON", "fr", Coordinates(0.0, 0.0))

    assert cache.get("lyon", "FR") == Coordinates(45.76, 4.83)
    assert store.saves == ["lyon|FR"]
    assert len(cache) == 1


def test_persisted_entries_load_lazily_once():
    store = RecordingStore({"pune|IN": Coordinates(18.52, 73.86)})
    cache = GeocodeCache(store=store)

    assert cache.get("Pune", "IN") == Coordinates(18.52, 73.86)
    assert cache.get("Pune", "IN") == Coordinates(18.52, 73.86)
    assert store.loads == 1


def test_store_failures_do_not_break_the_cache():
    cache = GeocodeCache(store=RecordingStore(fail=True))
    cache.put("Lyon", "FR", Coordinates(45.76, 4.83))
    assert cache.get("Lyon", "FR") == Coordinates(45.76, 4.83)
