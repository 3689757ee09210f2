"""Tests for the runtime that wires caches, scoring, agents and storage."""

from __future__ import annotations

import asyncio

import pytest

from errors import NoAttractionsFoundError
from tests.factories import make_attraction, make_place
from tools import photos, places
from tools.photos import PhotoData
from tools.place_types import ATTRACTION_TYPES, RESTAURANT_TYPES
from workflows.runtime import TripPlannerRuntime
from workflows.schemas import AgentResponse, ChatResponse, Coordinate
from workflows.storage import RecordStore, Storage


class StubAgent:
    def __init__(self, result):
        self.result = result
        self.calls = []

    async def suggest(self, *args):
        self.calls.append(args)
        return self.result

    async def chat(self, *args):
        self.calls.append(args)
        return self.result


@pytest.fixture
def nearby_calls(monkeypatch):
    calls = []

    def _nearby(lat, lng, radius, types):
        calls.append((lat, lng, radius, tuple(types)))
        if tuple(types) == RESTAURANT_TYPES:
            return [
                make_attraction(id="r1", name="Bistro", rating=4.0, user_ratings_total=200, types=["restaurant"]),
                make_attraction(id="r2", name="Fine Dining", rating=4.9, user_ratings_total=900, types=["restaurant"]),
            ]
        return [
            make_attraction(id="a1", name="Museum", types=["museum"]),
            make_attraction(id="a2", name="Park", rating=4.8, user_ratings_total=5000, types=["park"]),
            make_attraction(id="a3", name="Gallery", rating=4.2, user_ratings_total=40, types=["art_gallery"]),
        ]

    monkeypatch.setattr(places, "nearby_search", _nearby)
    return calls


@pytest.fixture
def runtime():
    return TripPlannerRuntime(storage=Storage(RecordStore(redis_url=None)))


def test_top_attractions_are_scored_cached_and_limited(runtime, nearby_calls):
    first = asyncio.run(runtime.get_top_attractions(50.0614301, 19.9365801, 2000, 2))
    again = asyncio.run(runtime.get_top_attractions(50.06143009, 19.93658014, 2000, 3, ["art_enthusiast"]))

    assert nearby_calls == [(50.06143, 19.93658, 2000, ATTRACTION_TYPES)]
    assert len(first) == 2
    assert first[0].attraction.name == "Park"
    assert all(a.score >= b.score for a, b in zip(first, first[1:]))
    # Personas are applied to the cached results per request
    gallery = next(s for s in again if s.attraction.name == "Gallery")
    assert gallery.breakdown.persona_score == 100.0


def test_restaurants_use_their_own_cache(runtime, nearby_calls):
    ranked = asyncio.run(runtime.get_top_restaurants(50.06, 19.94))

    assert [s.attraction.name for s in ranked] == ["Fine Dining", "Bistro"]
    assert ranked[0].breakdown.diversity_score == 0.0
    assert nearby_calls[0][3] == RESTAURANT_TYPES
    assert len(runtime.attractions_cache) == 0
    assert len(runtime.restaurants_cache) == 1


def test_empty_searches_are_not_cached(runtime, monkeypatch):
    calls = []

    def _nothing(lat, lng, radius, types):
        calls.append(lat)
        raise NoAttractionsFoundError(lat, lng)

    monkeypatch.setattr(places, "nearby_search", _nothing)

    for _ in range(2):
        with pytest.raises(NoAttractionsFoundError):
            asyncio.run(runtime.get_top_attractions(1.0, 2.0))
    assert len(calls) == 2


def test_photos_are_cached_by_reference_and_width(monkeypatch):
    calls = []

    async def _fetch(key):
        calls.append(key)
        return PhotoData(b"img", "image/jpeg")

    monkeypatch.setattr(photos, "fetch_photo", _fetch)
    runtime = TripPlannerRuntime()

    async def _scenario():
        a = await runtime.get_photo("places/x/photos/1", 400, 1.0, 2.0, "Wawel")
        b = await runtime.get_photo("places/x/photos/1", 400)
        c = await runtime.get_photo("places/x/photos/1", 800)
        return a, b, c

    a, b, c = asyncio.run(_scenario())

    assert a is b
    assert len(calls) == 2
    assert calls[0].place_name == "Wawel"
    assert c.data == b"img"


def test_agents_are_delegated(runtime):
    suggestion = StubAgent(AgentResponse(summary="ok"))
    planner = StubAgent(ChatResponse(message="hi"))
    runtime = TripPlannerRuntime(
        storage=runtime.storage, planning_chat=planner, suggestion_agent=suggestion
    )
    center = Coordinate(lat=50.06, lng=19.94)

    assert asyncio.run(runtime.suggest(make_place(), center, [], "food")).summary == "ok"
    assert asyncio.run(runtime.chat("Mountains", ["nature_lover"])).message == "hi"
    assert suggestion.calls[0][1] == center
    assert planner.calls[0] == ("Mountains", ["nature_lover"], None)


def test_dev_stats_report_calls_and_caches(runtime, nearby_calls):
    places.reset_api_call_stats()
    photos.PHOTO_CALL_STATS.clear()
    asyncio.run(runtime.get_top_attractions(50.06, 19.94))
    asyncio.run(runtime.get_top_attractions(50.06, 19.94))

    stats = runtime.dev_stats()

    assert stats["api_calls"]["photo"] == 0
    names = [c["name"] for c in stats["caches"]]
    assert names == ["attractions", "restaurants", "text_search", "photos"]
    attractions = stats["caches"][0]
    assert (attractions["hits"], attractions["misses"], attractions["size"]) == (1, 1, 1)


def test_dev_stats_purge_expired_entries(runtime, monkeypatch):
    cache = runtime.text_search_cache
    cache.set("stale", make_attraction())
    monkeypatch.setattr(cache, "_clock", lambda: float("inf"))

    stats = {c["name"]: c for c in runtime.dev_stats()["caches"]}

    assert stats["text_search"]["expired_purged"] == 1
    assert stats["text_search"]["size"] == 0
    assert stats["attractions"]["expired_purged"] == 0
