"""HTTP-level tests for the FastAPI app with a stubbed runtime."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

import config
from api.main import app
from errors import NoResultsError, PlacesAPIError
from tests.factories import make_attraction, make_place
from tools import photos, places
from tools.photos import PhotoData
from tools.place_types import RESTAURANT_TYPES
from workflows.runtime import TripPlannerRuntime, get_runtime
from workflows.schemas import AgentResponse, ChatResponse, PlaceSuggestion, Suggestion
from workflows.storage import RecordStore, Storage

CENTER = {"lat": 50.06, "lng": 19.94}


class StubSuggestionAgent:
    def __init__(self):
        self.calls = []

    async def suggest(self, place, map_center, conversation_history, user_message):
        self.calls.append((place, map_center, conversation_history, user_message))
        return AgentResponse(
            thinking=["looked around"],
            suggestions=[Suggestion(type="general_tip", reasoning="Go early")],
            summary="Short visit",
        )


class StubPlanningChat:
    def __init__(self):
        self.calls = []

    async def chat(self, message, personas, conversation_history):
        self.calls.append((message, personas, conversation_history))
        return ChatResponse(
            message="Visit **Zakopane**.",
            suggested_places=[PlaceSuggestion(name="Zakopane", lat=49.29, lng=19.95, validation_status="verified")],
            thinking=["mountains"],
        )


@pytest.fixture
def runtime(monkeypatch):
    def _nearby(lat, lng, radius, types):
        if tuple(types) == RESTAURANT_TYPES:
            return [make_attraction(id="r1", name="Bistro", types=["restaurant"])]
        return [
            make_attraction(id="a1", name="Museum"),
            make_attraction(id="a2", name="Park", rating=4.9, user_ratings_total=3000, types=["park"]),
        ]

    monkeypatch.setattr(places, "nearby_search", _nearby)
    stub_runtime = TripPlannerRuntime(
        storage=Storage(RecordStore(redis_url=None)),
        planning_chat=StubPlanningChat(),
        suggestion_agent=StubSuggestionAgent(),
    )
    app.dependency_overrides[get_runtime] = lambda: stub_runtime
    yield stub_runtime
    app.dependency_overrides.clear()


@pytest.fixture
def client(runtime):
    return TestClient(app, raise_server_exceptions=False)


def test_health_reports_missing_keys(client, monkeypatch):
    monkeypatch.setattr(config, "validate_api_keys", lambda: ["GOOGLE_MAPS_API_KEY"])

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "missing_keys": ["GOOGLE_MAPS_API_KEY"]}


def test_top_attractions(client):
    response = client.post("/api/attractions", json={**CENTER, "limit": 1})

    assert response.status_code == 200
    body = response.json()
    assert [a["attraction"]["name"] for a in body["attractions"]] == ["Park"]
    assert "locality_score" in body["attractions"][0]["breakdown"]


def test_top_restaurants_omit_persona_score(client):
    response = client.post("/api/restaurants", json={**CENTER, "personas": ["foodie_traveler"]})

    assert response.status_code == 200
    breakdown = response.json()["restaurants"][0]["breakdown"]
    assert "persona_score" not in breakdown
    assert breakdown["diversity_score"] == 0.0


@pytest.mark.parametrize(
    "payload, path",
    [
        ({"lat": 95, "lng": 19.94}, "lat"),
        ({**CENTER, "radius": 50}, "radius"),
        ({**CENTER, "limit": 51}, "limit"),
        ({**CENTER, "personas": ["time_traveler"]}, "personas"),
    ],
)
def test_nearby_validation_errors(client, payload, path):
    response = client.post("/api/attractions", json=payload)

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Validation failed"
    assert body["details"][0]["path"] == path


def test_photo_endpoint_sets_cache_headers(client, runtime, monkeypatch):
    seen = {}

    async def _get_photo(ref, width, lat, lng, name):
        seen.update(ref=ref, width=width, lat=lat, lng=lng, name=name)
        return PhotoData(b"\x89PNG", "image/png")

    monkeypatch.setattr(runtime, "get_photo", _get_photo)

    response = client.get("/api/photos", params={"ref": "places/x/photos/1", "width": 400, "lat": 1.5, "lng": 2.5, "name": "Wawel"})

    assert response.status_code == 200
    assert response.content == b"\x89PNG"
    assert response.headers["content-type"] == "image/png"
    assert response.headers["cache-control"] == "public, max-age=172800, immutable"
    assert seen == {"ref": "places/x/photos/1", "width": 400, "lat": 1.5, "lng": 2.5, "name": "Wawel"}


def test_photo_width_is_bounded(client):
    assert client.get("/api/photos", params={"ref": "x", "width": 5000}).status_code == 400


def test_photo_endpoint_rejects_internal_urls(client, monkeypatch):
    fetched = []

    async def _download(url, params=None, default_type="image/jpeg"):
        fetched.append(url)
        return PhotoData(b"secret", "text/plain")

    monkeypatch.setattr(photos, "_download", _download)
    monkeypatch.setattr(config, "APP_ENV", "production")

    response = client.get("/api/photos", params={"ref": "http://169.254.169.254/latest/meta-data/", "width": 400})

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert fetched == []


def test_suggest_accepts_client_field_names(client, runtime):
    payload = {
        "place": make_place().model_dump(),
        "mapCoordinates": CENTER,
        "conversationHistory": [{"role": "user", "content": "We like food"}],
        "userMessage": "Find lunch",
    }

    response = client.post("/api/attractions/suggest", json=payload)

    assert response.status_code == 200
    assert response.json() == {
        "_thinking": ["looked around"],
        "suggestions": [{"type": "general_tip", "reasoning": "Go early"}],
        "summary": "Short visit",
    }
    place, center, history, message = runtime.suggestion_agent.calls[0]
    assert place.name == "Old Town"
    assert (center.lat, center.lng) == (50.06, 19.94)
    assert history[0].content == "We like food"
    assert message == "Find lunch"


def test_plan_chat(client, runtime):
    response = client.post("/api/plan", json={"message": "Mountains", "personas": ["nature_lover"]})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Visit **Zakopane**."
    assert body["suggested_places"][0]["validation_status"] == "verified"
    assert runtime.planning_chat.calls == [("Mountains", ["nature_lover"], [])]


def test_plan_chat_requires_message(client):
    assert client.post("/api/plan", json={"message": ""}).status_code == 400


def test_domain_errors_map_to_status_codes(client, monkeypatch):
    def _nothing(lat, lng):
        raise NoResultsError(lat, lng)

    monkeypatch.setattr(places, "reverse_geocode", _nothing)

    response = client.post("/api/geocoding/reverse", json={"lat": 0, "lng": 0})

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "No results found for coordinates (0.0, 0.0)"}


def test_upstream_errors_are_bad_gateway(client, monkeypatch):
    def _broken(query):
        raise PlacesAPIError("API error: 500")

    monkeypatch.setattr(places, "search_place", _broken)

    response = client.post("/api/places/search", json={"query": "Kraków"})

    assert response.status_code == 502


def test_unexpected_errors_are_hidden(client, monkeypatch):
    def _bug(place_id, include_photos):
        raise KeyError("boom")

    monkeypatch.setattr(places, "place_details", _bug)

    response = client.post("/api/places/details", json={"place_id": "abc"})

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal server error"}


def test_place_lookups_return_place(client, monkeypatch):
    monkeypatch.setattr(places, "search_place", lambda q: make_place(name=q))

    response = client.post("/api/places/search", json={"query": "Kazimierz"})

    assert response.json()["place"]["name"] == "Kazimierz"


def test_personas_roundtrip_per_user(client):
    headers = {"X-User-Id": "alice"}

    saved = client.put("/api/personas", json={"persona_types": ["history_buff", "history_buff"]}, headers=headers)
    assert saved.status_code == 200
    assert saved.json()["persona_types"] == ["history_buff"]

    mine = client.get("/api/personas", headers=headers).json()
    theirs = client.get("/api/personas", headers={"X-User-Id": "bob"}).json()
    assert mine["persona_types"] == ["history_buff"]
    assert theirs["persona_types"] == []
    assert {"type": "history_buff"}.items() <= next(p for p in mine["available"] if p["type"] == "history_buff").items()


def test_conversation_and_trip_flow(client):
    created = client.post("/api/conversations", json={"title": "Kraków weekend", "personas": ["history_buff"]})
    assert created.status_code == 201
    conversation_id = created.json()["id"]

    updated = client.put(
        f"/api/conversations/{conversation_id}/messages",
        json={"messages": [{"role": "user", "content": "Castles?"}]},
    )
    assert updated.status_code == 200
    assert updated.json()["messages"][0]["content"] == "Castles?"

    trip = client.post(
        "/api/trips",
        json={"places": [make_place().model_dump()], "conversation_id": conversation_id},
    )
    assert trip.status_code == 201
    trip_id = trip.json()["id"]
    assert trip.json()["place_count"] == 1

    listed = client.get("/api/conversations").json()["conversations"]
    assert listed[0]["has_trip"] is True
    assert listed[0]["message_count"] == 1

    by_conversation = client.get(f"/api/trips/by-conversation/{conversation_id}").json()
    assert by_conversation["trip"]["id"] == trip_id

    renamed = client.put(f"/api/trips/{trip_id}/places", json={"places": [], "title": "Empty"})
    assert renamed.json()["title"] == "Empty"
    assert renamed.json()["place_count"] == 0

    assert client.delete(f"/api/conversations/{conversation_id}").json() == {"success": True}
    assert client.get(f"/api/trips/{trip_id}").status_code == 404
    assert client.get(f"/api/conversations/{conversation_id}").status_code == 404


def test_trip_requires_own_conversation(client):
    other = client.post("/api/conversations", json={"title": "Bob's"}, headers={"X-User-Id": "bob"}).json()

    response = client.post("/api/trips", json={"conversation_id": other["id"]})

    assert response.status_code == 404


def test_current_and_recent_trips(client):
    current = client.get("/api/trips/current")
    assert current.status_code == 200
    assert client.get("/api/trips/current").json()["id"] == current.json()["id"]

    recent = client.get("/api/trips/recent", params={"limit": 5}).json()["trips"]
    assert [t["id"] for t in recent] == [current.json()["id"]]
    assert client.get("/api/trips/by-conversation/none").json() == {"trip": None}


def test_link_trip_to_conversation(client):
    trip_id = client.post("/api/trips", json={}).json()["id"]
    conversation_id = client.post("/api/conversations", json={"title": "Later"}).json()["id"]

    linked = client.put(f"/api/trips/{trip_id}/conversation", json={"conversation_id": conversation_id})

    assert linked.json()["conversation_id"] == conversation_id
    assert client.put(f"/api/trips/{trip_id}/conversation", json={"conversation_id": "missing"}).status_code == 404


def test_conversation_holds_a_single_trip(client):
    conversation_id = client.post("/api/conversations", json={"title": "Plan"}).json()["id"]
    first = client.post("/api/trips", json={"conversation_id": conversation_id})
    assert first.status_code == 201

    second = client.post("/api/trips", json={"conversation_id": conversation_id})
    other_trip = client.post("/api/trips", json={}).json()["id"]
    relink = client.put(f"/api/trips/{other_trip}/conversation", json={"conversation_id": conversation_id})

    assert second.status_code == 409
    assert relink.status_code == 409
    assert client.get(f"/api/trips/by-conversation/{conversation_id}").json()["trip"]["id"] == first.json()["id"]


def test_dev_stats_hidden_outside_development(client, monkeypatch):
    monkeypatch.setattr(config, "APP_ENV", "production")
    assert client.get("/api/dev/stats").status_code == 404

    monkeypatch.setattr(config, "APP_ENV", "development")
    stats = client.get("/api/dev/stats").json()
    assert {c["name"] for c in stats["caches"]} == {"attractions", "restaurants", "text_search", "photos"}


def test_scoring_explanations(client):
    body = client.get("/api/scoring/explanations").json()

    assert set(body) == {"attractions", "restaurants"}
