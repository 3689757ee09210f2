"""Builders for domain objects used across tests."""

from __future__ import annotations

from typing import Any, Dict

from workflows.schemas import Attraction, AttractionScore, Coordinate, Place, ScoreBreakdown


def make_attraction(**overrides: Any) -> Attraction:
    data: Dict[str, Any] = {
        "id": "test-place-id",
        "name": "Test Attraction",
        "rating": 4.5,
        "user_ratings_total": 100,
        "types": ["museum"],
        "vicinity": "Test Location",
        "location": Coordinate(lat=0, lng=0),
    }
    data.update(overrides)
    return Attraction(**data)


def make_scored(name: str, score: float = 80.0, **overrides: Any) -> AttractionScore:
    return AttractionScore(
        attraction=make_attraction(id=f"id-{name}", name=name, **overrides),
        score=score,
        breakdown=ScoreBreakdown(quality_score=75.0, diversity_score=50.0, confidence_score=100.0, persona_score=10.0),
    )


def make_place(**overrides: Any) -> Place:
    data: Dict[str, Any] = {"id": "place-1", "name": "Old Town", "lat": 50.06, "lng": 19.94}
    data.update(overrides)
    return Place(**data)
