"""Individual sub-score functions. Each returns a value in [0, 100]."""

from __future__ import annotations

import math
from collections import Counter
from typing import Iterable, Mapping, Sequence

from tools.place_types import PERSONA_FILTER_TYPES
from workflows.schemas import Attraction

GENERAL_TOURIST = "general_tourist"
FOODIE_TRAVELER = "foodie_traveler"

PERSONA_MATCH_SCORE = 100.0
PERSONA_MISS_SCORE = 10.0


def round1(value: float) -> float:
    """Round half-up to one decimal (``round`` would use banker's rounding)."""
    return math.floor(value * 10 + 0.5) / 10


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(value, high))


def type_frequency(attractions: Iterable[Attraction]) -> Counter:
    counts: Counter = Counter()
    for attraction in attractions:
        counts.update(attraction.types)
    return counts


def quality_score(attraction: Attraction) -> float:
    rating = attraction.rating
    reviews = attraction.user_ratings_total
    if not rating or not reviews or rating <= 0 or reviews <= 0:
        return 0.0
    rating_component = (rating / 5) * 60
    review_component = (math.log10(reviews + 1) / 5) * 40
    return min(rating_component + review_component, 100.0)


def diversity_score(attraction: Attraction, frequency: Mapping[str, int]) -> float:
    # Rarest type wins, so one common tag does not drag a place down
    max_frequency = max(frequency.values(), default=0)
    if max_frequency == 0 or not attraction.types:
        return 100.0
    min_frequency = min(frequency.get(t, 0) for t in attraction.types)
    return clamp(100 - (min_frequency / max_frequency) * 100)


def confidence_score(attraction: Attraction) -> float:
    reviews = attraction.user_ratings_total
    if not reviews:
        return 40.0
    if reviews > 100:
        return 100.0
    if reviews > 20:
        return 70.0
    return 40.0


def persona_score(attraction: Attraction, personas: Sequence[str]) -> float:
    # Foodie preferences only apply to restaurant ranking
    for persona in personas:
        if persona == FOODIE_TRAVELER:
            continue
        preferred = PERSONA_FILTER_TYPES.get(persona, ())
        if any(t in preferred for t in attraction.types):
            return PERSONA_MATCH_SCORE
    return PERSONA_MISS_SCORE


def locality_score(attraction: Attraction) -> float:
    """Heuristic for places locals favour over tourist hotspots."""
    score = 50.0
    reviews = attraction.user_ratings_total or 0
    if 500 <= reviews <= 5000:
        score += 25
    elif reviews > 50000:
        score -= 20

    if attraction.price_level in (1, 2):
        score += 15
    elif attraction.price_level == 4:
        score -= 10
    return clamp(score)
