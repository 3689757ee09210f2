"""Restaurant ranking: quality and confidence only."""

from __future__ import annotations

from typing import List, Optional, Sequence

from scoring.config import RESTAURANTS_SCORING_CONFIG
from scoring.factors import FOODIE_TRAVELER, confidence_score, quality_score, round1
from workflows.schemas import Attraction, AttractionScore, ScoreBreakdown


def score_restaurants(restaurants: Sequence[Attraction], personas: Optional[Sequence[str]] = None) -> List[AttractionScore]:
    """Score and rank restaurants. Foodies get a small boost, capped at 100."""
    weights = RESTAURANTS_SCORING_CONFIG["weights"]
    boost = RESTAURANTS_SCORING_CONFIG["foodie_boost"] if FOODIE_TRAVELER in (personas or []) else 1.0

    scored: List[AttractionScore] = []
    for restaurant in restaurants:
        quality = quality_score(restaurant)
        confidence = confidence_score(restaurant)
        total = min((quality * weights["quality"] + confidence * weights["confidence"]) * boost, 100.0)
        scored.append(AttractionScore(
            attraction=restaurant,
            score=round1(total),
            breakdown=ScoreBreakdown(
                quality_score=round1(quality),
                diversity_score=0.0,
                confidence_score=round1(confidence),
            ),
        ))

    return sorted(scored, key=lambda s: s.score, reverse=True)
