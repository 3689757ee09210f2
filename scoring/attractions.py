"""Attraction ranking: quality, persona match, diversity and confidence."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from scoring.config import ATTRACTIONS_SCORING_CONFIG
from scoring.factors import (
    GENERAL_TOURIST,
    confidence_score,
    diversity_score,
    locality_score,
    persona_score,
    quality_score,
    round1,
    type_frequency,
)
from workflows.schemas import Attraction, AttractionScore, ScoreBreakdown

logger = logging.getLogger(__name__)


def score_attractions(attractions: Sequence[Attraction], personas: Optional[Sequence[str]] = None) -> List[AttractionScore]:
    """
    Score and rank a batch of attractions, highest first.

    Diversity is relative to the batch, so the same place can score differently
    depending on its neighbours. With ``general_tourist`` selected persona
    matching is disabled and its weight moves to quality.
    """
    personas = list(personas or [])
    persona_enabled = GENERAL_TOURIST not in personas
    weights = (
        ATTRACTIONS_SCORING_CONFIG["weights"]
        if persona_enabled
        else ATTRACTIONS_SCORING_CONFIG["general_tourist_weights"]
    )
    frequency = type_frequency(attractions)

    scored: List[AttractionScore] = []
    for attraction in attractions:
        quality = quality_score(attraction)
        diversity = diversity_score(attraction, frequency)
        confidence = confidence_score(attraction)
        locality = locality_score(attraction)
        persona = persona_score(attraction, personas) if persona_enabled else None

        total = (
            quality * weights["quality"]
            + (persona or 0.0) * weights["persona"]
            + diversity * weights["diversity"]
            + confidence * weights["confidence"]
            + locality * weights["locality"]
        )
        scored.append(AttractionScore(
            attraction=attraction,
            score=round1(total),
            breakdown=ScoreBreakdown(
                quality_score=round1(quality),
                diversity_score=round1(diversity),
                confidence_score=round1(confidence),
                persona_score=round1(persona) if persona is not None else None,
                locality_score=round1(locality),
            ),
        ))

    # sorted() is stable, ties keep input order
    ranked = sorted(scored, key=lambda s: s.score, reverse=True)
    logger.debug("Scored %d attractions (personas=%s)", len(ranked), personas)
    return ranked
