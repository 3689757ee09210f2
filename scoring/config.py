"""Scoring weights and the human-readable explanations shown next to each score."""

from __future__ import annotations

from typing import Any, Dict

_QUALITY_DESCRIPTION = [
    "Based on rating and review count",
    "Higher ratings with more reviews score better",
    "Formula: rating (60%) + log₁₀(reviews) (40%)",
]

_CONFIDENCE_DESCRIPTION = [
    "Based on review volume reliability",
    "High confidence: >100 reviews",
    "Medium confidence: 20-100 reviews",
    "Low confidence: <20 reviews",
]

ATTRACTIONS_SCORING_CONFIG: Dict[str, Any] = {
    "weights": {
        "quality": 0.5,
        "persona": 0.1,
        "diversity": 0.2,
        "confidence": 0.2,
        "locality": 0.0,
    },
    # Used when general_tourist is selected: persona matching is switched off
    "general_tourist_weights": {
        "quality": 0.6,
        "persona": 0.0,
        "diversity": 0.2,
        "confidence": 0.2,
        "locality": 0.0,
    },
    "explanations": {
        "quality": {
            "title": "Quality Score",
            "weight": "50% weight",
            "description": _QUALITY_DESCRIPTION,
        },
        "persona": {
            "title": "Persona Score",
            "weight": "10% weight",
            "description": [
                "Matches your travel style preferences",
                "100 points if attraction matches your persona",
                "10 points if no match or no persona selected",
            ],
        },
        "diversity": {
            "title": "Diversity Score",
            "weight": "20% weight",
            "description": [
                "Rewards places with unique/rare types",
                "Based on rarest type the place has",
                "Adds variety to your recommendations",
            ],
        },
        "confidence": {
            "title": "Confidence Score",
            "weight": "20% weight",
            "description": _CONFIDENCE_DESCRIPTION,
        },
        "locality": {
            "title": "Locality Score",
            "weight": "Informational",
            "description": [
                "Estimates how much locals favour the place",
                "Moderate review counts and affordable prices score higher",
                "Very heavily reviewed tourist hotspots score lower",
            ],
        },
    },
}

RESTAURANTS_SCORING_CONFIG: Dict[str, Any] = {
    "weights": {
        "quality": 0.7,
        "confidence": 0.3,
    },
    "foodie_boost": 1.1,
    "explanations": {
        "quality": {
            "title": "Quality Score",
            "weight": "70% weight",
            "description": _QUALITY_DESCRIPTION,
        },
        "confidence": {
            "title": "Confidence Score",
            "weight": "30% weight",
            "description": _CONFIDENCE_DESCRIPTION,
        },
    },
}


def get_scoring_explanations(kind: str = "attractions") -> Dict[str, Dict[str, Any]]:
    """Return the per-factor explanations for ``attractions`` or ``restaurants``."""
    if kind == "attractions":
        return ATTRACTIONS_SCORING_CONFIG["explanations"]
    if kind == "restaurants":
        return RESTAURANTS_SCORING_CONFIG["explanations"]
    raise ValueError(f"Unknown scoring kind: {kind}")
