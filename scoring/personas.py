"""Traveler personas: labels and descriptions used in prompts and the persona picker."""

from __future__ import annotations

from typing import Dict, Sequence

PERSONA_METADATA: Dict[str, Dict[str, str]] = {
    "general_tourist": {
        "label": "General Tourist",
        "description": "Popular destinations and well-known attractions",
        "icon": "map-pin",
    },
    "nature_lover": {
        "label": "Nature Lover",
        "description": "Outdoor activities, parks, and natural landscapes",
        "icon": "tree-pine",
    },
    "art_enthusiast": {
        "label": "Art Enthusiast",
        "description": "Museums, galleries, and cultural experiences",
        "icon": "palette",
    },
    "foodie_traveler": {
        "label": "Foodie Traveler",
        "description": "Local cuisine, markets, cafes, and memorable restaurants",
        "icon": "utensils",
    },
    "adventure_seeker": {
        "label": "Adventure Seeker",
        "description": "Thrilling activities, hiking, and outdoor sports",
        "icon": "mountain",
    },
    "digital_nomad": {
        "label": "Digital Nomad",
        "description": "Work-friendly cafes, libraries, and longer stays",
        "icon": "laptop",
    },
    "history_buff": {
        "label": "History Buff",
        "description": "Historic sites, monuments, and heritage museums",
        "icon": "landmark",
    },
    "photography_enthusiast": {
        "label": "Photography Enthusiast",
        "description": "Viewpoints, scenic spots, and striking architecture",
        "icon": "camera",
    },
}

def is_valid_persona(persona: str) -> bool:
    return persona in PERSONA_METADATA


def describe_personas(personas: Sequence[str]) -> str:
    """Bullet list ``- Label: description`` for prompts; unknown keys are skipped."""
    lines = []
    for persona in personas:
        meta = PERSONA_METADATA.get(persona)
        if meta:
            lines.append(f"- {meta['label']}: {meta['description']}")
    return "\n".join(lines)
