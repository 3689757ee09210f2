"""Pure ranking functions for attractions and restaurants."""

from scoring.attractions import score_attractions
from scoring.config import ATTRACTIONS_SCORING_CONFIG, RESTAURANTS_SCORING_CONFIG, get_scoring_explanations
from scoring.restaurants import score_restaurants

__all__ = [
    "ATTRACTIONS_SCORING_CONFIG",
    "RESTAURANTS_SCORING_CONFIG",
    "get_scoring_explanations",
    "score_attractions",
    "score_restaurants",
]
