"""Pydantic schemas for places, scores and agent outputs."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Places
# ============================================================================

class Coordinate(BaseModel):
    """Geographic coordinate."""
    lat: float = Field(ge=-90, le=90, description="Latitude must be between -90 and 90")
    lng: float = Field(ge=-180, le=180, description="Longitude must be between -180 and 180")


class PlacePhoto(BaseModel):
    """A photo reference from Google Places or a Wikimedia Commons URL."""
    photo_reference: str
    width: int = 0
    height: int = 0
    attributions: List[str] = Field(default_factory=list)


class Attraction(BaseModel):
    """A point of interest (attraction or restaurant) returned by a places API."""
    id: str
    name: str
    rating: Optional[float] = None
    user_ratings_total: Optional[int] = None
    types: List[str] = Field(default_factory=list)
    vicinity: str = ""
    price_level: Optional[int] = Field(None, ge=0, le=4)
    open_now: Optional[bool] = None
    location: Coordinate
    photos: Optional[List[PlacePhoto]] = None
    editorial_summary: Optional[str] = None


class Place(BaseModel):
    """A trip stop: a hub on the map with its planned attractions and restaurants."""
    id: str
    name: str
    lat: float
    lng: float
    planned_attractions: List[Attraction] = Field(default_factory=list)
    planned_restaurants: List[Attraction] = Field(default_factory=list)
    photos: Optional[List[PlacePhoto]] = None


# ============================================================================
# Scores
# ============================================================================

class ScoreBreakdown(BaseModel):
    """Per-factor sub-scores, each in [0, 100]."""
    quality_score: float
    diversity_score: float = 0.0
    confidence_score: float
    persona_score: Optional[float] = None
    locality_score: Optional[float] = None


class AttractionScore(BaseModel):
    """A place together with its overall ranking score."""
    attraction: Attraction
    score: float
    breakdown: ScoreBreakdown

    def to_dict(self) -> Dict[str, Any]:
        """Serialize, omitting sub-scores that were not computed."""
        return self.model_dump(exclude_none=True)


# ============================================================================
# Agent outputs
# ============================================================================

class ConversationMessage(BaseModel):
    """A chat turn passed to the LLM as context."""
    role: Literal["user", "assistant", "system"]
    content: str


class PlaceSuggestion(BaseModel):
    """A destination hub suggested by the planning chat."""
    id: Optional[str] = None
    name: str
    description: str = ""
    reasoning: str = ""
    lat: Optional[float] = None
    lng: Optional[float] = None
    photos: Optional[List[PlacePhoto]] = None
    validation_status: Optional[Literal["verified", "not_found", "partial"]] = None
    search_query: Optional[str] = None


class SuggestedAttraction(Attraction):
    """Attraction data attached to an agent suggestion, with its ranking."""
    score: Optional[float] = None
    breakdown: Optional[ScoreBreakdown] = None


class Suggestion(BaseModel):
    """One item of the nearby-suggestions agent output."""
    type: Literal["add_attraction", "add_restaurant", "general_tip"]
    reasoning: str
    attraction_name: Optional[str] = Field(None, alias="attractionName")
    priority: Optional[Literal["hidden gem", "highly recommended", "must-see"]] = None
    attraction_data: Optional[SuggestedAttraction] = None
    photos: Optional[List[PlacePhoto]] = None

    model_config = ConfigDict(populate_by_name=True)


class AgentResponse(BaseModel):
    """Structured output of the nearby-suggestions agent."""
    thinking: List[str] = Field(default_factory=list, alias="_thinking")
    suggestions: List[Suggestion] = Field(default_factory=list)
    summary: str = ""

    model_config = ConfigDict(populate_by_name=True)


class ChatResponse(BaseModel):
    """Reply of the planning chat."""
    message: str
    suggested_places: List[PlaceSuggestion] = Field(default_factory=list)
    thinking: List[str] = Field(default_factory=list)
