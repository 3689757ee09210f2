"""Request bodies accepted by the HTTP API."""

from __future__ import annotations

from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

import config
from scoring.personas import is_valid_persona
from workflows.schemas import ConversationMessage, Coordinate, Place
from workflows.state import ChatMessage


def _check_personas(value: List[str]) -> List[str]:
    unknown = [p for p in value if not is_valid_persona(p)]
    if unknown:
        raise ValueError(f"Unknown persona: {', '.join(unknown)}")
    return value


PersonaList = Annotated[List[str], AfterValidator(_check_personas)]


class NearbySearchRequest(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    radius: int = Field(config.DEFAULT_SEARCH_RADIUS_M, ge=100, le=50000)
    limit: int = Field(config.DEFAULT_RESULT_LIMIT, ge=1, le=50)
    personas: PersonaList = Field(default_factory=list)


class SuggestRequest(BaseModel):
    place: Place
    map_center: Coordinate = Field(alias="mapCoordinates")
    conversation_history: List[ConversationMessage] = Field(default_factory=list, alias="conversationHistory")
    user_message: Optional[str] = Field(None, alias="userMessage", max_length=2000)

    model_config = ConfigDict(populate_by_name=True)


class PlanChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=2000)
    personas: PersonaList = Field(default_factory=list)
    conversation_history: List[ConversationMessage] = Field(default_factory=list)


class PersonasUpdate(BaseModel):
    persona_types: PersonaList


class ReverseGeocodeRequest(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class PlaceSearchRequest(BaseModel):
    query: str = Field(min_length=1, max_length=500)


class PlaceDetailsRequest(BaseModel):
    place_id: str = Field(min_length=1)
    include_photos: bool = False


class ConversationCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    personas: PersonaList = Field(default_factory=list)
    messages: List[ChatMessage] = Field(default_factory=list)


class ConversationMessagesUpdate(BaseModel):
    messages: List[ChatMessage]


class TripCreate(BaseModel):
    places: List[Place] = Field(default_factory=list)
    conversation_id: Optional[str] = None
    title: Optional[str] = Field(None, min_length=1, max_length=200)


class TripPlacesUpdate(BaseModel):
    places: List[Place]
    title: Optional[str] = Field(None, min_length=1, max_length=200)


class TripConversationLink(BaseModel):
    conversation_id: str = Field(min_length=1)
