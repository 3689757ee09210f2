"""Typed records persisted by the trip planner: conversations, trips, personas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from workflows.schemas import Place, PlaceSuggestion


def _now() -> datetime:
    return datetime.now()


def _new_id() -> str:
    return str(uuid.uuid4())


class ChatMessage(BaseModel):
    id: str = Field(default_factory=_new_id)
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: datetime = Field(default_factory=_now)
    suggested_places: Optional[List[PlaceSuggestion]] = None
    thinking: Optional[List[str]] = None


class Conversation(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    title: str
    personas: List[str] = Field(default_factory=list)
    messages: List[ChatMessage] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


def format_trip_title(moment: datetime) -> str:
    """Default trip title, e.g. ``Trip Plan - 2025-11-09 14:05``."""
    return f"Trip Plan - {moment:%Y-%m-%d %H:%M}"


class Trip(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    conversation_id: Optional[str] = None
    title: str = ""
    places: List[Place] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @property
    def place_count(self) -> int:
        return len(self.places)

    @classmethod
    def create(cls, user_id: str, places: List[Place], conversation_id: Optional[str] = None,
               title: Optional[str] = None) -> "Trip":
        created = _now()
        return cls(
            user_id=user_id,
            conversation_id=conversation_id,
            title=title or format_trip_title(created),
            places=list(places),
            created_at=created,
            updated_at=created,
        )

    def with_places(self, places: List[Place]) -> "Trip":
        return self.model_copy(update={"places": list(places), "updated_at": _now()})


class UserPersonas(BaseModel):
    user_id: str
    persona_types: List[str] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=_now)
