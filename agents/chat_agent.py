# agents/chat_agent.py
"""TravelPlanningChat: persona-aware chat that proposes exploration hubs for a trip."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from langchain_core.messages import HumanMessage, SystemMessage

import config
from agents.llm import build_chat_model, history_messages, message_text, parse_json_object
from errors import TripPlannerError
from prompts import PromptTemplate, load_prompt_template
from scoring.personas import describe_personas
from tools import places
from workflows.schemas import ChatResponse, ConversationMessage, Place, PlaceSuggestion

logger = logging.getLogger(__name__)

PlaceSearchFn = Callable[[str], Awaitable[Place]]
PlaceDetailsFn = Callable[[str, bool], Awaitable[Place]]

DEFAULT_MESSAGE = "I'm having trouble finding specific places for your request. Could you provide more details?"
PARSE_FAILURE_MESSAGE = "I'm having trouble processing your request. Please try again."
NARRATIVE_FALLBACK_MESSAGE = "Here are some great places to explore based on your interests:"


async def _search_place(query: str) -> Place:
    return await asyncio.to_thread(places.search_place, query)


async def _place_details(place_id: str, include_photos: bool) -> Place:
    return await asyncio.to_thread(places.place_details, place_id, include_photos)


class TravelPlanningChat:
    """
    Two model calls per turn:
    1) a JSON reply with reasoning steps and 5-8 suggested places,
    2) a short narrative in which place names are wrapped in ``**``.
    Each suggested place is then looked up on the map to attach coordinates and photos.
    """

    def __init__(
        self,
        model=None,
        narrative_model=None,
        *,
        search_place: Optional[PlaceSearchFn] = None,
        place_details: Optional[PlaceDetailsFn] = None,
        system_prompt: Optional[PromptTemplate] = None,
        narrative_prompt: Optional[PromptTemplate] = None,
        max_concurrency: int = config.AGENT_MAX_CONCURRENCY,
    ):
        self.model = model if model is not None else build_chat_model(temperature=config.DEFAULT_TEMPERATURE)
        if narrative_model is not None:
            self.narrative_model = narrative_model
        elif model is not None:
            self.narrative_model = model
        else:
            self.narrative_model = build_chat_model(temperature=config.NARRATIVE_TEMPERATURE)
        self._search_place = search_place or _search_place
        self._place_details = place_details or _place_details
        self.system_prompt_template = system_prompt or load_prompt_template("plan_chat", "plan_chat.md")
        self.narrative_prompt_template = narrative_prompt or load_prompt_template("narrative", "narrative.md")
        self.max_concurrency = max(1, max_concurrency)

    # ---------------------------
    # Suggestion step
    # ---------------------------
    def _system_message(self, personas: List[str]) -> SystemMessage:
        return SystemMessage(content=self.system_prompt_template.format(
            persona_descriptions=describe_personas(personas) or "- (none selected)",
        ))

    @staticmethod
    def _read_places(data: Dict[str, Any]) -> List[PlaceSuggestion]:
        out: List[PlaceSuggestion] = []
        for item in data.get("places") or []:
            if not isinstance(item, dict) or not str(item.get("name") or "").strip():
                continue
            out.append(PlaceSuggestion(
                name=str(item["name"]).strip(),
                description=str(item.get("description") or ""),
                reasoning=str(item.get("reasoning") or ""),
            ))
        return out

    # ---------------------------
    # Narrative step
    # ---------------------------
    async def generate_narrative(
        self,
        user_message: str,
        personas: List[str],
        suggestions: List[PlaceSuggestion],
        thinking: List[str],
    ) -> str:
        system = self.narrative_prompt_template.format(
            persona_descriptions=describe_personas(personas) or "- (none selected)",
        )
        place_context = "\n".join(f"{i + 1}. {p.name}: {p.reasoning}" for i, p in enumerate(suggestions))
        thinking_context = ""
        if thinking:
            thinking_context = "\n\nReasoning process:\n" + "\n".join(f"{i + 1}. {t}" for i, t in enumerate(thinking))

        reply = await self.narrative_model.ainvoke([
            SystemMessage(content=system),
            HumanMessage(content=f'User asked: "{user_message}"{thinking_context}\n\nPlaces selected:\n{place_context}'),
        ])
        text = message_text(reply)
        if not text:
            logger.warning("Narrative reply was empty")
            return NARRATIVE_FALLBACK_MESSAGE
        return text

    # ---------------------------
    # Map lookup step
    # ---------------------------
    async def _locate(self, suggestion: PlaceSuggestion) -> PlaceSuggestion:
        try:
            found = await self._search_place(suggestion.name)
        except TripPlannerError as e:
            logger.warning('Failed to find place "%s": %s', suggestion.name, e)
            return suggestion.model_copy(update={"validation_status": "not_found", "search_query": suggestion.name})

        try:
            details = await self._place_details(found.id, True)
        except TripPlannerError as e:
            logger.warning('Failed to get details for "%s": %s', suggestion.name, e)
            return suggestion.model_copy(update={
                "id": found.id,
                "lat": found.lat,
                "lng": found.lng,
                "validation_status": "partial",
                "search_query": suggestion.name,
            })

        return suggestion.model_copy(update={
            "id": details.id,
            "lat": details.lat,
            "lng": details.lng,
            "photos": details.photos,
            "validation_status": "verified",
            "search_query": suggestion.name,
        })

    async def locate_places(self, suggestions: List[PlaceSuggestion]) -> List[PlaceSuggestion]:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _bounded(s: PlaceSuggestion) -> PlaceSuggestion:
            async with semaphore:
                return await self._locate(s)

        return list(await asyncio.gather(*(_bounded(s) for s in suggestions)))

    # ---------------------------
    # Public API
    # ---------------------------
    async def chat(
        self,
        message: str,
        personas: Optional[List[str]] = None,
        conversation_history: Optional[List[ConversationMessage]] = None,
    ) -> ChatResponse:
        personas = list(personas or [])
        messages = [
            self._system_message(personas),
            *history_messages(conversation_history or []),
            HumanMessage(content=message),
        ]
        reply = await self.model.ainvoke(messages)
        text = message_text(reply)

        suggestions: List[PlaceSuggestion] = []
        thinking: List[str] = []
        assistant_message = DEFAULT_MESSAGE
        if text:
            data = parse_json_object(text)
            if data is None:
                logger.warning("Failed to parse planning reply: %s", text[:500])
                assistant_message = PARSE_FAILURE_MESSAGE
            else:
                suggestions = self._read_places(data)
                raw_thinking = data.get("thinking")
                if isinstance(raw_thinking, list):
                    thinking = [str(t) for t in raw_thinking]

        if suggestions:
            try:
                assistant_message = await self.generate_narrative(message, personas, suggestions, thinking)
            except Exception as e:  # keep the located places even without a narrative
                logger.warning("Narrative generation failed, using fallback message: %s", e)
                assistant_message = NARRATIVE_FALLBACK_MESSAGE
            suggestions = await self.locate_places(suggestions)

        return ChatResponse(message=assistant_message, suggested_places=suggestions, thinking=thinking)
