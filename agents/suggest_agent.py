# agents/suggest_agent.py
"""NearbySuggestionAgent: tool-calling LLM that picks attractions and restaurants around a map point."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage, ToolMessage
from pydantic import ValidationError

import config
from agents.llm import build_chat_model, history_messages, message_text, parse_json_object
from cache.keys import TextSearchKey
from errors import AttractionNotFoundError, InvalidToolCallError, ModelResponseError, NoAttractionsFoundError, TripPlannerError
from prompts import PromptTemplate, load_prompt_template
from workflows.schemas import (
    AgentResponse,
    Attraction,
    AttractionScore,
    ConversationMessage,
    Coordinate,
    Place,
    ScoreBreakdown,
    SuggestedAttraction,
    Suggestion,
)

logger = logging.getLogger(__name__)

SearchFn = Callable[[float, float, int, int], Awaitable[List[AttractionScore]]]
LookupFn = Callable[[TextSearchKey], Awaitable[Attraction]]

DEFAULT_TOOL_RADIUS_M = 2000
DEFAULT_ATTRACTIONS_LIMIT = 15
DEFAULT_RESTAURANTS_LIMIT = 10
DEFAULT_USER_REQUEST = "Suggest new attractions and restaurants for this place."


def _search_tool(name: str, description: str) -> Dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": {
                    "lat": {"type": "number", "description": "Latitude of the search center point"},
                    "lng": {"type": "number", "description": "Longitude of the search center point"},
                    "radius": {
                        "type": "number",
                        "description": "Search radius in meters (default: 2000, min: 100, max: 50000)",
                    },
                    "limit": {
                        "type": "number",
                        "description": "Maximum number of results to return (default: 10, min: 1, max: 50)",
                    },
                },
                "required": ["lat", "lng"],
            },
        },
    }


TOOLS: List[Dict[str, Any]] = [
    _search_tool(
        "searchAttractions",
        "Search for tourist attractions near a specific location. Returns top-rated attractions "
        "with scores based on ratings, reviews, and popularity.",
    ),
    _search_tool(
        "searchRestaurants",
        "Search for restaurants near a specific location. Returns top-rated restaurants "
        "with scores based on ratings, reviews, price level, and availability.",
    ),
]


def build_plan_context(place: Place) -> str:
    """JSON summary of what is already planned at ``place``."""
    return json.dumps(
        {
            "place": {
                "id": place.id,
                "name": place.name,
                "plannedAttractions": [
                    {
                        "name": a.name,
                        "rating": a.rating,
                        "userRatingsTotal": a.user_ratings_total,
                        "types": a.types,
                    }
                    for a in place.planned_attractions
                ],
                "plannedRestaurants": [
                    {
                        "name": r.name,
                        "rating": r.rating,
                        "userRatingsTotal": r.user_ratings_total,
                        "types": r.types,
                        "priceLevel": r.price_level,
                    }
                    for r in place.planned_restaurants
                ],
            }
        },
        indent=2,
        ensure_ascii=False,
    )


def _clamp_int(value: Any, default: int, low: int, high: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return max(low, min(high, number))


class NearbySuggestionAgent:
    """
    Suggests places to add around a map point.

    The model researches through the ``searchAttractions`` / ``searchRestaurants``
    tools and answers with names only; every named place is then resolved
    through ``lookup_attraction`` so the client always receives real place data.
    """

    def __init__(
        self,
        *,
        search_attractions: SearchFn,
        search_restaurants: SearchFn,
        lookup_attraction: LookupFn,
        model=None,
        temperature: float = config.DEFAULT_TEMPERATURE,
        system_prompt: Optional[PromptTemplate] = None,
        max_iterations: int = config.AGENT_MAX_TOOL_ITERATIONS,
        max_concurrency: int = config.AGENT_MAX_CONCURRENCY,
    ):
        self._search_attractions = search_attractions
        self._search_restaurants = search_restaurants
        self._lookup_attraction = lookup_attraction
        base_model = model if model is not None else build_chat_model(temperature=temperature)
        self.model = base_model.bind_tools(TOOLS)
        self.system_prompt_template = system_prompt or load_prompt_template("suggest_nearby", "suggest_nearby.md")
        self.max_iterations = max_iterations
        self.max_concurrency = max(1, max_concurrency)

    # ---------------------------
    # Message assembly
    # ---------------------------
    def build_messages(
        self,
        place: Place,
        conversation_history: Optional[List[ConversationMessage]] = None,
        user_message: Optional[str] = None,
    ) -> List[BaseMessage]:
        request = user_message or DEFAULT_USER_REQUEST
        return [
            SystemMessage(content=self.system_prompt_template.format()),
            *history_messages(conversation_history or []),
            HumanMessage(content=f"Here is my current travel plan:\n\n{build_plan_context(place)}\n\n{request}."),
        ]

    # ---------------------------
    # Tool execution
    # ---------------------------
    async def _execute_tool_call(
        self,
        call: Dict[str, Any],
        map_center: Coordinate,
        scores: Dict[str, Tuple[float, ScoreBreakdown]],
    ) -> str:
        name = call.get("name") or ""
        args = call.get("args") or {}
        if not isinstance(args, dict):
            raise InvalidToolCallError(f"Invalid arguments for tool: {name}", name)

        if name == "searchAttractions":
            search, result_key, default_limit = self._search_attractions, "attractions", DEFAULT_ATTRACTIONS_LIMIT
        elif name == "searchRestaurants":
            search, result_key, default_limit = self._search_restaurants, "restaurants", DEFAULT_RESTAURANTS_LIMIT
        else:
            raise InvalidToolCallError(f"Unknown tool: {name}", name)

        radius = _clamp_int(args.get("radius"), DEFAULT_TOOL_RADIUS_M, 100, 50000)
        limit = _clamp_int(args.get("limit"), default_limit, 1, 50)
        # The model only believes it picks coordinates; searches always use the map center
        try:
            results = await search(map_center.lat, map_center.lng, radius, limit)
        except NoAttractionsFoundError as e:
            logger.info("Tool %s found nothing: %s", name, e)
            return json.dumps({result_key: [], "message": e.message})
        except TripPlannerError as e:
            logger.error("Tool call %s failed: %s", name, e)
            raise InvalidToolCallError(f"Failed to execute tool: {name}", name, cause=e) from e

        for item in results:
            scores[item.attraction.name] = (item.score, item.breakdown)
        return json.dumps({result_key: [item.to_dict() for item in results]}, ensure_ascii=False)

    async def _run_tool_calls(
        self,
        tool_calls: List[Dict[str, Any]],
        map_center: Coordinate,
        scores: Dict[str, Tuple[float, ScoreBreakdown]],
    ) -> List[ToolMessage]:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _run(call: Dict[str, Any]) -> ToolMessage:
            async with semaphore:
                content = await self._execute_tool_call(call, map_center, scores)
            return ToolMessage(content=content, tool_call_id=call.get("id") or "", name=call.get("name"))

        return list(await asyncio.gather(*(_run(call) for call in tool_calls)))

    # ---------------------------
    # Output handling
    # ---------------------------
    @staticmethod
    def parse_response(text: str) -> AgentResponse:
        data = parse_json_object(text)
        if data is None:
            logger.error("Agent reply is not JSON: %s", text[:1000])
            raise ModelResponseError("Invalid response format from AI")
        try:
            return AgentResponse.model_validate(data)
        except ValidationError as e:
            details = ", ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            logger.error("Agent reply failed schema validation: %s", details)
            raise ModelResponseError(f"Schema validation failed: {details}", cause=e) from e

    async def _enrich(
        self,
        suggestions: List[Suggestion],
        scores: Dict[str, Tuple[float, ScoreBreakdown]],
    ) -> List[Suggestion]:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _resolve(suggestion: Suggestion) -> Optional[Suggestion]:
            if suggestion.type == "general_tip":
                return suggestion
            if not suggestion.attraction_name:
                return None
            key = TextSearchKey(suggestion.attraction_name, include_photos=True, require_ratings=True)
            async with semaphore:
                try:
                    attraction = await self._lookup_attraction(key)
                except TripPlannerError as e:
                    # Unresolvable names are dropped rather than shown with made-up data
                    level = logging.INFO if isinstance(e, AttractionNotFoundError) else logging.WARNING
                    logger.log(level, "Dropping suggestion %r: %s", suggestion.attraction_name, e)
                    return None

            score, breakdown = scores.get(attraction.name, (None, None))
            data = SuggestedAttraction(**attraction.model_dump(), score=score, breakdown=breakdown)
            return suggestion.model_copy(update={"attraction_data": data, "photos": attraction.photos})

        resolved = await asyncio.gather(*(_resolve(s) for s in suggestions))
        return [s for s in resolved if s is not None]

    # ---------------------------
    # Public API
    # ---------------------------
    async def suggest(
        self,
        place: Place,
        map_center: Coordinate,
        conversation_history: Optional[List[ConversationMessage]] = None,
        user_message: Optional[str] = None,
    ) -> AgentResponse:
        """Run the tool loop, parse the final JSON and attach place data to every suggestion."""
        messages = self.build_messages(place, conversation_history, user_message)
        scores: Dict[str, Tuple[float, ScoreBreakdown]] = {}
        logger.info("Suggesting nearby places for %s (history=%d)", place.name, len(conversation_history or []))

        response = await self.model.ainvoke(messages)
        iterations = 0
        while getattr(response, "tool_calls", None) and iterations < self.max_iterations:
            iterations += 1
            logger.debug("Processing %d tool calls (iteration %d)", len(response.tool_calls), iterations)
            tool_messages = await self._run_tool_calls(response.tool_calls, map_center, scores)
            messages.append(response)
            messages.extend(tool_messages)
            response = await self.model.ainvoke(messages)

        text = message_text(response)
        if not text:
            raise ModelResponseError("No content in final response")

        parsed = self.parse_response(text)
        enriched = await self._enrich(parsed.suggestions, scores)
        logger.info("Agent returned %d suggestions (%d after enrichment)", len(parsed.suggestions), len(enriched))
        return parsed.model_copy(update={"suggestions": enriched})
