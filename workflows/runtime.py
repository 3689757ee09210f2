"""Runtime that owns the caches, agents and storage behind the API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import config
from agents.chat_agent import TravelPlanningChat
from agents.suggest_agent import NearbySuggestionAgent
from cache.keys import PhotoKey, SearchKey, TextSearchKey
from cache.ttl_cache import TTLCache
from scoring import score_attractions, score_restaurants
from tools import photos, places
from tools.photos import PhotoData
from tools.place_types import ATTRACTION_TYPES, RESTAURANT_TYPES
from workflows.schemas import (
    AgentResponse,
    Attraction,
    AttractionScore,
    ChatResponse,
    ConversationMessage,
    Coordinate,
    Place,
)
from workflows.storage import Storage, get_storage

logger = logging.getLogger(__name__)


async def _nearby_attractions(key: SearchKey) -> List[Attraction]:
    return await asyncio.to_thread(places.nearby_search, key.lat, key.lng, key.radius, ATTRACTION_TYPES)


async def _nearby_restaurants(key: SearchKey) -> List[Attraction]:
    return await asyncio.to_thread(places.nearby_search, key.lat, key.lng, key.radius, RESTAURANT_TYPES)


async def _text_search(key: TextSearchKey) -> Attraction:
    return await asyncio.to_thread(places.text_search, key.query, key.include_photos, key.require_ratings)


class TripPlannerRuntime:
    """Runtime helper that owns caches and agent instances."""

    def __init__(
        self,
        *,
        storage: Optional[Storage] = None,
        planning_chat: Optional[TravelPlanningChat] = None,
        suggestion_agent: Optional[NearbySuggestionAgent] = None,
    ) -> None:
        self._storage = storage
        self._planning_chat = planning_chat
        self._suggestion_agent = suggestion_agent

        # Raw search results are cached; scoring depends on personas and runs per request
        self.attractions_cache: TTLCache[SearchKey, List[Attraction]] = TTLCache(
            config.ATTRACTIONS_CACHE_CAPACITY,
            config.ATTRACTIONS_CACHE_TTL_SECONDS,
            _nearby_attractions,
            name="attractions",
        )
        self.restaurants_cache: TTLCache[SearchKey, List[Attraction]] = TTLCache(
            config.RESTAURANTS_CACHE_CAPACITY,
            config.RESTAURANTS_CACHE_TTL_SECONDS,
            _nearby_restaurants,
            name="restaurants",
        )
        self.text_search_cache: TTLCache[TextSearchKey, Attraction] = TTLCache(
            config.TEXT_SEARCH_CACHE_CAPACITY,
            config.TEXT_SEARCH_CACHE_TTL_SECONDS,
            _text_search,
            name="text_search",
        )
        self.photo_cache: TTLCache[PhotoKey, PhotoData] = TTLCache(
            config.PHOTO_CACHE_CAPACITY,
            config.PHOTO_CACHE_TTL_SECONDS,
            photos.fetch_photo,
            name="photos",
        )

    # Agents and storage are built on first use so a missing model key only
    # breaks the endpoints that need it.
    @property
    def storage(self) -> Storage:
        if self._storage is None:
            self._storage = get_storage()
        return self._storage

    @property
    def planning_chat(self) -> TravelPlanningChat:
        if self._planning_chat is None:
            self._planning_chat = TravelPlanningChat()
        return self._planning_chat

    @property
    def suggestion_agent(self) -> NearbySuggestionAgent:
        if self._suggestion_agent is None:
            self._suggestion_agent = NearbySuggestionAgent(
                search_attractions=self.get_top_attractions,
                search_restaurants=self.get_top_restaurants,
                lookup_attraction=self.text_search_cache.get,
            )
        return self._suggestion_agent

    # ---------------------------
    # Places
    # ---------------------------
    async def get_top_attractions(
        self,
        lat: float,
        lng: float,
        radius: int = config.DEFAULT_SEARCH_RADIUS_M,
        limit: int = config.DEFAULT_RESULT_LIMIT,
        personas: Optional[List[str]] = None,
    ) -> List[AttractionScore]:
        found = await self.attractions_cache.get(SearchKey.of(lat, lng, radius))
        return score_attractions(found, personas)[:limit]

    async def get_top_restaurants(
        self,
        lat: float,
        lng: float,
        radius: int = config.DEFAULT_SEARCH_RADIUS_M,
        limit: int = config.DEFAULT_RESULT_LIMIT,
        personas: Optional[List[str]] = None,
    ) -> List[AttractionScore]:
        found = await self.restaurants_cache.get(SearchKey.of(lat, lng, radius))
        return score_restaurants(found, personas)[:limit]

    async def get_photo(
        self,
        photo_reference: str,
        max_width: int = config.DEFAULT_PHOTO_WIDTH,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        place_name: Optional[str] = None,
    ) -> PhotoData:
        return await self.photo_cache.get(PhotoKey(photo_reference, max_width, lat, lng, place_name))

    async def search_place(self, query: str) -> Place:
        return await asyncio.to_thread(places.search_place, query)

    async def place_details(self, place_id: str, include_photos: bool = False) -> Place:
        return await asyncio.to_thread(places.place_details, place_id, include_photos)

    async def reverse_geocode(self, lat: float, lng: float) -> Place:
        return await asyncio.to_thread(places.reverse_geocode, lat, lng)

    # ---------------------------
    # Agents
    # ---------------------------
    async def suggest(
        self,
        place: Place,
        map_center: Coordinate,
        conversation_history: Optional[List[ConversationMessage]] = None,
        user_message: Optional[str] = None,
    ) -> AgentResponse:
        return await self.suggestion_agent.suggest(place, map_center, conversation_history, user_message)

    async def chat(
        self,
        message: str,
        personas: Optional[List[str]] = None,
        conversation_history: Optional[List[ConversationMessage]] = None,
    ) -> ChatResponse:
        return await self.planning_chat.chat(message, personas, conversation_history)

    # ---------------------------
    # Diagnostics
    # ---------------------------
    def dev_stats(self) -> Dict[str, Any]:
        api_calls: Dict[str, int] = dict(places.get_api_call_stats())
        api_calls.update(photos.get_photo_call_stats())
        caches = []
        for cache in (self.attractions_cache, self.restaurants_cache, self.text_search_cache, self.photo_cache):
            # Sizes should count live entries only
            expired = cache.purge_expired()
            caches.append({**cache.stats(), "expired_purged": expired})
        return {"api_calls": api_calls, "caches": caches}


_runtime: Optional[TripPlannerRuntime] = None


def get_runtime() -> TripPlannerRuntime:
    global _runtime
    if _runtime is None:
        _runtime = TripPlannerRuntime()
    return _runtime
