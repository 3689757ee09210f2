"""Redis-backed storage for conversations, trips and persona preferences."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Dict, List, Optional, Set, Type, TypeVar

import redis
from pydantic import BaseModel, ValidationError
from redis.exceptions import RedisError

from config import RECORD_TTL_SECONDS, REDIS_URL
from errors import ConversationAlreadyLinkedError, ConversationNotFoundError, StorageError, TripNotFoundError
from workflows.schemas import Place
from workflows.state import ChatMessage, Conversation, Trip, UserPersonas

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class RecordStore:
    """Key/value records plus per-user id indexes, in Redis with fallback to memory."""

    def __init__(self, redis_url: Optional[str] = REDIS_URL, ttl_seconds: int = RECORD_TTL_SECONDS) -> None:
        self._redis_client: Optional[redis.Redis] = None
        self._records: Dict[str, str] = {}
        self._indexes: Dict[str, Set[str]] = {}
        self._ttl_seconds = ttl_seconds

        if redis_url:
            try:
                client = redis.from_url(
                    redis_url,
                    decode_responses=True,
                    socket_connect_timeout=5,
                    socket_timeout=5,
                    health_check_interval=30,
                )
                client.ping()
                self._redis_client = client
                logger.info("Connected to Redis for record storage")
            except RedisError as e:
                logger.warning(f"Failed to connect to Redis: {e}. Using in-memory storage.")
        else:
            logger.info("REDIS_URL not set. Using in-memory storage.")

    @property
    def uses_redis(self) -> bool:
        return self._redis_client is not None

    def get(self, key: str) -> Optional[str]:
        if self._redis_client is None:
            return self._records.get(key)
        try:
            return self._redis_client.get(key)
        except RedisError as e:
            raise StorageError("read", str(e), cause=e) from e

    def set(self, key: str, value: str) -> None:
        if self._redis_client is None:
            self._records[key] = value
            return
        try:
            self._redis_client.setex(key, self._ttl_seconds, value)
        except RedisError as e:
            raise StorageError("write", str(e), cause=e) from e

    def delete(self, key: str) -> None:
        if self._redis_client is None:
            self._records.pop(key, None)
            return
        try:
            self._redis_client.delete(key)
        except RedisError as e:
            raise StorageError("delete", str(e), cause=e) from e

    def index_add(self, index: str, member: str) -> None:
        if self._redis_client is None:
            self._indexes.setdefault(index, set()).add(member)
            return
        try:
            self._redis_client.sadd(index, member)
        except RedisError as e:
            raise StorageError("index", str(e), cause=e) from e

    def index_remove(self, index: str, member: str) -> None:
        if self._redis_client is None:
            self._indexes.get(index, set()).discard(member)
            return
        try:
            self._redis_client.srem(index, member)
        except RedisError as e:
            raise StorageError("index", str(e), cause=e) from e

    def index_members(self, index: str) -> List[str]:
        if self._redis_client is None:
            return sorted(self._indexes.get(index, set()))
        try:
            return sorted(self._redis_client.smembers(index))
        except RedisError as e:
            raise StorageError("index", str(e), cause=e) from e


class _Repository:
    prefix = ""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def _key(self, record_id: str) -> str:
        return f"{self.prefix}:{record_id}"

    def _index(self, user_id: str) -> str:
        return f"user:{user_id}:{self.prefix}s"

    def _load(self, key: str, model: Type[M]) -> Optional[M]:
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return model.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            logger.error(f"Corrupt record {key}: {e}")
            return None

    def _save(self, key: str, record: BaseModel) -> None:
        self.store.set(key, record.model_dump_json())

    def _list(self, user_id: str, model: Type[M]) -> List[M]:
        records = []
        index = self._index(user_id)
        for record_id in self.store.index_members(index):
            record = self._load(self._key(record_id), model)
            if record is None:
                # Expired or deleted behind our back
                self.store.index_remove(index, record_id)
                continue
            records.append(record)
        return records


class ConversationRepository(_Repository):
    prefix = "conversation"

    def list(self, user_id: str) -> List[Conversation]:
        """Conversations of ``user_id``, newest first."""
        return sorted(self._list(user_id, Conversation), key=lambda c: c.created_at, reverse=True)

    def get(self, user_id: str, conversation_id: str) -> Conversation:
        conversation = self._load(self._key(conversation_id), Conversation)
        if conversation is None or conversation.user_id != user_id:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    def create(self, user_id: str, title: str, personas: List[str], messages: Optional[List[ChatMessage]] = None) -> Conversation:
        conversation = Conversation(user_id=user_id, title=title, personas=list(personas), messages=list(messages or []))
        self._save(self._key(conversation.id), conversation)
        self.store.index_add(self._index(user_id), conversation.id)
        return conversation

    def update_messages(self, user_id: str, conversation_id: str, messages: List[ChatMessage]) -> Conversation:
        conversation = self.get(user_id, conversation_id)
        updated = conversation.model_copy(update={"messages": list(messages), "updated_at": datetime.now()})
        self._save(self._key(conversation_id), updated)
        return updated

    def delete(self, user_id: str, conversation_id: str) -> None:
        self.get(user_id, conversation_id)
        self.store.delete(self._key(conversation_id))
        self.store.index_remove(self._index(user_id), conversation_id)


class TripRepository(_Repository):
    prefix = "trip"

    def _by_conversation_key(self, conversation_id: str) -> str:
        return f"conversation:{conversation_id}:trip"

    def list(self, user_id: str) -> List[Trip]:
        return sorted(self._list(user_id, Trip), key=lambda t: t.created_at, reverse=True)

    def recent(self, user_id: str, limit: int = 10) -> List[Trip]:
        """Most recently updated trips first."""
        trips = sorted(self._list(user_id, Trip), key=lambda t: t.updated_at, reverse=True)
        return trips[:limit]

    def current_or_create(self, user_id: str) -> Trip:
        """The most recently updated trip, or a new empty one."""
        latest = self.recent(user_id, limit=1)
        return latest[0] if latest else self.create(user_id, [])

    def get(self, user_id: str, trip_id: str) -> Trip:
        trip = self._load(self._key(trip_id), Trip)
        if trip is None or trip.user_id != user_id:
            raise TripNotFoundError(trip_id)
        return trip

    def get_by_conversation(self, user_id: str, conversation_id: str) -> Optional[Trip]:
        trip_id = self.store.get(self._by_conversation_key(conversation_id))
        if not trip_id:
            return None
        trip = self._load(self._key(trip_id), Trip)
        if trip is None or trip.user_id != user_id:
            return None
        return trip

    def _linked_trip_id(self, conversation_id: str) -> Optional[str]:
        """Id of the live trip planned in ``conversation_id``; stale links are dropped."""
        key = self._by_conversation_key(conversation_id)
        trip_id = self.store.get(key)
        if not trip_id:
            return None
        if self.store.get(self._key(trip_id)) is None:
            self.store.delete(key)
            return None
        return trip_id

    def _claim_conversation(self, conversation_id: str, trip_id: str) -> None:
        linked = self._linked_trip_id(conversation_id)
        if linked is not None and linked != trip_id:
            raise ConversationAlreadyLinkedError(conversation_id, linked)

    def _release_conversation(self, conversation_id: str, trip_id: str) -> None:
        # Another trip may own the link by now; leave it alone
        key = self._by_conversation_key(conversation_id)
        if self.store.get(key) == trip_id:
            self.store.delete(key)

    def create(self, user_id: str, places: List[Place], conversation_id: Optional[str] = None,
               title: Optional[str] = None) -> Trip:
        trip = Trip.create(user_id, places, conversation_id=conversation_id, title=title)
        if conversation_id:
            self._claim_conversation(conversation_id, trip.id)
        self._save(self._key(trip.id), trip)
        self.store.index_add(self._index(user_id), trip.id)
        if conversation_id:
            self.store.set(self._by_conversation_key(conversation_id), trip.id)
        return trip

    def update_places(self, user_id: str, trip_id: str, places: List[Place], title: Optional[str] = None) -> Trip:
        trip = self.get(user_id, trip_id).with_places(places)
        if title:
            trip = trip.model_copy(update={"title": title})
        self._save(self._key(trip_id), trip)
        return trip

    def link_conversation(self, user_id: str, trip_id: str, conversation_id: str) -> Trip:
        trip = self.get(user_id, trip_id)
        self._claim_conversation(conversation_id, trip_id)
        if trip.conversation_id and trip.conversation_id != conversation_id:
            self._release_conversation(trip.conversation_id, trip_id)
        trip = trip.model_copy(update={"conversation_id": conversation_id, "updated_at": datetime.now()})
        self._save(self._key(trip_id), trip)
        self.store.set(self._by_conversation_key(conversation_id), trip_id)
        return trip

    def delete(self, user_id: str, trip_id: str) -> None:
        trip = self.get(user_id, trip_id)
        self.store.delete(self._key(trip_id))
        self.store.index_remove(self._index(user_id), trip_id)
        if trip.conversation_id:
            self._release_conversation(trip.conversation_id, trip_id)


class PersonaRepository(_Repository):
    prefix = "personas"

    def get(self, user_id: str) -> UserPersonas:
        return self._load(self._key(user_id), UserPersonas) or UserPersonas(user_id=user_id)

    def replace(self, user_id: str, persona_types: List[str]) -> UserPersonas:
        # Keep first occurrence order, drop repeats
        unique = list(dict.fromkeys(persona_types))
        record = UserPersonas(user_id=user_id, persona_types=unique)
        self._save(self._key(user_id), record)
        return record


class Storage:
    """All repositories over one record store."""

    def __init__(self, store: Optional[RecordStore] = None) -> None:
        self.store = store or RecordStore()
        self.conversations = ConversationRepository(self.store)
        self.trips = TripRepository(self.store)
        self.personas = PersonaRepository(self.store)

    def delete_conversation(self, user_id: str, conversation_id: str) -> None:
        """Delete a conversation together with the trip planned in it."""
        trip = self.trips.get_by_conversation(user_id, conversation_id)
        self.conversations.delete(user_id, conversation_id)
        if trip is not None:
            self.trips.delete(user_id, trip.id)


# Global storage instance
_storage: Optional[Storage] = None


def get_storage() -> Storage:
    """Get or create the global storage instance."""
    global _storage
    if _storage is None:
        _storage = Storage()
    return _storage
