"""FastAPI application exposing the trip planner runtime."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
from api.schemas import (
    ConversationCreate,
    ConversationMessagesUpdate,
    NearbySearchRequest,
    PersonasUpdate,
    PlaceDetailsRequest,
    PlaceSearchRequest,
    PlanChatRequest,
    ReverseGeocodeRequest,
    SuggestRequest,
    TripConversationLink,
    TripCreate,
    TripPlacesUpdate,
)
from errors import TripPlannerError
from scoring import get_scoring_explanations
from scoring.personas import PERSONA_METADATA
from workflows.runtime import TripPlannerRuntime, get_runtime
from workflows.state import Conversation, Trip

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

PHOTO_CACHE_CONTROL = "public, max-age=172800, immutable"

app = FastAPI(title="Trip Map Planner API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def current_user(x_user_id: Optional[str] = Header(None)) -> str:
    """Authentication happens upstream; the gateway forwards the user id."""
    return x_user_id or config.DEFAULT_USER_ID


# ---------------------------
# Error mapping
# ---------------------------
def _error_body(message: str, **extra: Any) -> Dict[str, Any]:
    return {"success": False, "error": message, **extra}


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = []
    for err in exc.errors():
        # Drop the "body"/"query" prefix FastAPI adds to locations
        loc = [str(p) for p in err.get("loc", ())][1:] or [str(p) for p in err.get("loc", ())]
        details.append({"path": ".".join(loc), "message": err.get("msg", "")})
    return JSONResponse(status_code=400, content=_error_body("Validation failed", details=details))


@app.exception_handler(TripPlannerError)
async def trip_planner_error_handler(request: Request, exc: TripPlannerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.public_message))


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=_error_body(str(exc.detail)))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unexpected error in {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content=_error_body("Internal server error"))


def _conversation_summary(conversation: Conversation, has_trip: bool) -> Dict[str, Any]:
    return {
        "id": conversation.id,
        "user_id": conversation.user_id,
        "title": conversation.title,
        "personas": conversation.personas,
        "message_count": len(conversation.messages),
        "created_at": conversation.created_at,
        "updated_at": conversation.updated_at,
        "has_trip": has_trip,
    }


def _trip_body(trip: Trip) -> Dict[str, Any]:
    body = trip.model_dump(mode="json")
    body["place_count"] = trip.place_count
    return body


# ---------------------------
# Health & diagnostics
# ---------------------------
@app.get("/health")
async def health() -> Dict[str, Any]:
    return {"status": "ok", "missing_keys": config.validate_api_keys()}


@app.get("/api/dev/stats")
async def dev_stats(runtime: TripPlannerRuntime = Depends(get_runtime)) -> Dict[str, Any]:
    if not config.is_dev():
        raise HTTPException(status_code=404, detail="Not found")
    return runtime.dev_stats()


@app.get("/api/scoring/explanations")
async def scoring_explanations() -> Dict[str, Any]:
    return {
        "attractions": get_scoring_explanations("attractions"),
        "restaurants": get_scoring_explanations("restaurants"),
    }


# ---------------------------
# Map: attractions, restaurants, photos
# ---------------------------
@app.post("/api/attractions")
async def top_attractions(
    body: NearbySearchRequest,
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    results = await runtime.get_top_attractions(body.lat, body.lng, body.radius, body.limit, body.personas)
    return {"attractions": [r.to_dict() for r in results]}


@app.post("/api/restaurants")
async def top_restaurants(
    body: NearbySearchRequest,
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    results = await runtime.get_top_restaurants(body.lat, body.lng, body.radius, body.limit, body.personas)
    return {"restaurants": [r.to_dict() for r in results]}


@app.get("/api/photos")
async def get_photo(
    ref: str = Query(..., min_length=1),
    width: int = Query(config.DEFAULT_PHOTO_WIDTH, ge=1, le=1600),
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    name: Optional[str] = Query(None, max_length=200),
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Response:
    photo = await runtime.get_photo(ref, width, lat, lng, name)
    return Response(
        content=photo.data,
        media_type=photo.content_type,
        headers={"Cache-Control": PHOTO_CACHE_CONTROL},
    )


@app.post("/api/attractions/suggest")
async def suggest_attractions(
    body: SuggestRequest,
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    result = await runtime.suggest(body.place, body.map_center, body.conversation_history, body.user_message)
    return jsonable_encoder(result.model_dump(by_alias=True, exclude_none=True))


# ---------------------------
# Planning chat & places
# ---------------------------
@app.post("/api/plan")
async def plan_chat(
    body: PlanChatRequest,
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    result = await runtime.chat(body.message, body.personas, body.conversation_history)
    return {"success": True, **jsonable_encoder(result.model_dump(exclude_none=True))}


@app.post("/api/geocoding/reverse")
async def reverse_geocode(
    body: ReverseGeocodeRequest,
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    place = await runtime.reverse_geocode(body.lat, body.lng)
    return {"place": place.model_dump(mode="json", exclude_none=True)}


@app.post("/api/places/search")
async def search_place(
    body: PlaceSearchRequest,
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    place = await runtime.search_place(body.query)
    return {"place": place.model_dump(mode="json", exclude_none=True)}


@app.post("/api/places/details")
async def place_details(
    body: PlaceDetailsRequest,
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    place = await runtime.place_details(body.place_id, body.include_photos)
    return {"place": place.model_dump(mode="json", exclude_none=True)}


# ---------------------------
# Personas
# ---------------------------
@app.get("/api/personas")
async def get_personas(
    user_id: str = Depends(current_user),
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    record = runtime.storage.personas.get(user_id)
    return {
        "persona_types": record.persona_types,
        "available": [{"type": key, **meta} for key, meta in PERSONA_METADATA.items()],
    }


@app.put("/api/personas")
async def put_personas(
    body: PersonasUpdate,
    user_id: str = Depends(current_user),
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    record = runtime.storage.personas.replace(user_id, body.persona_types)
    return jsonable_encoder(record.model_dump())


# ---------------------------
# Conversations
# ---------------------------
@app.get("/api/conversations")
async def list_conversations(
    user_id: str = Depends(current_user),
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    storage = runtime.storage
    conversations = [
        _conversation_summary(c, storage.trips.get_by_conversation(user_id, c.id) is not None)
        for c in storage.conversations.list(user_id)
    ]
    return jsonable_encoder({"conversations": conversations})


@app.post("/api/conversations", status_code=201)
async def create_conversation(
    body: ConversationCreate,
    user_id: str = Depends(current_user),
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    conversation = runtime.storage.conversations.create(user_id, body.title, body.personas, body.messages)
    return conversation.model_dump(mode="json")


@app.get("/api/conversations/{conversation_id}")
async def get_conversation(
    conversation_id: str,
    user_id: str = Depends(current_user),
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    return runtime.storage.conversations.get(user_id, conversation_id).model_dump(mode="json")


@app.put("/api/conversations/{conversation_id}/messages")
async def update_conversation_messages(
    conversation_id: str,
    body: ConversationMessagesUpdate,
    user_id: str = Depends(current_user),
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    conversation = runtime.storage.conversations.update_messages(user_id, conversation_id, body.messages)
    return conversation.model_dump(mode="json")


@app.delete("/api/conversations/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    user_id: str = Depends(current_user),
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    runtime.storage.delete_conversation(user_id, conversation_id)
    return {"success": True}


# ---------------------------
# Trips
# ---------------------------
@app.get("/api/trips")
async def list_trips(
    user_id: str = Depends(current_user),
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Dict[str, List[Dict[str, Any]]]:
    return {"trips": [_trip_body(t) for t in runtime.storage.trips.list(user_id)]}


@app.post("/api/trips", status_code=201)
async def create_trip(
    body: TripCreate,
    user_id: str = Depends(current_user),
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    storage = runtime.storage
    if body.conversation_id:
        # Raises 404 for someone else's or a missing conversation
        storage.conversations.get(user_id, body.conversation_id)
    trip = storage.trips.create(user_id, body.places, conversation_id=body.conversation_id, title=body.title)
    return _trip_body(trip)


@app.get("/api/trips/recent")
async def recent_trips(
    limit: int = Query(10, ge=1, le=50),
    user_id: str = Depends(current_user),
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Dict[str, List[Dict[str, Any]]]:
    return {"trips": [_trip_body(t) for t in runtime.storage.trips.recent(user_id, limit)]}


@app.get("/api/trips/current")
async def current_trip(
    user_id: str = Depends(current_user),
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    return _trip_body(runtime.storage.trips.current_or_create(user_id))


@app.get("/api/trips/by-conversation/{conversation_id}")
async def trip_by_conversation(
    conversation_id: str,
    user_id: str = Depends(current_user),
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    trip = runtime.storage.trips.get_by_conversation(user_id, conversation_id)
    return {"trip": _trip_body(trip) if trip else None}


@app.get("/api/trips/{trip_id}")
async def get_trip(
    trip_id: str,
    user_id: str = Depends(current_user),
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    return _trip_body(runtime.storage.trips.get(user_id, trip_id))


@app.put("/api/trips/{trip_id}/places")
async def update_trip_places(
    trip_id: str,
    body: TripPlacesUpdate,
    user_id: str = Depends(current_user),
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    return _trip_body(runtime.storage.trips.update_places(user_id, trip_id, body.places, body.title))


@app.put("/api/trips/{trip_id}/conversation")
async def link_trip_conversation(
    trip_id: str,
    body: TripConversationLink,
    user_id: str = Depends(current_user),
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    storage = runtime.storage
    storage.conversations.get(user_id, body.conversation_id)
    return _trip_body(storage.trips.link_conversation(user_id, trip_id, body.conversation_id))


@app.delete("/api/trips/{trip_id}")
async def delete_trip(
    trip_id: str,
    user_id: str = Depends(current_user),
    runtime: TripPlannerRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    runtime.storage.trips.delete(user_id, trip_id)
    return {"success": True}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=config.API_HOST, port=config.API_PORT)
