# tools/places.py
"""Google Maps Platform client: Places (New) nearby search, legacy text search,
place details and geocoding, normalized to ``Attraction`` / ``Place`` records.
"""
from __future__ import annotations

import logging
import random
import time
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Set

import httpx
from pydantic import BaseModel, Field, ValidationError

import config
from errors import (
    AttractionNotFoundError,
    GeocodingError,
    MissingConfigError,
    NoAttractionsFoundError,
    NoResultsError,
    PlaceNotFoundError,
    PlacesAPIError,
)
from tools.place_types import BLOCKED_PLACE_TYPES, PRICE_LEVELS, is_restaurant_search
from workflows.schemas import Attraction, Coordinate, Place, PlacePhoto

logger = logging.getLogger(__name__)

GOOGLE_MAPS_API_KEY = config.get_google_maps_api_key()
BASE = "https://places.googleapis.com/v1"
LEGACY_TEXT_SEARCH_URL = "https://maps.googleapis.com/maps/api/place/textsearch/json"
GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

NEARBY_FIELD_MASK = ",".join([
    "places.id",
    "places.displayName",
    "places.types",
    "places.location",
    "places.rating",
    "places.userRatingCount",
    "places.priceLevel",
    "places.currentOpeningHours",
    "places.photos",
])

MIN_RADIUS_M = 100
MAX_RADIUS_M = 50000
MAX_NEARBY_RESULTS = 20

# In-memory call counters for the dev stats endpoint (reset on restart)
API_CALL_STATS: Counter = Counter()


def get_api_call_stats() -> Dict[str, int]:
    return {
        key: API_CALL_STATS.get(key, 0)
        for key in ("nearby_search", "text_search", "search_place", "place_details", "geocode", "reverse_geocode")
    }


def reset_api_call_stats() -> None:
    API_CALL_STATS.clear()


# --- tiny retry helper ---
def _request(method: str, url: str, **kw) -> httpx.Response:
    retries, backoff = 3, 0.6
    last_err = None
    for i in range(retries):
        try:
            with httpx.Client(timeout=kw.pop("timeout", 20)) as c:
                r = c.request(method, url, **kw)
                if r.status_code in (429, 500, 502, 503, 504):
                    raise httpx.HTTPStatusError("retryable", request=r.request, response=r)
                r.raise_for_status()
                return r
        except (httpx.RequestError, httpx.HTTPStatusError) as e:
            last_err = e
            if i < retries - 1:
                time.sleep(backoff * (2**i) + random.random()*0.2)
            else:
                raise
    raise last_err  # type: ignore


def _api_key() -> str:
    if not GOOGLE_MAPS_API_KEY:
        logger.error("GOOGLE_MAPS_API_KEY is not configured")
        raise MissingConfigError("GOOGLE_MAPS_API_KEY")
    return GOOGLE_MAPS_API_KEY


def _fetch_json(error_cls: type, method: str, url: str, **kw) -> Dict[str, Any]:
    """Run ``_request`` and decode JSON, mapping transport failures to ``error_cls``."""
    try:
        r = _request(method, url, **kw)
    except httpx.HTTPStatusError as e:
        raise error_cls(f"API error: {e.response.status_code}") from e
    except httpx.RequestError as e:
        raise error_cls(f"Network error: {e}") from e
    try:
        data = r.json()
    except ValueError as e:
        raise error_cls("Failed to parse API response") from e
    if not isinstance(data, dict):
        raise error_cls("Invalid API response")
    return data


# ============================================================================
# Response schemas
# ============================================================================

class _DisplayName(BaseModel):
    text: str = ""


class _LatLng(BaseModel):
    latitude: float
    longitude: float


class _AuthorAttribution(BaseModel):
    displayName: Optional[str] = None
    uri: Optional[str] = None


class _NewPhoto(BaseModel):
    name: str
    widthPx: int = 0
    heightPx: int = 0
    authorAttributions: List[_AuthorAttribution] = Field(default_factory=list)


class _OpeningHours(BaseModel):
    openNow: Optional[bool] = None


class _NewPlace(BaseModel):
    id: str
    displayName: Optional[_DisplayName] = None
    formattedAddress: Optional[str] = None
    types: List[str] = Field(default_factory=list)
    location: Optional[_LatLng] = None
    rating: Optional[float] = None
    userRatingCount: Optional[int] = None
    priceLevel: Optional[str] = None
    currentOpeningHours: Optional[_OpeningHours] = None
    photos: List[_NewPhoto] = Field(default_factory=list)


class _NearbySearchResponse(BaseModel):
    places: List[_NewPlace] = Field(default_factory=list)


class _LegacyLocation(BaseModel):
    lat: float
    lng: float


class _LegacyGeometry(BaseModel):
    location: _LegacyLocation


class _LegacyPhoto(BaseModel):
    photo_reference: str
    width: int = 0
    height: int = 0
    html_attributions: List[str] = Field(default_factory=list)


class _LegacyOpeningHours(BaseModel):
    open_now: Optional[bool] = None


class _LegacyResult(BaseModel):
    place_id: str
    name: str = ""
    formatted_address: Optional[str] = None
    rating: Optional[float] = None
    user_ratings_total: Optional[int] = None
    types: List[str] = Field(default_factory=list)
    vicinity: Optional[str] = None
    price_level: Optional[int] = Field(None, ge=0, le=4)
    opening_hours: Optional[_LegacyOpeningHours] = None
    geometry: Optional[_LegacyGeometry] = None
    photos: List[_LegacyPhoto] = Field(default_factory=list)


class _LegacyResponse(BaseModel):
    status: str
    results: List[_LegacyResult] = Field(default_factory=list)
    error_message: Optional[str] = None


def _parse(schema: type, data: Dict[str, Any], error_cls: type):
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(p) for p in first.get("loc", ()))
        raise error_cls(f"Invalid API response: {where} {first.get('msg')}".strip()) from e


# ============================================================================
# Validation helpers
# ============================================================================

def validate_search_radius(radius: float) -> int:
    if int(radius) != radius:
        raise PlacesAPIError("Radius must be an integer number of meters")
    if radius < MIN_RADIUS_M:
        raise PlacesAPIError(f"Radius must be at least {MIN_RADIUS_M} meters")
    if radius > MAX_RADIUS_M:
        raise PlacesAPIError(f"Radius must be at most {MAX_RADIUS_M} meters")
    return int(radius)


def validate_coordinates(lat: float, lng: float, error_cls: type = PlacesAPIError) -> None:
    if not -90 <= lat <= 90:
        raise error_cls("Latitude must be between -90 and 90")
    if not -180 <= lng <= 180:
        raise error_cls("Longitude must be between -180 and 180")


def _non_empty(value: str, error_cls: type, message: str = "String cannot be empty") -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise error_cls(message)
    return cleaned


# ============================================================================
# Normalization
# ============================================================================

def _photo_from_new(photo: _NewPhoto) -> PlacePhoto:
    # Keep the full resource name ("places/{id}/photos/{ref}"); the media endpoint needs it
    return PlacePhoto(
        photo_reference=photo.name,
        width=photo.widthPx,
        height=photo.heightPx,
        attributions=[a.displayName or a.uri or "" for a in photo.authorAttributions],
    )


def _photo_from_legacy(photo: _LegacyPhoto) -> PlacePhoto:
    return PlacePhoto(
        photo_reference=photo.photo_reference,
        width=photo.width,
        height=photo.height,
        attributions=list(photo.html_attributions),
    )


def _normalize_nearby_place(place: _NewPlace, seen: Set[str], restaurants: bool) -> Optional[Attraction]:
    """Map one Places (New) result, or return None when it should be skipped."""
    if place.id in seen:
        return None
    # Blocking only applies to attraction searches
    if not restaurants and any(t in BLOCKED_PLACE_TYPES for t in place.types):
        return None
    if not place.rating or not place.userRatingCount or place.userRatingCount < config.MIN_RATING_COUNT:
        return None
    if place.location is None:
        return None

    seen.add(place.id)
    return Attraction(
        id=place.id,
        name=(place.displayName.text if place.displayName else "") or "Unknown",
        rating=place.rating,
        user_ratings_total=place.userRatingCount,
        types=list(place.types),
        vicinity=place.formattedAddress or "",
        price_level=PRICE_LEVELS.get(place.priceLevel) if place.priceLevel else None,
        open_now=place.currentOpeningHours.openNow if place.currentOpeningHours else None,
        location=Coordinate(lat=place.location.latitude, lng=place.location.longitude),
        # List views only need one photo
        photos=[_photo_from_new(p) for p in place.photos[:1]] or None,
    )


# ============================================================================
# Public API
# ============================================================================

def nearby_search(lat: float, lng: float, radius: float, types: Iterable[str]) -> List[Attraction]:
    """
    Provider: Google Places API (New) Nearby Search.
    Returns deduplicated, rated places of the given ``types`` inside the circle.
    Raises NoAttractionsFoundError when nothing usable comes back.
    """
    API_CALL_STATS["nearby_search"] += 1
    key = _api_key()
    validated_radius = validate_search_radius(radius)
    validate_coordinates(lat, lng)

    included_types = list(types)
    restaurants = is_restaurant_search(included_types)
    headers = {
        "Content-Type": "application/json",
        "X-Goog-Api-Key": key,
        "X-Goog-FieldMask": NEARBY_FIELD_MASK,
    }
    payload: Dict[str, Any] = {
        "includedTypes": included_types,
        "maxResultCount": MAX_NEARBY_RESULTS,
        "locationRestriction": {
            "circle": {
                "center": {"latitude": lat, "longitude": lng},
                "radius": validated_radius,
            }
        },
    }

    data = _fetch_json(PlacesAPIError, "POST", f"{BASE}/places:searchNearby", headers=headers, json=payload)
    response = _parse(_NearbySearchResponse, data, PlacesAPIError)

    seen: Set[str] = set()
    out: List[Attraction] = []
    for place in response.places:
        attraction = _normalize_nearby_place(place, seen, restaurants)
        if attraction is not None:
            out.append(attraction)

    if not out:
        raise NoAttractionsFoundError(lat, lng, "restaurants" if restaurants else "attractions")
    logger.debug("Nearby search at (%s, %s) r=%s returned %d places", lat, lng, validated_radius, len(out))
    return out


def _legacy_text_search(query: str, error_cls: type) -> _LegacyResponse:
    params = {"query": query, "key": _api_key()}
    data = _fetch_json(error_cls, "GET", LEGACY_TEXT_SEARCH_URL, params=params)
    return _parse(_LegacyResponse, data, error_cls)


def text_search(query: str, include_photos: bool = False, require_ratings: bool = True) -> Attraction:
    """
    Provider: Google Places Text Search (legacy).
    Resolves a free-text place name to its best-matching ``Attraction``.
    ``require_ratings`` is off for towns and regions, which carry no ratings.
    """
    API_CALL_STATS["text_search"] += 1
    validated = _non_empty(query, PlacesAPIError, "Invalid query")
    data = _legacy_text_search(validated, PlacesAPIError)

    if data.status not in ("OK", "ZERO_RESULTS"):
        raise PlacesAPIError(data.error_message or f"Text Search API error: {data.status}")
    if not data.results:
        raise AttractionNotFoundError(query)

    result = data.results[0]
    if result.geometry is None:
        raise AttractionNotFoundError(query)
    if require_ratings and (not result.rating or not result.user_ratings_total):
        raise AttractionNotFoundError(query)

    photos = None
    if include_photos and result.photos:
        photos = [_photo_from_legacy(p) for p in result.photos[:2]]

    return Attraction(
        id=result.place_id,
        name=result.name,
        rating=result.rating,
        user_ratings_total=result.user_ratings_total,
        types=list(result.types),
        vicinity=result.vicinity or result.formatted_address or "",
        price_level=result.price_level,
        open_now=result.opening_hours.open_now if result.opening_hours else None,
        location=Coordinate(lat=result.geometry.location.lat, lng=result.geometry.location.lng),
        photos=photos,
    )


def search_place(query: str) -> Place:
    """Resolve a free-text destination (city, district, trailhead...) to a ``Place``."""
    API_CALL_STATS["search_place"] += 1
    validated = _non_empty(query, PlaceNotFoundError, query or "empty query")
    data = _legacy_text_search(validated, PlacesAPIError)

    if data.status == "ZERO_RESULTS" or (data.status == "OK" and not data.results):
        raise PlaceNotFoundError(query)
    if data.status != "OK":
        raise PlacesAPIError(data.error_message or f"Text Search API error: {data.status}")

    result = data.results[0]
    if result.geometry is None:
        raise PlaceNotFoundError(query)
    return Place(
        id=result.place_id,
        name=result.name,
        lat=result.geometry.location.lat,
        lng=result.geometry.location.lng,
    )


def place_details(place_id: str, include_photos: bool = False) -> Place:
    """
    Provider: Google Places API (New) Place Details.
    With ``include_photos`` the first two photos are attached.
    """
    API_CALL_STATS["place_details"] += 1
    key = _api_key()
    validated = _non_empty(place_id, PlaceNotFoundError, place_id or "empty place id")
    field_mask = "id,displayName,formattedAddress,location"
    if include_photos:
        field_mask += ",photos"
    headers = {
        "Content-Type": "application/json",
        "X-Goog-Api-Key": key,
        "X-Goog-FieldMask": field_mask,
    }
    try:
        r = _request("GET", f"{BASE}/places/{httpx.URL(validated).path}", headers=headers)
    except httpx.HTTPStatusError as e:
        if e.response.status_code == 404:
            raise PlaceNotFoundError(place_id) from e
        raise PlacesAPIError(f"API error: {e.response.status_code}") from e
    except httpx.RequestError as e:
        raise PlacesAPIError(f"Network error: {e}") from e

    try:
        data = r.json()
    except ValueError as e:
        raise PlacesAPIError("Failed to parse API response") from e
    details = _parse(_NewPlace, data, PlacesAPIError)
    if details.location is None:
        raise PlaceNotFoundError(place_id)

    photos = None
    if include_photos and details.photos:
        photos = [_photo_from_new(p) for p in details.photos[:2]]
    return Place(
        id=details.id,
        name=(details.displayName.text if details.displayName else "") or details.formattedAddress or "Unknown",
        lat=details.location.latitude,
        lng=details.location.longitude,
        photos=photos,
    )


def geocode(query: str) -> Place:
    """Provider: Google Geocoding API (address → coordinates)."""
    API_CALL_STATS["geocode"] += 1
    validated = _non_empty(query, PlaceNotFoundError, query or "empty query")
    params = {"address": validated, "key": _api_key()}
    data = _fetch_json(PlacesAPIError, "GET", GEOCODE_URL, params=params)

    status = data.get("status")
    results = data.get("results") or []
    if status == "ZERO_RESULTS" or (status == "OK" and not results):
        raise PlaceNotFoundError(query)
    if status != "OK":
        raise PlacesAPIError(data.get("error_message") or f"Geocoding API error: {status}")

    first = results[0]
    loc = (first.get("geometry") or {}).get("location") or {}
    if "lat" not in loc or "lng" not in loc:
        raise PlacesAPIError("Invalid API response: missing geometry")
    return Place(
        id=first.get("place_id", ""),
        name=first.get("formatted_address", query),
        lat=loc["lat"],
        lng=loc["lng"],
    )


def reverse_geocode(lat: float, lng: float) -> Place:
    """Provider: Google Geocoding API (coordinates → address). Keeps the input coordinates."""
    API_CALL_STATS["reverse_geocode"] += 1
    key = _api_key()
    validate_coordinates(lat, lng, GeocodingError)
    params = {"latlng": f"{lat},{lng}", "key": key}
    data = _fetch_json(GeocodingError, "GET", GEOCODE_URL, params=params)

    status = data.get("status")
    results = data.get("results") or []
    if status == "ZERO_RESULTS" or (status == "OK" and not results):
        raise NoResultsError(lat, lng)
    if status != "OK":
        raise GeocodingError(data.get("error_message") or f"Geocoding API error: {status}")

    first = results[0]
    return Place(
        id=first.get("place_id", ""),
        name=first.get("formatted_address", ""),
        lat=lat,
        lng=lng,
    )
