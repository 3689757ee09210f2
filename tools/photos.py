# tools/photos.py
"""Photo bytes from Google Places media, with Wikimedia Commons as the fallback provider."""
from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

import config
from cache.keys import PhotoKey
from errors import InvalidPhotoReferenceError, MissingConfigError, PhotoError, TripPlannerError
from tools import wikimedia

logger = logging.getLogger(__name__)

GOOGLE_MAPS_API_KEY = config.get_google_maps_api_key()
PLACES_MEDIA_URL = "https://places.googleapis.com/v1/{name}/media"
LEGACY_PHOTO_URL = "https://maps.googleapis.com/maps/api/place/photo"
PLACEHOLDER_URL = "https://placehold.co/{width}x{height}/e2e8f0/475569/png?text=Photo"

# Only Wikimedia Commons image URLs may be fetched directly
ALLOWED_PHOTO_HOSTS = frozenset({"upload.wikimedia.org"})

RETRYABLE_STATUSES = {429, 500, 502, 503, 504}

PHOTO_CALL_STATS: Counter = Counter()


@dataclass(frozen=True)
class PhotoData:
    data: bytes
    content_type: str


def placeholder_url(width: int) -> str:
    # 3:2 frame
    return PLACEHOLDER_URL.format(width=width, height=round(width * 0.67))


def is_url_reference(photo_reference: str) -> bool:
    return "://" in photo_reference or photo_reference.startswith("//")


def allowed_photo_url(photo_reference: str) -> str:
    """Return ``photo_reference`` if it is an https URL on an allowed host, else raise."""
    try:
        url = httpx.URL(photo_reference)
    except httpx.InvalidURL as e:
        raise InvalidPhotoReferenceError(photo_reference) from e
    if url.scheme != "https" or url.host not in ALLOWED_PHOTO_HOSTS or url.port not in (None, 443):
        raise InvalidPhotoReferenceError(photo_reference)
    return str(url)


def _is_retryable_error(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUSES
    return isinstance(exc, httpx.TransportError)


async def _download(url: str, params: Optional[Dict[str, str]] = None, default_type: str = "image/jpeg") -> PhotoData:
    """GET ``url`` following redirects, retrying transient failures with backoff."""
    try:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception(_is_retryable_error),
            wait=wait_exponential(min=0.5, max=6),
            stop=stop_after_attempt(3),
            reraise=True,
        ):
            with attempt:
                async with httpx.AsyncClient(timeout=20, follow_redirects=True) as client:
                    r = await client.get(url, params=params, headers={"User-Agent": wikimedia.USER_AGENT})
                    r.raise_for_status()
                    return PhotoData(r.content, r.headers.get("content-type") or default_type)
    except httpx.HTTPStatusError as e:
        raise PhotoError(f"Failed to fetch photo: {e.response.status_code}") from e
    except httpx.RequestError as e:
        raise PhotoError(f"Network error: {e}") from e
    raise PhotoError("Failed to fetch photo")  # pragma: no cover


def _api_key() -> str:
    if not GOOGLE_MAPS_API_KEY:
        raise MissingConfigError("GOOGLE_MAPS_API_KEY")
    return GOOGLE_MAPS_API_KEY


async def _fetch_google_photo(photo_reference: str, max_width: int) -> PhotoData:
    key = _api_key()
    if photo_reference.startswith("places/"):
        # Places API (New) resource name
        url = PLACES_MEDIA_URL.format(name=photo_reference)
        params = {"maxWidthPx": str(max_width), "key": key}
    else:
        url = LEGACY_PHOTO_URL
        params = {"maxwidth": str(max_width), "photo_reference": photo_reference, "key": key}
    return await _download(url, params=params)


async def _fetch_wikimedia_photo(lat: float, lng: float, place_name: Optional[str]) -> PhotoData:
    photos = await asyncio.to_thread(
        wikimedia.search_photos_by_location,
        lat,
        lng,
        config.WIKIMEDIA_SEARCH_RADIUS_M,
        place_name,
    )
    return await _download(allowed_photo_url(photos[0].photo_reference))


async def fetch_photo(key: PhotoKey) -> PhotoData:
    """
    Resolve a photo reference to image bytes.

    Development mode serves placeholders. URLs (Wikimedia results) are fetched
    as-is only from ``ALLOWED_PHOTO_HOSTS``; any other URL is rejected before a
    request is made. Google failures fall back to Wikimedia when a location is known.
    """
    direct_url = allowed_photo_url(key.photo_reference) if is_url_reference(key.photo_reference) else None

    PHOTO_CALL_STATS["photo"] += 1
    if config.is_dev():
        return await _download(placeholder_url(key.max_width), default_type="image/png")

    if direct_url is not None:
        return await _download(direct_url)

    try:
        return await _fetch_google_photo(key.photo_reference, key.max_width)
    except PhotoError as google_error:
        if key.lat is None or key.lng is None:
            raise
        logger.warning("Google photo fetch failed (%s), falling back to Wikimedia", google_error)
        PHOTO_CALL_STATS["wikimedia_fallback"] += 1
        try:
            return await _fetch_wikimedia_photo(key.lat, key.lng, key.place_name)
        except TripPlannerError as fallback_error:
            logger.warning("Wikimedia fallback failed: %s", fallback_error)
            raise PhotoError(
                "Failed to fetch photo from Google Places and Wikimedia",
                cause=fallback_error,
            ) from google_error


def get_photo_call_stats() -> Dict[str, int]:
    return {"photo": PHOTO_CALL_STATS.get("photo", 0), "wikimedia_fallback": PHOTO_CALL_STATS.get("wikimedia_fallback", 0)}
