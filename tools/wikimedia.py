# tools/wikimedia.py
"""Wikimedia Commons geosearch: freely licensed photos near a coordinate."""
from __future__ import annotations

import logging
import random
import re
import time
from typing import Dict, List, Optional

import httpx
from pydantic import BaseModel, Field

from errors import NoWikimediaPhotosFoundError, WikimediaAPIError
from workflows.schemas import PlacePhoto

logger = logging.getLogger(__name__)

COMMONS_API_URL = "https://commons.wikimedia.org/w/api.php"
MIN_RADIUS_M = 10
MAX_RADIUS_M = 10000
MAX_RESULTS = 10

# Wikimedia asks API clients to identify themselves
USER_AGENT = "TripMapPlanner/1.0 (photo fallback)"

_TAG_RE = re.compile(r"<[^>]*>")


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


class _MetadataValue(BaseModel):
    value: Optional[str] = None


class _ImageInfo(BaseModel):
    url: str
    descriptionurl: Optional[str] = None
    width: int = 0
    height: int = 0
    extmetadata: Dict[str, _MetadataValue] = Field(default_factory=dict)


class _Page(BaseModel):
    title: str = ""
    imageinfo: List[_ImageInfo] = Field(default_factory=list)


class _Query(BaseModel):
    pages: Dict[str, _Page] = Field(default_factory=dict)


class _GeosearchResponse(BaseModel):
    query: Optional[_Query] = None


def strip_html(value: str) -> str:
    return _TAG_RE.sub("", value).strip()


def _attributions(info: _ImageInfo) -> List[str]:
    meta = info.extmetadata
    out: List[str] = []
    artist = meta.get("Artist")
    if artist and artist.value:
        out.append(f"Artist: {strip_html(artist.value)}")
    license_name = meta.get("LicenseShortName")
    if license_name and license_name.value:
        out.append(f"License: {license_name.value}")
    credit = meta.get("Credit")
    if credit and credit.value:
        out.append(f"Credit: {strip_html(credit.value)}")
    if info.descriptionurl:
        out.append(f"Source: {info.descriptionurl}")
    return out


def search_photos_by_location(
    lat: float,
    lng: float,
    radius: int,
    place_name: Optional[str] = None,
) -> List[PlacePhoto]:
    """
    Photos from the File namespace within ``radius`` metres (clamped to 10-10000).
    With ``place_name`` only files whose title contains it (case-insensitive) are kept.
    The image URL doubles as the photo reference.
    """
    valid_radius = max(MIN_RADIUS_M, min(MAX_RADIUS_M, int(radius)))
    params = {
        "action": "query",
        "generator": "geosearch",
        "ggscoord": f"{lat}|{lng}",
        "ggsradius": str(valid_radius),
        "ggsnamespace": "6",
        "ggslimit": str(MAX_RESULTS),
        "prop": "imageinfo",
        "iiprop": "url|size|extmetadata",
        "format": "json",
        "origin": "*",
    }
    logger.debug("Searching Wikimedia photos near (%s, %s) r=%s name=%s", lat, lng, valid_radius, place_name)

    try:
        r = _request("GET", COMMONS_API_URL, params=params, headers={"User-Agent": USER_AGENT})
    except httpx.HTTPStatusError as e:
        raise WikimediaAPIError(f"Failed to fetch from Wikimedia: {e.response.status_code}") from e
    except httpx.RequestError as e:
        raise WikimediaAPIError(f"Network error: {e}") from e

    try:
        data = _GeosearchResponse.model_validate(r.json())
    except ValueError as e:
        # pydantic's ValidationError is a ValueError too
        logger.warning("Wikimedia API response validation failed: %s", e)
        raise WikimediaAPIError(f"Invalid API response: {e}") from e

    if data.query is None or not data.query.pages:
        raise NoWikimediaPhotosFoundError(lat, lng, valid_radius)

    needle = place_name.lower() if place_name else None
    photos: List[PlacePhoto] = []
    for page in data.query.pages.values():
        if not page.imageinfo:
            continue
        if needle and needle not in page.title.lower():
            continue
        info = page.imageinfo[0]
        photos.append(PlacePhoto(
            photo_reference=info.url,
            width=info.width,
            height=info.height,
            attributions=_attributions(info),
        ))

    if not photos:
        raise NoWikimediaPhotosFoundError(lat, lng, valid_radius)
    logger.debug("Found %d Wikimedia photos near (%s, %s)", len(photos), lat, lng)
    return photos
