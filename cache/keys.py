"""Hashable cache keys. Coordinates are rounded so float noise maps to one entry."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

COORDINATE_PRECISION = 6


def round_coordinate(value: float) -> float:
    return round(value, COORDINATE_PRECISION)


@dataclass(frozen=True)
class SearchKey:
    """Nearby attraction/restaurant search around a point."""

    lat: float
    lng: float
    radius: int

    @classmethod
    def of(cls, lat: float, lng: float, radius: float) -> "SearchKey":
        return cls(round_coordinate(lat), round_coordinate(lng), int(radius))


@dataclass(frozen=True)
class TextSearchKey:
    query: str
    include_photos: bool = False
    require_ratings: bool = True


@dataclass(frozen=True)
class PhotoKey:
    """Photo bytes for a reference at a width.

    The location and name only feed the fallback provider, so they are left out
    of equality and hashing.
    """

    photo_reference: str
    max_width: int
    lat: Optional[float] = field(default=None, compare=False)
    lng: Optional[float] = field(default=None, compare=False)
    place_name: Optional[str] = field(default=None, compare=False)
