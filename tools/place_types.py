# tools/place_types.py
"""Google Places (New) place types used for searching, filtering and persona matching.

Reference: https://developers.google.com/maps/documentation/places/web-service/place-types
"""
from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, Tuple

# Table A types valid in ``includedTypes`` for Nearby Search
ATTRACTION_TYPES: Tuple[str, ...] = (
    "tourist_attraction",
    "museum",
    "art_gallery",
    "zoo",
    "aquarium",
    "amusement_park",
    "park",
    "beach",
    "national_park",
    "state_park",
    "monument",
    "historical_place",
    "cultural_landmark",
    "church",
    "hindu_temple",
    "mosque",
    "synagogue",
    "performing_arts_theater",
    "stadium",
    "library",
    "city_hall",
    "casino",
    "adventure_sports_center",
    "sculpture",
    "campground",
    "hiking_area",
    "botanical_garden",
)

RESTAURANT_TYPES: Tuple[str, ...] = ("restaurant", "cafe", "bar", "bakery")

# Preferred place types per persona key
PERSONA_FILTER_TYPES: Dict[str, Tuple[str, ...]] = {
    "general_tourist": ("tourist_attraction", "museum", "park", "historical_landmark", "plaza", "visitor_center"),
    "nature_lover": ("national_park", "state_park", "hiking_area", "botanical_garden", "wildlife_park", "wildlife_refuge"),
    "art_enthusiast": (
        "art_gallery",
        "museum",
        "sculpture",
        "performing_arts_theater",
        "opera_house",
        "philharmonic_hall",
        "cultural_landmark",
        "historical_place",
    ),
    "foodie_traveler": (
        "restaurant",
        "cafe",
        "coffee_shop",
        "fine_dining_restaurant",
        "food_court",
        "pub",
        "wine_bar",
        "bakery",
    ),
    "adventure_seeker": (
        "adventure_sports_center",
        "amusement_park",
        "hiking_area",
        "off_roading_area",
        "roller_coaster",
        "water_park",
        "ski_resort",
        "national_park",
    ),
    "digital_nomad": ("cafe", "coffee_shop", "internet_cafe", "library", "hotel", "hostel", "guest_house"),
    "history_buff": ("historical_place", "historical_landmark", "monument", "museum", "cultural_landmark"),
    "photography_enthusiast": (
        "observation_deck",
        "garden",
        "plaza",
        "beach",
        "art_gallery",
        "sculpture",
        "historical_landmark",
        "wildlife_park",
        "wildlife_refuge",
        "botanical_garden",
    ),
}

# Services, lodging, shops and food places never suggested as attractions
BLOCKED_PLACE_TYPES: FrozenSet[str] = frozenset({
    # Automotive
    "car_repair", "car_dealer", "car_wash", "car_rental", "gas_station",
    # Shopping (non-tourist markets)
    "store", "shopping_mall", "convenience_store", "supermarket", "department_store",
    "clothing_store", "shoe_store", "electronics_store", "furniture_store",
    "hardware_store", "home_goods_store", "jewelry_store", "pet_store",
    # Services
    "electrician", "plumber", "locksmith", "painter", "roofing_contractor", "lawyer",
    "real_estate_agency", "insurance_agency", "accounting", "travel_agency",
    "moving_company", "courier_service",
    # Financial
    "atm", "bank",
    # Health
    "dentist", "doctor", "hospital", "pharmacy", "veterinary_care",
    # Personal care
    "hair_care", "beauty_salon", "spa", "gym",
    # Utilities
    "laundry", "post_office", "storage",
    # Lodging
    "lodging", "hotel", "motel", "hostel", "resort_hotel", "bed_and_breakfast",
    "guest_house", "rv_park",
    # Food/Drink (served by restaurant searches)
    "restaurant", "cafe", "bar", "bakery", "food", "night_club",
})

# Places API (New) returns price levels as enum strings
PRICE_LEVELS: Dict[str, int] = {
    "PRICE_LEVEL_FREE": 0,
    "PRICE_LEVEL_INEXPENSIVE": 1,
    "PRICE_LEVEL_MODERATE": 2,
    "PRICE_LEVEL_EXPENSIVE": 3,
    "PRICE_LEVEL_VERY_EXPENSIVE": 4,
}


def is_restaurant_search(types: Iterable[str]) -> bool:
    return any(t in RESTAURANT_TYPES for t in types)
