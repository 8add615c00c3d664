from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional, Sequence

from .models import Category


class WalkType(str, Enum):
    GREAT_WALK = "great-walk"
    DAY_WALK = "day-walk"
    SHORT_WALK = "short-walk"


class CampingType(str, Enum):
    NZMCA = "nzmca"
    FREEDOM = "freedom"
    DOC = "doc"
    GENERAL = "general"


GREAT_WALKS = (
    "Milford Track",
    "Routeburn Track",
    "Kepler Track",
    "Abel Tasman Coast Track",
    "Heaphy Track",
    "Tongariro Northern Circuit",
    "Whanganui Journey",
    "Lake Waikaremoana Track",
    "Rakiura Track",
    "Paparoa Track",
)

CATEGORY_TYPES: dict[Category, Optional[tuple[str, ...]]] = {
    Category.ALL: None,
    Category.FOOD: ("restaurant", "cafe", "bakery", "meal_takeaway"),
    Category.FUEL: ("gas_station",),
    Category.CAMPING: ("campground", "rv_park", "park"),
    Category.ATTRACTIONS: ("tourist_attraction", "museum", "art_gallery", "zoo", "natural_feature"),
    Category.HIKING: ("park", "natural_feature"),
}

CATEGORY_RADIUS_M: dict[Category, int] = {
    Category.ALL: 5000,
    Category.FOOD: 3000,
    Category.FUEL: 5000,
    Category.CAMPING: 15000,
    Category.ATTRACTIONS: 20000,
    Category.HIKING: 20000,
}

CATEGORY_ICONS: dict[Category, str] = {
    Category.ALL: "apps-outline",
    Category.FOOD: "restaurant-outline",
    Category.FUEL: "car-outline",
    Category.CAMPING: "bonfire-outline",
    Category.ATTRACTIONS: "image-outline",
    Category.HIKING: "trail-sign-outline",
}

TYPE_ICONS = {
    "restaurant": "restaurant-outline",
    "cafe": "cafe-outline",
    "bakery": "storefront-outline",
    "bar": "beer-outline",
    "meal_takeaway": "fast-food-outline",
    "meal_delivery": "bicycle-outline",
    "gas_station": "car-outline",
    "campground": "bonfire-outline",
    "rv_park": "bonfire-outline",
    "park": "leaf-outline",
    "tourist_attraction": "image-outline",
    "museum": "library-outline",
    "art_gallery": "color-palette-outline",
    "zoo": "paw-outline",
    "natural_feature": "mountain-outline",
}
DEFAULT_ICON = "location-outline"

WALK_ICONS = {
    WalkType.GREAT_WALK: "trophy-outline",
    WalkType.DAY_WALK: "trail-sign-outline",
    WalkType.SHORT_WALK: "walk-outline",
}

PRIORITY_CAMPING_KEYWORDS = (
    "nzmca",
    "freedom camp",
    "freedom camping",
    "doc camp",
    "doc campsite",
    "doc campground",
    "self-contained",
)


def categorize_walk(duration_categories: Sequence[str] | None = None, name: str | None = None) -> WalkType:
    if name and any(great_walk in name for great_walk in GREAT_WALKS):
        return WalkType.GREAT_WALK
    if not duration_categories:
        return WalkType.SHORT_WALK
    first = duration_categories[0]
    if "1 hour" in first or "Under 1 hour" in first:
        return WalkType.SHORT_WALK
    return WalkType.DAY_WALK


def walk_icon(walk_type: WalkType) -> str:
    return WALK_ICONS[walk_type]


def match_category(types: Iterable[str]) -> Category:
    type_set = set(types)
    for category, place_types in CATEGORY_TYPES.items():
        if place_types and type_set.intersection(place_types):
            return category
    return Category.ALL


def icon_for_place(types: Iterable[str], category: Category) -> str:
    for place_type in types:
        if place_type in TYPE_ICONS:
            return TYPE_ICONS[place_type]
    return CATEGORY_ICONS.get(category, DEFAULT_ICON)


def _camping_text(name: str, vicinity: str | None) -> str:
    return f"{name.lower()} {(vicinity or '').lower()}"


def is_priority_camping(name: str, vicinity: str | None = None) -> bool:
    text = _camping_text(name, vicinity)
    return any(keyword in text for keyword in PRIORITY_CAMPING_KEYWORDS)


def identify_camping_type(name: str, vicinity: str | None = None) -> CampingType:
    text = _camping_text(name, vicinity)
    if "nzmca" in text:
        return CampingType.NZMCA
    if "freedom camp" in text:
        return CampingType.FREEDOM
    if any(keyword in text for keyword in ("doc camp", "doc campsite", "doc campground")):
        return CampingType.DOC
    return CampingType.GENERAL
