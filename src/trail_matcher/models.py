from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Category(str, Enum):
    ALL = "all"
    FOOD = "food"
    FUEL = "fuel"
    CAMPING = "camping"
    ATTRACTIONS = "attractions"
    HIKING = "hiking"


class BatchState(str, Enum):
    IDLE = "idle"
    PLACING = "placing"
    LISTING = "listing"
    ENRICHING = "enriching"
    SETTLED = "settled"


class GeoPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float


class TrailRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    trail_id: str
    name: str
    easting: float
    northing: float
    duration_categories: list[str] = Field(default_factory=list)
    regions: list[str] = Field(default_factory=list)
    thumbnail: Optional[str] = None


class TrailDetail(BaseModel):
    official_link: Optional[str] = None
    distance_text: Optional[str] = None
    duration_text: Optional[str] = None
    thumbnail: Optional[str] = None


class PlaceCandidate(BaseModel):
    place_id: str = ""
    name: str
    location: GeoPoint
    types: list[str] = Field(default_factory=list)
    rating: Optional[float] = Field(default=None, ge=0.0, le=5.0)
    rating_count: Optional[int] = Field(default=None, ge=0)
    vicinity: Optional[str] = None
    photo_reference: Optional[str] = None

    @property
    def has_rating(self) -> bool:
        return bool(self.rating)


class NearbyPage(BaseModel):
    places: list[PlaceCandidate] = Field(default_factory=list)
    next_page_token: Optional[str] = None


class MatchResult(BaseModel):
    trail_id: str
    query: str = ""
    matched_place_id: Optional[str] = None
    matched_name: Optional[str] = None
    rating: Optional[float] = None
    rating_count: Optional[int] = None
    score: float = 0.0
    candidates: list[dict] = Field(default_factory=list)

    @property
    def is_match(self) -> bool:
        return self.matched_name is not None


class EnrichedPlace(BaseModel):
    place_id: str
    name: str
    location: GeoPoint
    distance_km: float
    category: Category
    icon: str
    types: list[str] = Field(default_factory=list)
    vicinity: Optional[str] = None
    official_link: Optional[str] = None
    track_distance: Optional[str] = None
    walk_duration: Optional[str] = None
    rating: Optional[float] = None
    rating_count: Optional[int] = None
    photo_reference: Optional[str] = None


class ItemUpdate(BaseModel):
    generation: int
    index: int
    place: EnrichedPlace
