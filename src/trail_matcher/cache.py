from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Optional, Sequence, TypeVar

from loguru import logger

from .geodesy import distance_between
from .models import GeoPoint

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 5 * 60
DEFAULT_MAX_DISTANCE_KM = 1.0


@dataclass
class CacheEntry(Generic[T]):
    places: list[T]
    timestamp: float
    location: GeoPoint
    next_page_token: Optional[str] = None


class QueryCache(Generic[T]):
    """In-memory result cache keyed by (category, search text).

    An entry is only ever served while it is younger than ``ttl_seconds`` and
    the caller is within ``max_distance_km`` of where it was captured. Both
    checks run on every read; a failing entry is evicted on the spot.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_distance_km: float = DEFAULT_MAX_DISTANCE_KM,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_distance_km = max_distance_km
        self._clock = clock
        self._entries: dict[tuple[str, str], CacheEntry[T]] = {}

    @staticmethod
    def make_key(category: str, search_text: str) -> tuple[str, str]:
        name = category.value if isinstance(category, Enum) else str(category)
        return name, search_text.strip().lower()

    def get(self, category: str, search_text: str, current_location: GeoPoint) -> Optional[CacheEntry[T]]:
        key = self.make_key(category, search_text)
        entry = self._entries.get(key)
        if entry is None:
            return None

        age = self._clock() - entry.timestamp
        if age > self.ttl_seconds:
            logger.debug("Cache entry {key} expired after {age:.0f}s", key=key, age=age)
            del self._entries[key]
            return None

        moved = distance_between(entry.location, current_location)
        if moved > self.max_distance_km:
            logger.debug("Cache entry {key} dropped, moved {moved:.2f} km", key=key, moved=moved)
            del self._entries[key]
            return None

        return entry

    def put(
        self,
        category: str,
        search_text: str,
        places: Sequence[T],
        location: GeoPoint,
        next_page_token: Optional[str] = None,
    ) -> CacheEntry[T]:
        entry = CacheEntry(
            places=list(places),
            timestamp=self._clock(),
            location=location,
            next_page_token=next_page_token,
        )
        self._entries[self.make_key(category, search_text)] = entry
        return entry

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
