from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from .geodesy import distance_km
from .models import PlaceCandidate
from .normalizer import similarity

RELEVANT_TYPES = frozenset({"tourist_attraction", "natural_feature", "park", "point_of_interest"})


@dataclass
class ScoringWeights:
    name_weight: float = 30.0
    # (upper bound in km, points); first band the distance falls under wins
    proximity_bands: Sequence[tuple[float, float]] = ((1.0, 20.0), (5.0, 15.0), (10.0, 10.0), (20.0, 5.0))
    category_bonus: float = 10.0
    relevant_types: frozenset[str] = field(default_factory=lambda: RELEVANT_TYPES)
    rating_presence: float = 30.0
    # (minimum rating, points)
    rating_bands: Sequence[tuple[float, float]] = ((4.5, 10.0), (4.0, 7.0), (3.5, 5.0))
    # (count must exceed, points)
    popularity_bands: Sequence[tuple[int, float]] = ((200, 20.0), (100, 17.0), (50, 14.0), (20, 10.0), (5, 6.0))


class CandidateScorer:
    def __init__(self, weights: ScoringWeights | None = None) -> None:
        self.weights = weights or ScoringWeights()

    def score(self, candidate: PlaceCandidate, trail_name: str, trail_lat: float, trail_lon: float) -> float:
        return self.breakdown(candidate, trail_name, trail_lat, trail_lon)["score"]

    def breakdown(
        self,
        candidate: PlaceCandidate,
        trail_name: str,
        trail_lat: float,
        trail_lon: float,
    ) -> dict:
        name = similarity(trail_name, candidate.name) * self.weights.name_weight
        distance = distance_km(trail_lat, trail_lon, candidate.location.latitude, candidate.location.longitude)
        proximity = self._proximity_score(distance)
        category = self.weights.category_bonus if self.weights.relevant_types.intersection(candidate.types) else 0.0
        rating = self._rating_score(candidate.rating)
        popularity = self._popularity_score(candidate.rating_count)
        return {
            "place_id": candidate.place_id,
            "place_name": candidate.name,
            "score": name + proximity + category + rating + popularity,
            "name": name,
            "distance_km": distance,
            "proximity": proximity,
            "category": category,
            "rating": rating,
            "popularity": popularity,
        }

    def _proximity_score(self, distance: float) -> float:
        for limit, points in self.weights.proximity_bands:
            if distance < limit:
                return points
        return 0.0

    def _rating_score(self, rating: float | None) -> float:
        if not rating:
            return 0.0
        total = self.weights.rating_presence
        for minimum, points in self.weights.rating_bands:
            if rating >= minimum:
                return total + points
        return total

    def _popularity_score(self, count: int | None) -> float:
        if not count:
            return 0.0
        for floor, points in self.weights.popularity_bands:
            if count > floor:
                return points
        return 0.0
