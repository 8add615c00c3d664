from __future__ import annotations

from typing import Iterable

from loguru import logger

from .models import GeoPoint, MatchResult, PlaceCandidate
from .scorer import CandidateScorer


class MatchSelector:
    """Pick the places-search result that most plausibly is the given trail.

    Rated candidates are accepted at a lower score than unrated ones: a
    similarly named business with no public ratings is a weak signal, while
    an oddly named but rated trailhead entry usually is the trail.
    """

    def __init__(
        self,
        scorer: CandidateScorer | None = None,
        rated_threshold: float = 35.0,
        overall_threshold: float = 50.0,
    ) -> None:
        self.scorer = scorer or CandidateScorer()
        self.rated_threshold = rated_threshold
        self.overall_threshold = overall_threshold

    def select(
        self,
        trail_id: str,
        trail_name: str,
        location: GeoPoint,
        candidates: Iterable[PlaceCandidate],
        query: str = "",
    ) -> MatchResult:
        best: PlaceCandidate | None = None
        best_score = 0.0
        best_rated: PlaceCandidate | None = None
        best_rated_score = 0.0
        candidate_cache: list[dict] = []

        for candidate in candidates:
            detail = self.scorer.breakdown(candidate, trail_name, location.latitude, location.longitude)
            total = detail["score"]
            candidate_cache.append(detail)
            logger.debug(
                "  {name!r} score={score:.1f} rating={rating}",
                name=candidate.name,
                score=total,
                rating=candidate.rating or "none",
            )
            if best is None or total > best_score:
                best, best_score = candidate, total
            if candidate.has_rating and (best_rated is None or total > best_rated_score):
                best_rated, best_rated_score = candidate, total

        accepted: PlaceCandidate | None = None
        accepted_score = best_score
        if best_rated is not None and best_rated_score >= self.rated_threshold:
            accepted, accepted_score = best_rated, best_rated_score
        elif best is not None and best_score >= self.overall_threshold:
            accepted = best

        if accepted is None:
            if best is not None:
                logger.info(
                    "No confident match for {trail!r}; best {name!r} scored {score:.1f}",
                    trail=trail_name,
                    name=best.name,
                    score=best_score,
                )
            return MatchResult(trail_id=trail_id, query=query, score=best_score, candidates=candidate_cache)

        logger.info(
            "Matched {trail!r} to {name!r} (score {score:.1f}, rating {rating})",
            trail=trail_name,
            name=accepted.name,
            score=accepted_score,
            rating=accepted.rating or "none",
        )
        return MatchResult(
            trail_id=trail_id,
            query=query,
            matched_place_id=accepted.place_id,
            matched_name=accepted.name,
            rating=accepted.rating if accepted.has_rating else None,
            rating_count=accepted.rating_count,
            score=accepted_score,
            candidates=candidate_cache,
        )
