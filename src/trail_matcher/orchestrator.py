from __future__ import annotations

import asyncio
from typing import Callable, Optional, Sequence

from loguru import logger
from pyproj.exceptions import ProjError

from .cache import QueryCache
from .classification import (
    CATEGORY_RADIUS_M,
    CATEGORY_TYPES,
    categorize_walk,
    icon_for_place,
    match_category,
    walk_icon,
)
from .config import EnrichmentConfig, MatcherConfig
from .errors import ItemEnrichmentFailed, ProviderUnavailable
from .geodesy import distance_between, projected_to_geographic
from .models import (
    BatchState,
    Category,
    EnrichedPlace,
    GeoPoint,
    ItemUpdate,
    MatchResult,
    PlaceCandidate,
    TrailDetail,
    TrailRecord,
)
from .normalizer import normalize_for_search
from .providers import DocTrailCatalog, GooglePlacesClient, PlacesSearch, TrailCatalog
from .scorer import CandidateScorer
from .selector import MatchSelector

UpdateListener = Callable[[ItemUpdate], None]
PublishListener = Callable[[int, list[EnrichedPlace]], None]


class EnrichmentOrchestrator:
    """Runs trail batches through placing, listing and progressive enrichment.

    Every batch gets a generation number. Placeholders are published as soon
    as the list is bounded; per-item detail and rating lookups then land one
    at a time as ``ItemUpdate`` events. Updates belonging to a superseded
    generation never reach ``places`` or the listeners.
    """

    def __init__(
        self,
        catalog: TrailCatalog,
        places_search: PlacesSearch,
        cache: QueryCache[EnrichedPlace] | None = None,
        selector: MatchSelector | None = None,
        settings: EnrichmentConfig | None = None,
        on_update: UpdateListener | None = None,
        on_publish: PublishListener | None = None,
    ) -> None:
        self.catalog = catalog
        self.places_search = places_search
        self.cache = cache if cache is not None else QueryCache()
        self.selector = selector or MatchSelector()
        self.settings = settings or EnrichmentConfig()
        self.on_update = on_update
        self.on_publish = on_publish

        self.state = BatchState.IDLE
        self.generation = 0
        self.places: list[EnrichedPlace] = []
        self.next_page_token: Optional[str] = None

    @classmethod
    def from_config(
        cls,
        config: MatcherConfig,
        on_update: UpdateListener | None = None,
        on_publish: PublishListener | None = None,
    ) -> "EnrichmentOrchestrator":
        providers = config.providers
        text_cache: QueryCache[PlaceCandidate] | None = None
        if config.cache.cache_text_search:
            text_cache = QueryCache(config.cache.ttl_seconds, config.cache.max_distance_km)
        catalog = DocTrailCatalog(providers.doc_api_key, providers.doc_base_url, timeout=providers.timeout_seconds)
        places_search = GooglePlacesClient(
            providers.google_api_key,
            providers.google_base_url,
            timeout=providers.timeout_seconds,
            cache=text_cache,
        )
        selector = MatchSelector(
            CandidateScorer(config.scoring.weights()),
            rated_threshold=config.scoring.rated_threshold,
            overall_threshold=config.scoring.overall_threshold,
        )
        return cls(
            catalog,
            places_search,
            cache=QueryCache(config.cache.ttl_seconds, config.cache.max_distance_km),
            selector=selector,
            settings=config.enrichment,
            on_update=on_update,
            on_publish=on_publish,
        )

    def accepts(self, update: ItemUpdate) -> bool:
        return update.generation == self.generation

    def retry(self) -> None:
        """Drop every cached result so the next batch refetches from the providers."""
        dropped = len(self.cache)
        self.cache.clear()
        search_cache = getattr(self.places_search, "cache", None)
        if isinstance(search_cache, QueryCache):
            dropped += len(search_cache)
            search_cache.clear()
        logger.info("Caches cleared for retry, {count} entries dropped", count=dropped)

    async def enrich_trails(self, location: GeoPoint, search_text: str = "") -> list[EnrichedPlace]:
        generation = self._start_batch()
        cached = self.cache.get(Category.HIKING, search_text, location)
        if cached is not None:
            logger.info("Using cached trails for {query!r}", query=search_text)
            self._publish(generation, list(cached.places))
            self.state = BatchState.SETTLED
            return self.places

        self.state = BatchState.PLACING
        try:
            trails = await self.catalog.fetch_trails()
        except ProviderUnavailable as exc:
            logger.error("Trail catalog unavailable: {error}", error=exc)
            if generation == self.generation:
                self.state = BatchState.IDLE
                self.places = []
            raise
        if generation != self.generation:
            logger.debug("Batch {generation} superseded before placing", generation=generation)
            return []

        placed = self._place(trails, location)
        self.state = BatchState.LISTING
        listed = self._list(placed, search_text)
        logger.info(
            "Batch {generation}: {total} tracks, {nearby} within {radius} km, enriching {count}",
            generation=generation,
            total=len(trails),
            nearby=len(placed),
            radius=self.settings.radius_km,
            count=len(listed),
        )

        self.state = BatchState.ENRICHING
        batch = [place for place, _ in listed]
        self._publish(generation, batch)

        semaphore = asyncio.Semaphore(self.settings.max_concurrency)
        await asyncio.gather(
            *(
                self._enrich_item(generation, index, place, trail, batch, semaphore)
                for index, (place, trail) in enumerate(listed)
            )
        )

        self.cache.put(Category.HIKING, search_text, batch, location)
        if generation == self.generation:
            self.state = BatchState.SETTLED
        return batch

    async def browse_nearby(
        self,
        location: GeoPoint,
        category: Category | str,
        search_text: str = "",
    ) -> list[EnrichedPlace]:
        category = Category(category)
        if category is Category.HIKING:
            return await self.enrich_trails(location, search_text)

        generation = self._start_batch()
        cached = self.cache.get(category, search_text, location)
        if cached is not None:
            logger.info("Using cached {category} places", category=category.value)
            self._publish(generation, list(cached.places))
            self.next_page_token = cached.next_page_token
            self.state = BatchState.SETTLED
            return self.places

        self.state = BatchState.LISTING
        try:
            page = await self.places_search.search_nearby(
                location,
                CATEGORY_RADIUS_M[category] / 1000,
                types=CATEGORY_TYPES[category],
                keyword=search_text or None,
            )
        except ProviderUnavailable as exc:
            logger.error("Places search unavailable: {error}", error=exc)
            if generation == self.generation:
                self.state = BatchState.IDLE
                self.places = []
            raise

        places = sorted(self._from_candidates(page.places, location), key=lambda place: place.distance_km)
        self.cache.put(category, search_text, places, location, page.next_page_token)
        if generation != self.generation:
            return places
        self._publish(generation, places)
        self.next_page_token = page.next_page_token
        self.state = BatchState.SETTLED
        return places

    async def load_more(
        self,
        location: GeoPoint,
        category: Category | str,
        search_text: str = "",
    ) -> list[EnrichedPlace]:
        category = Category(category)
        token = self.next_page_token
        if not token:
            return self.places

        generation = self.generation
        page = await self.places_search.search_nearby(
            location,
            CATEGORY_RADIUS_M[category] / 1000,
            types=CATEGORY_TYPES[category],
            keyword=search_text or None,
            page_token=token,
        )
        if generation != self.generation:
            logger.debug("Dropping page for superseded batch {generation}", generation=generation)
            return self.places

        combined = self.places + self._from_candidates(page.places, location)
        self._publish(generation, combined)
        self.next_page_token = page.next_page_token
        self.cache.put(category, search_text, combined, location, page.next_page_token)
        return self.places

    def _start_batch(self) -> int:
        self.generation += 1
        self.next_page_token = None
        return self.generation

    def _publish(self, generation: int, places: list[EnrichedPlace]) -> None:
        self.places = places
        if self.on_publish is not None:
            self.on_publish(generation, places)

    def _place(self, trails: Sequence[TrailRecord], location: GeoPoint) -> list[tuple[EnrichedPlace, TrailRecord]]:
        placed: list[tuple[EnrichedPlace, TrailRecord]] = []
        for trail in trails:
            try:
                point = projected_to_geographic(trail.easting, trail.northing)
            except (ValueError, ProjError) as exc:
                logger.warning("Cannot place track {name!r}: {error}", name=trail.name, error=exc)
                continue
            distance = distance_between(location, point)
            if distance >= self.settings.radius_km:
                continue
            walk_type = categorize_walk(trail.duration_categories, trail.name)
            place = EnrichedPlace(
                place_id=trail.trail_id,
                name=trail.name,
                location=point,
                distance_km=distance,
                category=Category.HIKING,
                icon=walk_icon(walk_type),
                types=["hiking_trail", walk_type.value],
                vicinity=", ".join(trail.regions) or None,
                photo_reference=trail.thumbnail,
            )
            placed.append((place, trail))
        return placed

    def _list(
        self,
        placed: list[tuple[EnrichedPlace, TrailRecord]],
        search_text: str,
    ) -> list[tuple[EnrichedPlace, TrailRecord]]:
        query = search_text.strip().lower()
        if query:
            placed = [
                item
                for item in placed
                if query in item[0].name.lower() or query in (item[0].vicinity or "").lower()
            ]
        placed = sorted(placed, key=lambda item: item[0].distance_km)
        return placed[: self.settings.top_n]

    def _from_candidates(self, candidates: Sequence[PlaceCandidate], location: GeoPoint) -> list[EnrichedPlace]:
        places: list[EnrichedPlace] = []
        for candidate in candidates:
            category = match_category(candidate.types)
            places.append(
                EnrichedPlace(
                    place_id=candidate.place_id,
                    name=candidate.name,
                    location=candidate.location,
                    distance_km=distance_between(location, candidate.location),
                    category=category,
                    icon=icon_for_place(candidate.types, category),
                    types=candidate.types,
                    vicinity=candidate.vicinity,
                    rating=candidate.rating,
                    rating_count=candidate.rating_count,
                    photo_reference=candidate.photo_reference,
                )
            )
        return places

    async def _enrich_item(
        self,
        generation: int,
        index: int,
        place: EnrichedPlace,
        trail: TrailRecord,
        batch: list[EnrichedPlace],
        semaphore: asyncio.Semaphore,
    ) -> None:
        async with semaphore:
            detail, match = await asyncio.gather(self._fetch_detail(trail), self._lookup_rating(place))

        updates: dict = {}
        if detail is not None:
            updates.update(
                official_link=detail.official_link,
                track_distance=detail.distance_text,
                walk_duration=detail.duration_text,
                photo_reference=detail.thumbnail or place.photo_reference,
            )
        if match is not None and match.is_match:
            updates.update(rating=match.rating, rating_count=match.rating_count)
        if not updates:
            return

        enriched = place.model_copy(update=updates)
        batch[index] = enriched
        if generation != self.generation:
            logger.debug("Discarding update for {name!r} from stale batch {generation}", name=place.name, generation=generation)
            return
        if self.on_update is not None:
            self.on_update(ItemUpdate(generation=generation, index=index, place=enriched))

    async def _fetch_detail(self, trail: TrailRecord) -> Optional[TrailDetail]:
        try:
            return await asyncio.wait_for(self._detail_or_fail(trail), timeout=self.settings.detail_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("Detail for {name!r} timed out", name=trail.name)
        except ItemEnrichmentFailed as exc:
            logger.warning("Detail for {name!r} failed: {error}", name=trail.name, error=exc.__cause__ or exc)
        return None

    async def _detail_or_fail(self, trail: TrailRecord) -> Optional[TrailDetail]:
        try:
            return await self.catalog.fetch_detail(trail.trail_id)
        except Exception as exc:
            raise ItemEnrichmentFailed(trail.trail_id) from exc

    async def _lookup_rating(self, place: EnrichedPlace) -> Optional[MatchResult]:
        query = normalize_for_search(place.name)
        try:
            return await asyncio.wait_for(self._match(place, query), timeout=self.settings.rating_timeout_seconds)
        except asyncio.TimeoutError:
            logger.info(
                "Rating lookup for {name!r} gave up after {timeout}s",
                name=place.name,
                timeout=self.settings.rating_timeout_seconds,
            )
        except ItemEnrichmentFailed as exc:
            logger.warning("Rating lookup for {name!r} failed: {error}", name=place.name, error=exc.__cause__ or exc)
        return None

    async def _match(self, place: EnrichedPlace, query: str) -> MatchResult:
        try:
            candidates = await self.places_search.search_text(
                query,
                place.location,
                self.settings.text_search_radius_km,
            )
        except Exception as exc:
            raise ItemEnrichmentFailed(place.place_id) from exc
        return self.selector.select(place.place_id, place.name, place.location, candidates, query=query)
