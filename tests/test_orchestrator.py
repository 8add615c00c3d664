import asyncio

import pytest

from trail_matcher.cache import QueryCache
from trail_matcher.config import EnrichmentConfig
from trail_matcher.errors import ProviderUnavailable
from trail_matcher.geodesy import projected_to_geographic
from trail_matcher.models import (
    BatchState,
    Category,
    GeoPoint,
    ItemUpdate,
    NearbyPage,
    PlaceCandidate,
    TrailDetail,
    TrailRecord,
)
from trail_matcher.orchestrator import EnrichmentOrchestrator
from trail_matcher.providers import PlacesSearch, TrailCatalog

EASTING, NORTHING = 1758229.0, 5919188.0
HERE = projected_to_geographic(EASTING, NORTHING)


def trail(trail_id, name, east_offset=0.0, durations=None):
    return TrailRecord(
        trail_id=trail_id,
        name=name,
        easting=EASTING + east_offset,
        northing=NORTHING,
        duration_categories=durations or [],
        regions=["Auckland"],
    )


TRAILS = [
    trail("slow", "Slow Ridge Track", 5000, ["Half day"]),
    trail("far", "Far Away Track", 100000),
    trail("eden", "Mount Eden Summit Walk", 2000, ["Under 1 hour"]),
    trail("toka", "Tokatoka Scenic Reserve Track"),
]

DETAILS = {
    "toka": TrailDetail(official_link="https://www.doc.govt.nz/toka", distance_text="1 km", duration_text="30 min"),
    "eden": TrailDetail(official_link="https://www.doc.govt.nz/eden", distance_text="2 km", duration_text="45 min"),
}


class FakeCatalog(TrailCatalog):
    def __init__(self, trails=TRAILS, error=None):
        self.trails = trails
        self.error = error
        self.fetches = 0

    async def fetch_trails(self):
        self.fetches += 1
        if self.error is not None:
            raise self.error
        return list(self.trails)

    async def fetch_detail(self, trail_id):
        if trail_id == "slow":
            await asyncio.sleep(1)
        return DETAILS.get(trail_id)


class FakeSearch(PlacesSearch):
    def __init__(self, gate=None):
        self.gate = gate
        self.started = asyncio.Event()
        self.cache = QueryCache()
        self.queries = []
        self.nearby_calls = 0

    async def search_text(self, query, near, radius_km):
        self.queries.append(query)
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if query.startswith("tokatoka"):
            return [
                PlaceCandidate(
                    place_id="g-toka",
                    name="Tokatoka Lookout Track",
                    location=near,
                    types=["tourist_attraction"],
                    rating=4.6,
                    rating_count=150,
                )
            ]
        if query.startswith("mount eden"):
            far = GeoPoint(latitude=near.latitude + 0.5, longitude=near.longitude)
            return [PlaceCandidate(place_id="g-cafe", name="Bayview Cafe", location=far)]
        await asyncio.sleep(1)
        return []

    async def search_nearby(self, near, radius_km, types=None, keyword=None, page_token=None):
        self.nearby_calls += 1
        if page_token is None:
            return NearbyPage(
                places=[
                    PlaceCandidate(
                        place_id="cafe-1",
                        name="Cafe One",
                        location=GeoPoint(latitude=near.latitude + 0.01, longitude=near.longitude),
                        types=["cafe"],
                        rating=4.2,
                        rating_count=80,
                    ),
                    PlaceCandidate(
                        place_id="bakery-2",
                        name="Bakery Two",
                        location=GeoPoint(latitude=near.latitude + 0.005, longitude=near.longitude),
                        types=["bakery"],
                    ),
                ],
                next_page_token="page-2",
            )
        return NearbyPage(
            places=[
                PlaceCandidate(
                    place_id="cafe-3",
                    name="Cafe Three",
                    location=GeoPoint(latitude=near.latitude + 0.02, longitude=near.longitude),
                    types=["cafe"],
                )
            ]
        )


def fast_settings():
    return EnrichmentConfig(rating_timeout_seconds=0.05, detail_timeout_seconds=0.05)


def make_orchestrator(catalog=None, search=None):
    updates = []
    published = []
    orchestrator = EnrichmentOrchestrator(
        catalog or FakeCatalog(),
        search or FakeSearch(),
        settings=fast_settings(),
        on_update=updates.append,
        on_publish=lambda generation, places: published.append((generation, list(places))),
    )
    return orchestrator, updates, published


def test_enrich_trails_end_to_end():
    orchestrator, updates, published = make_orchestrator()

    places = asyncio.run(orchestrator.enrich_trails(HERE))

    assert [place.place_id for place in places] == ["toka", "eden", "slow"]
    assert orchestrator.state is BatchState.SETTLED
    assert orchestrator.places is places

    generation, placeholders = published[0]
    assert generation == 1
    assert [place.place_id for place in placeholders] == ["toka", "eden", "slow"]
    assert all(place.rating is None and place.official_link is None for place in placeholders)

    by_index = {update.index: update for update in updates}
    assert set(by_index) == {0, 1}
    assert all(update.generation == 1 for update in updates)

    toka = by_index[0].place
    assert toka.rating == 4.6
    assert toka.rating_count == 150
    assert toka.official_link == "https://www.doc.govt.nz/toka"

    eden = by_index[1].place
    assert eden.rating is None
    assert eden.walk_duration == "45 min"

    slow = places[2]
    assert slow.rating is None
    assert slow.official_link is None


def test_placed_trails_are_classified():
    orchestrator, _, _ = make_orchestrator()

    places = asyncio.run(orchestrator.enrich_trails(HERE))

    assert places[0].category is Category.HIKING
    assert places[0].icon == "walk-outline"
    assert places[2].icon == "trail-sign-outline"
    assert places[2].types == ["hiking_trail", "day-walk"]
    assert places[0].vicinity == "Auckland"
    assert 1.5 < places[1].distance_km < 2.5


def test_search_queries_are_normalized():
    search = FakeSearch()
    orchestrator, _, _ = make_orchestrator(search=search)

    asyncio.run(orchestrator.enrich_trails(HERE))

    assert sorted(search.queries) == ["mount eden summit hike", "slow ridge hike", "tokatoka hike"]


def test_search_text_filters_listing():
    orchestrator, _, _ = make_orchestrator()

    places = asyncio.run(orchestrator.enrich_trails(HERE, "eden"))

    assert [place.place_id for place in places] == ["eden"]


def test_top_n_caps_the_batch():
    orchestrator, _, _ = make_orchestrator()
    orchestrator.settings = EnrichmentConfig(top_n=1, rating_timeout_seconds=0.05, detail_timeout_seconds=0.05)

    places = asyncio.run(orchestrator.enrich_trails(HERE))

    assert [place.place_id for place in places] == ["toka"]


def test_stale_updates_are_discarded():
    async def scenario():
        gate = asyncio.Event()
        search = FakeSearch(gate=gate)
        orchestrator, updates, published = make_orchestrator(search=search)

        hiking = asyncio.create_task(orchestrator.enrich_trails(HERE))
        await search.started.wait()
        food = await orchestrator.browse_nearby(HERE, Category.FOOD)
        gate.set()
        await hiking
        return orchestrator, updates, published, food

    orchestrator, updates, published, food = asyncio.run(scenario())

    assert orchestrator.generation == 2
    assert updates == []
    assert orchestrator.places == food
    assert published[-1][0] == 2
    assert orchestrator.state is BatchState.SETTLED
    stale = ItemUpdate(generation=1, index=0, place=food[0])
    assert not orchestrator.accepts(stale)


def test_catalog_failure_leaves_batch_idle():
    catalog = FakeCatalog(error=ProviderUnavailable("doc-tracks", "HTTP 503"))
    orchestrator, updates, published = make_orchestrator(catalog=catalog)

    with pytest.raises(ProviderUnavailable):
        asyncio.run(orchestrator.enrich_trails(HERE))

    assert orchestrator.state is BatchState.IDLE
    assert orchestrator.places == []
    assert updates == []
    assert published == []


def test_repeat_batch_served_from_cache():
    catalog = FakeCatalog()
    orchestrator, _, published = make_orchestrator(catalog=catalog)

    async def twice():
        first = await orchestrator.enrich_trails(HERE)
        second = await orchestrator.enrich_trails(HERE)
        return first, second

    first, second = asyncio.run(twice())

    assert catalog.fetches == 1
    assert second == first
    assert second[0].rating == 4.6
    assert orchestrator.generation == 2
    assert orchestrator.state is BatchState.SETTLED
    assert len(published) == 2


def test_browse_nearby_and_load_more():
    orchestrator, _, _ = make_orchestrator()

    async def browse():
        first = list(await orchestrator.browse_nearby(HERE, "food"))
        token = orchestrator.next_page_token
        more = await orchestrator.load_more(HERE, "food")
        again = await orchestrator.load_more(HERE, "food")
        return first, token, more, again

    first, token, more, again = asyncio.run(browse())

    assert [place.name for place in first] == ["Bakery Two", "Cafe One"]
    assert first[0].category is Category.FOOD
    assert first[0].icon == "storefront-outline"
    assert first[1].rating == 4.2
    assert token == "page-2"
    assert [place.name for place in more] == ["Bakery Two", "Cafe One", "Cafe Three"]
    assert orchestrator.next_page_token is None
    assert again == more


def test_browse_hiking_delegates_to_trails():
    orchestrator, _, _ = make_orchestrator()

    places = asyncio.run(orchestrator.browse_nearby(HERE, Category.HIKING))

    assert [place.place_id for place in places] == ["toka", "eden", "slow"]


def test_retry_clears_caches():
    search = FakeSearch()
    orchestrator, _, _ = make_orchestrator(search=search)
    asyncio.run(orchestrator.browse_nearby(HERE, Category.FOOD))
    search.cache.put("text-search", "eden hike", [], HERE)

    assert len(orchestrator.cache) == 1

    orchestrator.retry()

    assert len(orchestrator.cache) == 0
    assert len(search.cache) == 0


def test_repeat_browse_served_from_cache():
    search = FakeSearch()
    orchestrator, _, published = make_orchestrator(search=search)

    async def twice():
        first = list(await orchestrator.browse_nearby(HERE, "food"))
        orchestrator.next_page_token = None
        second = await orchestrator.browse_nearby(HERE, "food")
        return first, second

    first, second = asyncio.run(twice())

    assert search.nearby_calls == 1
    assert second == first
    assert orchestrator.next_page_token == "page-2"
    assert orchestrator.state is BatchState.SETTLED
    assert orchestrator.generation == 2
    assert len(published) == 2


def test_moving_away_refetches_trails():
    catalog = FakeCatalog()
    orchestrator, _, _ = make_orchestrator(catalog=catalog)
    moved = GeoPoint(latitude=HERE.latitude + 0.02, longitude=HERE.longitude)

    async def both():
        await orchestrator.enrich_trails(HERE)
        return await orchestrator.enrich_trails(moved)

    places = asyncio.run(both())

    assert catalog.fetches == 2
    assert [place.place_id for place in places] == ["toka", "eden", "slow"]
    assert orchestrator.state is BatchState.SETTLED
