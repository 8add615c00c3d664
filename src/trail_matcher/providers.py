from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

import httpx
from loguru import logger
from pydantic import ValidationError

from .cache import QueryCache
from .errors import ProviderUnavailable
from .models import GeoPoint, NearbyPage, PlaceCandidate, TrailDetail, TrailRecord

TEXT_SEARCH_CATEGORY = "text-search"


class TrailCatalog(ABC):
    @abstractmethod
    async def fetch_trails(self) -> list[TrailRecord]:
        ...

    @abstractmethod
    async def fetch_detail(self, trail_id: str) -> Optional[TrailDetail]:
        ...


class PlacesSearch(ABC):
    @abstractmethod
    async def search_text(self, query: str, near: GeoPoint, radius_km: float) -> list[PlaceCandidate]:
        ...

    @abstractmethod
    async def search_nearby(
        self,
        near: GeoPoint,
        radius_km: float,
        types: Optional[Sequence[str]] = None,
        keyword: Optional[str] = None,
        page_token: Optional[str] = None,
    ) -> NearbyPage:
        ...


class _HttpProvider:
    name = "provider"

    def __init__(self, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.timeout = timeout
        self.transport = transport

    async def _get_json(self, url: str, params: dict[str, str] | None = None, headers: dict[str, str] | None = None) -> Any:
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.get(url, params=params, headers=headers)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 429:
                raise ProviderUnavailable(self.name, "rate limited (429)") from exc
            if status in (401, 403):
                raise ProviderUnavailable(self.name, f"API key rejected ({status})") from exc
            raise ProviderUnavailable(self.name, f"HTTP {status}") from exc
        except httpx.HTTPError as exc:
            raise ProviderUnavailable(self.name, f"request failed: {exc!r}") from exc
        except ValueError as exc:
            raise ProviderUnavailable(self.name, "response was not valid JSON") from exc


class DocTrailCatalog(_HttpProvider, TrailCatalog):
    """DOC (Department of Conservation) tracks API."""

    name = "doc-tracks"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.doc.govt.nz/v1",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(timeout=timeout, transport=transport)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            raise ProviderUnavailable(self.name, "API key not configured")
        return {"x-api-key": self.api_key}

    async def fetch_trails(self) -> list[TrailRecord]:
        data = await self._get_json(f"{self.base_url}/tracks", headers=self._headers())
        if not isinstance(data, list):
            raise ProviderUnavailable(self.name, "unexpected tracks payload")
        trails: list[TrailRecord] = []
        for item in data:
            try:
                trails.append(
                    TrailRecord(
                        trail_id=str(item["assetId"]),
                        name=str(item.get("name") or ""),
                        easting=float(item["x"]),
                        northing=float(item["y"]),
                        duration_categories=item.get("walkDurationCategory") or [],
                        regions=item.get("region") or [],
                        thumbnail=item.get("introductionThumbnail"),
                    )
                )
            except (KeyError, TypeError, ValueError, ValidationError) as exc:
                logger.warning("Skipping malformed DOC track {item}: {error}", item=item.get("assetId"), error=exc)
        logger.info("Fetched {count} DOC tracks", count=len(trails))
        return trails

    async def fetch_detail(self, trail_id: str) -> Optional[TrailDetail]:
        try:
            data = await self._get_json(f"{self.base_url}/tracks/{trail_id}/detail", headers=self._headers())
        except ProviderUnavailable as exc:
            if isinstance(exc.__cause__, httpx.HTTPStatusError) and exc.__cause__.response.status_code == 404:
                return None
            raise
        if not isinstance(data, dict):
            return None
        return TrailDetail(
            official_link=data.get("staticLink"),
            distance_text=data.get("distance"),
            duration_text=data.get("walkDuration"),
            thumbnail=data.get("introductionThumbnail"),
        )


class GooglePlacesClient(_HttpProvider, PlacesSearch):
    """Google Places (legacy web service) text and nearby search."""

    name = "google-places"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://maps.googleapis.com/maps/api/place",
        timeout: float = 10.0,
        cache: QueryCache[PlaceCandidate] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(timeout=timeout, transport=transport)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.cache = cache

    async def search_text(self, query: str, near: GeoPoint, radius_km: float) -> list[PlaceCandidate]:
        if self.cache is not None:
            cached = self.cache.get(TEXT_SEARCH_CATEGORY, query, near)
            if cached is not None:
                logger.debug("Text search cache hit for {query!r}", query=query)
                return list(cached.places)

        data = await self._call(
            "textsearch/json",
            {
                "query": query,
                "location": f"{near.latitude},{near.longitude}",
                "radius": str(int(radius_km * 1000)),
            },
        )
        results = self._to_candidates(data.get("results") or [])
        if self.cache is not None:
            self.cache.put(TEXT_SEARCH_CATEGORY, query, results, near)
        return results

    async def search_nearby(
        self,
        near: GeoPoint,
        radius_km: float,
        types: Optional[Sequence[str]] = None,
        keyword: Optional[str] = None,
        page_token: Optional[str] = None,
    ) -> NearbyPage:
        params = {
            "location": f"{near.latitude},{near.longitude}",
            "radius": str(int(radius_km * 1000)),
        }
        if types:
            params["type"] = "|".join(types)
        if keyword and keyword.strip():
            params["keyword"] = keyword.strip()
        if page_token:
            params["pagetoken"] = page_token
        data = await self._call("nearbysearch/json", params)
        return NearbyPage(
            places=self._to_candidates(data.get("results") or []),
            next_page_token=data.get("next_page_token"),
        )

    async def _call(self, path: str, params: dict[str, str]) -> dict:
        if not self.api_key:
            raise ProviderUnavailable(self.name, "API key not configured")
        data = await self._get_json(f"{self.base_url}/{path}", params={**params, "key": self.api_key})
        status = data.get("status") if isinstance(data, dict) else None
        if status not in ("OK", "ZERO_RESULTS"):
            message = data.get("error_message", "") if isinstance(data, dict) else ""
            raise ProviderUnavailable(self.name, f"{status}: {message}".rstrip(": "))
        return data

    def _to_candidates(self, results: list[dict]) -> list[PlaceCandidate]:
        candidates: list[PlaceCandidate] = []
        for item in results:
            try:
                location = item["geometry"]["location"]
                photos = item.get("photos") or []
                candidates.append(
                    PlaceCandidate(
                        place_id=str(item.get("place_id", "")),
                        name=item["name"],
                        location=GeoPoint(latitude=float(location["lat"]), longitude=float(location["lng"])),
                        types=item.get("types") or [],
                        rating=item.get("rating"),
                        rating_count=item.get("user_ratings_total"),
                        vicinity=item.get("vicinity") or item.get("formatted_address"),
                        photo_reference=photos[0].get("photo_reference") if photos else None,
                    )
                )
            except (KeyError, TypeError, ValueError, ValidationError) as exc:
                logger.warning("Skipping malformed place result {name!r}: {error}", name=item.get("name"), error=exc)
        return candidates
