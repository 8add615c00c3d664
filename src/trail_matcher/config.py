from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from .scorer import ScoringWeights


class ProviderConfig(BaseModel):
    doc_api_key: str = Field(default="", validate_default=True)
    doc_base_url: str = "https://api.doc.govt.nz/v1"
    google_api_key: str = Field(default="", validate_default=True)
    google_base_url: str = "https://maps.googleapis.com/maps/api/place"
    timeout_seconds: float = 10.0

    @field_validator("doc_api_key", mode="before")
    @classmethod
    def doc_key_from_env(cls, value: str | None) -> str:
        return value or os.getenv("DOC_API_KEY", "")

    @field_validator("google_api_key", mode="before")
    @classmethod
    def google_key_from_env(cls, value: str | None) -> str:
        return value or os.getenv("GOOGLE_PLACES_API_KEY", "")


class ScoringConfig(BaseModel):
    name_weight: float = 30.0
    category_bonus: float = 10.0
    rating_presence: float = 30.0
    rated_threshold: float = 35.0
    overall_threshold: float = 50.0

    def weights(self) -> ScoringWeights:
        return ScoringWeights(
            name_weight=self.name_weight,
            category_bonus=self.category_bonus,
            rating_presence=self.rating_presence,
        )


class CacheConfig(BaseModel):
    ttl_seconds: float = 300.0
    max_distance_km: float = 1.0
    cache_text_search: bool = True


class EnrichmentConfig(BaseModel):
    radius_km: float = 50.0
    top_n: int = Field(default=20, ge=1)
    rating_timeout_seconds: float = 2.0
    # None leaves detail fetches bounded only by the provider's HTTP timeout
    detail_timeout_seconds: Optional[float] = None
    text_search_radius_km: float = 10.0
    max_concurrency: int = Field(default=8, ge=1)


class RuntimeConfig(BaseModel):
    log_level: str = "INFO"


class MatcherConfig(BaseModel):
    output_file: Path = Path("output/enriched_trails.csv")

    providers: ProviderConfig = Field(default_factory=ProviderConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    enrichment: EnrichmentConfig = Field(default_factory=EnrichmentConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)

    @field_validator("output_file", mode="before")
    @classmethod
    def ensure_output_parent(cls, value: Path | str) -> Path:
        path = Path(value)
        if not path.parent.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
        return path


def load_config(path: str | Path) -> MatcherConfig:
    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    return MatcherConfig(**data)
