from __future__ import annotations

from pathlib import Path

from loguru import logger

from .config import MatcherConfig, load_config
from .geodesy import distance_km, projected_to_geographic

# Auckland Domain in NZTM2000 and WGS84
REFERENCE_POINT = (1758229.0, 5919188.0)
REFERENCE_LATLON = (-36.860, 174.775)
REFERENCE_TOLERANCE_KM = 1.0


class ValidationError(Exception):
    ...


def validate_keys(config: MatcherConfig) -> None:
    missing = []
    if not config.providers.doc_api_key:
        missing.append("providers.doc_api_key (or DOC_API_KEY)")
    if not config.providers.google_api_key:
        missing.append("providers.google_api_key (or GOOGLE_PLACES_API_KEY)")
    if missing:
        raise ValidationError(f"Missing API keys: {', '.join(missing)}")
    logger.info("API keys present")


def validate_thresholds(config: MatcherConfig) -> None:
    scoring = config.scoring
    if scoring.rated_threshold > scoring.overall_threshold:
        raise ValidationError(
            f"scoring.rated_threshold ({scoring.rated_threshold}) must not exceed "
            f"scoring.overall_threshold ({scoring.overall_threshold})"
        )
    logger.info(
        "Thresholds rated={rated} overall={overall}",
        rated=scoring.rated_threshold,
        overall=scoring.overall_threshold,
    )


def validate_projection() -> None:
    point = projected_to_geographic(*REFERENCE_POINT)
    error = distance_km(point.latitude, point.longitude, *REFERENCE_LATLON)
    if error > REFERENCE_TOLERANCE_KM:
        raise ValidationError(
            f"NZTM projection is off by {error:.1f} km at the reference point ({point.latitude}, {point.longitude})"
        )
    logger.info("Projection check passed: {lat:.4f}, {lon:.4f}", lat=point.latitude, lon=point.longitude)


def run_validation(config_path: Path, check_keys: bool = True) -> None:
    cfg = load_config(config_path)
    if check_keys:
        validate_keys(cfg)
    validate_thresholds(cfg)
    validate_projection()
    logger.info("Config and projection checks complete")
