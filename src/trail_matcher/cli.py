from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Sequence

import pandas as pd
from loguru import logger

from .config import load_config
from .errors import ProviderUnavailable
from .models import Category, EnrichedPlace, GeoPoint
from .orchestrator import EnrichmentOrchestrator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trail-matcher",
        description="Find nearby DOC tracks and enrich them with Google Places ratings",
    )
    parser.add_argument("config", type=Path, help="Path to the YAML config file")
    parser.add_argument("--lat", type=float, required=True, help="Current latitude")
    parser.add_argument("--lon", type=float, required=True, help="Current longitude")
    parser.add_argument("--search", default="", help="Filter by name or region")
    parser.add_argument(
        "--category",
        choices=[category.value for category in Category],
        default=Category.HIKING.value,
        help="Category to browse, default hiking",
    )
    parser.add_argument("--output", type=Path, help="Export path (.csv or .xlsx), overrides config")
    return parser


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def export(places: Sequence[EnrichedPlace], path: Path) -> None:
    rows = []
    for place in places:
        row = place.model_dump(exclude={"location"})
        row["latitude"] = place.location.latitude
        row["longitude"] = place.location.longitude
        row["category"] = place.category.value
        rows.append(row)
    df = pd.DataFrame(rows)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() in {".xlsx", ".xls"}:
        df.to_excel(path, index=False)
    else:
        df.to_csv(path, index=False, encoding="utf-8")
    logger.info("Results written to {path}", path=path)


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = load_config(args.config)
    configure_logging(config.runtime.log_level)

    orchestrator = EnrichmentOrchestrator.from_config(config)
    location = GeoPoint(latitude=args.lat, longitude=args.lon)
    logger.info("Browsing {category} near {lat}, {lon}", category=args.category, lat=args.lat, lon=args.lon)
    try:
        places = asyncio.run(orchestrator.browse_nearby(location, args.category, args.search))
    except ProviderUnavailable as exc:
        orchestrator.retry()
        logger.error("Failed to load places: {error}", error=exc)
        raise SystemExit(1)

    export(places, args.output or config.output_file)
    rated = sum(1 for place in places if place.rating is not None)
    logger.info("Done, {count} places ({rated} rated)", count=len(places), rated=rated)


if __name__ == "__main__":
    main()
