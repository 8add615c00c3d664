from __future__ import annotations

import argparse
from pathlib import Path
from typing import Sequence

from loguru import logger

from .geodesy import projected_to_geographic
from .validator import ValidationError, run_validation


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trail-validate",
        description="Check a trail-matcher config file and the NZTM projection",
    )
    parser.add_argument("config", type=Path, help="Path to the YAML config file")
    parser.add_argument("--no-keys", action="store_true", help="Skip the API key check")
    parser.add_argument(
        "--point",
        nargs=2,
        type=float,
        metavar=("EASTING", "NORTHING"),
        help="Also print where an NZTM2000 coordinate lands in WGS84",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    try:
        run_validation(args.config, check_keys=not args.no_keys)
        if args.point:
            easting, northing = args.point
            point = projected_to_geographic(easting, northing)
            logger.info(
                "NZTM {easting:.0f}, {northing:.0f} -> {lat:.6f}, {lon:.6f}",
                easting=easting,
                northing=northing,
                lat=point.latitude,
                lon=point.longitude,
            )
    except (ValidationError, ValueError) as exc:
        logger.error(str(exc))
        raise SystemExit(1)


if __name__ == "__main__":
    main()
