from __future__ import annotations

import math
from functools import lru_cache

from pyproj import Transformer

from .models import GeoPoint

EARTH_RADIUS_KM = 6371.0

# New Zealand Transverse Mercator 2000, the grid used by the DOC tracks API.
NZTM_CRS = "EPSG:2193"
WGS84_CRS = "EPSG:4326"


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle (haversine) distance in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_between(a: GeoPoint, b: GeoPoint) -> float:
    return distance_km(a.latitude, a.longitude, b.latitude, b.longitude)


@lru_cache(maxsize=1)
def _nztm_transformer() -> Transformer:
    return Transformer.from_crs(NZTM_CRS, WGS84_CRS, always_xy=True)


def projected_to_geographic(easting: float, northing: float) -> GeoPoint:
    """Convert an NZTM2000 easting/northing pair to WGS84 latitude/longitude."""
    lon, lat = _nztm_transformer().transform(easting, northing)
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise ValueError(f"Cannot project NZTM coordinate ({easting}, {northing})")
    return GeoPoint(latitude=lat, longitude=lon)
