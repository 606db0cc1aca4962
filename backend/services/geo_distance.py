from __future__ import annotations

import math
from typing import Iterable, Optional, Tuple

from domain.models import Coordinate

EARTH_RADIUS_KM = 6371.0


def haversine_km(a: Coordinate, b: Coordinate) -> float:
    """Compute great-circle distance in kilometers between two coordinates."""
    dlat = math.radians(b.latitude - a.latitude)
    dlon = math.radians(b.longitude - a.longitude)
    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(a.latitude))
        * math.cos(math.radians(b.latitude))
        * math.sin(dlon / 2) ** 2
    )
    # rounding can push h a hair past 1 for antipodal points
    h = min(1.0, max(0.0, h))
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def format_distance_km(distance_km: float) -> str:
    return f"{distance_km:.2f} km"


def compute_centroid(points: Iterable[Tuple[float, float]]) -> Optional[Tuple[float, float]]:
    """Compute the centroid of a collection of (lat, lon) points."""
    pts = list(points)
    if not pts:
        return None
    lat_sum = 0.0
    lon_sum = 0.0
    for lat, lon in pts:
        lat_sum += lat
        lon_sum += lon
    return (lat_sum / len(pts), lon_sum / len(pts))
