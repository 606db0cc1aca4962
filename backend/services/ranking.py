from __future__ import annotations

from typing import Iterable, List

from domain.models import Coordinate, PlaceCandidate, RankedPlace
from services.geo_distance import format_distance_km, haversine_km

DEFAULT_LIMIT = 10


def rank(
    origin: Coordinate,
    candidates: Iterable[PlaceCandidate],
    limit: int = DEFAULT_LIMIT,
) -> List[RankedPlace]:
    """
    Order candidates by distance from origin and keep the nearest `limit`.

    Candidates without a coordinate are skipped. The sort is stable, so equal
    distances keep upstream order. An empty list means "no results".
    """
    measured = [
        (haversine_km(origin, c.coordinate), c)
        for c in candidates
        if c.coordinate is not None
    ]
    measured.sort(key=lambda pair: pair[0])
    return [
        RankedPlace(
            id=c.id,
            name=c.name,
            coordinate=c.coordinate,  # type: ignore[arg-type]
            distance_km=dist,
            display_distance=format_distance_km(dist),
            cuisine=c.cuisine,
        )
        for dist, c in measured[: max(0, limit)]
    ]
