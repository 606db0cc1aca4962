"""Forward geocoding of free-text place names using OpenStreetMap Nominatim.

The resolver turns whatever the user typed in the location box into a
Coordinate. An empty box or the "my current location" sentinel short-circuits
to the caller's fallback without touching the network.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional

from domain.errors import ResolutionFailure
from domain.models import DEVICE_LOCATION_SENTINEL, Coordinate
from services.http import default_headers, fetch_json
from settings import settings

logger = logging.getLogger(__name__)
SERVICE_NAME = "nominatim"


@dataclass(frozen=True)
class GeocodeMatch:
    coordinate: Coordinate
    display_name: Optional[str] = None


def is_device_location_term(term: Optional[str]) -> bool:
    """True when the term means "use the device location" (empty or the sentinel)."""
    if term is None:
        return True
    cleaned = term.strip()
    return not cleaned or cleaned.lower() == DEVICE_LOCATION_SENTINEL


def _normalize_term(term: str) -> str:
    return " ".join(term.split()).lower()


def _parse_match(item: Any) -> GeocodeMatch:
    try:
        coordinate = Coordinate(float(item["lat"]), float(item["lon"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise ResolutionFailure(SERVICE_NAME, f"malformed search result: {exc}") from exc
    return GeocodeMatch(coordinate=coordinate, display_name=item.get("display_name"))


@lru_cache(maxsize=512)
def _search_first(base_url: str, query: str) -> Optional[GeocodeMatch]:
    """Cached single-result Nominatim search. Failures raise and are never cached."""
    params = {
        "q": query,
        "format": "jsonv2",
        "limit": "1",
    }
    data = fetch_json(
        SERVICE_NAME,
        "GET",
        f"{base_url}/search",
        params=params,
        headers=default_headers(settings.NOMINATIM_REFERER),
        min_interval=settings.NOMINATIM_MIN_INTERVAL,
        failure_cls=ResolutionFailure,
    )
    if not isinstance(data, list):
        raise ResolutionFailure(SERVICE_NAME, "unexpected payload: expected a list of results")
    if not data:
        logger.info("Nominatim found no match for %r", query)
        return None
    match = _parse_match(data[0])
    logger.debug("Nominatim resolved %r to %s", query, match.coordinate)
    return match


class LocationResolver:
    def __init__(self, base_url: Optional[str] = None):
        self.base_url = (base_url or settings.NOMINATIM_BASE_URL).rstrip("/")

    def geocode(self, term: str) -> Optional[GeocodeMatch]:
        """First Nominatim match for term, or None when nothing matches."""
        return _search_first(self.base_url, _normalize_term(term))

    def resolve(self, term: Optional[str], fallback: Optional[Coordinate]) -> Optional[Coordinate]:
        """
        Resolve a location term to a coordinate.

        Returns fallback for the device-location sentinel (or an empty term),
        None when the geocoder reports no match, and raises ResolutionFailure
        on network or parse errors.
        """
        if is_device_location_term(term):
            return fallback
        match = self.geocode(term)  # type: ignore[arg-type]
        return match.coordinate if match else None


_default_location_resolver: Optional[LocationResolver] = None


def get_default_location_resolver() -> LocationResolver:
    global _default_location_resolver
    if _default_location_resolver is None:
        _default_location_resolver = LocationResolver()
    return _default_location_resolver
