"""
Restaurant search against an Overpass (OSM) interpreter.
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional

from domain.errors import UpstreamFailure
from domain.models import UNNAMED_PLACE, Coordinate, PlaceCandidate
from services.geo_distance import compute_centroid
from services.http import default_headers, fetch_json
from settings import settings

SERVICE_NAME = "overpass"
VENUE_CATEGORIES = ("restaurant", "fast_food")
ELEMENT_TYPES = ("node", "way")


def _escape_term(term: str) -> str:
    """Escape a user term for use inside a double-quoted Overpass regex."""
    return term.replace("\\", "\\\\").replace('"', '\\"')


def build_overpass_query(
    origin: Coordinate,
    radius_m: int,
    text_term: Optional[str] = None,
    timeout_s: int = 25,
) -> str:
    """
    Build the Overpass QL union for restaurants around origin.

    With a text term the union holds one statement per element type and per
    tag, so a venue matching on name OR cuisine is returned.
    """
    amenity = '["amenity"~"%s"]' % "|".join(VENUE_CATEGORIES)
    around = f"(around:{int(radius_m)},{origin.latitude},{origin.longitude})"
    term = (text_term or "").strip()

    statements: List[str] = []
    for element in ELEMENT_TYPES:
        if term:
            escaped = _escape_term(term)
            for tag in ("name", "cuisine"):
                statements.append(f'{element}{amenity}["{tag}"~"{escaped}",i]{around};')
        else:
            statements.append(f"{element}{amenity}{around};")

    body = "\n".join(f"  {s}" for s in statements)
    return f"[out:json][timeout:{int(timeout_s)}];\n(\n{body}\n);\nout center;"


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _to_coordinate(lat: Any, lon: Any) -> Optional[Coordinate]:
    if lat is None or lon is None:
        return None
    try:
        return Coordinate(float(lat), float(lon))
    except (TypeError, ValueError):
        return None


def _element_coordinate(element: dict) -> Optional[Coordinate]:
    """Point position, centre, geometry centroid or bounds midpoint, in that order."""
    coordinate = _to_coordinate(element.get("lat"), element.get("lon"))
    if coordinate is None:
        center = _as_dict(element.get("center"))
        coordinate = _to_coordinate(center.get("lat"), center.get("lon"))
    if coordinate is None:
        geometry = element.get("geometry")
        points = []
        for g in geometry if isinstance(geometry, list) else []:
            g = _as_dict(g)
            vertex = _to_coordinate(g.get("lat"), g.get("lon"))
            if vertex is not None:
                points.append(vertex.as_tuple())
        centroid = compute_centroid(points)
        if centroid:
            coordinate = _to_coordinate(*centroid)
    if coordinate is None:
        bounds = _as_dict(element.get("bounds"))
        try:
            coordinate = _to_coordinate(
                (float(bounds["minlat"]) + float(bounds["maxlat"])) / 2.0,
                (float(bounds["minlon"]) + float(bounds["maxlon"])) / 2.0,
            )
        except (KeyError, TypeError, ValueError):
            return None
    return coordinate


def _tag(tags: dict, key: str) -> Optional[str]:
    value = tags.get(key)
    if not isinstance(value, str):
        return None
    return value.strip() or None


def element_to_candidate(element: Any) -> Optional[PlaceCandidate]:
    """
    Convert one Overpass element; None when it has no usable id or position.

    Malformed fields (non-object tags, non-numeric positions) are treated as
    missing, so one bad element never fails the whole search.
    """
    if not isinstance(element, dict) or element.get("id") is None:
        return None
    coordinate = _element_coordinate(element)
    if coordinate is None:
        return None
    tags = _as_dict(element.get("tags"))
    cuisine = _tag(tags, "cuisine")
    name = _tag(tags, "name") or cuisine or UNNAMED_PLACE
    return PlaceCandidate(
        id=f"{element.get('type', 'node')}/{element['id']}",
        name=name,
        cuisine=cuisine,
        coordinate=coordinate,
    )


class PlaceSearchClient:
    def __init__(
        self,
        url: Optional[str] = None,
        query_timeout_s: Optional[int] = None,
        http_timeout_s: Optional[float] = None,
    ):
        self.url = url or settings.OVERPASS_URL
        self.query_timeout_s = query_timeout_s or settings.OVERPASS_QUERY_TIMEOUT
        self.http_timeout_s = http_timeout_s or settings.HTTP_TIMEOUT_SECONDS
        self.logger = logging.getLogger(__name__)

    def search(
        self,
        origin: Coordinate,
        radius_m: int,
        text_term: Optional[str] = None,
    ) -> List[PlaceCandidate]:
        """Restaurants within radius_m of origin, in upstream order."""
        query = build_overpass_query(origin, radius_m, text_term, self.query_timeout_s)
        data = fetch_json(
            SERVICE_NAME,
            "POST",
            self.url,
            data={"data": query},
            headers=default_headers(),
            timeout=self.http_timeout_s,
        )
        elements = data.get("elements") if isinstance(data, dict) else None
        if not isinstance(elements, list):
            raise UpstreamFailure(SERVICE_NAME, "unexpected payload: missing 'elements' list")

        results: List[PlaceCandidate] = []
        for element in elements:
            candidate = element_to_candidate(element)
            if candidate is not None:
                results.append(candidate)
        self.logger.debug(
            "PlaceSearchClient.search: lat=%.6f lon=%.6f radius_m=%d term=%r got %d/%d usable elements",
            origin.latitude,
            origin.longitude,
            radius_m,
            text_term,
            len(results),
            len(elements),
        )
        return results


_default_place_search_client: Optional[PlaceSearchClient] = None


def get_default_place_search_client() -> PlaceSearchClient:
    global _default_place_search_client
    if _default_place_search_client is None:
        _default_place_search_client = PlaceSearchClient()
    return _default_place_search_client
