"""
Walking routes from an OSRM routing service.

OSRM speaks GeoJSON, which orders every position as [longitude, latitude].
Everything else in this codebase is (latitude, longitude), so the geometry is
transposed here before it leaves the module.
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional

from domain.errors import NoRouteFound, UpstreamFailure
from domain.models import Coordinate, RoutePath, RouteRequest
from services.http import default_headers, fetch_json
from settings import settings

logger = logging.getLogger(__name__)
SERVICE_NAME = "osrm"
WALKING_PROFILE = "walking"


def _lnglat(coord: Coordinate) -> str:
    return f"{coord.longitude},{coord.latitude}"


def _geometry_to_points(geometry: Any) -> List[Coordinate]:
    """Transpose GeoJSON [lon, lat] positions into Coordinates."""
    if not isinstance(geometry, dict) or not isinstance(geometry.get("coordinates"), list):
        raise UpstreamFailure(SERVICE_NAME, "route geometry is not a GeoJSON LineString")
    points: List[Coordinate] = []
    try:
        for position in geometry["coordinates"]:
            lon, lat = position[0], position[1]
            points.append(Coordinate(float(lat), float(lon)))
    except (IndexError, TypeError, ValueError) as exc:
        raise UpstreamFailure(SERVICE_NAME, f"malformed route geometry: {exc}") from exc
    return points


def _as_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class RouteResolver:
    def __init__(self, base_url: Optional[str] = None, profile: str = WALKING_PROFILE):
        self.base_url = (base_url or settings.OSRM_BASE_URL).rstrip("/")
        self.profile = profile

    def route_url(self, req: RouteRequest) -> str:
        return (
            f"{self.base_url}/route/v1/{self.profile}/"
            f"{_lnglat(req.origin)};{_lnglat(req.destination)}"
        )

    def resolve_route(self, req: RouteRequest) -> RoutePath:
        """
        Fetch the walking route for req.

        Raises NoRouteFound when the service answers without a usable route and
        UpstreamFailure on transport, status or payload errors.
        """
        data = fetch_json(
            SERVICE_NAME,
            "GET",
            self.route_url(req),
            params={"geometries": "geojson", "overview": "full"},
            headers=default_headers(),
        )
        if not isinstance(data, dict):
            raise UpstreamFailure(SERVICE_NAME, "unexpected payload: expected an object")

        code = data.get("code")
        routes = data.get("routes") or []
        if not isinstance(routes, list):
            raise UpstreamFailure(SERVICE_NAME, "unexpected payload: 'routes' is not a list")
        if code != "Ok" or not routes:
            logger.info("OSRM returned no route (code=%s): %s", code, data.get("message"))
            raise NoRouteFound(data.get("message") or f"routing service returned {code}", code=code)

        route = routes[0]
        if not isinstance(route, dict):
            raise UpstreamFailure(SERVICE_NAME, "unexpected route entry in payload")
        points = _geometry_to_points(route.get("geometry"))
        if len(points) < 2:
            raise NoRouteFound("route geometry has fewer than two points", code=code)
        logger.debug(
            "OSRM route %s -> %s: %d points, %s m",
            req.origin.as_tuple(),
            req.destination.as_tuple(),
            len(points),
            route.get("distance"),
        )
        return RoutePath(
            points=points,
            distance_m=_as_float(route.get("distance")),
            duration_s=_as_float(route.get("duration")),
        )


_default_route_resolver: Optional[RouteResolver] = None


def get_default_route_resolver() -> RouteResolver:
    global _default_route_resolver
    if _default_route_resolver is None:
        _default_route_resolver = RouteResolver()
    return _default_route_resolver
