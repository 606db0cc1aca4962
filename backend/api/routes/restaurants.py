"""
Restaurant search, geocoding and routing API routes.

These endpoints are stateless: each call runs one resolve/search/rank pass
(or one route lookup) and returns the outcome, advisory notices included.
"""
import logging
from typing import List, Optional, Sequence
from urllib.parse import quote

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from domain.errors import NoRouteFound, ResolutionFailure, UpstreamFailure
from domain.models import (
    Coordinate,
    LocationErrorReason,
    Notice,
    RankedPlace,
    RoutePath,
    RouteRequest,
)
from services.device_location import PushLocationProvider
from services.geocoding import get_default_location_resolver, is_device_location_term
from services.orchestrator import NearbySearchOrchestrator
from services.routing import get_default_route_resolver

router = APIRouter()
logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE_BASE = "https://placehold.co/150x100/FFD700/000000"
DEFAULT_CUISINE_LABEL = "Various"
SEARCH_TIMEOUT_SECONDS = 60.0


class CoordinateModel(BaseModel):
    latitude: float
    longitude: float


class NoticeResponse(BaseModel):
    kind: str
    message: str


class RestaurantResponse(BaseModel):
    id: str
    name: str
    cuisine: str
    latitude: float
    longitude: float
    distance_km: float
    display_distance: str
    image_url: str


class RouteResponse(BaseModel):
    points: List[List[float]]
    distance_m: Optional[float] = None
    duration_s: Optional[float] = None


class RestaurantSearchResponse(BaseModel):
    origin: Optional[CoordinateModel] = None
    origin_label: Optional[str] = None
    searched_location: Optional[CoordinateModel] = None
    restaurants: List[RestaurantResponse]
    notices: List[NoticeResponse]


class GeocodeResponse(BaseModel):
    query: str
    latitude: float
    longitude: float
    display_name: Optional[str] = None


def placeholder_image_url(name: str) -> str:
    """Placeholder card image labelled with the name's initials."""
    initials = "".join(word[0] for word in name.split() if word)
    return f"{PLACEHOLDER_IMAGE_BASE}?text={quote(initials)}"


def coordinate_to_model(coord: Optional[Coordinate]) -> Optional[CoordinateModel]:
    if coord is None:
        return None
    return CoordinateModel(latitude=coord.latitude, longitude=coord.longitude)


def place_to_response(place: RankedPlace) -> RestaurantResponse:
    return RestaurantResponse(
        id=place.id,
        name=place.name,
        cuisine=place.cuisine or DEFAULT_CUISINE_LABEL,
        latitude=place.coordinate.latitude,
        longitude=place.coordinate.longitude,
        distance_km=place.distance_km,
        display_distance=place.display_distance,
        image_url=placeholder_image_url(place.name),
    )


def notices_to_response(notices: Sequence[Notice]) -> List[NoticeResponse]:
    return [NoticeResponse(kind=n.kind.value, message=n.message) for n in notices]


def route_to_response(path: RoutePath) -> RouteResponse:
    return RouteResponse(
        points=[[lat, lon] for lat, lon in path.as_latlngs()],
        distance_m=path.distance_m,
        duration_s=path.duration_s,
    )


def _upstream_http_error(exc: UpstreamFailure) -> HTTPException:
    return HTTPException(status_code=429 if exc.rate_limited else 502, detail=str(exc))


@router.get("/geocode", response_model=GeocodeResponse)
def geocode(q: str = Query(..., min_length=1)):
    """Resolve a place name to its first geocoder match."""
    if is_device_location_term(q):
        raise HTTPException(status_code=400, detail="Provide a place name to geocode")
    try:
        match = get_default_location_resolver().geocode(q)
    except ResolutionFailure as exc:
        raise _upstream_http_error(exc)
    if match is None:
        raise HTTPException(status_code=404, detail=f'Could not find "{q}"')
    return GeocodeResponse(
        query=q,
        latitude=match.coordinate.latitude,
        longitude=match.coordinate.longitude,
        display_name=match.display_name,
    )


@router.get("/restaurants", response_model=RestaurantSearchResponse)
async def search_restaurants(
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lon: Optional[float] = Query(None, ge=-180, le=180),
    q: str = "",
    location: str = "",
    radius_m: Optional[int] = Query(None, gt=0, le=50000),
    limit: Optional[int] = Query(None, ge=1, le=100),
):
    """
    Nearest restaurants around the caller.

    lat/lon stand in for the device location; without them the search falls
    back to the default location, as a client without geolocation would.
    `location` may name a place to search around instead.
    """
    provider = PushLocationProvider()
    orchestrator = NearbySearchOrchestrator(
        provider,
        radius_m=radius_m,
        limit=limit,
        debounce_seconds=0.0,
    )
    orchestrator.set_query(text_term=q, location_term=location)
    orchestrator.start()
    try:
        if lat is not None and lon is not None:
            provider.push(Coordinate(lat, lon))
        else:
            provider.fail(LocationErrorReason.UNSUPPORTED)
        await orchestrator.wait_until_settled(timeout=SEARCH_TIMEOUT_SECONDS)
        snap = orchestrator.snapshot()
    finally:
        orchestrator.stop()

    return RestaurantSearchResponse(
        origin=coordinate_to_model(snap.origin),
        origin_label=snap.origin.label() if snap.origin else None,
        searched_location=coordinate_to_model(snap.searched_location),
        restaurants=[place_to_response(p) for p in snap.results],
        notices=notices_to_response(snap.notices),
    )


@router.get("/route", response_model=RouteResponse)
def walking_route(
    from_lat: float = Query(..., ge=-90, le=90),
    from_lon: float = Query(..., ge=-180, le=180),
    to_lat: float = Query(..., ge=-90, le=90),
    to_lon: float = Query(..., ge=-180, le=180),
):
    """Walking route between two points, as [lat, lon] pairs."""
    request = RouteRequest(
        origin=Coordinate(from_lat, from_lon),
        destination=Coordinate(to_lat, to_lon),
    )
    try:
        path = get_default_route_resolver().resolve_route(request)
    except NoRouteFound as exc:
        raise HTTPException(status_code=404, detail=f"Could not find a walking route: {exc}")
    except UpstreamFailure as exc:
        raise _upstream_http_error(exc)
    return route_to_response(path)
