"""
Query session API routes.

A session is one long-lived orchestrator: the client streams its device
location and search box edits in, and polls the session for results, route
and notices.
"""
import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Response
from pydantic import BaseModel, Field

from api.database import (
    QuerySession,
    close_session as close_registered_session,
    get_session,
    sessions_db,
    sweep_idle_sessions,
)
from api.routes.restaurants import (
    CoordinateModel,
    NoticeResponse,
    RestaurantResponse,
    RouteResponse,
    coordinate_to_model,
    notices_to_response,
    place_to_response,
    route_to_response,
)
from domain.models import Coordinate, LocationErrorReason, OrchestratorSnapshot
from services.device_location import PushLocationProvider
from services.orchestrator import NearbySearchOrchestrator

router = APIRouter()
logger = logging.getLogger(__name__)

SETTLE_TIMEOUT_SECONDS = 30.0


class SessionCreate(BaseModel):
    text_term: str = ""
    location_term: str = ""
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class QueryUpdate(BaseModel):
    text_term: Optional[str] = None
    location_term: Optional[str] = None


class DeviceLocationUpdate(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class DeviceLocationFailure(BaseModel):
    reason: LocationErrorReason
    detail: Optional[str] = None


class SelectionRequest(BaseModel):
    place_id: str


class SessionResponse(BaseModel):
    id: str
    search_state: str
    route_state: str
    text_term: str
    location_term: str
    device_location: Optional[CoordinateModel] = None
    device_pending: bool
    origin: Optional[CoordinateModel] = None
    origin_label: Optional[str] = None
    searched_location: Optional[CoordinateModel] = None
    restaurants: List[RestaurantResponse]
    selected_place_id: Optional[str] = None
    route: Optional[RouteResponse] = None
    notices: List[NoticeResponse]


def session_to_response(session_id: str, snap: OrchestratorSnapshot) -> SessionResponse:
    """Convert an orchestrator snapshot to API response."""
    return SessionResponse(
        id=session_id,
        search_state=snap.search_state.value,
        route_state=snap.route_state.value,
        text_term=snap.query.text_term,
        location_term=snap.query.location_term,
        device_location=coordinate_to_model(snap.device_coordinate),
        device_pending=snap.device_pending,
        origin=coordinate_to_model(snap.origin),
        origin_label=snap.origin.label() if snap.origin else None,
        searched_location=coordinate_to_model(snap.searched_location),
        restaurants=[place_to_response(p) for p in snap.results],
        selected_place_id=snap.selected_place.id if snap.selected_place else None,
        route=route_to_response(snap.route) if snap.route else None,
        notices=notices_to_response(snap.notices),
    )


def _require_session(session_id: str) -> QuerySession:
    sweep_idle_sessions()
    session = get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


async def _respond(session: QuerySession, wait: bool) -> SessionResponse:
    if wait:
        try:
            await session.orchestrator.wait_until_settled(timeout=SETTLE_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning("Session %s did not settle within %.0fs", session.id, SETTLE_TIMEOUT_SECONDS)
    return session_to_response(session.id, session.orchestrator.snapshot())


@router.post("", response_model=SessionResponse, status_code=201)
async def create_session(data: SessionCreate, wait: bool = False):
    """Start a query session; optional initial search terms and device fix."""
    sweep_idle_sessions()
    provider = PushLocationProvider()
    orchestrator = NearbySearchOrchestrator(provider)
    session = QuerySession(orchestrator=orchestrator, provider=provider)
    orchestrator.set_query(text_term=data.text_term, location_term=data.location_term)
    orchestrator.start()
    if data.latitude is not None and data.longitude is not None:
        provider.push(Coordinate(data.latitude, data.longitude))
    sessions_db[session.id] = session
    logger.info("Created query session %s", session.id)
    return await _respond(session, wait)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session_state(session_id: str, wait: bool = False):
    """Current session state; `wait=true` blocks until pending work settles."""
    session = _require_session(session_id)
    return await _respond(session, wait)


@router.put("/{session_id}/query", response_model=SessionResponse)
async def update_query(session_id: str, data: QueryUpdate, wait: bool = False):
    session = _require_session(session_id)
    session.orchestrator.set_query(text_term=data.text_term, location_term=data.location_term)
    return await _respond(session, wait)


@router.put("/{session_id}/device-location", response_model=SessionResponse)
async def push_device_location(session_id: str, data: DeviceLocationUpdate, wait: bool = False):
    session = _require_session(session_id)
    session.provider.push(Coordinate(data.latitude, data.longitude))
    return await _respond(session, wait)


@router.post("/{session_id}/device-location/error", response_model=SessionResponse)
async def report_device_location_error(
    session_id: str, data: DeviceLocationFailure, wait: bool = False
):
    session = _require_session(session_id)
    session.provider.fail(data.reason, data.detail)
    return await _respond(session, wait)


@router.post("/{session_id}/selection", response_model=SessionResponse)
async def select_place(session_id: str, data: SelectionRequest, wait: bool = False):
    """Select a listed restaurant and resolve a walking route to it."""
    session = _require_session(session_id)
    try:
        session.orchestrator.select_place(data.place_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return await _respond(session, wait)


@router.delete("/{session_id}/route", response_model=SessionResponse)
async def clear_route(session_id: str):
    session = _require_session(session_id)
    session.orchestrator.clear_route()
    return session_to_response(session.id, session.orchestrator.snapshot())


@router.delete("/{session_id}", status_code=204)
async def close_session(session_id: str):
    session = _require_session(session_id)
    close_registered_session(session.id)
    logger.info("Closed query session %s", session_id)
    return Response(status_code=204)
