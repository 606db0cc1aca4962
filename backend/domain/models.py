"""
Core domain models for the food finder.
These are framework-agnostic and shared by the clients, the orchestrator and the API.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Tuple


DEVICE_LOCATION_SENTINEL = "my current location"
UNNAMED_PLACE = "Unnamed Restaurant"


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 point, always in (latitude, longitude) order."""
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")

    def as_tuple(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)

    def label(self) -> str:
        return f"Latitude {self.latitude:.4f}, Longitude {self.longitude:.4f}"


@dataclass
class PlaceCandidate:
    """A restaurant as reported by the place search service, before ranking."""
    id: str
    name: str
    cuisine: Optional[str] = None
    coordinate: Optional[Coordinate] = None


@dataclass
class RankedPlace:
    """A candidate with a known coordinate and its distance from the search origin."""
    id: str
    name: str
    coordinate: Coordinate
    distance_km: float
    display_distance: str
    cuisine: Optional[str] = None


@dataclass(frozen=True)
class RouteRequest:
    origin: Coordinate
    destination: Coordinate


@dataclass
class RoutePath:
    """
    Walking route polyline from origin to destination, in traversal order.

    Behaves as a sequence of Coordinates; distance/duration are whatever the
    routing service reported for the whole route.
    """
    points: List[Coordinate]
    distance_m: Optional[float] = None
    duration_s: Optional[float] = None

    def __iter__(self) -> Iterator[Coordinate]:
        return iter(self.points)

    def __len__(self) -> int:
        return len(self.points)

    def __getitem__(self, index: int) -> Coordinate:
        return self.points[index]

    def as_latlngs(self) -> List[Tuple[float, float]]:
        return [p.as_tuple() for p in self.points]


@dataclass(frozen=True)
class SearchQuery:
    text_term: str = ""
    location_term: str = ""


class SearchState(str, Enum):
    """Main state of a query session."""
    IDLE = "idle"
    LOCATING_DEVICE = "locating_device"
    RESOLVING = "resolving"
    SEARCHING = "searching"
    READY = "ready"
    AWAITING_LOCATION = "awaiting_location"


class RouteState(str, Enum):
    """Route sub-state, independent of the search state."""
    IDLE = "idle"
    PENDING = "pending"
    READY = "ready"


class LocationErrorReason(str, Enum):
    """Why the device location provider could not deliver a position."""
    PERMISSION_DENIED = "permission_denied"
    UNSUPPORTED = "unsupported"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"


class NoticeKind(str, Enum):
    """User-facing advisory categories; each failure mode gets its own."""
    PERMISSION_DENIED = "permission_denied"
    LOCATION_UNSUPPORTED = "location_unsupported"
    LOCATION_UNAVAILABLE = "location_unavailable"
    LOCATION_TIMEOUT = "location_timeout"
    LOCATION_NOT_FOUND = "location_not_found"
    GEOCODING_FAILED = "geocoding_failed"
    PROVIDE_LOCATION = "provide_location"
    SEARCH_FAILED = "search_failed"
    RATE_LIMITED = "rate_limited"
    NO_RESULTS = "no_results"
    NO_ROUTE = "no_route"
    ROUTE_FAILED = "route_failed"
    ROUTE_ORIGIN_UNAVAILABLE = "route_origin_unavailable"


@dataclass(frozen=True)
class Notice:
    kind: NoticeKind
    message: str


@dataclass(frozen=True)
class OrchestratorSnapshot:
    """Read-only view of a query session handed to the rendering layer."""
    search_state: SearchState
    route_state: RouteState
    query: SearchQuery
    device_coordinate: Optional[Coordinate]
    device_pending: bool
    origin: Optional[Coordinate]
    searched_location: Optional[Coordinate]
    results: Tuple[RankedPlace, ...] = ()
    selected_place: Optional[RankedPlace] = None
    route: Optional[RoutePath] = None
    notices: Tuple[Notice, ...] = field(default_factory=tuple)
