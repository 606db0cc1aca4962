"""
Failures raised by the upstream clients.

Clients raise these; the orchestrator and the API routes convert them into
notices or HTTP errors at the component boundary.
"""
from typing import Optional


class PlaceDiscoveryError(Exception):
    """Base class for restaurant discovery failures."""


class UpstreamFailure(PlaceDiscoveryError):
    """Transport, HTTP status or payload error from an upstream service."""

    def __init__(self, service: str, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(f"{service}: {message}")
        self.service = service
        self.message = message
        self.status_code = status_code

    @property
    def rate_limited(self) -> bool:
        return self.status_code == 429


class ResolutionFailure(UpstreamFailure):
    """Geocoding lookup failed (as opposed to returning zero matches)."""


class NoRouteFound(PlaceDiscoveryError):
    """The routing service answered but had no route between the two points."""

    def __init__(self, message: str = "no route found", code: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = code
