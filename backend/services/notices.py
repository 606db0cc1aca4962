"""
User-facing notice text, one builder per failure mode.
"""
from __future__ import annotations

from typing import Optional

from domain.errors import UpstreamFailure
from domain.models import LocationErrorReason, Notice, NoticeKind

SERVICE_LABELS = {
    "nominatim": "location lookup",
    "overpass": "restaurant search",
    "osrm": "routing",
}

_DEVICE_KINDS = {
    LocationErrorReason.PERMISSION_DENIED: NoticeKind.PERMISSION_DENIED,
    LocationErrorReason.UNSUPPORTED: NoticeKind.LOCATION_UNSUPPORTED,
    LocationErrorReason.UNAVAILABLE: NoticeKind.LOCATION_UNAVAILABLE,
    LocationErrorReason.TIMEOUT: NoticeKind.LOCATION_TIMEOUT,
}


def device_location_notice(
    reason: LocationErrorReason,
    detail: Optional[str],
    fallback_name: Optional[str],
) -> Notice:
    """fallback_name is the default place now in use, or None when a previous fix is kept."""
    suffix = f": {detail}" if detail else ""
    if fallback_name:
        outcome = f"Defaulting to {fallback_name}."
    else:
        outcome = "Using your last known location."
    if reason == LocationErrorReason.PERMISSION_DENIED:
        text = f"Location access denied{suffix}. {outcome}"
    elif reason == LocationErrorReason.UNSUPPORTED:
        text = f"Geolocation is not supported on this device. {outcome}"
    elif reason == LocationErrorReason.TIMEOUT:
        text = f"Timed out waiting for your location. {outcome}"
    else:
        text = f"Location unavailable{suffix}. {outcome}"
    return Notice(_DEVICE_KINDS[reason], text)


def rate_limited_notice(exc: UpstreamFailure) -> Notice:
    label = SERVICE_LABELS.get(exc.service, exc.service)
    return Notice(
        NoticeKind.RATE_LIMITED,
        f"The {label} service is rate limiting requests. Please wait a moment and try again.",
    )


def location_not_found_notice(term: str) -> Notice:
    return Notice(
        NoticeKind.LOCATION_NOT_FOUND,
        f'Could not find "{term}". Showing restaurants near your current location or default.',
    )


def geocoding_failed_notice(term: str, exc: UpstreamFailure) -> Notice:
    if exc.rate_limited:
        return rate_limited_notice(exc)
    return Notice(
        NoticeKind.GEOCODING_FAILED,
        f'Error looking up "{term}": {exc.message}. '
        "Showing restaurants near your current location or default.",
    )


def provide_location_notice() -> Notice:
    return Notice(
        NoticeKind.PROVIDE_LOCATION,
        "Please provide a location or enable geolocation to find restaurants.",
    )


def search_failed_notice(exc: UpstreamFailure) -> Notice:
    if exc.rate_limited:
        return rate_limited_notice(exc)
    return Notice(
        NoticeKind.SEARCH_FAILED,
        f"Error fetching restaurants: {exc.message}. "
        "This might be due to API rate limits or network issues.",
    )


def no_results_notice() -> Notice:
    return Notice(
        NoticeKind.NO_RESULTS,
        "No restaurants found matching your criteria. Try a different search!",
    )


def no_route_notice() -> Notice:
    return Notice(NoticeKind.NO_ROUTE, "Could not find a walking route to this restaurant.")


def route_failed_notice(exc: UpstreamFailure) -> Notice:
    if exc.rate_limited:
        return rate_limited_notice(exc)
    return Notice(
        NoticeKind.ROUTE_FAILED,
        f"Error fetching route: {exc.message}. This might be due to routing service rate limits.",
    )


def route_origin_unavailable_notice() -> Notice:
    return Notice(
        NoticeKind.ROUTE_ORIGIN_UNAVAILABLE,
        "Your current location is not available to calculate a route.",
    )
