"""
Shared HTTP transport for the upstream map-data services.

One requests.Session per process, with a per-host minimum interval between
requests so public OSM services are not hammered. Every failure mode is
surfaced as UpstreamFailure (or the subclass passed in by the caller).
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Optional, Type
from urllib.parse import urlsplit

import requests

from domain.errors import UpstreamFailure
from settings import settings

logger = logging.getLogger(__name__)
_session = requests.Session()
_lock = threading.Lock()
_last_request_ts: dict[str, float] = {}
_logged_ua = False

if settings.USER_AGENT_IS_FALLBACK:
    logger.warning(
        "FOOD_FINDER_USER_AGENT not set in environment; using fallback UA. "
        "This may violate the Nominatim/Overpass usage policies."
    )


def default_headers(referer: Optional[str] = None) -> dict[str, str]:
    headers = {"User-Agent": settings.USER_AGENT}
    if referer:
        headers["Referer"] = referer
    return headers


def _throttled_request(
    method: str,
    url: str,
    *,
    min_interval: float,
    params: Optional[dict[str, Any]] = None,
    data: Optional[dict[str, Any]] = None,
    headers: Optional[dict[str, str]] = None,
    timeout: float,
) -> requests.Response:
    """Perform a request with a simple per-host rate limit."""
    global _logged_ua
    host = urlsplit(url).netloc
    if min_interval > 0:
        with _lock:
            now = time.time()
            delta = now - _last_request_ts.get(host, 0.0)
            if delta < min_interval:
                time.sleep(min_interval - delta)
            _last_request_ts[host] = time.time()
    if not _logged_ua:
        logger.debug("Upstream User-Agent: %s", (headers or {}).get("User-Agent"))
        _logged_ua = True
    return _session.request(
        method, url, params=params, data=data, headers=headers, timeout=timeout
    )


def fetch_json(
    service: str,
    method: str,
    url: str,
    *,
    params: Optional[dict[str, Any]] = None,
    data: Optional[dict[str, Any]] = None,
    headers: Optional[dict[str, str]] = None,
    timeout: Optional[float] = None,
    min_interval: float = 0.0,
    failure_cls: Type[UpstreamFailure] = UpstreamFailure,
) -> Any:
    """
    Issue one request and decode its JSON body.

    Raises failure_cls on transport errors (including timeouts), non-2xx
    statuses and bodies that are not valid JSON. HTTP 429 keeps its status
    code so callers can tell rate limiting apart from other failures.
    """
    try:
        resp = _throttled_request(
            method,
            url,
            min_interval=min_interval,
            params=params,
            data=data,
            headers=headers if headers is not None else default_headers(),
            timeout=timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS,
        )
    except requests.RequestException as exc:
        logger.warning("%s request error for %s: %s", service, url, exc)
        raise failure_cls(service, f"request failed: {exc}") from exc

    if not 200 <= resp.status_code < 300:
        body = (resp.text or "").strip()
        logger.warning("%s returned HTTP %s: %s", service, resp.status_code, body[:200])
        detail = f"HTTP {resp.status_code}"
        if body:
            detail = f"{detail} - {body[:200]}"
        raise failure_cls(service, detail, status_code=resp.status_code)

    try:
        return resp.json()
    except ValueError as exc:
        logger.warning("%s JSON error for %s: %s", service, url, exc)
        raise failure_cls(service, f"invalid JSON payload: {exc}") from exc
