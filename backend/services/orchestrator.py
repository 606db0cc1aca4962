"""
Debounced query orchestrator.

Owns one query session: listens to the device location feed and to search
input, waits for a quiet period, then resolves the location, searches and
ranks nearby restaurants. Walking routes to a selected place are resolved
independently of the search.

Runs on a single asyncio loop. Blocking HTTP clients are pushed to worker
threads, so their results can arrive out of order; each result carries the
sequence number of the request that produced it and is dropped unless that
request is still the latest one.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Set

from domain.errors import NoRouteFound, ResolutionFailure, UpstreamFailure
from domain.models import (
    Coordinate,
    LocationErrorReason,
    Notice,
    OrchestratorSnapshot,
    PlaceCandidate,
    RankedPlace,
    RoutePath,
    RouteRequest,
    RouteState,
    SearchQuery,
    SearchState,
)
from services import geocoding, notices, places_client, routing
from services.device_location import DeviceLocationProvider
from services.geocoding import LocationResolver, get_default_location_resolver, is_device_location_term
from services.places_client import PlaceSearchClient, get_default_place_search_client
from services.ranking import rank
from services.routing import RouteResolver, get_default_route_resolver
from settings import settings

logger = logging.getLogger(__name__)

Ranker = Callable[[Coordinate, List[PlaceCandidate], int], List[RankedPlace]]
ChangeListener = Callable[[OrchestratorSnapshot], None]


def default_coordinate() -> Coordinate:
    return Coordinate(settings.DEFAULT_LATITUDE, settings.DEFAULT_LONGITUDE)


class NearbySearchOrchestrator:
    def __init__(
        self,
        location_provider: DeviceLocationProvider,
        resolver: Optional[LocationResolver] = None,
        search_client: Optional[PlaceSearchClient] = None,
        route_resolver: Optional[RouteResolver] = None,
        *,
        ranker: Ranker = rank,
        radius_m: Optional[int] = None,
        limit: Optional[int] = None,
        debounce_seconds: Optional[float] = None,
        device_timeout_seconds: Optional[float] = None,
        fallback_coordinate: Optional[Coordinate] = None,
        fallback_name: Optional[str] = None,
        on_change: Optional[ChangeListener] = None,
    ) -> None:
        self.location_provider = location_provider
        self.resolver = resolver or get_default_location_resolver()
        self.search_client = search_client or get_default_place_search_client()
        self.route_resolver = route_resolver or get_default_route_resolver()
        self.ranker = ranker
        self.radius_m = radius_m if radius_m is not None else settings.SEARCH_RADIUS_M
        self.limit = limit if limit is not None else settings.RESULT_LIMIT
        self.debounce_seconds = (
            debounce_seconds if debounce_seconds is not None else settings.SEARCH_DEBOUNCE_SECONDS
        )
        self.device_timeout_seconds = (
            device_timeout_seconds
            if device_timeout_seconds is not None
            else settings.DEVICE_LOCATION_TIMEOUT_SECONDS
        )
        self.fallback_coordinate = fallback_coordinate or default_coordinate()
        self.fallback_name = fallback_name or settings.DEFAULT_LOCATION_NAME
        self.on_change = on_change

        self.search_state = SearchState.IDLE
        self.route_state = RouteState.IDLE
        self.query = SearchQuery()
        self.device_coordinate: Optional[Coordinate] = None
        self.device_pending = True
        self.origin: Optional[Coordinate] = None
        self.searched_location: Optional[Coordinate] = None
        self.results: List[RankedPlace] = []
        self.selected_place: Optional[RankedPlace] = None
        self.route: Optional[RoutePath] = None

        self._device_notice: Optional[Notice] = None
        self._search_notices: List[Notice] = []
        self._route_notice: Optional[Notice] = None

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._running = False
        self._subscription: Optional[int] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._device_timer: Optional[asyncio.TimerHandle] = None
        self._search_seq = 0
        self._route_seq = 0
        self._tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Subscribe to the device feed. Must be called from the owning event loop."""
        if self._running:
            return
        self._loop = asyncio.get_running_loop()
        self._running = True
        self.search_state = SearchState.LOCATING_DEVICE
        self._subscription = self.location_provider.subscribe(
            self._on_device_update, self._on_device_error
        )
        if self.device_pending and self.device_timeout_seconds > 0:
            self._device_timer = self._loop.call_later(
                self.device_timeout_seconds, self._on_device_timeout
            )
        if self.query != SearchQuery():
            self._schedule_resolution()
        else:
            self._notify()

    def stop(self) -> None:
        """Cancel timers, release the device subscription and drop in-flight results."""
        if not self._running:
            return
        self._running = False
        self._cancel_timer()
        if self._device_timer is not None:
            self._device_timer.cancel()
            self._device_timer = None
        if self._subscription is not None:
            self.location_provider.unsubscribe(self._subscription)
            self._subscription = None
        self._search_seq += 1
        self._route_seq += 1
        self.search_state = SearchState.IDLE
        self._notify()

    async def wait_until_settled(self, timeout: float = 5.0) -> None:
        """Wait until no debounce timer is pending and no upstream call is in flight."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while self._timer is not None or self._tasks:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise asyncio.TimeoutError("orchestrator did not settle in time")
            if self._tasks:
                await asyncio.wait(set(self._tasks), timeout=remaining)
            else:
                await asyncio.sleep(min(remaining, max(self.debounce_seconds / 4, 0.001)))

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def set_query(
        self,
        text_term: Optional[str] = None,
        location_term: Optional[str] = None,
    ) -> None:
        """Update either search box; None leaves that box unchanged."""
        new_query = SearchQuery(
            text_term=self.query.text_term if text_term is None else text_term,
            location_term=self.query.location_term if location_term is None else location_term,
        )
        if new_query == self.query:
            return
        self.query = new_query
        if self._running:
            self._schedule_resolution()

    def select_place(self, place_id: str) -> RankedPlace:
        """Start resolving a walking route from the device location to a listed place."""
        self._require_running()
        place = next((p for p in self.results if p.id == place_id), None)
        if place is None:
            raise ValueError(f"Unknown place id: {place_id}")

        self._route_seq += 1
        self.route = None
        if self.device_coordinate is None:
            self.selected_place = None
            self.route_state = RouteState.IDLE
            self._route_notice = notices.route_origin_unavailable_notice()
            self._notify()
            return place

        seq = self._route_seq
        self.selected_place = place
        self.route_state = RouteState.PENDING
        self._route_notice = None
        self._notify()
        request = RouteRequest(origin=self.device_coordinate, destination=place.coordinate)
        self._spawn(self._run_route(seq, request))
        return place

    def clear_route(self) -> None:
        """Drop the selection and route; the search side is left alone."""
        self._route_seq += 1
        self.route = None
        self.selected_place = None
        self._route_notice = None
        self.route_state = RouteState.IDLE
        self._notify()

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    @property
    def notices(self) -> List[Notice]:
        current = [self._device_notice, *self._search_notices, self._route_notice]
        return [n for n in current if n is not None]

    def snapshot(self) -> OrchestratorSnapshot:
        return OrchestratorSnapshot(
            search_state=self.search_state,
            route_state=self.route_state,
            query=self.query,
            device_coordinate=self.device_coordinate,
            device_pending=self.device_pending,
            origin=self.origin,
            searched_location=self.searched_location,
            results=tuple(self.results),
            selected_place=self.selected_place,
            route=self.route,
            notices=tuple(self.notices),
        )

    # ------------------------------------------------------------------
    # Device location feed
    # ------------------------------------------------------------------

    def _on_device_update(self, coordinate: Coordinate) -> None:
        self._dispatch(self._apply_device_update, coordinate)

    def _on_device_error(self, reason: LocationErrorReason, detail: Optional[str] = None) -> None:
        self._dispatch(self._apply_device_error, reason, detail)

    def _on_device_timeout(self) -> None:
        self._device_timer = None
        if self.device_pending:
            logger.info("No device location after %.1fs", self.device_timeout_seconds)
            self._apply_device_error(LocationErrorReason.TIMEOUT, None)

    def _dispatch(self, fn: Callable, *args) -> None:
        """Run fn on the owning loop; providers may call back from other threads."""
        if self._loop is None:
            return
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None
        if current is self._loop:
            fn(*args)
        else:
            self._loop.call_soon_threadsafe(fn, *args)

    def _apply_device_update(self, coordinate: Coordinate) -> None:
        if not self._running:
            return
        if self._device_timer is not None:
            self._device_timer.cancel()
            self._device_timer = None
        self.device_coordinate = coordinate
        self.device_pending = False
        self._device_notice = None
        self._schedule_resolution()

    def _apply_device_error(self, reason: LocationErrorReason, detail: Optional[str]) -> None:
        if not self._running:
            return
        if self._device_timer is not None:
            self._device_timer.cancel()
            self._device_timer = None
        self.device_pending = False
        using_fallback = self.device_coordinate is None or self.device_coordinate == self.fallback_coordinate
        self._device_notice = notices.device_location_notice(
            reason, detail, self.fallback_name if using_fallback else None
        )
        if self.device_coordinate is None:
            logger.info("Device location %s; falling back to %s", reason.value, self.fallback_name)
            self.device_coordinate = self.fallback_coordinate
            self._schedule_resolution()
        else:
            self._notify()

    # ------------------------------------------------------------------
    # Search cycle
    # ------------------------------------------------------------------

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule_resolution(self) -> None:
        if not self._running or self._loop is None:
            return
        self._cancel_timer()
        self.search_state = SearchState.RESOLVING
        self._timer = self._loop.call_later(self.debounce_seconds, self._on_timer)
        self._notify()

    def _on_timer(self) -> None:
        self._timer = None
        self._search_seq += 1
        self._spawn(
            self._run_search_cycle(
                self._search_seq, self.query, self.device_coordinate, self.device_pending
            )
        )

    def _is_stale_search(self, seq: int) -> bool:
        return not self._running or seq != self._search_seq

    def _set_search_state(self, state: SearchState) -> None:
        # a re-armed timer means a newer query is already waiting
        self.search_state = SearchState.RESOLVING if self._timer is not None else state

    async def _run_search_cycle(
        self,
        seq: int,
        query: SearchQuery,
        device: Optional[Coordinate],
        device_pending: bool,
    ) -> None:
        cycle_notices: List[Notice] = []
        origin = device
        searched: Optional[Coordinate] = None

        if not is_device_location_term(query.location_term):
            term = query.location_term.strip()
            try:
                resolved = await asyncio.to_thread(self.resolver.resolve, term, device)
            except ResolutionFailure as exc:
                logger.warning("Geocoding %r failed: %s", term, exc)
                cycle_notices.append(notices.geocoding_failed_notice(term, exc))
            except Exception as exc:
                logger.exception("Unexpected error geocoding %r", term)
                failure = ResolutionFailure(geocoding.SERVICE_NAME, f"unexpected error: {exc}")
                cycle_notices.append(notices.geocoding_failed_notice(term, failure))
            else:
                if resolved is None:
                    cycle_notices.append(notices.location_not_found_notice(term))
                else:
                    origin = resolved
                    searched = resolved
            if self._is_stale_search(seq):
                logger.debug("Discarding superseded geocode result (seq=%s)", seq)
                return

        if origin is None:
            self.origin = None
            self.searched_location = None
            self.results = []
            cycle_notices.append(notices.provide_location_notice())
            self._search_notices = cycle_notices
            self._set_search_state(
                SearchState.AWAITING_LOCATION if device_pending else SearchState.READY
            )
            self._notify()
            return

        self.origin = origin
        self.searched_location = searched
        self._search_notices = list(cycle_notices)
        self._set_search_state(SearchState.SEARCHING)
        self._notify()

        text_term = query.text_term.strip() or None
        try:
            candidates = await asyncio.to_thread(
                self.search_client.search, origin, self.radius_m, text_term
            )
        except UpstreamFailure as exc:
            if self._is_stale_search(seq):
                return
            logger.warning("Restaurant search failed: %s", exc)
            cycle_notices.append(notices.search_failed_notice(exc))
            ranked: List[RankedPlace] = []
        except Exception as exc:
            if self._is_stale_search(seq):
                return
            logger.exception("Unexpected error searching restaurants")
            failure = UpstreamFailure(places_client.SERVICE_NAME, f"unexpected error: {exc}")
            cycle_notices.append(notices.search_failed_notice(failure))
            ranked = []
        else:
            if self._is_stale_search(seq):
                logger.debug("Discarding superseded search result (seq=%s)", seq)
                return
            ranked = self.ranker(origin, candidates, self.limit)
            if not ranked:
                cycle_notices.append(notices.no_results_notice())

        self.results = ranked
        self._search_notices = cycle_notices
        self._set_search_state(SearchState.READY)
        self._notify()

    # ------------------------------------------------------------------
    # Route sub-state
    # ------------------------------------------------------------------

    async def _run_route(self, seq: int, request: RouteRequest) -> None:
        path: Optional[RoutePath] = None
        notice: Optional[Notice] = None
        try:
            path = await asyncio.to_thread(self.route_resolver.resolve_route, request)
        except NoRouteFound as exc:
            logger.info("No walking route: %s", exc)
            notice = notices.no_route_notice()
        except UpstreamFailure as exc:
            logger.warning("Route lookup failed: %s", exc)
            notice = notices.route_failed_notice(exc)
        except Exception as exc:
            logger.exception("Unexpected error resolving route")
            notice = notices.route_failed_notice(
                UpstreamFailure(routing.SERVICE_NAME, f"unexpected error: {exc}")
            )

        if not self._running or seq != self._route_seq:
            logger.debug("Discarding superseded route result (seq=%s)", seq)
            return
        self.route = path
        self._route_notice = notice
        self.route_state = RouteState.READY
        self._notify()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _require_running(self) -> None:
        if not self._running or self._loop is None:
            raise RuntimeError("orchestrator is not running")

    def _spawn(self, coro) -> None:
        assert self._loop is not None
        task = self._loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Orchestrator task failed", exc_info=exc)

    def _notify(self) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change(self.snapshot())
        except Exception:
            logger.exception("on_change listener failed")
