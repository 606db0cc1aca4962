"""
Device location feed.

A provider delivers a continuous stream of position fixes (like a browser's
watchPosition) through callbacks registered with subscribe(). Subscriptions
are explicit handles and must be released with unsubscribe().
"""
from __future__ import annotations

import itertools
import logging
import threading
from typing import Callable, Dict, Optional, Protocol, Tuple

from domain.models import Coordinate, LocationErrorReason

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[Coordinate], None]
ErrorCallback = Callable[[LocationErrorReason, Optional[str]], None]


class DeviceLocationProvider(Protocol):
    def subscribe(self, on_update: UpdateCallback, on_error: ErrorCallback) -> int:
        ...

    def unsubscribe(self, handle: int) -> None:
        ...


class PushLocationProvider:
    """
    Provider fed from outside, e.g. by a client forwarding its geolocation
    callbacks over HTTP. Callbacks run synchronously in the pushing thread.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._subscribers: Dict[int, Tuple[UpdateCallback, ErrorCallback]] = {}
        self.last_coordinate: Optional[Coordinate] = None

    def subscribe(self, on_update: UpdateCallback, on_error: ErrorCallback) -> int:
        with self._lock:
            handle = next(self._ids)
            self._subscribers[handle] = (on_update, on_error)
        return handle

    def unsubscribe(self, handle: int) -> None:
        with self._lock:
            self._subscribers.pop(handle, None)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def push(self, coordinate: Coordinate) -> None:
        self.last_coordinate = coordinate
        for on_update, _ in self._snapshot():
            on_update(coordinate)

    def fail(self, reason: LocationErrorReason, detail: Optional[str] = None) -> None:
        logger.info("Device location error: %s (%s)", reason.value, detail)
        for _, on_error in self._snapshot():
            on_error(reason, detail)

    def _snapshot(self):
        with self._lock:
            return list(self._subscribers.values())
