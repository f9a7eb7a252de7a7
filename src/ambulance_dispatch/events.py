from __future__ import annotations

import logging
import threading
from typing import Callable

from ambulance_dispatch.models import Event

logger = logging.getLogger(__name__)

Listener = Callable[[Event], None]


class Subscription:
    def __init__(self, bus: "EventBus", token: int) -> None:
        self._bus = bus
        self._token = token

    def unsubscribe(self) -> None:
        self._bus._remove(self._token)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.unsubscribe()


class EventBus:
    """In-process publish/subscribe channel.

    Delivery is synchronous and fire-and-forget: a listener only sees events
    published while it is registered, and a listener that raises is logged
    and skipped.
    """

    def __init__(self) -> None:
        self._listeners: dict[int, Listener] = {}
        self._next_token = 0
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Subscription:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._listeners[token] = listener
        return Subscription(self, token)

    def _remove(self, token: int) -> None:
        with self._lock:
            self._listeners.pop(token, None)

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)

    def publish(self, event: Event) -> None:
        with self._lock:
            listeners = list(self._listeners.values())
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Listener failed on %s event", event.type.value)
