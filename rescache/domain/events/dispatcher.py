"""In-process event dispatcher for diagnostics and lifecycle events."""

import logging
from typing import Callable, List

from .cache_events import DomainEvent

logger = logging.getLogger(__name__)

EventListener = Callable[[DomainEvent], None]


class EventDispatcher:
    """Fans domain events out to registered observability hooks.

    Listener failures are logged and never reach the request path.
    """

    def __init__(self) -> None:
        self._listeners: List[EventListener] = []

    def subscribe(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def dispatch(self, event: DomainEvent) -> None:
        logger.debug(f"EVENT: {event}")
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Event listener {listener!r} failed on {type(event).__name__}: {e}", exc_info=True)
