"""
Event Bus
=========

Publish-subscribe owned by the engine. Publishers emit plain contract
records; subscribers register per record type (or for every record with
`object`). Delivery is synchronous and in subscription order.
"""

from __future__ import annotations
from typing import Any, Callable, Dict, List, Type
import logging


logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class EventBus:
    """
    In-process event bus.

    A subscriber that raises is logged and skipped; the remaining
    subscribers still receive the event.
    """

    def __init__(self):
        self._subscribers: Dict[type, List[Handler]] = {}

    def subscribe(self, event_type: Type, handler: Handler) -> Callable[[], bool]:
        """
        Subscribe `handler` to events that are instances of `event_type`.

        Returns a callable that unsubscribes the handler.
        """
        handlers = self._subscribers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)
            logger.debug(f"Subscriber registered for {event_type.__name__}: {_name(handler)}")
        return lambda: self.unsubscribe(event_type, handler)

    def unsubscribe(self, event_type: Type, handler: Handler) -> bool:
        handlers = self._subscribers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            logger.debug(f"Subscriber unregistered for {event_type.__name__}: {_name(handler)}")
            return True
        return False

    def emit(self, event: Any) -> int:
        """
        Deliver `event` to every matching subscriber.

        Returns the number of handlers that completed without error.
        """
        delivered = 0
        for event_type, handlers in list(self._subscribers.items()):
            if not isinstance(event, event_type):
                continue
            for handler in list(handlers):
                try:
                    handler(event)
                    delivered += 1
                except Exception as e:
                    logger.error(f"Subscriber error ({_name(handler)}): {e}", exc_info=True)
        logger.debug(f"Event emitted: {type(event).__name__} -> {delivered} subscribers")
        return delivered

    def subscriber_count(self) -> int:
        return sum(len(h) for h in self._subscribers.values())


def _name(handler: Handler) -> str:
    return getattr(handler, "__name__", repr(handler))
