from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from threading import RLock
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

TEvent = TypeVar("TEvent")


@dataclass(frozen=True, slots=True)
class Subscription:
    event_type: type[Any]
    handler: Callable[[Any], None]


class EventBus:
    """Synchronous in-process event bus.

    Handlers run in the publishing thread. A handler subscribed to a base
    class also receives every subclass event, so subscribing to the common
    process event base yields the whole lifecycle stream in publish order.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._subs: defaultdict[type[Any], list[Callable[[Any], None]]] = defaultdict(list)

    def subscribe(self, event_type: type[TEvent], handler: Callable[[TEvent], None]) -> Subscription:
        with self._lock:
            self._subs[event_type].append(handler)
        return Subscription(event_type=event_type, handler=handler)

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            handlers = self._subs.get(subscription.event_type)
            if handlers and subscription.handler in handlers:
                handlers.remove(subscription.handler)

    def publish(self, event: object) -> int:
        """Deliver ``event``; returns how many handlers ran without raising."""
        with self._lock:
            handlers = [handler for cls in type(event).__mro__ for handler in self._subs.get(cls, ())]
        delivered = 0
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler failed", extra={"event_type": type(event).__name__})
                continue
            delivered += 1
        return delivered
