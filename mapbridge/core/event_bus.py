"""Canonical event bus.

One bus per MapAdapter. Delivery is synchronous and in subscription order;
a subscriber that raises is logged and the remaining subscribers still run,
so gesture and click synthesis never throws.
"""

import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class MapEvent(str, Enum):
    """Canonical event names and their payloads."""

    # Layer lifecycle (payload: LayerConfig)
    ADDED = "added"
    BEFORE_ADD = "beforeadd"
    BEFORE_REMOVE = "beforeremove"
    REMOVED = "removed"

    # Pointer (payload: native event)
    CLICK = "click"
    SHAPE_CLICK = "shapeclick"
    DBL_CLICK = "dblclick"
    MOUSE_DOWN = "mousedown"
    MOUSE_MOVE = "mousemove"
    MOUSE_OUT = "mouseout"
    MOUSE_OVER = "mouseover"
    MOUSE_UP = "mouseup"
    RIGHT_CLICK = "rightclick"

    # Gestures (payload: None)
    PAN_START = "panstart"
    PANNING = "panning"
    PAN_END = "panend"
    ZOOM_START = "zoomstart"
    ZOOMING = "zooming"
    ZOOM_END = "zoomend"
    VIEW_CHANGE_START = "viewchangestart"
    VIEW_CHANGING = "viewchanging"
    VIEW_CHANGE_END = "viewchangeend"


class Subscription:
    """Returned by EventBus.subscribe(); call unsubscribe() to stop delivery."""

    def __init__(self, bus: "EventBus", event: MapEvent, handler: Handler) -> None:
        self.bus = bus
        self.event = event
        self.handler = handler
        self.active = True

    def unsubscribe(self) -> None:
        self.bus.unsubscribe(self)


class EventBus:
    """Typed publish/subscribe for canonical map events.

    Example:
        bus = EventBus()
        sub = bus.subscribe(MapEvent.ZOOM_END, lambda _: print("zoomed"))
        bus.emit(MapEvent.ZOOM_END)
        sub.unsubscribe()
    """

    def __init__(self) -> None:
        self._subscribers: dict[MapEvent, list[Subscription]] = defaultdict(list)

    def subscribe(self, event: MapEvent | str, handler: Handler) -> Subscription:
        event = MapEvent(event)
        subscription = Subscription(bus=self, event=event, handler=handler)
        self._subscribers[event].append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscribers = self._subscribers[subscription.event]
        if subscription in subscribers:
            subscribers.remove(subscription)
        subscription.active = False

    def subscriber_count(self, event: MapEvent | str) -> int:
        return len(self._subscribers[MapEvent(event)])

    def emit(self, event: MapEvent | str, payload: Any = None) -> None:
        """Deliver payload to every current subscriber of event.

        Subscribers added or removed during delivery take effect for the next
        emit; a subscriber removed mid-delivery is skipped.
        """
        event = MapEvent(event)
        logger.debug(f"[EVENT] {event.value}")
        for subscription in list(self._subscribers[event]):
            if not subscription.active:
                continue
            try:
                subscription.handler(payload)
            except Exception:
                logger.exception(f"Subscriber for '{event.value}' raised; continuing delivery")
