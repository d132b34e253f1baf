"""Headless provider map.

The Viewport stands in for the browser-side map object of a provider SDK. It
keeps center/zoom/size in sync with what the host reports, answers projection
queries, holds the entity collection, and raises the same raw signals the SDK
would (click, mousemove, viewchangestart, viewchange, viewchangeend, ...).

All public values are provider-native; the CoordinateAdapter passed in is the
only place canonical types appear.

Raw signals are delivered run-to-completion: a signal fired (or a view set)
from inside a handler is queued and runs after the current handler returns,
the way a browser event loop would deliver it. The one exception is a
programmatic view change: work queued by its viewchange handlers (a zoom
correction, say) runs before its viewchangeend, so the change settles on the
corrected view.

Example:
    viewport = Viewport(coords=PydeckCoordinateAdapter(), center=[-96, 39], zoom=4)
    viewport.on(RawSignal.VIEW_CHANGE_END, lambda _: print(viewport.get_zoom()))
    viewport.begin_change()
    viewport.move_to(zoom=5)
    viewport.end_change()
    for command in viewport.drain_commands():
        push_to_browser(*command.to_push_event())
"""

import itertools
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Optional

from mapbridge.constants import MapConfig, ZoomConfig
from mapbridge.core.projection import WebMercator
from mapbridge.model.lat_lng import Bounds, LatLng, Pixel
from mapbridge.model.raw_event import Shape
from mapbridge.providers.base import CoordinateAdapter

logger = logging.getLogger(__name__)

RawHandler = Callable[[Any], None]


class RawSignal:
    """Signal names raised by the Viewport."""

    CLICK = "click"
    DBL_CLICK = "dblclick"
    MOUSE_DOWN = "mousedown"
    MOUSE_MOVE = "mousemove"
    MOUSE_UP = "mouseup"
    MOUSE_OUT = "mouseout"
    MOUSE_OVER = "mouseover"
    RIGHT_CLICK = "rightclick"
    VIEW_CHANGE_START = "viewchangestart"
    VIEW_CHANGE = "viewchange"
    VIEW_CHANGE_END = "viewchangeend"


@dataclass(frozen=True)
class ViewCommand:
    """A view change the host must forward to the browser map."""

    center: Any
    zoom: float
    animate: bool

    def to_push_event(self) -> tuple[str, dict[str, Any]]:
        return "setView", {"center": self.center, "zoom": self.zoom, "animate": self.animate}


class Viewport:
    """Headless map state in provider-native coordinates.

    Args:
        coords: Converts native values for projection
        center: Native initial center
        zoom: Initial zoom (clamped to the native range)
        width/height: Container size in pixels
        min_zoom/max_zoom: Native zoom range of the provider
        map_type: Active base map type
    """

    def __init__(
        self,
        coords: CoordinateAdapter,
        center: Any,
        zoom: float,
        width: float = MapConfig.DEFAULT_WIDTH_PX,
        height: float = MapConfig.DEFAULT_HEIGHT_PX,
        min_zoom: float = ZoomConfig.PROVIDER_MIN,
        max_zoom: float = ZoomConfig.PROVIDER_MAX,
        map_type: str = "",
    ) -> None:
        self.coords = coords
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom
        self.width = width
        self.height = height
        self.map_type = map_type
        self.entities: list[Shape] = []

        self._center: LatLng = coords.from_provider_lat_lng(center)
        self._zoom: float = self._clamp_zoom(zoom)
        self._commands: list[ViewCommand] = []
        self._handlers: dict[int, tuple[str, RawHandler]] = {}
        self._handler_ids = itertools.count(1)
        self._queue: deque[Callable[[], None]] = deque()
        self._dispatching = False
        self._changing = False

    # =========================================================================
    # View state
    # =========================================================================

    def get_center(self) -> Any:
        return self.coords.to_provider_lat_lng(self._center)

    def get_zoom(self) -> float:
        return self._zoom

    def get_bounds(self) -> Any:
        return self.coords.to_provider_bounds(self._canonical_bounds())

    @property
    def is_changing(self) -> bool:
        """True between viewchangestart and viewchangeend."""
        return self._changing

    def resize(self, width: float, height: float) -> None:
        logger.debug(f"Viewport resized to {width}x{height}")
        self.width = width
        self.height = height

    def drain_commands(self) -> list[ViewCommand]:
        """Return and forget the view commands issued so far."""
        commands, self._commands = self._commands, []
        return commands

    @property
    def commands(self) -> list[ViewCommand]:
        return list(self._commands)

    # =========================================================================
    # Gestures reported by the host
    # =========================================================================

    def begin_change(self) -> None:
        """The user started dragging or zooming."""
        self._enqueue(self._begin)

    def move_to(self, center: Any = None, zoom: Optional[float] = None) -> None:
        """The view moved during a gesture (starts one if needed)."""
        self._enqueue(lambda: self._move(center=center, zoom=zoom))

    def end_change(self) -> None:
        """The gesture settled."""
        self._enqueue(self._end)

    def _begin(self) -> None:
        if self._changing:
            return
        self._changing = True
        self._deliver(RawSignal.VIEW_CHANGE_START, None)

    def _move(self, center: Any, zoom: Optional[float]) -> None:
        self._begin()
        if center is not None:
            self._center = self.coords.from_provider_lat_lng(center)
        if zoom is not None:
            self._zoom = self._clamp_zoom(zoom)
        self._deliver(RawSignal.VIEW_CHANGE, None)

    def _end(self) -> None:
        if not self._changing:
            logger.debug("end_change() without a gesture in progress; ignored")
            return
        self._changing = False
        self._deliver(RawSignal.VIEW_CHANGE_END, None)

    # =========================================================================
    # Programmatic view changes
    # =========================================================================

    def set_view(
        self,
        center: Any = None,
        zoom: Optional[float] = None,
        bounds: Any = None,
        padding: float = 0,
        center_offset: Any = None,
        animate: bool = True,
        on_applied: Optional[Callable[[], None]] = None,
    ) -> None:
        """Move the view.

        Args:
            center: Native center; current center when None
            zoom: Target zoom; current zoom when None
            bounds: Native bounds to fit (overrides center and zoom)
            padding: Pixels kept free around fitted bounds
            center_offset: Native pixel offset at which center is shown,
                relative to the middle of the container
            animate: Forwarded with the recorded ViewCommand
            on_applied: Called once the new view is in place, before the
                viewchange it raises

        Inside a gesture only viewchange is raised; otherwise the change is
        a complete viewchangestart / viewchange / viewchangeend sequence.
        """
        self._enqueue(
            lambda: self._set_view(
                center=center,
                zoom=zoom,
                bounds=bounds,
                padding=padding,
                center_offset=center_offset,
                animate=animate,
                on_applied=on_applied,
            )
        )

    def _set_view(
        self,
        center: Any,
        zoom: Optional[float],
        bounds: Any,
        padding: float,
        center_offset: Any,
        animate: bool,
        on_applied: Optional[Callable[[], None]],
    ) -> None:
        target_center = self._center if center is None else self.coords.from_provider_lat_lng(center)
        target_zoom = self._zoom if zoom is None else zoom

        if bounds is not None:
            canonical = self.coords.from_provider_bounds(bounds)
            target_center = canonical.center
            target_zoom = WebMercator.fit_zoom(
                bounds=canonical, width=self.width, height=self.height, padding=padding, max_zoom=self.max_zoom
            )
        target_zoom = self._clamp_zoom(target_zoom)

        if center_offset is not None:
            offset = self.coords.from_provider_pixel(center_offset)
            world = WebMercator.to_world_pixel(target_center, zoom=target_zoom)
            target_center = self._unproject(Pixel(x=world.x - offset.x, y=world.y - offset.y), zoom=target_zoom)

        self._commands.append(
            ViewCommand(center=self.coords.to_provider_lat_lng(target_center), zoom=target_zoom, animate=animate)
        )

        if self._changing:
            self._apply(target_center, target_zoom, on_applied)
            self._deliver(RawSignal.VIEW_CHANGE, None)
            return

        self._changing = True
        self._deliver(RawSignal.VIEW_CHANGE_START, None)
        self._apply(target_center, target_zoom, on_applied)
        self._deliver_and_drain(RawSignal.VIEW_CHANGE)
        self._changing = False
        self._deliver(RawSignal.VIEW_CHANGE_END, None)

    def _apply(self, center: LatLng, zoom: float, on_applied: Optional[Callable[[], None]]) -> None:
        self._center, self._zoom = center, zoom
        if on_applied is not None:
            on_applied()

    def _deliver_and_drain(self, signal: str) -> None:
        """Deliver, then run the work its handlers queued before returning."""
        queued_before = len(self._queue)
        self._deliver(signal, None)
        while len(self._queue) > queued_before:
            work = self._queue[queued_before]
            del self._queue[queued_before]
            work()

    def _clamp_zoom(self, zoom: float) -> float:
        return max(self.min_zoom, min(self.max_zoom, zoom))

    # =========================================================================
    # Projection
    # =========================================================================

    def location_to_pixel(self, lat_lng: Any) -> Any:
        """Native location -> native pixel relative to the container."""
        location = WebMercator.to_world_pixel(self.coords.from_provider_lat_lng(lat_lng), zoom=self._zoom)
        center = WebMercator.to_world_pixel(self._center, zoom=self._zoom)
        return self.coords.to_provider_pixel(
            Pixel(x=location.x - center.x + self.width / 2, y=location.y - center.y + self.height / 2)
        )

    def pixel_to_location(self, pixel: Any) -> Any:
        """Native container pixel -> native location."""
        return self.coords.to_provider_lat_lng(self._container_to_lat_lng(self.coords.from_provider_pixel(pixel)))

    def contains(self, lat_lng: Any) -> bool:
        """Whether a native location is inside the visible bounds."""
        point = self.coords.from_provider_lat_lng(lat_lng)
        bounds = self._canonical_bounds()
        if not bounds.s <= point.lat <= bounds.n:
            return False
        if bounds.w <= bounds.e:
            return bounds.w <= point.lng <= bounds.e
        # Visible area crosses the antimeridian
        return point.lng >= bounds.w or point.lng <= bounds.e

    def _container_to_lat_lng(self, pixel: Pixel) -> LatLng:
        center = WebMercator.to_world_pixel(self._center, zoom=self._zoom)
        world = Pixel(x=center.x - self.width / 2 + pixel.x, y=center.y - self.height / 2 + pixel.y)
        return self._unproject(world, zoom=self._zoom)

    @staticmethod
    def _unproject(world: Pixel, zoom: float) -> LatLng:
        size = WebMercator.world_size(zoom)
        return WebMercator.from_world_pixel(Pixel(x=world.x % size, y=max(0.0, min(size, world.y))), zoom=zoom)

    def _canonical_bounds(self) -> Bounds:
        north_west = self._container_to_lat_lng(Pixel(x=0, y=0))
        south_east = self._container_to_lat_lng(Pixel(x=self.width, y=self.height))
        if self.width >= WebMercator.world_size(self._zoom):
            return Bounds(n=north_west.lat, s=south_east.lat, e=180.0, w=-180.0)
        return Bounds(n=north_west.lat, s=south_east.lat, e=south_east.lng, w=north_west.lng)

    # =========================================================================
    # Entities
    # =========================================================================

    def add_entity(self, entity: Shape) -> None:
        self.entities.append(entity)

    def remove_entity(self, entity: Shape) -> None:
        index = self.index_of(entity)
        if index < 0:
            logger.debug(f"{entity!r} is not on the map; nothing to remove")
            return
        del self.entities[index]

    def index_of(self, entity: Shape) -> int:
        for index, candidate in enumerate(self.entities):
            if candidate is entity:
                return index
        return -1

    # =========================================================================
    # Raw signals
    # =========================================================================

    def on(self, signal: str, handler: RawHandler) -> int:
        """Subscribe to a raw signal; returns a handler id for off()."""
        handler_id = next(self._handler_ids)
        self._handlers[handler_id] = (signal, handler)
        return handler_id

    def off(self, handler_id: int) -> None:
        self._handlers.pop(handler_id, None)

    def fire(self, signal: str, payload: Any = None) -> None:
        """Raise a raw signal, e.g. a pointer event forwarded by the host."""
        self._enqueue(lambda: self._deliver(signal, payload))

    def _enqueue(self, work: Callable[[], None]) -> None:
        self._queue.append(work)
        if self._dispatching:
            return
        self._dispatching = True
        try:
            while self._queue:
                self._queue.popleft()()
        finally:
            self._dispatching = False

    def _deliver(self, signal: str, payload: Any) -> None:
        logger.debug(f"[RAW] {signal}")
        for handler_id, (handler_signal, handler) in list(self._handlers.items()):
            if handler_signal != signal or handler_id not in self._handlers:
                continue
            try:
                handler(payload)
            except Exception:
                logger.exception(f"Raw '{signal}' handler raised; continuing delivery")
