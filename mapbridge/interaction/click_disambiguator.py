"""Pointer event handling and click vs double-click disambiguation.

Providers deliver click and dblclick as independent callbacks, so a double
click always arrives after a single click. Each click is held for a
suppression window; the click is dropped if a double click, a view change or
a non-primary pointer shows up in the meantime.

Resolution after the window:
    map background or click-through shape -> "click"
    other shape -> shape.click_handler(shape), then "shapeclick"
"""

import logging
from typing import Any, Optional

from mapbridge.constants import ClickConfig, CursorConfig
from mapbridge.core.event_bus import EventBus, MapEvent
from mapbridge.core.scheduler import Scheduler, TimerHandle
from mapbridge.model.raw_event import RawMapEvent
from mapbridge.model.view_state import ClickState
from mapbridge.providers.base import ProviderAdapter
from mapbridge.providers.viewport import RawSignal, Viewport
from mapbridge.renderer import Renderer

logger = logging.getLogger(__name__)


class ClickDisambiguator:
    """Turns raw pointer callbacks into canonical pointer events.

    Args:
        viewport: Source of raw pointer signals
        bus: Receives canonical events; its view-change events mark the
            pending click as stale
        scheduler: Runs the suppression window
        renderer: Receives cursor changes
        provider: Swaps marker icons on hover
        window_ms: Suppression window length
    """

    def __init__(
        self,
        viewport: Viewport,
        bus: EventBus,
        scheduler: Scheduler,
        renderer: Renderer,
        provider: ProviderAdapter,
        window_ms: float = ClickConfig.SUPPRESSION_WINDOW_MS,
    ) -> None:
        self.viewport = viewport
        self.bus = bus
        self.scheduler = scheduler
        self.renderer = renderer
        self.provider = provider
        self.window_ms = window_ms
        self.state = ClickState()
        self.pending: list[TimerHandle] = []

        handlers = {
            RawSignal.CLICK: self.on_click,
            RawSignal.DBL_CLICK: self.on_double_click,
            RawSignal.MOUSE_DOWN: self.on_mouse_down,
            RawSignal.MOUSE_MOVE: self.on_mouse_move,
            RawSignal.MOUSE_UP: self.on_mouse_up,
            RawSignal.RIGHT_CLICK: self.on_right_click,
            RawSignal.MOUSE_OUT: self.on_mouse_out,
            RawSignal.MOUSE_OVER: self.on_mouse_over,
        }
        self._handler_ids = [viewport.on(signal, handler) for signal, handler in handlers.items()]
        self._subscriptions = [
            bus.subscribe(MapEvent.VIEW_CHANGE_START, self._mark_view_changed),
            bus.subscribe(MapEvent.VIEW_CHANGING, self._mark_view_changed),
        ]

    def detach(self) -> None:
        for handler_id in self._handler_ids:
            self.viewport.off(handler_id)
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        for timer in self.pending:
            timer.cancel()
        self.pending.clear()

    @staticmethod
    def _valid(event: Any, signal: str) -> Optional[RawMapEvent]:
        if isinstance(event, RawMapEvent):
            return event
        logger.debug(f"Ignoring malformed '{signal}' callback: {event!r}")
        return None

    def _mark_view_changed(self, payload: Any = None) -> None:
        self.state.view_changed_since_mouse_down = True

    def _show_cursor(self, cursor: str) -> None:
        self.renderer.set_cursor(cursor)

    # =========================================================================
    # Clicks
    # =========================================================================

    def on_click(self, event: Any) -> None:
        event = self._valid(event, RawSignal.CLICK)
        if event is None:
            return
        self.state.double_clicked = False
        self._show_cursor(self.state.cursor)
        self.pending.append(self.scheduler.call_later(self.window_ms, self._resolve_click, event))

    def _resolve_click(self, event: RawMapEvent) -> None:
        self.pending = [timer for timer in self.pending if not timer.cancelled and timer.due_ms > self.scheduler.now()]
        # State may have changed since the click; re-check everything here
        if self.state.double_clicked or self.state.view_changed_since_mouse_down or not event.is_primary:
            logger.debug("Click suppressed")
            return

        target = event.target
        if event.on_map or (target is not None and target.allow_click_through):
            self.bus.emit(MapEvent.CLICK, event.original_event)
            return

        if target is not None and target.click_handler is not None:
            try:
                target.click_handler(target)
            except Exception:
                logger.exception(f"Click handler of {target!r} raised")
        self.bus.emit(MapEvent.SHAPE_CLICK, event.original_event)

    def on_double_click(self, event: Any) -> None:
        event = self._valid(event, RawSignal.DBL_CLICK)
        if event is None:
            return
        self.state.double_clicked = True
        self._show_cursor(self.state.cursor)
        self.bus.emit(MapEvent.DBL_CLICK, event.original_event)

    # =========================================================================
    # Mouse
    # =========================================================================

    def on_mouse_down(self, event: Any) -> None:
        event = self._valid(event, RawSignal.MOUSE_DOWN)
        if event is None:
            return
        self.state.mouse_down = True
        self.state.view_changed_since_mouse_down = False
        self._show_cursor(CursorConfig.MOVE)
        self.bus.emit(MapEvent.MOUSE_DOWN, event.original_event)
        if event.shift_key:
            event.handled = True

    def on_mouse_move(self, event: Any) -> None:
        event = self._valid(event, RawSignal.MOUSE_MOVE)
        if event is None:
            return
        if self.state.mouse_down:
            self._show_cursor(CursorConfig.MOVE)
        else:
            cursor = CursorConfig.AUTO
            self._restore_hover_icon()
            target = event.target
            if not event.on_map and target is not None and not target.allow_click_through:
                cursor = CursorConfig.POINTER
                self._show_over_icon(target)
            self._show_cursor(cursor)
            self.state.cursor = cursor
        self.bus.emit(MapEvent.MOUSE_MOVE, event.original_event)

    def _restore_hover_icon(self) -> None:
        if self.state.hover_target is not None and self.state.hover_icon is not None:
            self.provider.set_marker_options(self.state.hover_target, {"icon": self.state.hover_icon})
        self.state.clear_hover()

    def _show_over_icon(self, target: Any) -> None:
        over_icon = target.data.get("over_icon")
        if over_icon is None:
            return
        self.state.hover_icon = self.provider.get_marker_icon(target)
        self.state.hover_target = target
        if self.state.hover_icon != over_icon:
            self.provider.set_marker_options(target, {"icon": over_icon})

    def on_mouse_up(self, event: Any) -> None:
        event = self._valid(event, RawSignal.MOUSE_UP)
        if event is None:
            return
        self.state.mouse_down = False
        self._show_cursor(self.state.cursor)
        self.bus.emit(MapEvent.MOUSE_UP, event.original_event)

    def on_right_click(self, event: Any) -> None:
        event = self._valid(event, RawSignal.RIGHT_CLICK)
        if event is None:
            return
        self.bus.emit(MapEvent.RIGHT_CLICK, event.original_event)
        event.handled = True

    def on_mouse_out(self, event: Any) -> None:
        event = self._valid(event, RawSignal.MOUSE_OUT)
        if event is not None:
            self.bus.emit(MapEvent.MOUSE_OUT, event.original_event)

    def on_mouse_over(self, event: Any) -> None:
        event = self._valid(event, RawSignal.MOUSE_OVER)
        if event is not None:
            self.bus.emit(MapEvent.MOUSE_OVER, event.original_event)
