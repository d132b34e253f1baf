"""Gesture synthesis from raw view-change callbacks.

Providers raise viewchangestart / viewchange / viewchangeend at high
frequency and never say whether a tick starts a gesture or continues one.
ViewStateTracker turns that stream into pan/zoom start, continuing and end
events with one start and one end per gesture.

Gesture lifecycle is a two-state python-statemachine machine:

    settled --start_gesture / continue_gesture--> changing
    changing --continue_gesture--> changing
    changing --end_gesture--> settled   (one-shot flags reset here)

Events emitted per raw signal:
    viewchangestart: snapshot old view, correct zoom, emit viewchangestart
    viewchange:      zoomstart (once) + zooming while zoom differs,
                     panstart (once) + panning while only the center differs,
                     correct zoom, emit viewchanging
    viewchangeend:   zoomend if zoomstart was reported or zoom differs,
                     panend if panstart was reported (or, with no zoom, the
                     center differs); snapshot, reset flags, refresh
                     attribution, viewchangeend
"""

import logging
from typing import Any, Callable

from statemachine import State, StateMachine

from mapbridge.core.event_bus import EventBus, MapEvent
from mapbridge.core.zoom_range_guard import ZoomRangeGuard
from mapbridge.model.lat_lng import LatLng, lat_lngs_are_equal
from mapbridge.model.view_state import GestureState, ViewState
from mapbridge.providers.viewport import RawSignal, Viewport

logger = logging.getLogger(__name__)


class GestureStateMachine(StateMachine):
    """Settled/changing lifecycle of one view gesture.

    The GestureState model carries the one-shot flags; they are reset
    exactly once per gesture, on end_gesture.
    """

    settled = State("Settled", initial=True)
    changing = State("Changing")

    start_gesture = settled.to(changing) | changing.to(changing)
    continue_gesture = settled.to(changing) | changing.to(changing)
    # An end without a start still settles (providers may drop the start)
    end_gesture = changing.to(settled) | settled.to(settled)

    def __init__(self, gesture: GestureState | None = None) -> None:
        super().__init__(model=gesture or GestureState())

    @property
    def gesture(self) -> GestureState:
        return self.model

    @property
    def is_changing(self) -> bool:
        return self.changing.is_active

    def before_end_gesture(self) -> None:
        """Hook: Reset per-gesture flags."""
        self.gesture.reset()


class ViewStateTracker:
    """Derives canonical gesture events from a Viewport's raw view signals.

    Args:
        viewport: Source of raw signals and current view
        bus: Receives canonical events
        guard: Corrects out-of-range zoom on start and on every tick
        refresh_attribution: Called at every gesture end
    """

    def __init__(
        self,
        viewport: Viewport,
        bus: EventBus,
        guard: ZoomRangeGuard,
        refresh_attribution: Callable[[], None] = lambda: None,
    ) -> None:
        self.viewport = viewport
        self.bus = bus
        self.guard = guard
        self.refresh_attribution = refresh_attribution
        self.machine = GestureStateMachine()
        self.old_view = self._current_view()
        self._handler_ids = [
            viewport.on(RawSignal.VIEW_CHANGE_START, self.on_view_change_start),
            viewport.on(RawSignal.VIEW_CHANGE, self.on_view_change),
            viewport.on(RawSignal.VIEW_CHANGE_END, self.on_view_change_end),
        ]

    @property
    def gesture(self) -> GestureState:
        return self.machine.gesture

    def detach(self) -> None:
        for handler_id in self._handler_ids:
            self.viewport.off(handler_id)
        self._handler_ids = []

    def _current_view(self) -> ViewState:
        center = self.viewport.coords.from_provider_lat_lng(self.viewport.get_center())
        return ViewState(center=center, zoom=self.viewport.get_zoom())

    def _center_moved(self, center: LatLng) -> bool:
        return not lat_lngs_are_equal(self.old_view.center, center)

    # =========================================================================
    # Raw signal handlers
    # =========================================================================

    def on_view_change_start(self, payload: Any = None) -> None:
        self.machine.send("start_gesture")
        self.old_view = self._current_view()
        logger.debug(f"Gesture start at zoom {self.old_view.zoom}")
        self.guard.correct(self.old_view.center)
        self.bus.emit(MapEvent.VIEW_CHANGE_START)

    def on_view_change(self, payload: Any = None) -> None:
        self.machine.send("continue_gesture")
        current = self._current_view()
        gesture = self.gesture

        if current.zoom == self.old_view.zoom and self._center_moved(current.center):
            if not gesture.pan_start_reported:
                self.bus.emit(MapEvent.PAN_START)
                gesture.pan_start_reported = True
            self.bus.emit(MapEvent.PANNING)

        if current.zoom != self.old_view.zoom:
            if not gesture.zoom_start_reported:
                self.bus.emit(MapEvent.ZOOM_START)
                gesture.zoom_start_reported = True
            self.bus.emit(MapEvent.ZOOMING)

        self.guard.correct(self.old_view.center)
        self.bus.emit(MapEvent.VIEW_CHANGING)

    def on_view_change_end(self, payload: Any = None) -> None:
        current = self._current_view()
        gesture = self.gesture
        # A reported start always gets its end, even when the view was snapped back
        zoom_ended = gesture.zoom_start_reported or current.zoom != self.old_view.zoom
        pan_ended = gesture.pan_start_reported or (not zoom_ended and self._center_moved(current.center))
        if zoom_ended:
            self.bus.emit(MapEvent.ZOOM_END)
        if pan_ended:
            self.bus.emit(MapEvent.PAN_END)

        self.old_view = current
        self.machine.send("end_gesture")
        logger.debug(f"Gesture settled at zoom {current.zoom}")
        self.refresh_attribution()
        self.bus.emit(MapEvent.VIEW_CHANGE_END)
