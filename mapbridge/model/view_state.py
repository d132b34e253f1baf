"""Interaction state records owned by a single MapAdapter."""

from dataclasses import dataclass
from typing import Any, Optional

from mapbridge.constants import CursorConfig
from mapbridge.model.lat_lng import LatLng


@dataclass(frozen=True)
class ViewState:
    """Snapshot of the view taken at a gesture boundary."""

    center: LatLng
    zoom: float


@dataclass
class GestureState:
    """Per-gesture one-shot flags.

    Both flags are reset exactly once, when the gesture settles.

    Note: The 'state' field is managed by python-statemachine when this object
    is passed as the model of GestureStateMachine.
    """

    state: Optional[str] = None
    pan_start_reported: bool = False
    zoom_start_reported: bool = False

    def reset(self) -> None:
        self.pan_start_reported = False
        self.zoom_start_reported = False


@dataclass
class ClickState:
    """Pointer state used to disambiguate clicks.

    Attributes:
        mouse_down: Primary button currently pressed
        double_clicked: A double-click arrived since the last click
        view_changed_since_mouse_down: The view moved after the last press
        cursor: Cursor restored after clicks and mouse-up
        hover_target: Shape whose icon was swapped for its over-icon
        hover_icon: The icon to restore on hover_target
    """

    mouse_down: bool = False
    double_clicked: bool = False
    view_changed_since_mouse_down: bool = False
    cursor: str = CursorConfig.AUTO
    hover_target: Any = None
    hover_icon: Optional[str] = None

    def clear_hover(self) -> None:
        self.hover_target = None
        self.hover_icon = None
