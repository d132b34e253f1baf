"""Raw provider callbacks and the native entities they target."""

import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from mapbridge.constants import ClickConfig
from mapbridge.model.lat_lng import Pixel

_shape_ids = itertools.count(1)


@dataclass(eq=False)
class Shape:
    """A native entity held by the provider map (marker, line, polygon, tile).

    Shapes compare by identity; the provider adapter owns `coordinates` and
    `options`, which are in provider-native form.

    Attributes:
        kind: "marker", "line", "polygon" or "tile"
        coordinates: Native location (marker), native location list
            (line/polygon) or URL template (tile)
        options: Native option dict
        click_handler: Called with the shape when it is clicked
        allow_click_through: Clicks on the shape count as map clicks
        data: Free-form attributes; "over_icon" swaps the icon on hover
    """

    kind: str
    coordinates: Any
    options: dict[str, Any] = field(default_factory=dict)
    visible: bool = True
    click_handler: Optional[Callable[["Shape"], None]] = None
    allow_click_through: bool = False
    data: dict[str, Any] = field(default_factory=dict)
    id: int = field(default_factory=lambda: next(_shape_ids))

    def __repr__(self) -> str:
        return f"Shape({self.kind}#{self.id}, visible={self.visible})"


@dataclass
class RawMapEvent:
    """A pointer callback as delivered by the provider.

    Attributes:
        original_event: Native event payload re-emitted on the event bus
        target_type: "map" for the background, "shape" otherwise
        target: The clicked Shape, when target_type is "shape"
        is_primary: Originated from the primary pointer
        pixel: Pointer position relative to the map container
        handled: Set to tell the provider to skip its default behaviour
    """

    original_event: Any = None
    target_type: str = ClickConfig.TARGET_MAP
    target: Optional[Shape] = None
    is_primary: bool = True
    shift_key: bool = False
    pixel: Optional[Pixel] = None
    handled: bool = False

    @property
    def on_map(self) -> bool:
        return self.target_type == ClickConfig.TARGET_MAP
