"""Data model for the map abstraction layer.

- LatLng / Pixel / Bounds: Canonical geometry atoms
- LayerConfig / BaseLayerConfig: Layer identity and settings
- VectorStyle: Provider-agnostic line/marker/polygon styles
- ViewState / GestureState / ClickState: Interaction state
- MapOptions / RestrictZoom: Runtime configuration
- RawMapEvent / Shape: Provider callbacks and native entities
- errors: Configuration and unsupported-operation exceptions
"""

from mapbridge.model.errors import (
    ImageDimensionTimeout,
    LayerNameError,
    MapConfigurationError,
    MissingDimensionError,
    MissingLayerTypeError,
    UnsupportedOperationError,
)
from mapbridge.model.lat_lng import Bounds, LatLng, Pixel, lat_lngs_are_equal
from mapbridge.model.layer_config import BaseLayerConfig, LayerConfig
from mapbridge.model.map_options import MapOptions, RestrictZoom
from mapbridge.model.raw_event import RawMapEvent, Shape
from mapbridge.model.vector_style import (
    LineStyle,
    MarkerStyle,
    PolygonStyle,
    ResolvedStyle,
    VectorStyle,
    hex_to_rgb,
)
from mapbridge.model.view_state import ClickState, GestureState, ViewState

__all__ = [
    "LatLng",
    "Pixel",
    "Bounds",
    "lat_lngs_are_equal",
    "LayerConfig",
    "BaseLayerConfig",
    "VectorStyle",
    "LineStyle",
    "MarkerStyle",
    "PolygonStyle",
    "ResolvedStyle",
    "hex_to_rgb",
    "ViewState",
    "GestureState",
    "ClickState",
    "MapOptions",
    "RestrictZoom",
    "RawMapEvent",
    "Shape",
    "MapConfigurationError",
    "LayerNameError",
    "MissingLayerTypeError",
    "MissingDimensionError",
    "UnsupportedOperationError",
    "ImageDimensionTimeout",
]
