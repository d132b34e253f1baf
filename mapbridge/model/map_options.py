"""Runtime configuration surface consumed by MapAdapter."""

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from mapbridge.constants import ImageProbeConfig, MapConfig
from mapbridge.model.lat_lng import LatLng
from mapbridge.model.layer_config import BaseLayerConfig, LayerConfig

# A zoom bound: literal level, "auto" (current zoom at configuration time) or unset
ZoomBound = Union[int, float, str, None]


@dataclass
class RestrictZoom:
    """Configured zoom restriction."""

    min: ZoomBound = None
    max: ZoomBound = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RestrictZoom":
        return cls(min=data.get("min"), max=data.get("max"))


@dataclass
class MapOptions:
    """Map configuration.

    Attributes:
        base_layers: None means "not configured" (a provider default is used)
        layers: Overlay layers created at startup
        restrict_zoom: Optional zoom restriction
        center/zoom: Initial view; MapConfig defaults when None
        div: Container element id measured through the Renderer
        keyboard: Whether keyboard navigation is enabled
        server: Prefix for the built-in marker icon URL
        unrestricted_base_layers: Base-layer codes exempt from max-zoom correction
        image_probe_timeout_ms: None polls marker icons indefinitely
    """

    base_layers: Optional[list[BaseLayerConfig]] = None
    layers: list[LayerConfig] = field(default_factory=list)
    restrict_zoom: Optional[RestrictZoom] = None
    center: Optional[LatLng] = None
    zoom: Optional[float] = None
    div: str = MapConfig.DEFAULT_DIV
    keyboard: bool = True
    server: str = ""
    unrestricted_base_layers: frozenset[str] = frozenset()
    image_probe_timeout_ms: Optional[float] = ImageProbeConfig.TIMEOUT_MS

    @property
    def initial_center(self) -> LatLng:
        if self.center is not None:
            return self.center
        return LatLng(lat=MapConfig.DEFAULT_CENTER_LAT, lng=MapConfig.DEFAULT_CENTER_LNG)

    @property
    def initial_zoom(self) -> float:
        return self.zoom if self.zoom is not None else MapConfig.DEFAULT_ZOOM

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MapOptions":
        """Build options from the camelCase configuration object."""
        base_layers = data.get("baseLayers")
        restrict = data.get("restrictZoom")
        center = data.get("center")
        tools = data.get("tools") or {}
        return cls(
            base_layers=[BaseLayerConfig.from_dict(b) for b in base_layers] if base_layers is not None else None,
            layers=[LayerConfig.from_dict(layer) for layer in data.get("layers", [])],
            restrict_zoom=RestrictZoom.from_dict(restrict) if restrict is not None else None,
            center=LatLng(lat=center["lat"], lng=center["lng"]) if center is not None else None,
            zoom=data.get("zoom"),
            div=data.get("div", MapConfig.DEFAULT_DIV),
            keyboard=tools.get("keyboard", True),
            server=data.get("server", ""),
        )
