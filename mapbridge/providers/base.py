"""Provider capability interfaces.

Every supported mapping library is wrapped by one ProviderAdapter, which bundles:
- CoordinateAdapter: canonical LatLng/Bounds/Pixel <-> provider-native values
- StyleTranslator: canonical vector styles -> provider option dicts
- Shape constructors, marker option access and base-layer handling
- render(): turns the headless Viewport into the library's map object

Provider-native values are plain Python structures (lists, tuples, dicts);
adapters never leak canonical types into them.
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import Future
from typing import Any, Optional

from mapbridge.constants import ImageProbeConfig, StyleConfig
from mapbridge.core.image_probe import Dimensions, ImageDimensionProbe, ImageLoader, RemoteImage
from mapbridge.core.scheduler import Scheduler
from mapbridge.model.errors import ImageDimensionTimeout
from mapbridge.model.lat_lng import Bounds, LatLng, Pixel
from mapbridge.model.layer_config import BaseLayerConfig
from mapbridge.model.raw_event import Shape
from mapbridge.model.vector_style import LineStyle, MarkerStyle, PolygonStyle, hex_to_rgb

logger = logging.getLogger(__name__)


class CoordinateAdapter(ABC):
    """Pure, stateless conversions between canonical and native geometry."""

    @abstractmethod
    def from_provider_lat_lng(self, native: Any) -> LatLng:
        raise NotImplementedError

    @abstractmethod
    def to_provider_lat_lng(self, lat_lng: LatLng) -> Any:
        raise NotImplementedError

    @abstractmethod
    def from_provider_bounds(self, native: Any) -> Bounds:
        raise NotImplementedError

    @abstractmethod
    def to_provider_bounds(self, bounds: Bounds) -> Any:
        raise NotImplementedError

    @abstractmethod
    def from_provider_pixel(self, native: Any) -> Pixel:
        raise NotImplementedError

    @abstractmethod
    def to_provider_pixel(self, pixel: Pixel) -> Any:
        raise NotImplementedError

    def to_provider_lat_lngs(self, lat_lngs: list[LatLng]) -> list[Any]:
        return [self.to_provider_lat_lng(lat_lng) for lat_lng in lat_lngs]

    def bounds_around(self, lat_lngs: list[LatLng]) -> Bounds:
        """Smallest canonical bounds containing every location."""
        if not lat_lngs:
            raise ValueError("Cannot compute bounds of an empty location list")
        lats = [p.lat for p in lat_lngs]
        lngs = [p.lng for p in lat_lngs]
        return Bounds(n=max(lats), s=min(lats), e=max(lngs), w=min(lngs))


class MarkerOptions(dict):
    """Native marker options plus the entity built from them.

    While `entity` is None the options have not been used yet, so resolved
    icon dimensions are written into the dict itself; afterwards they are
    applied to the entity.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.entity: Optional[Shape] = None
        self.probe: Optional[ImageDimensionProbe] = None


class StyleTranslator(ABC):
    """Converts canonical vector styles into provider option dicts.

    Args:
        scheduler: Runs icon dimension polling; without one, unsized markers
            are left unsized
        image_loader: Builds an ImageSource for an icon URL
        probe_timeout_ms: None polls indefinitely
    """

    def __init__(
        self,
        scheduler: Optional[Scheduler] = None,
        image_loader: ImageLoader = RemoteImage,
        probe_timeout_ms: Optional[float] = ImageProbeConfig.TIMEOUT_MS,
    ) -> None:
        self.scheduler = scheduler
        self.image_loader = image_loader
        self.probe_timeout_ms = probe_timeout_ms
        self.probes: list[ImageDimensionProbe] = []

    # ---- color helpers shared by subclasses ----

    @staticmethod
    def rgba(hex_color: str, opacity: Optional[int]) -> tuple[int, int, int, int]:
        """Hex color plus 0-255 opacity; a missing opacity is opaque."""
        r, g, b = hex_to_rgb(hex_color)
        return r, g, b, StyleConfig.OPAQUE if opacity is None else opacity

    # ---- provider-specific option names ----

    @abstractmethod
    def convert_line(self, style: LineStyle) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def convert_polygon(self, style: PolygonStyle) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def icon_options(
        self, url: Optional[str], width: Optional[float], height: Optional[float], anchor: Optional[Pixel]
    ) -> dict[str, Any]:
        """Native icon options; missing values are left out."""
        raise NotImplementedError

    @abstractmethod
    def apply_to_entity(self, entity: Shape, options: dict[str, Any]) -> None:
        """Update an already constructed marker."""
        raise NotImplementedError

    # ---- markers ----

    def convert_marker(self, style: MarkerStyle) -> MarkerOptions:
        """Marker options, probing the icon size when it is not given.

        Sized icons without an anchor are anchored at their center.
        """
        anchor = style.anchor
        if style.has_dimensions and anchor is None:
            anchor = Pixel(x=style.width / 2, y=style.height / 2)

        options = MarkerOptions(self.icon_options(url=style.url, width=style.width, height=style.height, anchor=anchor))
        if not style.has_dimensions and style.url is not None:
            self._probe_icon(options=options, url=style.url, anchor=style.anchor)
        return options

    def _probe_icon(self, options: MarkerOptions, url: str, anchor: Optional[Pixel]) -> None:
        if self.scheduler is None:
            logger.warning(f"No scheduler; icon {url} stays unsized")
            return

        probe = ImageDimensionProbe(
            scheduler=self.scheduler,
            source=self.image_loader(url),
            timeout_ms=self.probe_timeout_ms,
        )
        options.probe = probe
        self.probes.append(probe)

        def resolved(future: Future[Dimensions]) -> None:
            if probe in self.probes:
                self.probes.remove(probe)
            try:
                width, height = future.result()
            except ImageDimensionTimeout:
                logger.warning(f"Icon {url} never reported its size; marker stays unsized")
                return
            self._apply_dimensions(options=options, width=width, height=height, anchor=anchor)

        probe.future.add_done_callback(resolved)
        probe.start()

    def _apply_dimensions(self, options: MarkerOptions, width: int, height: int, anchor: Optional[Pixel]) -> None:
        if anchor is None:
            anchor = Pixel(x=width / 2, y=height / 2)
        sized = self.icon_options(url=None, width=width, height=height, anchor=anchor)
        if options.entity is None:
            options.update(sized)
            logger.info(f"Icon size {width}x{height} pre-seeded into marker options")
        else:
            self.apply_to_entity(entity=options.entity, options=sized)
            logger.info(f"Icon size {width}x{height} applied to {options.entity!r}")

    def cancel_probes(self) -> None:
        for probe in list(self.probes):
            probe.cancel()
        self.probes.clear()


class ProviderAdapter(ABC):
    """One mapping library behind the canonical contract.

    Subclasses set NAME, DEFAULT_BASE_LAYERS (code -> native base map),
    DEFAULT_BASE_LAYER_CODE (synthesized when no configured base layer is
    visible), GENERIC_BASE_LAYER_CODE (used under custom base layers) and
    MARKER_OPTION_NAMES (canonical marker option -> native key).
    """

    NAME: str = ""
    DEFAULT_BASE_LAYERS: dict[str, Any] = {}
    DEFAULT_BASE_LAYER_CODE: str = ""
    GENERIC_BASE_LAYER_CODE: str = ""
    MARKER_OPTION_NAMES: dict[str, str] = {}

    def __init__(self, coords: CoordinateAdapter, styles: StyleTranslator) -> None:
        self.coords = coords
        self.styles = styles

    @property
    def name(self) -> str:
        return self.NAME

    # ---- base layers ----

    def match_base_layer(self, base_layer: BaseLayerConfig) -> Optional[Any]:
        """Native base map for a default code, or None for a custom base layer."""
        return self.DEFAULT_BASE_LAYERS.get(base_layer.code)

    def base_map_type(self, base_layer: BaseLayerConfig) -> str:
        """Map type the viewport runs under for this base layer."""
        if self.match_base_layer(base_layer) is not None:
            return base_layer.code
        return self.GENERIC_BASE_LAYER_CODE

    # ---- shapes ----

    def create_marker(self, lat_lng: Any, options: Optional[MarkerOptions] = None) -> Shape:
        """Marker at a native location.

        The shape takes a copy of the options; resolved icon dimensions
        reach it through MarkerOptions.entity.
        """
        options = options if options is not None else MarkerOptions()
        marker = Shape(kind="marker", coordinates=lat_lng, options=dict(options))
        if isinstance(options, MarkerOptions):
            options.entity = marker
        return marker

    def create_line(self, lat_lngs: list[Any], options: Optional[dict[str, Any]] = None) -> Shape:
        return Shape(kind="line", coordinates=list(lat_lngs), options=dict(options or {}))

    def create_polygon(self, lat_lngs: list[Any], options: Optional[dict[str, Any]] = None) -> Shape:
        return Shape(kind="polygon", coordinates=list(lat_lngs), options=dict(options or {}))

    def create_tile_layer(
        self, url_template: str, subdomains: Optional[list[str]] = None, opacity: Optional[float] = None
    ) -> Shape:
        """Tile layer; the URL template is handed to the library unexpanded."""
        options: dict[str, Any] = {"opacity": 1.0 if opacity is None else opacity}
        if subdomains:
            options["subdomains"] = list(subdomains)
        return Shape(kind="tile", coordinates=url_template, options=options)

    def update_marker(self, marker: Shape, options: dict[str, Any]) -> None:
        self.styles.apply_to_entity(entity=marker, options=options)

    def set_marker_options(self, marker: Shape, options: dict[str, Any]) -> None:
        """Apply canonical marker options (class, icon, label, visible, z_index).

        Unknown keys are ignored.
        """
        native: dict[str, Any] = {}
        for key, value in options.items():
            native_key = self.MARKER_OPTION_NAMES.get(key)
            if native_key is None:
                logger.debug(f"Ignoring unsupported marker option '{key}'")
                continue
            native[native_key] = value
        if "visible" in options:
            marker.visible = bool(options["visible"])
        marker.options.update(native)

    def get_marker_option(self, marker: Shape, option: str) -> Any:
        """Native value of a canonical marker option; None when unsupported."""
        native_key = self.MARKER_OPTION_NAMES.get(option)
        if native_key is None:
            return None
        return marker.options.get(native_key)

    def get_marker_icon(self, marker: Shape) -> Optional[str]:
        return self.get_marker_option(marker, "icon")

    @abstractmethod
    def get_marker_anchor(self, marker: Shape) -> Optional[Pixel]:
        raise NotImplementedError

    # ---- rendering ----

    @abstractmethod
    def render(self, viewport: Any, base_layer: BaseLayerConfig, keyboard: bool = True) -> Any:
        """Build the library's map object for the current viewport state."""
        raise NotImplementedError
