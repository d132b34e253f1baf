"""MapAdapter - composition root exposing the canonical map contract.

One MapAdapter wires a ProviderAdapter to its own Viewport, EventBus,
LayerRegistry, ZoomRangeGuard, ViewStateTracker and ClickDisambiguator. No
state is shared between instances, so several maps can live side by side.

Canonical operations take and return LatLng / Pixel / Bounds; conversion to
provider-native values happens here, through the provider's CoordinateAdapter.

Example:
    scheduler = ManualScheduler()
    fmap = MapAdapter(options=MapOptions.from_dict(config), provider="folium", scheduler=scheduler)
    fmap.on(MapEvent.ZOOM_END, lambda _: print(fmap.get_zoom()))
    fmap.center_and_zoom(LatLng(lat=46.5, lng=7.9), zoom=10, callback=done)
    scheduler.advance(ViewConfig.SETTLE_DEBOUNCE_MS)
    html = fmap.render().get_root().render()
"""

import logging
import random
from typing import Any, Callable, Optional, Union

from mapbridge.constants import MapConfig, ViewConfig
from mapbridge.core.event_bus import EventBus, Handler, MapEvent, Subscription
from mapbridge.core.image_probe import ImageLoader, RemoteImage
from mapbridge.core.scheduler import ManualScheduler, Scheduler, TimerHandle
from mapbridge.core.zoom_range_guard import ZoomRangeGuard
from mapbridge.interaction.click_disambiguator import ClickDisambiguator
from mapbridge.interaction.view_state_tracker import ViewStateTracker
from mapbridge.layers.layer_registry import LayerRegistry, _epoch_ms
from mapbridge.model.errors import UnsupportedOperationError
from mapbridge.model.lat_lng import Bounds, LatLng, Pixel, lat_lngs_are_equal
from mapbridge.model.layer_config import BaseLayerConfig, LayerConfig
from mapbridge.model.map_options import MapOptions
from mapbridge.model.raw_event import RawMapEvent, Shape
from mapbridge.model.vector_style import LineStyle, MarkerStyle, PolygonStyle
from mapbridge.providers import get_provider
from mapbridge.providers.base import MarkerOptions, ProviderAdapter
from mapbridge.providers.viewport import Viewport
from mapbridge.renderer import HeadlessRenderer, Renderer

logger = logging.getLogger(__name__)


class MapAdapter:
    """A map bound to one provider.

    Args:
        options: Map configuration (MapOptions defaults when None)
        provider: ProviderAdapter instance or registered name
        scheduler: Timer host; a ManualScheduler when None
        renderer: Page collaborator; a HeadlessRenderer when None
        bus: Event bus; a private one when None
        image_loader: Builds icon ImageSources for dimension probing
        refresh_attribution: Called after layer add/remove and every view settle
        clock_ms / rng: Sources for generated layer names
    """

    def __init__(
        self,
        options: Optional[MapOptions] = None,
        provider: Union[ProviderAdapter, str] = "pydeck",
        scheduler: Optional[Scheduler] = None,
        renderer: Optional[Renderer] = None,
        bus: Optional[EventBus] = None,
        image_loader: ImageLoader = RemoteImage,
        refresh_attribution: Callable[[], None] = lambda: None,
        clock_ms: Callable[[], int] = _epoch_ms,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.options = options or MapOptions()
        self.scheduler = scheduler or ManualScheduler()
        self.renderer = renderer or HeadlessRenderer()
        self.bus = bus or EventBus()
        self.refresh_attribution = refresh_attribution
        # Cancel functions of center_and_zoom callbacks still waiting to settle
        self._settle_waits: list[Callable[[], None]] = []

        if isinstance(provider, str):
            provider = get_provider(
                provider,
                styles_kwargs={
                    "scheduler": self.scheduler,
                    "image_loader": image_loader,
                    "probe_timeout_ms": self.options.image_probe_timeout_ms,
                },
            )
        elif provider.styles.scheduler is None:
            provider.styles.scheduler = self.scheduler
        self.provider = provider
        self.coords = provider.coords

        self.registry = LayerRegistry(
            bus=self.bus,
            styles=provider.styles,
            server=self.options.server,
            refresh_attribution=refresh_attribution,
            clock_ms=clock_ms,
            rng=rng,
        )
        base_layer = self.registry.init_base_layers(
            base_layers=self.options.base_layers,
            default_code=provider.DEFAULT_BASE_LAYER_CODE,
            is_default=lambda base: provider.match_base_layer(base) is not None,
        )

        width, height = self.renderer.get_outer_dimensions(self.options.div)
        self.viewport = Viewport(
            coords=self.coords,
            center=self.coords.to_provider_lat_lng(self.options.initial_center),
            zoom=self.options.initial_zoom,
            width=width,
            height=height,
            map_type=provider.base_map_type(base_layer),
        )
        self.initial_center = self.get_center()
        self.initial_zoom = self.viewport.get_zoom()

        self.guard = ZoomRangeGuard(
            read_zoom=self.viewport.get_zoom,
            set_view=self._correct_view,
            is_unrestricted=self._is_unrestricted,
        )
        self.guard.configure(self.options.restrict_zoom, current_zoom=self.viewport.get_zoom())

        self.tracker = ViewStateTracker(
            viewport=self.viewport, bus=self.bus, guard=self.guard, refresh_attribution=refresh_attribution
        )
        self.clicks = ClickDisambiguator(
            viewport=self.viewport,
            bus=self.bus,
            scheduler=self.scheduler,
            renderer=self.renderer,
            provider=provider,
        )

        logger.info(
            f"Map created: provider={provider.name}, base={base_layer.code}, "
            f"center={self.initial_center}, zoom={self.initial_zoom}"
        )
        for layer in list(self.options.layers):
            self.add_layer(layer)

    def __repr__(self) -> str:
        return f"MapAdapter(provider={self.provider.name}, zoom={self.viewport.get_zoom()})"

    # =========================================================================
    # Events
    # =========================================================================

    def on(self, event: Union[MapEvent, str], handler: Handler) -> Subscription:
        """Subscribe to a canonical event."""
        return self.bus.subscribe(event, handler)

    def trigger_event(self, target: Union[str, Shape], name: str, event: RawMapEvent) -> None:
        """Re-inject a raw pointer event as if the provider raised it.

        target is "map" or the Shape the event is aimed at.
        """
        if target == "map":
            event.target_type = "map"
            event.target = None
        else:
            event.target_type = "shape"
            event.target = target
        self.viewport.fire(name, event)

    # =========================================================================
    # View
    # =========================================================================

    def _set_view(self, center: Optional[LatLng] = None, zoom: Optional[float] = None, **kwargs: Any) -> None:
        native_center = self.coords.to_provider_lat_lng(center) if center is not None else None
        self.viewport.set_view(center=native_center, zoom=zoom, **kwargs)

    def _correct_view(self, center: LatLng, zoom: float) -> None:
        self._set_view(center=center, zoom=zoom, animate=False, on_applied=self.guard.correction_applied)

    def _is_unrestricted(self) -> bool:
        active = self.registry.active_base_layer
        return active is not None and active.code in self.options.unrestricted_base_layers

    def center(self, lat_lng: LatLng) -> None:
        self._set_view(center=lat_lng)

    def center_and_zoom(self, lat_lng: LatLng, zoom: float, callback: Optional[Callable[[], None]] = None) -> None:
        """Center and zoom; callback runs once the view has settled.

        The callback waits for a viewchangeend followed by SETTLE_DEBOUNCE_MS of
        quiet, then its subscription is removed. When the map already shows
        lat_lng at zoom, the callback runs immediately.
        """
        if lat_lngs_are_equal(self.get_center(), lat_lng) and self.get_zoom() == zoom:
            if callback is not None:
                callback()
            return

        if callback is not None:
            self._call_when_settled(callback)
        self._set_view(center=lat_lng, zoom=int(zoom))

    def _call_when_settled(self, callback: Callable[[], None]) -> None:
        timer: Optional[TimerHandle] = None
        subscription: Optional[Subscription] = None

        def cancel() -> None:
            subscription.unsubscribe()
            if timer is not None:
                timer.cancel()
            if cancel in self._settle_waits:
                self._settle_waits.remove(cancel)

        def fire() -> None:
            cancel()
            callback()

        def settled(_: Any) -> None:
            nonlocal timer
            if timer is not None:
                timer.cancel()
            timer = self.scheduler.call_later(ViewConfig.SETTLE_DEBOUNCE_MS, fire)

        subscription = self.bus.subscribe(MapEvent.VIEW_CHANGE_END, settled)
        self._settle_waits.append(cancel)

    def zoom(self, level: float) -> None:
        self._set_view(zoom=level)

    def zoom_in(self, to_dot: bool = False) -> None:
        """Zoom in one level, optionally centering on the click dot."""
        zoom = self.viewport.get_zoom() + 1
        if to_dot:
            self._set_view(center=self.get_click_dot_lat_lng(), zoom=zoom)
        else:
            self._set_view(zoom=zoom)

    def zoom_out(self) -> None:
        self._set_view(zoom=self.viewport.get_zoom() - 1)

    def to_bounds(self, bounds: Bounds) -> None:
        self.viewport.set_view(
            bounds=self.coords.to_provider_bounds(bounds), padding=ViewConfig.FIT_BOUNDS_PADDING_PX
        )

    def to_lat_lngs(self, lat_lngs: list[LatLng]) -> None:
        self.to_bounds(self.coords.bounds_around(lat_lngs))

    def to_markers(self, markers: list[Shape]) -> None:
        self.to_lat_lngs([self.get_marker_lat_lng(marker) for marker in markers])

    def to_initial_extent(self) -> None:
        self._set_view(center=self.initial_center, zoom=self.initial_zoom)

    def pan_by_pixels(self, pixels: Pixel, callback: Optional[Callable[[], None]] = None) -> None:
        """Pan so the current center shows at pixels from the middle.

        Animated unless a callback is given; the callback runs right away.
        """
        self.viewport.set_view(
            center=self.viewport.get_center(),
            center_offset=self.coords.to_provider_pixel(pixels),
            animate=callback is None,
        )
        if callback is not None:
            callback()

    def get_bounds(self) -> Bounds:
        return self.coords.from_provider_bounds(self.viewport.get_bounds())

    def get_center(self) -> LatLng:
        return self.coords.from_provider_lat_lng(self.viewport.get_center())

    def get_zoom(self) -> int:
        return round(self.viewport.get_zoom())

    def get_max_zoom(self) -> float:
        return self.guard.max

    def get_min_zoom(self) -> float:
        return self.guard.min

    def is_lat_lng_within_map_bounds(self, lat_lng: Union[LatLng, str]) -> bool:
        """lat_lng may also be a "latitude,longitude" string."""
        return self.viewport.contains(self.coords.to_provider_lat_lng(LatLng.parse(lat_lng)))

    def handle_resize(self) -> None:
        width, height = self.renderer.get_outer_dimensions(self.options.div)
        self.viewport.resize(width=width, height=height)

    # =========================================================================
    # Projection helpers
    # =========================================================================

    def lat_lng_to_pixel(self, lat_lng: LatLng) -> Pixel:
        native = self.viewport.location_to_pixel(self.coords.to_provider_lat_lng(lat_lng))
        return self.coords.from_provider_pixel(native)

    def pixel_to_lat_lng(self, pixel: Pixel) -> LatLng:
        native = self.viewport.pixel_to_location(self.coords.to_provider_pixel(pixel))
        return self.coords.from_provider_lat_lng(native)

    def event_get_lat_lng(self, event: RawMapEvent) -> Optional[LatLng]:
        if event.pixel is None:
            return None
        return self.pixel_to_lat_lng(event.pixel)

    @staticmethod
    def event_get_shape(event: RawMapEvent) -> Optional[Shape]:
        return event.target

    def get_click_dot_pixel(self) -> Pixel:
        """Click-dot position relative to the map container."""
        container = self.renderer.get_element_offset(self.options.div)
        dot = self.renderer.get_element_offset(MapConfig.CLICK_DOT_ID)
        return Pixel(x=dot.x - container.x, y=dot.y - container.y)

    def get_click_dot_lat_lng(self) -> LatLng:
        return self.pixel_to_lat_lng(self.get_click_dot_pixel())

    def position_click_dot(self, to: Union[Shape, LatLng, str]) -> None:
        """Move the click dot onto a marker (above its anchor) or a location."""
        anchor_y = 0.0
        if isinstance(to, Shape):
            anchor = self.get_marker_anchor(to)
            anchor_y = anchor.y if anchor is not None else 0.0
            lat_lng = self.get_marker_lat_lng(to)
        else:
            lat_lng = LatLng.parse(to)
        pixel = self.lat_lng_to_pixel(lat_lng)
        self.renderer.position_element(
            MapConfig.CLICK_DOT_ID, Pixel(x=pixel.x, y=pixel.y - anchor_y), container_id=self.options.div
        )

    # =========================================================================
    # Shapes
    # =========================================================================

    def create_marker(
        self,
        lat_lng: LatLng,
        style: Union[MarkerStyle, MarkerOptions, None] = None,
        click_handler: Optional[Callable[[Shape], None]] = None,
        data: Optional[dict[str, Any]] = None,
    ) -> Shape:
        """Marker from a canonical style (converted) or ready-made native options."""
        options = self.provider.styles.convert_marker(style) if isinstance(style, MarkerStyle) else style
        marker = self.provider.create_marker(self.coords.to_provider_lat_lng(lat_lng), options)
        marker.click_handler = click_handler
        marker.data.update(data or {})
        return marker

    def create_line(self, lat_lngs: list[LatLng], style: Union[LineStyle, dict, None] = None) -> Shape:
        options = self.provider.styles.convert_line(style) if isinstance(style, LineStyle) else style
        return self.provider.create_line(self.coords.to_provider_lat_lngs(lat_lngs), options)

    def create_polygon(self, lat_lngs: list[LatLng], style: Union[PolygonStyle, dict, None] = None) -> Shape:
        options = self.provider.styles.convert_polygon(style) if isinstance(style, PolygonStyle) else style
        return self.provider.create_polygon(self.coords.to_provider_lat_lngs(lat_lngs), options)

    def create_tile_layer(
        self, url_template: str, subdomains: Optional[list[str]] = None, opacity: Optional[float] = None
    ) -> Shape:
        return self.provider.create_tile_layer(url_template=url_template, subdomains=subdomains, opacity=opacity)

    def add_shape(self, shape: Shape) -> None:
        self.viewport.add_entity(shape)

    def remove_shape(self, shape: Shape) -> None:
        self.viewport.remove_entity(shape)

    def show_shape(self, shape: Shape) -> None:
        shape.visible = True

    def hide_shape(self, shape: Shape) -> None:
        shape.visible = False

    # ---- markers ----

    def get_marker_lat_lng(self, marker: Shape) -> LatLng:
        return self.coords.from_provider_lat_lng(marker.coordinates)

    def get_marker_anchor(self, marker: Shape) -> Optional[Pixel]:
        return self.provider.get_marker_anchor(marker)

    def get_marker_icon(self, marker: Shape) -> Optional[str]:
        return self.provider.get_marker_icon(marker)

    def get_marker_option(self, marker: Shape, option: str) -> Any:
        return self.provider.get_marker_option(marker, option)

    @staticmethod
    def get_marker_visibility(marker: Shape) -> bool:
        return marker.visible

    def set_marker_options(self, marker: Shape, options: dict[str, Any]) -> None:
        self.provider.set_marker_options(marker, options)

    # ---- tile layers ----

    def add_tile_layer(self, tile_layer: Shape) -> None:
        self.viewport.add_entity(tile_layer)

    def remove_tile_layer(self, config: LayerConfig) -> None:
        self.viewport.remove_entity(config.provider_handle)

    def show_tile_layer(self, config: LayerConfig) -> None:
        config.provider_handle.visible = True

    def hide_tile_layer(self, config: LayerConfig) -> None:
        config.provider_handle.visible = False

    def reload_tile_layer(self, config: LayerConfig) -> None:
        raise UnsupportedOperationError("reload_tile_layer", self.provider.name)

    # =========================================================================
    # Layers
    # =========================================================================

    def add_layer(self, config: Union[LayerConfig, dict[str, Any]]) -> LayerConfig:
        """Add an overlay layer; dicts use the camelCase configuration keys."""
        if isinstance(config, dict):
            config = LayerConfig.from_dict(config)
        return self.registry.add_layer(config, map_adapter=self)

    def remove_layer(self, config: LayerConfig) -> None:
        self.registry.remove_layer(config, map_adapter=self)

    def match_base_layer(self, base_layer: BaseLayerConfig) -> Any:
        return self.provider.match_base_layer(base_layer)

    def switch_base_layer(self, base_layer: BaseLayerConfig) -> None:
        """Show another registered base layer."""
        self.registry.set_active_base_layer(base_layer)
        self.viewport.map_type = self.provider.base_map_type(base_layer)
        logger.info(f"Base layer switched to {base_layer.code} (map type {self.viewport.map_type})")

    def set_base_layer(self, base_layer: BaseLayerConfig) -> None:
        raise UnsupportedOperationError("set_base_layer", self.provider.name)

    # =========================================================================
    # Output
    # =========================================================================

    def render(self) -> Any:
        """The provider library's map object for the current state."""
        return self.provider.render(
            viewport=self.viewport, base_layer=self.registry.active_base_layer, keyboard=self.options.keyboard
        )

    def destroy(self) -> None:
        """Detach every handler and stop pending icon probes and settle callbacks."""
        for cancel in list(self._settle_waits):
            cancel()
        self.tracker.detach()
        self.clicks.detach()
        self.registry.detach()
        self.provider.styles.cancel_probes()
        logger.info("Map destroyed")
