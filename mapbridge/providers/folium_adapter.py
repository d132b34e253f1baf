"""Leaflet provider via folium.

Native conventions (Leaflet):
- Locations are [lat, lng] lists
- Bounds are [[s, w], [n, e]] (south-west, north-east corners)
- Pixels are (x, y) tuples
- Colors are "#rrggbb" strings with a separate 0.0-1.0 opacity
- Stroke width is "weight"; markers use folium.CustomIcon options
"""

import logging
from typing import Any, Optional

import folium

from mapbridge.constants import StyleConfig
from mapbridge.model.lat_lng import Bounds, LatLng, Pixel
from mapbridge.model.layer_config import BaseLayerConfig
from mapbridge.model.raw_event import Shape
from mapbridge.model.vector_style import LineStyle, PolygonStyle
from mapbridge.providers.base import CoordinateAdapter, ProviderAdapter, StyleTranslator
from mapbridge.providers.viewport import Viewport

logger = logging.getLogger(__name__)


class FoliumCoordinateAdapter(CoordinateAdapter):
    """[lat, lng] locations, [[s, w], [n, e]] bounds, (x, y) pixels."""

    def from_provider_lat_lng(self, native: Any) -> LatLng:
        return LatLng(lat=float(native[0]), lng=float(native[1]))

    def to_provider_lat_lng(self, lat_lng: LatLng | str) -> list[float]:
        lat_lng = LatLng.parse(lat_lng)
        return [lat_lng.lat, lat_lng.lng]

    def from_provider_bounds(self, native: Any) -> Bounds:
        (s, w), (n, e) = native
        return Bounds(n=float(n), s=float(s), e=float(e), w=float(w))

    def to_provider_bounds(self, bounds: Bounds) -> list[list[float]]:
        return [[bounds.s, bounds.w], [bounds.n, bounds.e]]

    def from_provider_pixel(self, native: Any) -> Pixel:
        x, y = native
        return Pixel(x=float(x), y=float(y))

    def to_provider_pixel(self, pixel: Pixel) -> tuple[float, float]:
        return (pixel.x, pixel.y)


class FoliumStyleTranslator(StyleTranslator):
    """Canonical styles -> Leaflet path and icon options."""

    @staticmethod
    def _color(hex_color: str) -> str:
        return "#" + hex_color.lstrip("#").lower()

    @staticmethod
    def _opacity(opacity: Optional[int]) -> float:
        return (StyleConfig.OPAQUE if opacity is None else opacity) / StyleConfig.OPAQUE

    def convert_line(self, style: LineStyle) -> dict[str, Any]:
        options: dict[str, Any] = {}
        if style.stroke_color is not None:
            options["color"] = self._color(style.stroke_color)
            options["opacity"] = self._opacity(style.stroke_opacity)
        if style.stroke_width is not None:
            options["weight"] = style.stroke_width
        return options

    def convert_polygon(self, style: PolygonStyle) -> dict[str, Any]:
        options: dict[str, Any] = {}
        if style.fill_color is not None:
            options["fill"] = True
            options["fill_color"] = self._color(style.fill_color)
            options["fill_opacity"] = self._opacity(style.fill_opacity)
        if style.stroke_color is not None:
            options["color"] = self._color(style.stroke_color)
            options["opacity"] = self._opacity(style.stroke_opacity)
        if style.stroke_width is not None:
            options["weight"] = style.stroke_width
        return options

    def icon_options(
        self, url: Optional[str], width: Optional[float], height: Optional[float], anchor: Optional[Pixel]
    ) -> dict[str, Any]:
        options: dict[str, Any] = {}
        if url is not None:
            options["icon_image"] = url
        if width is not None and height is not None:
            options["icon_size"] = (width, height)
        if anchor is not None:
            options["icon_anchor"] = (anchor.x, anchor.y)
        return options

    def apply_to_entity(self, entity: Shape, options: dict[str, Any]) -> None:
        entity.options.update(options)


class FoliumAdapter(ProviderAdapter):
    """Leaflet maps rendered as folium.Map.

    Example:
        adapter = FoliumAdapter(styles=FoliumStyleTranslator(scheduler=scheduler))
        fmap = adapter.render(viewport=viewport, base_layer=BaseLayerConfig(code="openstreetmap"))
        fmap.save("map.html")
    """

    NAME = "folium"
    DEFAULT_BASE_LAYERS = {
        "openstreetmap": "OpenStreetMap",
        "light": "CartoDB positron",
        "dark": "CartoDB dark_matter",
    }
    DEFAULT_BASE_LAYER_CODE = "openstreetmap"
    GENERIC_BASE_LAYER_CODE = "custom"
    MARKER_OPTION_NAMES = {
        "class": "class_name",
        "icon": "icon_image",
        "label": "tooltip",
        "visible": "visible",
        "z_index": "z_index_offset",
    }

    def __init__(self, styles: Optional[StyleTranslator] = None) -> None:
        super().__init__(coords=FoliumCoordinateAdapter(), styles=styles or FoliumStyleTranslator())

    def get_marker_anchor(self, marker: Shape) -> Optional[Pixel]:
        anchor = marker.options.get("icon_anchor")
        if anchor is None:
            return None
        return Pixel(x=anchor[0], y=anchor[1])

    def render(self, viewport: Viewport, base_layer: BaseLayerConfig, keyboard: bool = True) -> folium.Map:
        """Build a folium.Map showing the viewport's visible entities."""
        fmap = folium.Map(
            location=viewport.get_center(),
            zoom_start=round(viewport.get_zoom()),
            min_zoom=viewport.min_zoom,
            max_zoom=viewport.max_zoom,
            tiles=None,
            keyboard=keyboard,
        )

        tiles = self.match_base_layer(base_layer)
        if tiles is not None:
            folium.TileLayer(tiles, name=base_layer.registered_name).add_to(fmap)
        elif base_layer.url is not None:
            folium.TileLayer(
                tiles=base_layer.url,
                attr=base_layer.registered_name,
                name=base_layer.registered_name,
            ).add_to(fmap)

        visible = sorted(
            (entity for entity in viewport.entities if entity.visible),
            key=lambda entity: entity.options.get("z_index_offset", 0),
        )
        for entity in visible:
            self._element_for(entity).add_to(fmap)
        return fmap

    def _element_for(self, entity: Shape) -> folium.MacroElement:
        options = entity.options
        if entity.kind == "marker":
            icon = None
            if "icon_image" in options:
                icon = folium.CustomIcon(
                    options["icon_image"],
                    icon_size=options.get("icon_size"),
                    icon_anchor=options.get("icon_anchor"),
                )
            return folium.Marker(location=entity.coordinates, icon=icon, tooltip=options.get("tooltip"))
        if entity.kind == "line":
            return folium.PolyLine(locations=entity.coordinates, **options)
        if entity.kind == "polygon":
            return folium.Polygon(locations=entity.coordinates, **options)
        if entity.kind == "tile":
            extra = {"subdomains": "".join(options["subdomains"])} if "subdomains" in options else {}
            return folium.TileLayer(
                tiles=entity.coordinates,
                attr=options.get("attribution", " "),
                opacity=options.get("opacity", 1.0),
                overlay=True,
                name=f"tile-{entity.id}",
                **extra,
            )
        raise ValueError(f"Unknown shape kind '{entity.kind}'")
