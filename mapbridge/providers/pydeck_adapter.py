"""deck.gl provider via pydeck.

Native conventions (deck.gl / GeoJSON):
- Locations are [lng, lat] lists
- Bounds are [[w, s], [e, n]]
- Pixels are [x, y] lists
- Colors are RGBA lists [R, G, B, A] (0-255)
- Markers are IconLayer icon definitions (url, width, height, anchorX, anchorY)

Raster base maps and tile overlays are rendered through a Mapbox GL style
dict rather than a TileLayer: pydeck's TileLayer needs a JavaScript
renderSubLayers callback that Python cannot supply.
"""

import logging
from typing import Any, Optional

import pydeck as pdk

from mapbridge.constants import MapConfig
from mapbridge.model.lat_lng import Bounds, LatLng, Pixel
from mapbridge.model.layer_config import BaseLayerConfig
from mapbridge.model.raw_event import Shape
from mapbridge.model.vector_style import LineStyle, PolygonStyle
from mapbridge.providers.base import CoordinateAdapter, ProviderAdapter, StyleTranslator
from mapbridge.providers.viewport import Viewport

logger = logging.getLogger(__name__)

# Raster tiles for the default base maps (CARTO and OpenTopoMap, no API key)
CARTO_VOYAGER_TILES = [f"https://{s}.basemaps.cartocdn.com/rastertiles/voyager/{{z}}/{{x}}/{{y}}.png" for s in "abc"]
CARTO_LIGHT_TILES = [f"https://{s}.basemaps.cartocdn.com/light_all/{{z}}/{{x}}/{{y}}.png" for s in "abc"]
CARTO_DARK_TILES = [f"https://{s}.basemaps.cartocdn.com/dark_all/{{z}}/{{x}}/{{y}}.png" for s in "abc"]
OPENTOPOMAP_TILES = [f"https://{s}.tile.opentopomap.org/{{z}}/{{x}}/{{y}}.png" for s in "abc"]

# Used for shapes whose style left a color out
FALLBACK_COLOR = [94, 118, 48, 255]

# deck.gl icon definition fields
ICON_KEYS = ("url", "width", "height", "anchorX", "anchorY")


class PydeckCoordinateAdapter(CoordinateAdapter):
    """[lng, lat] locations, [[w, s], [e, n]] bounds, [x, y] pixels."""

    def from_provider_lat_lng(self, native: Any) -> LatLng:
        return LatLng(lat=float(native[1]), lng=float(native[0]))

    def to_provider_lat_lng(self, lat_lng: LatLng | str) -> list[float]:
        lat_lng = LatLng.parse(lat_lng)
        return [lat_lng.lng, lat_lng.lat]

    def from_provider_bounds(self, native: Any) -> Bounds:
        (w, s), (e, n) = native
        return Bounds(n=float(n), s=float(s), e=float(e), w=float(w))

    def to_provider_bounds(self, bounds: Bounds) -> list[list[float]]:
        return [[bounds.w, bounds.s], [bounds.e, bounds.n]]

    def from_provider_pixel(self, native: Any) -> Pixel:
        return Pixel(x=float(native[0]), y=float(native[1]))

    def to_provider_pixel(self, pixel: Pixel) -> list[float]:
        return [pixel.x, pixel.y]


class PydeckStyleTranslator(StyleTranslator):
    """Canonical styles -> deck.gl accessor values."""

    def convert_line(self, style: LineStyle) -> dict[str, Any]:
        options: dict[str, Any] = {}
        if style.stroke_color is not None:
            options["get_color"] = list(self.rgba(style.stroke_color, style.stroke_opacity))
        if style.stroke_width is not None:
            options["get_width"] = style.stroke_width
        return options

    def convert_polygon(self, style: PolygonStyle) -> dict[str, Any]:
        options: dict[str, Any] = {}
        if style.fill_color is not None:
            options["get_fill_color"] = list(self.rgba(style.fill_color, style.fill_opacity))
        if style.stroke_color is not None:
            options["get_line_color"] = list(self.rgba(style.stroke_color, style.stroke_opacity))
        if style.stroke_width is not None:
            options["get_line_width"] = style.stroke_width
        return options

    def icon_options(
        self, url: Optional[str], width: Optional[float], height: Optional[float], anchor: Optional[Pixel]
    ) -> dict[str, Any]:
        options: dict[str, Any] = {}
        if url is not None:
            options["url"] = url
        if width is not None:
            options["width"] = width
        if height is not None:
            options["height"] = height
        if anchor is not None:
            options["anchorX"] = anchor.x
            options["anchorY"] = anchor.y
        return options

    def apply_to_entity(self, entity: Shape, options: dict[str, Any]) -> None:
        entity.options.update(options)


class PydeckAdapter(ProviderAdapter):
    """deck.gl maps rendered as pdk.Deck.

    Example:
        adapter = PydeckAdapter(styles=PydeckStyleTranslator(scheduler=scheduler))
        deck = adapter.render(viewport=viewport, base_layer=BaseLayerConfig(code="road"))
    """

    NAME = "pydeck"
    DEFAULT_BASE_LAYERS = {
        "road": CARTO_VOYAGER_TILES,
        "light": CARTO_LIGHT_TILES,
        "dark": CARTO_DARK_TILES,
        "topo": OPENTOPOMAP_TILES,
    }
    DEFAULT_BASE_LAYER_CODE = "road"
    GENERIC_BASE_LAYER_CODE = "raster"
    MARKER_OPTION_NAMES = {
        "class": "className",
        "icon": "url",
        "label": "text",
        "visible": "visible",
        "z_index": "zIndex",
    }

    def __init__(self, styles: Optional[StyleTranslator] = None) -> None:
        super().__init__(coords=PydeckCoordinateAdapter(), styles=styles or PydeckStyleTranslator())

    def get_marker_anchor(self, marker: Shape) -> Optional[Pixel]:
        if "anchorX" not in marker.options or "anchorY" not in marker.options:
            return None
        return Pixel(x=marker.options["anchorX"], y=marker.options["anchorY"])

    # =========================================================================
    # Rendering
    # =========================================================================

    def render(self, viewport: Viewport, base_layer: BaseLayerConfig, keyboard: bool = True) -> pdk.Deck:
        """Build a pdk.Deck showing the viewport's visible entities.

        Z-order (back to front): base map -> tile overlays -> polygons -> lines -> markers
        """
        center = self.coords.from_provider_lat_lng(viewport.get_center())
        visible = sorted(
            (entity for entity in viewport.entities if entity.visible),
            key=lambda entity: entity.options.get("zIndex", 0),
        )

        layers: list[pdk.Layer] = []
        polygons = [e for e in visible if e.kind == "polygon"]
        lines = [e for e in visible if e.kind == "line"]
        markers = [e for e in visible if e.kind == "marker"]
        if polygons:
            layers.append(self._polygon_layer(polygons))
        if lines:
            layers.append(self._path_layer(lines))
        if markers:
            icon_layer = self._icon_layer(markers)
            if icon_layer is not None:
                layers.append(icon_layer)

        return pdk.Deck(
            map_style=self._raster_style(base_layer=base_layer, tiles=[e for e in visible if e.kind == "tile"]),
            map_provider="mapbox",  # Required when map_style is a dict
            initial_view_state=pdk.ViewState(
                latitude=center.lat,
                longitude=center.lng,
                zoom=viewport.get_zoom(),
                min_zoom=viewport.min_zoom,
                max_zoom=viewport.max_zoom,
            ),
            layers=layers,
            views=[pdk.View(type="MapView", controller={"keyboard": keyboard})],
        )

    def _raster_style(self, base_layer: BaseLayerConfig, tiles: list[Shape]) -> dict[str, Any]:
        """Mapbox GL style with the base map and every tile overlay as raster sources."""
        style: dict[str, Any] = {"version": 8, "sources": {}, "layers": []}

        base_tiles = self.match_base_layer(base_layer)
        if base_tiles is None and base_layer.url is not None:
            base_tiles = [base_layer.url]
        if base_tiles is not None:
            self._add_raster(style=style, source_id=f"base-{base_layer.code}", tiles=base_tiles, opacity=1.0)

        for tile in tiles:
            self._add_raster(
                style=style,
                source_id=f"tile-{tile.id}",
                tiles=self._expand_subdomains(tile.coordinates, tile.options.get("subdomains")),
                opacity=tile.options.get("opacity", 1.0),
            )
        return style

    @staticmethod
    def _add_raster(style: dict[str, Any], source_id: str, tiles: list[str], opacity: float) -> None:
        style["sources"][source_id] = {"type": "raster", "tiles": list(tiles), "tileSize": MapConfig.TILE_SIZE_PX}
        style["layers"].append(
            {"id": source_id, "type": "raster", "source": source_id, "paint": {"raster-opacity": opacity}}
        )

    @staticmethod
    def _expand_subdomains(template: str, subdomains: Optional[list[str]]) -> list[str]:
        # deck.gl does not understand {s}; list one URL per subdomain instead
        if not subdomains or "{s}" not in template:
            return [template]
        return [template.replace("{s}", subdomain) for subdomain in subdomains]

    def _icon_layer(self, markers: list[Shape]) -> Optional[pdk.Layer]:
        data = []
        for marker in markers:
            icon = {key: marker.options[key] for key in ICON_KEYS if key in marker.options}
            if "url" not in icon:
                logger.debug(f"{marker!r} has no icon url; not rendered")
                continue
            data.append(
                {
                    "position": marker.coordinates,
                    "icon": icon,
                    "size": icon.get("height", MapConfig.TILE_SIZE_PX / 8),
                    "text": marker.options.get("text"),
                }
            )
        if not data:
            return None
        return pdk.Layer(
            "IconLayer",
            data,
            get_icon="icon",
            get_position="position",
            get_size="size",
            size_units="pixels",
            pickable=True,
            id="markers",
        )

    @staticmethod
    def _path_layer(lines: list[Shape]) -> pdk.Layer:
        data = [
            {
                "path": line.coordinates,
                "color": line.options.get("get_color", FALLBACK_COLOR),
                "width": line.options.get("get_width", 1),
            }
            for line in lines
        ]
        return pdk.Layer(
            "PathLayer",
            data,
            get_path="path",
            get_color="color",
            get_width="width",
            width_units="pixels",
            pickable=True,
            id="lines",
        )

    @staticmethod
    def _polygon_layer(polygons: list[Shape]) -> pdk.Layer:
        data = [
            {
                "polygon": polygon.coordinates,
                "fill_color": polygon.options.get("get_fill_color", FALLBACK_COLOR),
                "line_color": polygon.options.get("get_line_color", FALLBACK_COLOR),
                "line_width": polygon.options.get("get_line_width", 1),
            }
            for polygon in polygons
        ]
        return pdk.Layer(
            "PolygonLayer",
            data,
            get_polygon="polygon",
            get_fill_color="fill_color",
            get_line_color="line_color",
            get_line_width="line_width",
            line_width_units="pixels",
            stroked=True,
            pickable=True,
            id="polygons",
        )
