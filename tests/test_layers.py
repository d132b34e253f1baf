"""Tests for layer identity and lifecycle.

Tests: LayerHandler / TiledLayerHandler / ZoomifyLayerHandler, LayerRegistry
Focus: Name uniqueness and generation, base-layer selection, style
resolution, validation without side effects, click routing
"""

import random
from typing import Callable

import pytest

from mapbridge.constants import LayerHandlerConfig
from mapbridge.core.event_bus import EventBus, MapEvent
from mapbridge.layers.handlers import LayerHandler, TiledLayerHandler, ZoomifyLayerHandler, build_handlers, handler_for
from mapbridge.layers.layer_registry import LayerRegistry
from mapbridge.map_adapter import MapAdapter
from mapbridge.model.errors import LayerNameError, MapConfigurationError, MissingDimensionError, MissingLayerTypeError
from mapbridge.model.layer_config import BaseLayerConfig, LayerConfig
from mapbridge.model.vector_style import LineStyle, MarkerStyle, ResolvedStyle, VectorStyle
from mapbridge.providers.pydeck_adapter import PydeckAdapter

TILE_URL = "https://tiles.example.com/{z}/{x}/{y}.png"


@pytest.fixture
def registry(bus: EventBus, pydeck_adapter: PydeckAdapter) -> LayerRegistry:
    return LayerRegistry(
        bus=bus,
        styles=pydeck_adapter.styles,
        server="https://maps.example.com",
        clock_ms=lambda: 1_700_000_000_000,
        rng=random.Random(7),
    )


# =============================================================================
# HANDLERS
# =============================================================================


class TestHandlers:
    """Per-type handler metadata and validation."""

    def test_every_type_has_a_handler(self) -> None:
        """build_handlers() covers all supported layer types."""
        handlers = build_handlers()
        assert isinstance(handlers["Tiled"], TiledLayerHandler)
        assert isinstance(handlers["Zoomify"], ZoomifyLayerHandler)
        assert handlers["GeoJson"].is_vector
        assert handlers["ArcGisServerRest"].is_raster
        assert not handlers["Zoomify"].clickable

    def test_handler_table_kinds(self) -> None:
        """Every configured layer type is raster or vector and gets a matching handler."""
        kinds = {LayerHandlerConfig.RASTER, LayerHandlerConfig.VECTOR}
        handlers = build_handlers()
        for type_name, meta in LayerHandlerConfig.HANDLERS.items():
            assert meta["kind"] in kinds
            assert handlers[type_name].is_raster == (meta["kind"] == LayerHandlerConfig.RASTER)

    def test_overrides_replace_handlers(self) -> None:
        """A replacement handler wins over the built-in one."""
        custom = LayerHandler(type_name="GeoJson", clickable=False, kind="vector")
        assert build_handlers({"GeoJson": custom})["GeoJson"] is custom

    def test_missing_type(self) -> None:
        """A layer without type is rejected."""
        with pytest.raises(MissingLayerTypeError, match='must have a "type"'):
            handler_for(build_handlers(), None)

    def test_unknown_type(self) -> None:
        """A type without handler is rejected."""
        with pytest.raises(MissingLayerTypeError, match="Shapefile"):
            handler_for(build_handlers(), "Shapefile")

    def test_tiled_requires_url(self) -> None:
        """Tiled layers need a URL."""
        with pytest.raises(MapConfigurationError, match='"url" is required.'):
            build_handlers()["Tiled"].validate(LayerConfig(type="Tiled"))

    @pytest.mark.parametrize(
        "config, missing",
        [
            (LayerConfig(type="Zoomify", url=TILE_URL, width=512), "height"),
            (LayerConfig(type="Zoomify", url=TILE_URL, height=512), "width"),
        ],
    )
    def test_zoomify_requires_dimensions(self, config: LayerConfig, missing: str) -> None:
        """Zoomify layers need both image dimensions."""
        with pytest.raises(MissingDimensionError) as exc_info:
            build_handlers()["Zoomify"].validate(config)
        assert exc_info.value.field == missing

    def test_click_listeners(self) -> None:
        """handle_click() calls every listener."""
        handler = LayerHandler(type_name="Kml", clickable=True, kind="vector")
        seen: list[object] = []
        handler.add_click_listener(seen.append)
        handler.handle_click("evt")
        assert seen == ["evt"]


# =============================================================================
# BASE LAYERS
# =============================================================================


class TestBaseLayers:
    """Active base-layer selection."""

    def test_first_visible_wins(self, registry: LayerRegistry) -> None:
        """The first base layer not explicitly hidden becomes active."""
        bases = [BaseLayerConfig(code="road", visible=False), BaseLayerConfig(code="light"), BaseLayerConfig(code="dark")]
        active = registry.init_base_layers(bases, default_code="road")
        assert active.code == "light"
        assert registry.active_base_layer is bases[1]

    def test_default_appended_when_none_visible(self, registry: LayerRegistry) -> None:
        """With every base layer hidden the provider default is appended."""
        bases = [BaseLayerConfig(code="light", visible=False)]
        active = registry.init_base_layers(bases, default_code="road")
        assert active.code == "road"
        assert active.visible is True
        assert [b.code for b in registry.base_layers] == ["light", "road"]

    def test_default_when_not_configured(self, registry: LayerRegistry) -> None:
        """No base layers at all also yields the default."""
        assert registry.init_base_layers(None, default_code="road").code == "road"

    def test_custom_active_layer_gets_z_index_zero(self, registry: LayerRegistry) -> None:
        """A custom base layer sits at z-index 0 unless configured otherwise."""
        custom = BaseLayerConfig(code="aerial", url=TILE_URL)
        registry.init_base_layers([custom], default_code="road", is_default=lambda b: b.code == "road")
        assert custom.z_index == 0

    def test_duplicate_base_names_raise(self, registry: LayerRegistry) -> None:
        """Base layer names are unique too."""
        with pytest.raises(LayerNameError):
            registry.init_base_layers(
                [BaseLayerConfig(code="road", name="Streets"), BaseLayerConfig(code="light", name="Streets")],
                default_code="road",
            )

    def test_base_names_block_overlay_names(self, registry: LayerRegistry, pydeck_map: MapAdapter) -> None:
        """An overlay cannot reuse a base layer's name."""
        registry.init_base_layers([BaseLayerConfig(code="road", name="Streets")], default_code="road")
        with pytest.raises(LayerNameError):
            registry.add_layer(LayerConfig(type="GeoJson", name="Streets"), pydeck_map)

    def test_set_active_base_layer(self, registry: LayerRegistry) -> None:
        """Switching leaves exactly one base layer visible."""
        bases = [BaseLayerConfig(code="road"), BaseLayerConfig(code="dark")]
        registry.init_base_layers(bases, default_code="road")
        registry.set_active_base_layer(bases[1])
        assert [b.visible for b in bases] == [False, True]
        with pytest.raises(ValueError):
            registry.set_active_base_layer(BaseLayerConfig(code="topo"))


# =============================================================================
# OVERLAY LAYERS
# =============================================================================


class TestLayerLifecycle:
    """add_layer() / remove_layer() and naming."""

    def test_generated_name(self, registry: LayerRegistry, pydeck_map: MapAdapter) -> None:
        """Unnamed layers get Layer_<epoch ms>."""
        config = registry.add_layer(LayerConfig(type="GeoJson"), pydeck_map)
        assert config.name == "Layer_1700000000000"
        assert registry.is_name_taken(config.name)

    def test_generated_names_never_collide(self, registry: LayerRegistry, pydeck_map: MapAdapter) -> None:
        """A second layer in the same millisecond gets a random suffix."""
        first = registry.add_layer(LayerConfig(type="GeoJson"), pydeck_map)
        second = registry.add_layer(LayerConfig(type="Kml"), pydeck_map)
        assert second.name.startswith(first.name)
        assert second.name != first.name

    def test_duplicate_name_raises_without_side_effects(
        self, registry: LayerRegistry, bus: EventBus, pydeck_map: MapAdapter
    ) -> None:
        """A name collision leaves the registry and bus untouched."""
        registry.add_layer(LayerConfig(type="GeoJson", name="Trails"), pydeck_map)
        emitted: list[object] = []
        bus.subscribe(MapEvent.BEFORE_ADD, emitted.append)
        duplicate = LayerConfig(type="Kml", name="Trails")
        with pytest.raises(LayerNameError, match="Trails"):
            registry.add_layer(duplicate, pydeck_map)
        assert emitted == []
        assert duplicate.style is None
        assert len(registry.layers) == 1

    def test_invalid_layer_leaves_no_name(self, registry: LayerRegistry, pydeck_map: MapAdapter) -> None:
        """Validation failures do not reserve or generate names."""
        config = LayerConfig(type="Tiled")
        with pytest.raises(MapConfigurationError):
            registry.add_layer(config, pydeck_map)
        assert config.name is None
        assert registry.used_names == set()

    def test_failed_create_releases_name(self, bus: EventBus, pydeck_adapter: PydeckAdapter, pydeck_map: MapAdapter) -> None:
        """A handler that fails in create() frees the reserved name."""

        class Exploding(LayerHandler):
            def create(self, config: LayerConfig, map_adapter: MapAdapter) -> None:
                raise RuntimeError("no data")

        registry = LayerRegistry(
            bus=bus,
            styles=pydeck_adapter.styles,
            handlers={"Json": Exploding(type_name="Json", clickable=True, kind="vector")},
        )
        with pytest.raises(RuntimeError):
            registry.add_layer(LayerConfig(type="Json", name="Feed"), pydeck_map)
        assert not registry.is_name_taken("Feed")

    def test_failed_create_restores_config(
        self, bus: EventBus, pydeck_adapter: PydeckAdapter, pydeck_map: MapAdapter
    ) -> None:
        """The caller's config loses its generated name and resolved style again."""

        class Exploding(LayerHandler):
            def create(self, config: LayerConfig, map_adapter: MapAdapter) -> None:
                raise RuntimeError("no data")

        registry = LayerRegistry(
            bus=bus,
            styles=pydeck_adapter.styles,
            handlers={"Json": Exploding(type_name="Json", clickable=True, kind="vector")},
            clock_ms=lambda: 1_700_000_000_000,
        )
        config = LayerConfig(type="Json")
        with pytest.raises(RuntimeError):
            registry.add_layer(config, pydeck_map)
        assert config.name is None
        assert config.style is None
        assert config.provider_handle is None
        assert registry.used_names == set()
        assert not registry.is_name_taken("Layer_1700000000000")

    def test_lifecycle_events(self, registry: LayerRegistry, bus: EventBus, pydeck_map: MapAdapter) -> None:
        """beforeadd/added and beforeremove/removed carry the config."""
        seen: list[tuple[str, object]] = []
        for event in (MapEvent.BEFORE_ADD, MapEvent.ADDED, MapEvent.BEFORE_REMOVE, MapEvent.REMOVED):
            bus.subscribe(event, lambda payload, name=event.value: seen.append((name, payload)))
        config = registry.add_layer(LayerConfig(type="Tiled", url=TILE_URL), pydeck_map)
        registry.remove_layer(config, pydeck_map)
        assert [name for name, _ in seen] == ["beforeadd", "added", "beforeremove", "removed"]
        assert all(payload is config for _, payload in seen)
        assert not registry.is_name_taken(config.name)

    def test_remove_unknown_layer_raises(self, registry: LayerRegistry, pydeck_map: MapAdapter) -> None:
        """Only layers on the map can be removed."""
        with pytest.raises(ValueError):
            registry.remove_layer(LayerConfig(type="GeoJson", name="Ghost"), pydeck_map)

    def test_refresh_attribution_on_add_and_remove(self, bus: EventBus, pydeck_adapter: PydeckAdapter, pydeck_map: MapAdapter) -> None:
        """Attribution is refreshed after every add and remove."""
        refreshed: list[bool] = []
        registry = LayerRegistry(bus=bus, styles=pydeck_adapter.styles, refresh_attribution=lambda: refreshed.append(True))
        config = registry.add_layer(LayerConfig(type="GeoJson"), pydeck_map)
        registry.remove_layer(config, pydeck_map)
        assert refreshed == [True, True]


class TestStyleResolution:
    """Vector styles merged with defaults and converted."""

    def test_defaults(self, registry: LayerRegistry) -> None:
        """No style gives the built-in marker, line and polygon."""
        resolved = registry.resolve_style(None)
        assert isinstance(resolved, ResolvedStyle)
        assert resolved.marker["url"] == "https://maps.example.com/resources/img/markers/brown-circle-13x13.png"
        assert (resolved.marker["anchorX"], resolved.marker["anchorY"]) == (6.5, 0)
        assert resolved.line == {}
        assert resolved.polygon["get_fill_color"] == [94, 118, 48, 174]

    def test_caller_fields_override(self, registry: LayerRegistry) -> None:
        """Caller values win; unset fields keep the defaults."""
        resolved = registry.resolve_style(VectorStyle(line=LineStyle(stroke_color="ff0000", stroke_width=4)))
        assert resolved.line == {"get_color": [255, 0, 0, 255], "get_width": 4}

    def test_sized_marker_anchored_bottom_center(self, registry: LayerRegistry) -> None:
        """A caller marker with size but no anchor is anchored at (width/2, 0)."""
        resolved = registry.resolve_style(
            VectorStyle(marker=MarkerStyle(url="https://icons.example.com/hut.png", width=20, height=30))
        )
        assert (resolved.marker["anchorX"], resolved.marker["anchorY"]) == (10, 0)

    def test_marker_without_url_uses_default(self, registry: LayerRegistry) -> None:
        """A marker style without url falls back to the built-in marker."""
        resolved = registry.resolve_style(VectorStyle(marker=MarkerStyle(width=50, height=50)))
        assert resolved.marker["width"] == 13

    def test_caller_marker_not_mutated(self, registry: LayerRegistry) -> None:
        """The caller's MarkerStyle keeps its missing anchor."""
        marker = MarkerStyle(url="https://icons.example.com/hut.png", width=20, height=30)
        registry.resolve_style(VectorStyle(marker=marker))
        assert marker.anchor is None

    def test_vector_layer_style_resolved_on_add(self, registry: LayerRegistry, pydeck_map: MapAdapter) -> None:
        """Vector layers carry a ResolvedStyle once added; raster layers keep theirs."""
        vector = registry.add_layer(LayerConfig(type="GeoJson"), pydeck_map)
        raster = registry.add_layer(LayerConfig(type="Tiled", url=TILE_URL), pydeck_map)
        assert isinstance(vector.style, ResolvedStyle)
        assert raster.style is None


class TestAccessorsAndRouting:
    """Layer lookup and click routing."""

    def test_active_layer_types(self, registry: LayerRegistry, pydeck_map: MapAdapter) -> None:
        """Distinct types of visible layers, base layers first."""
        registry.init_base_layers([BaseLayerConfig(code="road", type="Tiled")], default_code="road")
        registry.add_layer(LayerConfig(type="GeoJson"), pydeck_map)
        registry.add_layer(LayerConfig(type="GeoJson"), pydeck_map)
        registry.add_layer(LayerConfig(type="Kml", visible=False), pydeck_map)
        assert registry.get_active_layer_types() == ["Tiled", "GeoJson"]

    def test_visible_layers_include_unflagged(self, registry: LayerRegistry, pydeck_map: MapAdapter) -> None:
        """visible=None counts as visible."""
        shown = registry.add_layer(LayerConfig(type="GeoJson"), pydeck_map)
        registry.add_layer(LayerConfig(type="GeoJson", visible=False), pydeck_map)
        assert registry.get_visible_layers() == [shown]

    def test_lookup_by_id_and_name(self, registry: LayerRegistry, pydeck_map: MapAdapter) -> None:
        """Layers are found by id or name; misses return None."""
        config = registry.add_layer(LayerConfig(type="GeoJson", id="trails", name="Trails"), pydeck_map)
        assert registry.get_layer_by_id("trails") is config
        assert registry.get_layer_by_name("Trails") is config
        assert registry.get_layer_by_name("Lifts") is None
        assert LayerRegistry.get_name(config) == "Trails"
        assert LayerRegistry.get_type(config) == "GeoJson"

    def test_map_click_routed_to_raster_handlers_once(
        self, registry: LayerRegistry, bus: EventBus, pydeck_map: MapAdapter
    ) -> None:
        """A map click reaches each clickable raster type once."""
        registry.add_layer(LayerConfig(type="Tiled", url=TILE_URL), pydeck_map)
        registry.add_layer(LayerConfig(type="Tiled", url=TILE_URL), pydeck_map)
        registry.add_layer(LayerConfig(type="GeoJson"), pydeck_map)
        tiled: list[object] = []
        geojson: list[object] = []
        registry.handler("Tiled").add_click_listener(tiled.append)
        registry.handler("GeoJson").add_click_listener(geojson.append)

        bus.emit(MapEvent.CLICK, "map-click")
        bus.emit(MapEvent.SHAPE_CLICK, "shape-click")
        assert tiled == ["map-click"]
        assert geojson == ["shape-click"]

    def test_unclickable_type_not_routed(self, registry: LayerRegistry, bus: EventBus, pydeck_map: MapAdapter) -> None:
        """Zoomify layers never receive clicks."""
        registry.add_layer(LayerConfig(type="Zoomify", url=TILE_URL, width=1024, height=768), pydeck_map)
        seen: list[object] = []
        registry.handler("Zoomify").add_click_listener(seen.append)
        bus.emit(MapEvent.CLICK, "map-click")
        assert seen == []

    def test_iteration_order(self, registry: LayerRegistry, pydeck_map: MapAdapter) -> None:
        """Base layers come before overlays."""
        registry.init_base_layers([BaseLayerConfig(code="road")], default_code="road")
        overlay = registry.add_layer(LayerConfig(type="GeoJson"), pydeck_map)
        assert [layer for layer in registry.iter_all_layers()] == [registry.active_base_layer, overlay]


class TestTileLayerHandlers:
    """Tiled and Zoomify layers create provider tile layers."""

    def test_tiled_layer_added_to_map(self, make_map: Callable[..., MapAdapter]) -> None:
        """A Tiled layer becomes a tile entity on the viewport."""
        fmap = make_map()
        config = fmap.add_layer({"type": "Tiled", "url": TILE_URL, "opacity": 0.4, "subdomains": ["a", "b"]})
        tile = config.provider_handle
        assert tile.kind == "tile"
        assert tile.options == {"opacity": 0.4, "subdomains": ["a", "b"]}
        assert fmap.viewport.entities == [tile]

        fmap.remove_layer(config)
        assert fmap.viewport.entities == []
        assert config.provider_handle is None

    def test_zoomify_layer_records_image_size(self, make_map: Callable[..., MapAdapter]) -> None:
        """Zoomify tile layers know the full image size."""
        fmap = make_map()
        config = fmap.add_layer({"type": "Zoomify", "url": TILE_URL, "width": 2048, "height": 1536})
        assert config.provider_handle.data["image_size"] == (2048, 1536)
