"""Layer identity and lifecycle.

LayerRegistry owns everything that makes layers addressable:
- Base layers: exactly one active base layer after init_base_layers()
- Names: unique across base and overlay layers; generated when missing
- Styles: vector layers get caller styles merged with the built-in
  defaults, converted to provider options by the StyleTranslator
- Lifecycle: add_layer()/remove_layer() emit beforeadd/added and
  beforeremove/removed; before_add() leaves no trace when it raises
- Click routing: map clicks go to raster+clickable handlers, shape clicks
  to vector+clickable handlers, once per configured layer type

Names are reserved by before_add() and committed by added(); a layer whose
creation fails releases its reservation.
"""

import logging
import random
import time
from dataclasses import fields, replace
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional, TypeVar

from mapbridge.constants import LayerHandlerConfig
from mapbridge.core.event_bus import EventBus, MapEvent
from mapbridge.layers.handlers import LayerHandler, build_handlers, handler_for
from mapbridge.model.errors import LayerNameError
from mapbridge.model.lat_lng import Pixel
from mapbridge.model.layer_config import BaseLayerConfig, LayerConfig
from mapbridge.model.vector_style import LineStyle, MarkerStyle, PolygonStyle, ResolvedStyle, VectorStyle
from mapbridge.providers.base import StyleTranslator

if TYPE_CHECKING:
    from mapbridge.map_adapter import MapAdapter

logger = logging.getLogger(__name__)

AnyLayer = LayerConfig | BaseLayerConfig
StyleT = TypeVar("StyleT", LineStyle, PolygonStyle)


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def _merge(defaults: StyleT, override: Optional[StyleT]) -> StyleT:
    """Caller fields win over defaults wherever they are set."""
    if override is None:
        return defaults
    changes = {f.name: getattr(override, f.name) for f in fields(override) if getattr(override, f.name) is not None}
    return replace(defaults, **changes)


class LayerRegistry:
    """Base and overlay layers of one map.

    Args:
        bus: Event bus of the owning map
        styles: Converts resolved vector styles to provider options
        server: Prefix for the built-in marker icon URL
        refresh_attribution: Called after every add and remove
        clock_ms: Epoch-millisecond clock for generated names
        rng: Random source for collision suffixes
        handlers: Replacement handlers by layer type
    """

    def __init__(
        self,
        bus: EventBus,
        styles: StyleTranslator,
        server: str = "",
        refresh_attribution: Callable[[], None] = lambda: None,
        clock_ms: Callable[[], int] = _epoch_ms,
        rng: Optional[random.Random] = None,
        handlers: Optional[dict[str, LayerHandler]] = None,
    ) -> None:
        self.bus = bus
        self.styles = styles
        self.server = server
        self.refresh_attribution = refresh_attribution
        self.clock_ms = clock_ms
        self.rng = rng or random.Random()
        self.handlers = build_handlers(handlers)

        self.base_layers: list[BaseLayerConfig] = []
        self.layers: list[LayerConfig] = []
        self.active_base_layer: Optional[BaseLayerConfig] = None
        self._used_names: set[str] = set()
        self._pending_names: set[str] = set()

        self._subscriptions = [
            bus.subscribe(MapEvent.CLICK, self._route_map_click),
            bus.subscribe(MapEvent.SHAPE_CLICK, self._route_shape_click),
        ]

    # =========================================================================
    # Base layers
    # =========================================================================

    def init_base_layers(
        self,
        base_layers: Optional[list[BaseLayerConfig]],
        default_code: str,
        is_default: Callable[[BaseLayerConfig], bool] = lambda _: True,
    ) -> BaseLayerConfig:
        """Pick the active base layer and register base-layer names.

        The first layer whose visible flag is unset or True wins; when none
        qualifies a visible default_code layer is appended. A custom base layer
        (is_default false) without z_index is put at z_index 0.

        Raises:
            LayerNameError: If two base layers share a name.
        """
        candidates = list(base_layers) if base_layers is not None else []
        active = next((base for base in candidates if base.is_visible), None)
        if active is None:
            active = BaseLayerConfig(code=default_code, visible=True)
            candidates.append(active)
            logger.info(f"No visible base layer configured; using '{default_code}'")

        names = [base.registered_name for base in candidates]
        for name in names:
            if names.count(name) > 1:
                raise LayerNameError(name)

        if not is_default(active) and active.z_index is None:
            active.z_index = 0

        self.base_layers = candidates
        self.active_base_layer = active
        self._used_names.update(names)
        logger.info(f"Active base layer: {active.code}")
        return active

    def set_active_base_layer(self, base_layer: BaseLayerConfig) -> None:
        """Make a registered base layer the only visible one."""
        if base_layer not in self.base_layers:
            raise ValueError(f"Base layer '{base_layer.code}' is not registered")
        for base in self.base_layers:
            base.visible = base is base_layer
        self.active_base_layer = base_layer

    # =========================================================================
    # Names
    # =========================================================================

    def is_name_taken(self, name: str) -> bool:
        return name in self._used_names or name in self._pending_names

    @property
    def used_names(self) -> set[str]:
        return set(self._used_names)

    def _generate_name(self) -> str:
        name = f"{LayerHandlerConfig.NAME_PREFIX}{self.clock_ms()}"
        base = name
        while self.is_name_taken(name):
            name = f"{base}{self.rng.randint(0, LayerHandlerConfig.RANDOM_SUFFIX_MAX)}"
        return name

    # =========================================================================
    # Lifecycle hooks
    # =========================================================================

    def before_add(self, config: LayerConfig) -> None:
        """Validate, name and style a layer, reserving its name.

        Raises:
            MissingLayerTypeError: If type is missing or unknown.
            LayerNameError: If an explicit name is already taken.
            MapConfigurationError: If the layer's handler rejects the config.
        """
        handler = handler_for(self.handlers, config.type)
        if config.name is not None and self.is_name_taken(config.name):
            raise LayerNameError(config.name)
        handler.validate(config)

        style = self.resolve_style(config.style) if handler.is_vector else config.style
        name = config.name if config.name is not None else self._generate_name()
        config.name = name
        config.style = style
        self._pending_names.add(name)

    def added(self, config: LayerConfig) -> None:
        self._pending_names.discard(config.name)
        self._used_names.add(config.name)
        logger.info(f"Layer added: {config.name} ({config.type})")
        self.refresh_attribution()

    def removed(self, config: LayerConfig) -> None:
        self._used_names.discard(config.name)
        logger.info(f"Layer removed: {config.name}")
        self.refresh_attribution()

    def resolve_style(self, style: Any) -> ResolvedStyle:
        """Merge a caller style with the defaults and convert it."""
        if isinstance(style, ResolvedStyle):
            return style
        caller = style if isinstance(style, VectorStyle) else VectorStyle()

        marker = MarkerStyle.default(self.server)
        if caller.marker is not None and caller.marker.url is not None:
            marker = replace(caller.marker)
            if marker.has_dimensions and marker.anchor is None:
                marker.anchor = Pixel(x=marker.width / 2, y=0)

        return ResolvedStyle(
            line=self.styles.convert_line(_merge(LineStyle(), caller.line)),
            marker=self.styles.convert_marker(marker),
            polygon=self.styles.convert_polygon(_merge(PolygonStyle.default(), caller.polygon)),
        )

    # =========================================================================
    # Add / remove
    # =========================================================================

    def add_layer(self, config: LayerConfig, map_adapter: "MapAdapter") -> LayerConfig:
        """Full add lifecycle: before_add, beforeadd, create, added.

        If the handler fails to create the layer, its reserved name is
        released and config gets back the name and style it came in with.
        """
        original_name, original_style = config.name, config.style
        self.before_add(config)
        handler = self.handlers[config.type]
        try:
            self.bus.emit(MapEvent.BEFORE_ADD, config)
            config.provider_handle = handler.create(config, map_adapter)
        except Exception:
            logger.warning(f"Creating layer {config.name} ({config.type}) failed; rolled back")
            self._pending_names.discard(config.name)
            config.name, config.style = original_name, original_style
            config.provider_handle = None
            raise
        self.layers.append(config)
        self.added(config)
        self.bus.emit(MapEvent.ADDED, config)
        return config

    def remove_layer(self, config: LayerConfig, map_adapter: "MapAdapter") -> None:
        """Full remove lifecycle: beforeremove, remove, removed."""
        if config not in self.layers:
            raise ValueError(f"Layer '{config.name}' is not on the map")
        self.bus.emit(MapEvent.BEFORE_REMOVE, config)
        self.handlers[config.type].remove(config, map_adapter)
        self.layers.remove(config)
        config.provider_handle = None
        self.removed(config)
        self.bus.emit(MapEvent.REMOVED, config)

    # =========================================================================
    # Accessors
    # =========================================================================

    def get_active_layer_types(self) -> list[str]:
        """Distinct types of visible (or unflagged) base and overlay layers, in order."""
        types: list[str] = []
        for layer in self.iter_all_layers():
            if layer.is_visible and layer.type is not None and layer.type not in types:
                types.append(layer.type)
        return types

    def get_visible_layers(self) -> list[AnyLayer]:
        return [layer for layer in self.iter_all_layers() if layer.is_visible]

    def get_layer_by_id(self, layer_id: str, layers: Optional[list[LayerConfig]] = None) -> Optional[LayerConfig]:
        return next((layer for layer in self._search(layers) if layer.id == layer_id), None)

    def get_layer_by_name(self, name: str, layers: Optional[list[LayerConfig]] = None) -> Optional[LayerConfig]:
        return next((layer for layer in self._search(layers) if layer.name == name), None)

    def _search(self, layers: Optional[list[LayerConfig]]) -> list[LayerConfig]:
        return self.layers if layers is None else layers

    @staticmethod
    def get_name(config: AnyLayer) -> Optional[str]:
        return config.name

    @staticmethod
    def get_type(config: AnyLayer) -> Optional[str]:
        return config.type

    def handler(self, layer_type: str) -> LayerHandler:
        return handler_for(self.handlers, layer_type)

    def iter_base_layers(self) -> Iterator[BaseLayerConfig]:
        yield from self.base_layers

    def iter_layers(self) -> Iterator[LayerConfig]:
        yield from self.layers

    def iter_all_layers(self) -> Iterator[AnyLayer]:
        yield from self.iter_base_layers()
        yield from self.iter_layers()

    # =========================================================================
    # Click routing
    # =========================================================================

    def _configured_handlers(self) -> list[LayerHandler]:
        """Handlers of the configured overlay types, each once, in layer order."""
        seen: list[LayerHandler] = []
        for layer in self.layers:
            handler = self.handlers.get(layer.type)
            if handler is not None and handler not in seen:
                seen.append(handler)
        return seen

    def _route_map_click(self, event: Any) -> None:
        for handler in self._configured_handlers():
            if handler.is_raster and handler.clickable:
                handler.handle_click(event)

    def _route_shape_click(self, event: Any) -> None:
        for handler in self._configured_handlers():
            if handler.is_vector and handler.clickable:
                handler.handle_click(event)

    def detach(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
