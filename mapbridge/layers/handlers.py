"""Layer handlers: per-type metadata plus creation and click hooks.

Each layer type in LayerHandlerConfig.HANDLERS gets one LayerHandler
instance per registry. Handlers for data-driven types (GeoJson, Kml, ...)
only carry metadata; fetching their data is the host's job. Tiled and
Zoomify handlers build a provider tile layer.
"""

import logging
from typing import TYPE_CHECKING, Any, Callable, Optional

from mapbridge.constants import LayerHandlerConfig
from mapbridge.model.errors import MapConfigurationError, MissingDimensionError, MissingLayerTypeError
from mapbridge.model.layer_config import LayerConfig

if TYPE_CHECKING:
    from mapbridge.map_adapter import MapAdapter

logger = logging.getLogger(__name__)

ClickListener = Callable[[Any], None]


class LayerHandler:
    """Metadata and lifecycle hooks for one layer type.

    Attributes:
        type_name: Key in LayerHandlerConfig.HANDLERS
        clickable: Whether map/shape clicks are routed to handle_click()
        kind: LayerHandlerConfig.RASTER or LayerHandlerConfig.VECTOR
    """

    def __init__(self, type_name: str, clickable: bool, kind: str) -> None:
        self.type_name = type_name
        self.clickable = clickable
        self.kind = kind
        self._click_listeners: list[ClickListener] = []

    @property
    def is_raster(self) -> bool:
        return self.kind == LayerHandlerConfig.RASTER

    @property
    def is_vector(self) -> bool:
        return self.kind == LayerHandlerConfig.VECTOR

    def validate(self, config: LayerConfig) -> None:
        """Raise a MapConfigurationError for an unusable config (no side effects)."""

    def create(self, config: LayerConfig, map_adapter: "MapAdapter") -> Any:
        """Build the provider object for a validated layer; None when there is none."""
        return None

    def remove(self, config: LayerConfig, map_adapter: "MapAdapter") -> None:
        """Take the provider object off the map."""

    def add_click_listener(self, listener: ClickListener) -> None:
        self._click_listeners.append(listener)

    def handle_click(self, event: Any) -> None:
        logger.debug(f"{self.type_name} layers received a click")
        for listener in list(self._click_listeners):
            listener(event)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.type_name}, {self.kind}, clickable={self.clickable})"


class TiledLayerHandler(LayerHandler):
    """Raster tiles from a URL template."""

    def validate(self, config: LayerConfig) -> None:
        if config.url is None:
            raise MapConfigurationError('"url" is required.')

    def create(self, config: LayerConfig, map_adapter: "MapAdapter") -> Any:
        tile_layer = map_adapter.create_tile_layer(
            url_template=config.url,
            subdomains=config.extra.get("subdomains"),
            opacity=config.opacity,
        )
        map_adapter.add_tile_layer(tile_layer)
        return tile_layer

    def remove(self, config: LayerConfig, map_adapter: "MapAdapter") -> None:
        map_adapter.remove_tile_layer(config)


class ZoomifyLayerHandler(TiledLayerHandler):
    """Zoomify image pyramid; the full image size is required."""

    def validate(self, config: LayerConfig) -> None:
        if config.height is None:
            raise MissingDimensionError("height")
        if config.width is None:
            raise MissingDimensionError("width")
        super().validate(config)

    def create(self, config: LayerConfig, map_adapter: "MapAdapter") -> Any:
        tile_layer = super().create(config, map_adapter)
        tile_layer.data["image_size"] = (config.width, config.height)
        return tile_layer


HANDLER_CLASSES: dict[str, type[LayerHandler]] = {
    "Tiled": TiledLayerHandler,
    "Zoomify": ZoomifyLayerHandler,
}


def build_handlers(overrides: Optional[dict[str, LayerHandler]] = None) -> dict[str, LayerHandler]:
    """One handler per known layer type, with optional replacements."""
    handlers = {
        type_name: HANDLER_CLASSES.get(type_name, LayerHandler)(
            type_name=type_name, clickable=meta["clickable"], kind=meta["kind"]
        )
        for type_name, meta in LayerHandlerConfig.HANDLERS.items()
    }
    handlers.update(overrides or {})
    return handlers


def handler_for(handlers: dict[str, LayerHandler], layer_type: Optional[str]) -> LayerHandler:
    """Look up a layer type's handler.

    Raises:
        MissingLayerTypeError: If the type is missing or unknown.
    """
    if layer_type is None:
        raise MissingLayerTypeError('All layers must have a "type".')
    if layer_type not in handlers:
        raise MissingLayerTypeError(f'No handler is registered for layer type "{layer_type}".')
    return handlers[layer_type]
