"""Layer identity, lifecycle and per-type handlers.

- layer_registry.py: LayerRegistry (names, base-layer selection, styles, click routing)
- handlers.py: LayerHandler, TiledLayerHandler, ZoomifyLayerHandler
"""

from mapbridge.layers.handlers import LayerHandler, TiledLayerHandler, ZoomifyLayerHandler, build_handlers
from mapbridge.layers.layer_registry import LayerRegistry

__all__ = [
    "LayerRegistry",
    "LayerHandler",
    "TiledLayerHandler",
    "ZoomifyLayerHandler",
    "build_handlers",
]
