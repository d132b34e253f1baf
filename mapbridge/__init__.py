"""mapbridge - one map contract over several mapping libraries.

Application code drives a MapAdapter with canonical LatLng / Pixel / Bounds
values and canonical events; a provider adapter translates to and from the
mapping library (pydeck or folium) and renders the result.

Features:
- Pan/zoom gesture synthesis with exactly one start and one end per gesture
- Click vs double-click disambiguation with a suppression window
- Zoom range restriction with automatic correction
- Unique layer names, base-layer selection and vector style resolution
- Marker icon sizing by asynchronous dimension probing

Modules:
    core: Scheduler, EventBus, WebMercator projection, image probe, zoom guard
    model: Data structures (LatLng, LayerConfig, VectorStyle, MapOptions, ...)
    providers: ProviderAdapter implementations and the headless Viewport
    interaction: ViewStateTracker and ClickDisambiguator
    layers: LayerRegistry and per-type layer handlers
    map_adapter: MapAdapter composition root

Example:
    from mapbridge import MapAdapter, MapOptions, ManualScheduler
    from mapbridge.core import MapEvent

    fmap = MapAdapter(options=MapOptions.from_dict({"zoom": 6}), provider="folium")
    fmap.on(MapEvent.ZOOM_END, lambda _: print(fmap.get_zoom()))
"""

from mapbridge.core import AsyncioScheduler, EventBus, ManualScheduler, MapEvent, Scheduler
from mapbridge.map_adapter import MapAdapter
from mapbridge.model import Bounds, LatLng, LayerConfig, MapOptions, Pixel
from mapbridge.renderer import HeadlessRenderer, Renderer

__all__ = [
    "MapAdapter",
    "MapOptions",
    "LayerConfig",
    "LatLng",
    "Pixel",
    "Bounds",
    "MapEvent",
    "EventBus",
    "Scheduler",
    "ManualScheduler",
    "AsyncioScheduler",
    "Renderer",
    "HeadlessRenderer",
]
