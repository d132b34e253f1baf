"""Provider-independent building blocks.

- Scheduler: Timer deferral (ManualScheduler for tests, AsyncioScheduler live)
- EventBus / MapEvent: Canonical event names and synchronous delivery
- WebMercator: Pixel <-> location projection (pyproj)
- ImageDimensionProbe: Bounded polling for marker icon sizes
- ZoomRangeGuard: Effective zoom range and out-of-range correction
"""

from mapbridge.core.event_bus import EventBus, MapEvent, Subscription
from mapbridge.core.image_probe import ImageDimensionProbe, RemoteImage, StaticImage
from mapbridge.core.projection import WebMercator
from mapbridge.core.scheduler import AsyncioScheduler, ManualScheduler, Scheduler, TimerHandle
from mapbridge.core.zoom_range_guard import ZoomRangeGuard

__all__ = [
    # Scheduling
    "Scheduler",
    "ManualScheduler",
    "AsyncioScheduler",
    "TimerHandle",
    # Events
    "EventBus",
    "MapEvent",
    "Subscription",
    # Projection
    "WebMercator",
    # Image probing
    "ImageDimensionProbe",
    "RemoteImage",
    "StaticImage",
    # Zoom
    "ZoomRangeGuard",
]
