"""Shared pytest fixtures for mapbridge workflow tests.

Workflow tests drive a MapAdapter the way a browser host would: pointer
events and gesture ticks go in through the Viewport, canonical events come
out of the EventBus. Only the Viewport's public host-facing methods are used.

TIME:
    ManualScheduler; BrowserSession.wait() advances the virtual clock.

COORDINATES:
    Maps default to center (0, 0) at zoom 4 in an 800x600 container.
"""

import random
from typing import Any, Callable, Optional

import pytest

from mapbridge.constants import ClickConfig
from mapbridge.core.event_bus import MapEvent
from mapbridge.core.image_probe import StaticImage
from mapbridge.core.scheduler import ManualScheduler
from mapbridge.map_adapter import MapAdapter
from mapbridge.model.lat_lng import LatLng, Pixel
from mapbridge.model.map_options import MapOptions
from mapbridge.model.raw_event import RawMapEvent, Shape
from mapbridge.providers.viewport import RawSignal
from mapbridge.renderer import HeadlessRenderer

FIXED_NOW_MS = 1_700_000_000_000


class BrowserSession:
    """Simulated user in front of one map.

    Every method maps to the raw callback sequence a browser SDK raises for
    the same user action. Canonical events are recorded in `events`.
    """

    def __init__(self, fmap: MapAdapter, scheduler: ManualScheduler, images: dict[str, StaticImage]) -> None:
        self.map = fmap
        self.scheduler = scheduler
        self.images = images
        self.events: list[tuple[str, Any]] = []
        for event in MapEvent:
            fmap.on(event, lambda payload, name=event.value: self.events.append((name, payload)))

    # ---- recorded events ----

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def count(self, name: str) -> int:
        return self.names.count(name)

    def payloads(self, name: str) -> list[Any]:
        return [payload for event_name, payload in self.events if event_name == name]

    def clear(self) -> None:
        self.events.clear()

    # ---- time ----

    def wait(self, ms: float = ClickConfig.SUPPRESSION_WINDOW_MS) -> None:
        self.scheduler.advance(ms)

    # ---- pointer ----

    def _event(self, pixel: Pixel, target: Optional[Shape], **kwargs: Any) -> RawMapEvent:
        return RawMapEvent(
            original_event={"x": pixel.x, "y": pixel.y},
            target_type=ClickConfig.TARGET_MAP if target is None else ClickConfig.TARGET_SHAPE,
            target=target,
            pixel=pixel,
            **kwargs,
        )

    def click(self, pixel: Pixel = Pixel(x=400, y=300), target: Optional[Shape] = None, **kwargs: Any) -> None:
        """mousedown, mouseup, click."""
        viewport = self.map.viewport
        viewport.fire(RawSignal.MOUSE_DOWN, self._event(pixel, target, **kwargs))
        viewport.fire(RawSignal.MOUSE_UP, self._event(pixel, target, **kwargs))
        viewport.fire(RawSignal.CLICK, self._event(pixel, target, **kwargs))

    def double_click(self, pixel: Pixel = Pixel(x=400, y=300), target: Optional[Shape] = None) -> None:
        """Two clicks followed by dblclick, all within the suppression window."""
        self.click(pixel, target)
        self.wait(100)
        self.click(pixel, target)
        self.map.viewport.fire(RawSignal.DBL_CLICK, self._event(pixel, target))

    def hover(self, pixel: Pixel, target: Optional[Shape] = None) -> None:
        self.map.viewport.fire(RawSignal.MOUSE_MOVE, self._event(pixel, target))

    # ---- gestures ----

    def drag(self, *centers: LatLng) -> None:
        """Press, pan through each center, release."""
        viewport = self.map.viewport
        viewport.fire(RawSignal.MOUSE_DOWN, self._event(Pixel(x=400, y=300), None))
        viewport.begin_change()
        for center in centers:
            viewport.move_to(center=self.map.coords.to_provider_lat_lng(center))
        viewport.end_change()
        viewport.fire(RawSignal.MOUSE_UP, self._event(Pixel(x=400, y=300), None))

    def wheel(self, *zooms: float) -> None:
        """Scroll-wheel zoom through each level without moving the center."""
        viewport = self.map.viewport
        viewport.begin_change()
        for zoom in zooms:
            viewport.move_to(zoom=zoom)
        viewport.end_change()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def renderer() -> HeadlessRenderer:
    return HeadlessRenderer()


@pytest.fixture
def icons() -> dict[str, StaticImage]:
    """Icon images by URL; unknown URLs load as 0x0 until a test calls load()."""
    return {}


@pytest.fixture
def open_map(
    scheduler: ManualScheduler, renderer: HeadlessRenderer, icons: dict[str, StaticImage]
) -> Callable[..., BrowserSession]:
    """Factory: open_map(config=None, provider="pydeck") -> BrowserSession."""

    def loader(url: str) -> StaticImage:
        return icons.setdefault(url, StaticImage())

    def factory(config: Optional[dict[str, Any]] = None, provider: str = "pydeck") -> BrowserSession:
        config = {"center": {"lat": 0.0, "lng": 0.0}, "zoom": 4, **(config or {})}
        fmap = MapAdapter(
            options=MapOptions.from_dict(config),
            provider=provider,
            scheduler=scheduler,
            renderer=renderer,
            image_loader=loader,
            clock_ms=lambda: FIXED_NOW_MS,
            rng=random.Random(11),
        )
        return BrowserSession(fmap=fmap, scheduler=scheduler, images=icons)

    return factory


@pytest.fixture
def session(open_map: Callable[..., BrowserSession]) -> BrowserSession:
    return open_map()
