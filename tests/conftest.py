"""Shared pytest fixtures for mapbridge tests.

Provides a virtual clock, an in-memory page, fake marker icons and a factory
for fully wired MapAdapters. Nothing here touches the network or a browser.

TIME:
    All deferred work runs on a ManualScheduler; a test only sees a timer fire
    after calling scheduler.advance(ms).

COORDINATES:
    Maps default to center (0, 0) at zoom 4 in an 800x600 container, where one
    world pixel is 360 / 4096 degrees of longitude.
"""

import random
from typing import Any, Callable, Optional

import pytest

from mapbridge.core.event_bus import EventBus, MapEvent
from mapbridge.core.image_probe import StaticImage
from mapbridge.core.scheduler import ManualScheduler
from mapbridge.map_adapter import MapAdapter
from mapbridge.model.map_options import MapOptions
from mapbridge.providers.folium_adapter import FoliumAdapter, FoliumStyleTranslator
from mapbridge.providers.pydeck_adapter import PydeckAdapter, PydeckStyleTranslator
from mapbridge.renderer import HeadlessRenderer

# Fixed epoch-millisecond clock for generated layer names
FIXED_NOW_MS = 1_700_000_000_000


# =============================================================================
# FAKE ICONS
# =============================================================================


class FakeImages:
    """Image loader handing out StaticImage instances by URL.

    Icons registered with preload() report their size immediately; any other
    URL gets an image that stays 0x0 until the test calls load().
    """

    def __init__(self) -> None:
        self.images: dict[str, StaticImage] = {}
        self.requested: list[str] = []

    def preload(self, url: str, width: int, height: int) -> None:
        self.images[url] = StaticImage(width=width, height=height)

    def __call__(self, url: str) -> StaticImage:
        self.requested.append(url)
        return self.images.setdefault(url, StaticImage())


# =============================================================================
# EVENT RECORDING
# =============================================================================


class EventRecorder:
    """Records every canonical event emitted on a bus, in order."""

    def __init__(self, bus: EventBus) -> None:
        self.events: list[tuple[str, Any]] = []
        for event in MapEvent:
            bus.subscribe(event, lambda payload, name=event.value: self.events.append((name, payload)))

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def count(self, name: str) -> int:
        return self.names.count(name)

    def payloads(self, name: str) -> list[Any]:
        return [payload for event_name, payload in self.events if event_name == name]

    def clear(self) -> None:
        self.events.clear()


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def renderer() -> HeadlessRenderer:
    return HeadlessRenderer()


@pytest.fixture
def images() -> FakeImages:
    return FakeImages()


@pytest.fixture
def pydeck_adapter(scheduler: ManualScheduler, images: FakeImages) -> PydeckAdapter:
    return PydeckAdapter(styles=PydeckStyleTranslator(scheduler=scheduler, image_loader=images))


@pytest.fixture
def folium_adapter(scheduler: ManualScheduler, images: FakeImages) -> FoliumAdapter:
    return FoliumAdapter(styles=FoliumStyleTranslator(scheduler=scheduler, image_loader=images))


@pytest.fixture
def make_map(
    scheduler: ManualScheduler, renderer: HeadlessRenderer, images: FakeImages
) -> Callable[..., MapAdapter]:
    """Factory: make_map(config=None, provider="pydeck", **kwargs) -> MapAdapter."""

    def factory(config: Optional[dict[str, Any]] = None, provider: str = "pydeck", **kwargs: Any) -> MapAdapter:
        config = {"center": {"lat": 0.0, "lng": 0.0}, "zoom": 4, **(config or {})}
        return MapAdapter(
            options=MapOptions.from_dict(config),
            provider=provider,
            scheduler=scheduler,
            renderer=renderer,
            image_loader=images,
            clock_ms=lambda: FIXED_NOW_MS,
            rng=random.Random(7),
            **kwargs,
        )

    return factory


@pytest.fixture
def pydeck_map(make_map: Callable[..., MapAdapter]) -> MapAdapter:
    return make_map()


@pytest.fixture
def recorder(pydeck_map: MapAdapter) -> EventRecorder:
    return EventRecorder(pydeck_map.bus)
