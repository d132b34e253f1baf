"""Renderer collaborator: DOM measurement and cursor styling.

The map core never touches the page directly; it asks a Renderer for
element offsets and sizes and tells it which cursor to show. HeadlessRenderer
keeps all of that in memory for server-side hosts and tests.
"""

import logging
from abc import ABC, abstractmethod

from mapbridge.constants import CursorConfig, MapConfig
from mapbridge.model.lat_lng import Pixel

logger = logging.getLogger(__name__)


class Renderer(ABC):
    """Page-side operations the map needs."""

    @abstractmethod
    def get_element_offset(self, element_id: str) -> Pixel:
        """Page offset (left, top) of an element."""
        raise NotImplementedError

    @abstractmethod
    def get_outer_dimensions(self, element_id: str) -> tuple[float, float]:
        """Outer (width, height) of an element, borders included."""
        raise NotImplementedError

    @abstractmethod
    def set_cursor(self, cursor: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def position_element(self, element_id: str, pixel: Pixel, container_id: str) -> None:
        """Place an element at a pixel inside a container."""
        raise NotImplementedError


class HeadlessRenderer(Renderer):
    """In-memory page: element offsets, sizes and the current cursor.

    Unknown elements sit at the page origin with the default map size.
    """

    def __init__(self) -> None:
        self.offsets: dict[str, Pixel] = {}
        self.dimensions: dict[str, tuple[float, float]] = {}
        self.cursor = CursorConfig.AUTO
        self.cursor_history: list[str] = []

    def get_element_offset(self, element_id: str) -> Pixel:
        return self.offsets.get(element_id, Pixel(x=0, y=0))

    def get_outer_dimensions(self, element_id: str) -> tuple[float, float]:
        return self.dimensions.get(element_id, (MapConfig.DEFAULT_WIDTH_PX, MapConfig.DEFAULT_HEIGHT_PX))

    def set_cursor(self, cursor: str) -> None:
        self.cursor = cursor
        self.cursor_history.append(cursor)

    def position_element(self, element_id: str, pixel: Pixel, container_id: str) -> None:
        origin = self.get_element_offset(container_id)
        self.offsets[element_id] = Pixel(x=origin.x + pixel.x, y=origin.y + pixel.y)
        logger.debug(f"Positioned #{element_id} at {pixel} inside #{container_id}")

    def set_offset(self, element_id: str, left: float, top: float) -> None:
        self.offsets[element_id] = Pixel(x=left, y=top)

    def set_dimensions(self, element_id: str, width: float, height: float) -> None:
        self.dimensions[element_id] = (width, height)
