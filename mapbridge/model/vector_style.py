"""Provider-agnostic vector styles.

Colors are hex strings ("5e7630" or "#5e7630") with a separate 0-255 opacity.
StyleTranslator subclasses turn these into provider option dicts.
"""

from dataclasses import dataclass
from typing import Any, Optional

from mapbridge.constants import StyleConfig
from mapbridge.model.lat_lng import Pixel


def hex_to_rgb(hex_color: str) -> tuple[int, int, int]:
    """Convert "5e7630" / "#5e7630" to (94, 118, 48).

    Raises:
        ValueError: If the string is not six hex digits.
    """
    digits = hex_color.lstrip("#")
    if len(digits) != 6:
        raise ValueError(f"Expected a 6-digit hex color, got {hex_color!r}")
    return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)


def _anchor_from(value: Any) -> Optional[Pixel]:
    if value is None or isinstance(value, Pixel):
        return value
    return Pixel(x=value["x"], y=value["y"])


@dataclass
class LineStyle:
    """Line style."""

    stroke_color: Optional[str] = None
    stroke_opacity: Optional[int] = None
    stroke_width: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LineStyle":
        return cls(
            stroke_color=data.get("strokeColor"),
            stroke_opacity=data.get("strokeOpacity"),
            stroke_width=data.get("strokeWidth"),
        )


@dataclass
class MarkerStyle:
    """Marker style: hosted icon URL plus optional size and anchor.

    Height and width are both needed for a sized icon; when either is missing
    the icon dimensions are probed asynchronously.
    """

    url: Optional[str] = None
    height: Optional[float] = None
    width: Optional[float] = None
    anchor: Optional[Pixel] = None
    over_icon: Optional[str] = None

    @property
    def has_dimensions(self) -> bool:
        return self.height is not None and self.width is not None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MarkerStyle":
        return cls(
            url=data.get("url"),
            height=data.get("height"),
            width=data.get("width"),
            anchor=_anchor_from(data.get("anchor")),
            over_icon=data.get("overIcon"),
        )

    @classmethod
    def default(cls, server: str = "") -> "MarkerStyle":
        """Built-in marker (13x13 brown circle hosted under `server`)."""
        anchor_x, anchor_y = StyleConfig.DEFAULT_MARKER_ANCHOR
        return cls(
            url=server + StyleConfig.DEFAULT_MARKER_PATH,
            height=StyleConfig.DEFAULT_MARKER_HEIGHT,
            width=StyleConfig.DEFAULT_MARKER_WIDTH,
            anchor=Pixel(x=anchor_x, y=anchor_y),
        )


@dataclass
class PolygonStyle:
    """Polygon style."""

    fill_color: Optional[str] = None
    fill_opacity: Optional[int] = None
    stroke_color: Optional[str] = None
    stroke_opacity: Optional[int] = None
    stroke_width: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PolygonStyle":
        return cls(
            fill_color=data.get("fillColor"),
            fill_opacity=data.get("fillOpacity"),
            stroke_color=data.get("strokeColor"),
            stroke_opacity=data.get("strokeOpacity"),
            stroke_width=data.get("strokeWidth"),
        )

    @classmethod
    def default(cls) -> "PolygonStyle":
        return cls(
            fill_color=StyleConfig.DEFAULT_POLYGON_FILL_COLOR,
            fill_opacity=StyleConfig.DEFAULT_POLYGON_FILL_OPACITY,
            stroke_color=StyleConfig.DEFAULT_POLYGON_STROKE_COLOR,
            stroke_opacity=StyleConfig.DEFAULT_POLYGON_STROKE_OPACITY,
            stroke_width=StyleConfig.DEFAULT_POLYGON_STROKE_WIDTH,
        )


@dataclass
class VectorStyle:
    """Caller-supplied style for a vector layer; any part may be missing."""

    line: Optional[LineStyle] = None
    marker: Optional[MarkerStyle] = None
    polygon: Optional[PolygonStyle] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VectorStyle":
        return cls(
            line=LineStyle.from_dict(data["line"]) if data.get("line") is not None else None,
            marker=MarkerStyle.from_dict(data["marker"]) if data.get("marker") is not None else None,
            polygon=PolygonStyle.from_dict(data["polygon"]) if data.get("polygon") is not None else None,
        )


@dataclass
class ResolvedStyle:
    """Provider-specific options persisted on a vector LayerConfig."""

    line: dict[str, Any]
    marker: dict[str, Any]
    polygon: dict[str, Any]
