"""Canonical geometry atoms: LatLng, Pixel, Bounds.

These are the provider-agnostic shapes every provider adapter converts to and
from. Latitude/longitude are decimal degrees (WGS84); pixels are measured from
the top-left corner of the map container.
"""

from dataclasses import dataclass
from math import isclose

from mapbridge.constants import CoordinateConfig


@dataclass(frozen=True)
class LatLng:
    """A canonical {lat, lng} location."""

    lat: float
    lng: float

    @classmethod
    def parse(cls, value: "str | LatLng") -> "LatLng":
        """Parse a "latitude,longitude" string (LatLng passes through).

        Raises:
            ValueError: If the string is not two comma-separated numbers.
        """
        if isinstance(value, LatLng):
            return value
        parts = value.split(",")
        if len(parts) != 2:
            raise ValueError(f"Expected 'lat,lng', got {value!r}")
        return cls(lat=float(parts[0]), lng=float(parts[1]))

    def to_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


@dataclass(frozen=True)
class Pixel:
    """A canonical {x, y} pixel position."""

    x: float
    y: float


@dataclass(frozen=True)
class Bounds:
    """A canonical {n, s, e, w} bounding box in decimal degrees."""

    n: float
    s: float
    e: float
    w: float

    @property
    def center(self) -> LatLng:
        return LatLng(lat=(self.n + self.s) / 2, lng=(self.e + self.w) / 2)

    def to_dict(self) -> dict[str, float]:
        return {"n": self.n, "s": self.s, "e": self.e, "w": self.w}


def lat_lngs_are_equal(a: LatLng | None, b: LatLng | None) -> bool:
    """Compare two locations with the provider floating-point tolerance.

    Two missing locations are equal; a missing and a present one are not.
    """
    if a is None or b is None:
        return a is None and b is None
    tol = CoordinateConfig.EQUALITY_TOLERANCE_DEG
    return isclose(a.lat, b.lat, abs_tol=tol) and isclose(a.lng, b.lng, abs_tol=tol)
