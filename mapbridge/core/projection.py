"""Spherical Web Mercator projection for pixel <-> location conversion.

World pixel coordinates follow the slippy-map convention: at zoom z the world
is TILE_SIZE_PX * 2**z pixels wide, x grows east from the antimeridian and y
grows south from the top edge (lat 85.0511).

Projection math uses pyproj (EPSG:4326 -> EPSG:3857).
"""

from functools import lru_cache
from math import floor, log2, pi

import pyproj

from mapbridge.constants import MapConfig
from mapbridge.model.lat_lng import Bounds, LatLng, Pixel

# Latitude at which Web Mercator becomes square
MERCATOR_LAT_BOUND = 85.05112878

# Half the projected world width in meters (EPSG:3857 semi-major axis * pi)
_HALF_WORLD_M = 6_378_137.0 * pi


@lru_cache(maxsize=1)
def _transformers() -> tuple[pyproj.Transformer, pyproj.Transformer]:
    wgs84 = pyproj.CRS("EPSG:4326")
    mercator = pyproj.CRS("EPSG:3857")
    forward = pyproj.Transformer.from_crs(wgs84, mercator, always_xy=True)
    inverse = pyproj.Transformer.from_crs(mercator, wgs84, always_xy=True)
    return forward, inverse


class WebMercator:
    """Static helpers converting between LatLng and world pixels."""

    TILE_SIZE_PX = MapConfig.TILE_SIZE_PX

    @staticmethod
    def world_size(zoom: float) -> float:
        return WebMercator.TILE_SIZE_PX * (2**zoom)

    @staticmethod
    def clamp_lat(lat: float) -> float:
        return max(-MERCATOR_LAT_BOUND, min(MERCATOR_LAT_BOUND, lat))

    @staticmethod
    def to_world_pixel(lat_lng: LatLng, zoom: float) -> Pixel:
        """Project a location to world pixels at zoom."""
        forward, _ = _transformers()
        mx, my = forward.transform(lat_lng.lng, WebMercator.clamp_lat(lat_lng.lat))
        size = WebMercator.world_size(zoom)
        return Pixel(
            x=(mx + _HALF_WORLD_M) / (2 * _HALF_WORLD_M) * size,
            y=(_HALF_WORLD_M - my) / (2 * _HALF_WORLD_M) * size,
        )

    @staticmethod
    def from_world_pixel(pixel: Pixel, zoom: float) -> LatLng:
        """Unproject world pixels at zoom to a location."""
        _, inverse = _transformers()
        size = WebMercator.world_size(zoom)
        mx = pixel.x / size * (2 * _HALF_WORLD_M) - _HALF_WORLD_M
        my = _HALF_WORLD_M - pixel.y / size * (2 * _HALF_WORLD_M)
        lng, lat = inverse.transform(mx, my)
        return LatLng(lat=lat, lng=lng)

    @staticmethod
    def fit_zoom(bounds: Bounds, width: float, height: float, padding: float, max_zoom: float) -> float:
        """Largest integer zoom at which bounds plus padding fit the viewport.

        Degenerate (single point) bounds return max_zoom.
        """
        north_west = WebMercator.to_world_pixel(LatLng(lat=bounds.n, lng=bounds.w), zoom=0)
        south_east = WebMercator.to_world_pixel(LatLng(lat=bounds.s, lng=bounds.e), zoom=0)
        span_x = abs(south_east.x - north_west.x)
        span_y = abs(south_east.y - north_west.y)
        usable_w = max(1.0, width - 2 * padding)
        usable_h = max(1.0, height - 2 * padding)

        candidates = [max_zoom]
        if span_x > 0:
            candidates.append(log2(usable_w / span_x))
        if span_y > 0:
            candidates.append(log2(usable_h / span_y))
        return float(max(0, floor(min(candidates))))
