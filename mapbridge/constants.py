"""Configuration constants for mapbridge.

All tunable parameters are centralized here.

Classes:
    MapConfig: Default map view parameters
    ZoomConfig: Zoom range defaults and provider limits
    ClickConfig: Click/double-click disambiguation timing
    ViewConfig: View-settle debounce and fit-to-bounds padding
    ImageProbeConfig: Marker icon dimension polling
    CursorConfig: Cursor names handed to the Renderer
    StyleConfig: Built-in vector style defaults
    LayerHandlerConfig: Metadata for every supported layer type
    CoordinateConfig: Coordinate comparison tolerance
"""


class MapConfig:
    """Default map view parameters."""

    # Initial center when the configuration has none (continental US)
    DEFAULT_CENTER_LAT = 39.0
    DEFAULT_CENTER_LNG = -96.0
    DEFAULT_ZOOM = 4

    # Default container element id and the click-dot element id
    DEFAULT_DIV = "map"
    CLICK_DOT_ID = "npmap-clickdot"

    # Viewport size used when the Renderer cannot measure the container
    DEFAULT_WIDTH_PX = 800
    DEFAULT_HEIGHT_PX = 600

    # Web Mercator tile size in pixels
    TILE_SIZE_PX = 256


class ZoomConfig:
    """Zoom range defaults and provider limits."""

    DEFAULT_MIN = 0
    DEFAULT_MAX = 20

    # An explicitly configured minimum is never allowed below this level
    EXPLICIT_MIN_FLOOR = 3

    # Sentinel meaning "current zoom at configuration time"
    AUTO = "auto"

    # Native zoom range a provider allows before the guard corrects it
    PROVIDER_MIN = 0
    PROVIDER_MAX = 22


class ClickConfig:
    """Click vs double-click disambiguation."""

    # Delay after a click during which a double-click vetoes it
    SUPPRESSION_WINDOW_MS = 350

    # Raw target type used by providers for the map background
    TARGET_MAP = "map"
    TARGET_SHAPE = "shape"


class ViewConfig:
    """View change timing and fitting."""

    # Debounce awaiting view-settle before a center_and_zoom callback fires
    SETTLE_DEBOUNCE_MS = 200

    # Padding around bounds when fitting the view
    FIT_BOUNDS_PADDING_PX = 30


class ImageProbeConfig:
    """Marker icon dimension probing."""

    POLL_INTERVAL_MS = 10

    # Give up on an icon that never reports dimensions
    TIMEOUT_MS = 30_000

    # HTTP timeout for fetching a remote icon (seconds)
    REQUEST_TIMEOUT_S = 10


class CursorConfig:
    """Cursor names handed to the Renderer."""

    AUTO = "auto"
    MOVE = "move"
    POINTER = "pointer"


class StyleConfig:
    """Built-in vector style defaults (hex colors, opacity 0-255)."""

    DEFAULT_MARKER_PATH = "/resources/img/markers/brown-circle-13x13.png"
    DEFAULT_MARKER_HEIGHT = 13
    DEFAULT_MARKER_WIDTH = 13
    DEFAULT_MARKER_ANCHOR = (6.5, 0.0)

    DEFAULT_POLYGON_FILL_COLOR = "5e7630"
    DEFAULT_POLYGON_FILL_OPACITY = 174
    DEFAULT_POLYGON_STROKE_COLOR = "5e7630"
    DEFAULT_POLYGON_STROKE_OPACITY = 200
    DEFAULT_POLYGON_STROKE_WIDTH = 1

    # Used when a color is given without an opacity
    OPAQUE = 255


class LayerHandlerConfig:
    """Metadata for every supported layer type.

    kind is "raster" or "vector"; clickable layers receive click routing.
    """

    RASTER = "raster"
    VECTOR = "vector"

    HANDLERS = {
        "ArcGisServerRest": {"clickable": True, "kind": RASTER},
        "CartoDb": {"clickable": True, "kind": VECTOR},
        "GeoJson": {"clickable": True, "kind": VECTOR},
        "GoogleFusion": {"clickable": True, "kind": VECTOR},
        "Json": {"clickable": True, "kind": VECTOR},
        "Kml": {"clickable": True, "kind": VECTOR},
        "NativeVectors": {"clickable": True, "kind": VECTOR},
        "Tiled": {"clickable": True, "kind": RASTER},
        "TileStream": {"clickable": True, "kind": VECTOR},
        "Xml": {"clickable": True, "kind": VECTOR},
        "Zoomify": {"clickable": False, "kind": RASTER},
    }

    # Auto-generated layer names: NAME_PREFIX + epoch millis [+ random suffix]
    NAME_PREFIX = "Layer_"
    RANDOM_SUFFIX_MAX = 999_999_999


assert all(
    meta["kind"] in {LayerHandlerConfig.RASTER, LayerHandlerConfig.VECTOR}
    for meta in LayerHandlerConfig.HANDLERS.values()
), "Every layer handler kind must be raster or vector"


class CoordinateConfig:
    """Coordinate comparison.

    STRICT: lat/lng floats coming back from a provider are compared with
    lat_lngs_are_equal(), never with ==.
    """

    # Absolute tolerance in degrees (about 1 cm at the equator)
    EQUALITY_TOLERANCE_DEG = 1e-7
