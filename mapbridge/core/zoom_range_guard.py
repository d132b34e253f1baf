"""Zoom range enforcement.

Providers let the user navigate outside the configured zoom range; the guard
pulls the view back by re-issuing a non-animated view command at the nearest
bound, centered where the gesture started.
"""

import logging
from typing import Callable, Optional

from mapbridge.constants import ZoomConfig
from mapbridge.model.lat_lng import LatLng
from mapbridge.model.map_options import RestrictZoom, ZoomBound

logger = logging.getLogger(__name__)


class ZoomRangeGuard:
    """Effective [min, max] zoom range plus the out-of-range correction.

    Args:
        read_zoom: Returns the provider's current (unrounded) zoom
        set_view: Issues a non-animated view command (center, zoom); the
            provider calls correction_applied() once it is in place
        is_unrestricted: True while the active base layer is exempt from the
            max-zoom correction
    """

    def __init__(
        self,
        read_zoom: Callable[[], float],
        set_view: Callable[[LatLng, float], None],
        is_unrestricted: Callable[[], bool] = lambda: False,
    ) -> None:
        self._read_zoom = read_zoom
        self._set_view = set_view
        self._is_unrestricted = is_unrestricted
        self.min: float = ZoomConfig.DEFAULT_MIN
        self.max: float = ZoomConfig.DEFAULT_MAX
        # Target of an issued correction the provider has not applied yet
        self._pending: Optional[float] = None

    def configure(self, restrict_zoom: Optional[RestrictZoom], current_zoom: Optional[float] = None) -> None:
        """Compute the effective bounds.

        Args:
            restrict_zoom: Configured bounds; each may be a level, "auto" or None
            current_zoom: Zoom resolved for "auto"; read from the provider when None
        """
        if current_zoom is None:
            current_zoom = self._read_zoom()

        self.min = ZoomConfig.DEFAULT_MIN
        self.max = ZoomConfig.DEFAULT_MAX
        if restrict_zoom is not None:
            if restrict_zoom.max is not None:
                self.max = self._resolve(restrict_zoom.max, current_zoom)
            if restrict_zoom.min is not None:
                self.min = max(self._resolve(restrict_zoom.min, current_zoom), ZoomConfig.EXPLICIT_MIN_FLOOR)

        logger.info(f"Zoom range: [{self.min}, {self.max}]")

    @staticmethod
    def _resolve(bound: ZoomBound, current_zoom: float) -> float:
        if bound == ZoomConfig.AUTO:
            return current_zoom
        if isinstance(bound, bool) or not isinstance(bound, (int, float)):
            raise ValueError(f"Zoom bound must be a number or '{ZoomConfig.AUTO}', got {bound!r}")
        return bound

    def contains(self, zoom: float) -> bool:
        return self.min <= zoom <= self.max

    def correct(self, old_center: LatLng) -> Optional[float]:
        """Snap an out-of-range zoom back to the nearest bound.

        A correction to the same bound that is still pending is not issued
        again.

        Returns:
            The zoom that was set, or None when no correction was issued.
        """
        zoom = self._read_zoom()
        if zoom < self.min:
            target = self.min
        elif zoom > self.max and not self._is_unrestricted():
            target = self.max
        else:
            self._pending = None
            return None

        if self._pending == target:
            logger.debug(f"Correction to {target} already pending")
            return None

        logger.warning(f"Zoom {zoom} outside [{self.min}, {self.max}]; correcting to {target}")
        self._pending = target
        self._set_view(old_center, target)
        return target

    def correction_applied(self) -> None:
        self._pending = None
