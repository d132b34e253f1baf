"""Asynchronous marker icon dimension probing.

When a marker style has a URL but no height/width, the icon is loaded and
polled until it reports nonzero dimensions. Polling runs on the Scheduler, so
the result is delivered inside a timer callback like every other state change.

Open question resolved: polling is bounded by timeout_ms; the future then
fails with ImageDimensionTimeout and the marker keeps its unsized options.
Pass timeout_ms=None to poll indefinitely.
"""

import io
import logging
import threading
from concurrent.futures import Future
from typing import Callable, Optional, Protocol

import requests
from PIL import Image

from mapbridge.constants import ImageProbeConfig
from mapbridge.core.scheduler import Scheduler, TimerHandle
from mapbridge.model.errors import ImageDimensionTimeout

logger = logging.getLogger(__name__)

Dimensions = tuple[int, int]  # (width, height)


class ImageSource(Protocol):
    """An image that reports 0x0 until it has loaded."""

    @property
    def width(self) -> int: ...

    @property
    def height(self) -> int: ...


class StaticImage:
    """Image whose dimensions are known, or set later by the caller."""

    def __init__(self, width: int = 0, height: int = 0) -> None:
        self.width = width
        self.height = height

    def load(self, width: int, height: int) -> None:
        self.width = width
        self.height = height


class RemoteImage:
    """Image fetched over HTTP on a background thread.

    Dimensions stay 0 until the bytes are downloaded and decoded; a failed
    download leaves them at 0 (the probe timeout reports it).
    """

    def __init__(self, url: str, timeout_s: float = ImageProbeConfig.REQUEST_TIMEOUT_S) -> None:
        self.url = url
        self.width = 0
        self.height = 0
        self.error: Optional[Exception] = None
        self._thread = threading.Thread(target=self._load, args=(timeout_s,), daemon=True)
        self._thread.start()

    def _load(self, timeout_s: float) -> None:
        try:
            response = requests.get(self.url, timeout=timeout_s)
            response.raise_for_status()
            with Image.open(io.BytesIO(response.content)) as image:
                width, height = image.size
        except (requests.RequestException, OSError) as exc:
            logger.warning(f"Could not load marker icon {self.url}: {exc}")
            self.error = exc
            return
        self.height = height
        self.width = width


ImageLoader = Callable[[str], ImageSource]


class ImageDimensionProbe:
    """Poll an ImageSource until it reports nonzero dimensions.

    Example:
        probe = ImageDimensionProbe(scheduler=scheduler, source=RemoteImage(url))
        future = probe.start()
        future.add_done_callback(lambda f: apply(*f.result()))
    """

    def __init__(
        self,
        scheduler: Scheduler,
        source: ImageSource,
        interval_ms: float = ImageProbeConfig.POLL_INTERVAL_MS,
        timeout_ms: Optional[float] = ImageProbeConfig.TIMEOUT_MS,
    ) -> None:
        self.scheduler = scheduler
        self.source = source
        self.interval_ms = interval_ms
        self.timeout_ms = timeout_ms
        self.future: Future[Dimensions] = Future()
        self._timer: Optional[TimerHandle] = None
        self._started_ms = 0.0

    def start(self) -> Future[Dimensions]:
        """Check once now, then keep polling on the scheduler."""
        self.future.set_running_or_notify_cancel()
        self._started_ms = self.scheduler.now()
        self._poll()
        return self.future

    def cancel(self) -> None:
        """Stop polling; the future is left unresolved."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    @property
    def done(self) -> bool:
        return self.future.done()

    def _poll(self) -> None:
        self._timer = None
        width, height = self.source.width, self.source.height
        if width > 0 and height > 0:
            logger.debug(f"Icon dimensions resolved: {width}x{height}")
            self.future.set_result((width, height))
            return

        elapsed = self.scheduler.now() - self._started_ms
        if self.timeout_ms is not None and elapsed >= self.timeout_ms:
            logger.warning(f"Icon dimensions not available after {elapsed:.0f} ms; giving up")
            self.future.set_exception(ImageDimensionTimeout(f"no dimensions after {elapsed:.0f} ms"))
            return

        self._timer = self.scheduler.call_later(self.interval_ms, self._poll)
