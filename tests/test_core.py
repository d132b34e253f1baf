"""Tests for mapbridge core building blocks.

Tests: ManualScheduler, EventBus, WebMercator, ImageDimensionProbe, ZoomRangeGuard
Focus: Deterministic timing on the virtual clock, projection accuracy,
zoom range resolution and correction
"""

import pytest
from hypothesis import given, settings, strategies as st

from mapbridge.core.event_bus import EventBus, MapEvent
from mapbridge.core.image_probe import ImageDimensionProbe, StaticImage
from mapbridge.core.projection import MERCATOR_LAT_BOUND, WebMercator
from mapbridge.core.scheduler import ManualScheduler
from mapbridge.core.zoom_range_guard import ZoomRangeGuard
from mapbridge.model.errors import ImageDimensionTimeout
from mapbridge.model.lat_lng import Bounds, LatLng
from mapbridge.model.map_options import RestrictZoom


# =============================================================================
# SCHEDULER
# =============================================================================


class TestManualScheduler:
    """ManualScheduler - virtual clock for deferred callbacks."""

    def test_timer_fires_only_when_due(self, scheduler: ManualScheduler) -> None:
        """A 350 ms timer does not fire at 349 ms but fires at 350 ms."""
        fired: list[float] = []
        scheduler.call_later(350, lambda: fired.append(scheduler.now()))
        scheduler.advance(349)
        assert fired == []
        scheduler.advance(1)
        assert fired == [350]

    def test_cancelled_timer_never_fires(self, scheduler: ManualScheduler) -> None:
        """Cancelling a handle drops the callback."""
        fired: list[bool] = []
        handle = scheduler.call_later(10, lambda: fired.append(True))
        handle.cancel()
        scheduler.advance(100)
        assert fired == []
        assert scheduler.pending == 0

    def test_ties_run_in_scheduling_order(self, scheduler: ManualScheduler) -> None:
        """Timers due at the same time run first-scheduled first."""
        order: list[str] = []
        scheduler.call_later(5, order.append, "a")
        scheduler.call_later(5, order.append, "b")
        scheduler.advance(5)
        assert order == ["a", "b"]

    def test_timers_scheduled_while_advancing_run_in_window(self, scheduler: ManualScheduler) -> None:
        """A timer scheduled by a running timer fires within the same advance()."""
        order: list[float] = []

        def first() -> None:
            order.append(scheduler.now())
            scheduler.call_later(10, lambda: order.append(scheduler.now()))

        scheduler.call_later(10, first)
        scheduler.advance(25)
        assert order == [10, 20]
        assert scheduler.now() == 25

    def test_run_all_drains_pending(self, scheduler: ManualScheduler) -> None:
        """run_all() advances until nothing is pending."""
        fired: list[int] = []
        scheduler.call_later(1000, fired.append, 1)
        scheduler.call_later(3000, fired.append, 2)
        scheduler.run_all()
        assert fired == [1, 2]
        assert scheduler.pending == 0


# =============================================================================
# EVENT BUS
# =============================================================================


class TestEventBus:
    """EventBus - synchronous canonical event delivery."""

    def test_delivers_in_subscription_order(self, bus: EventBus) -> None:
        """Subscribers run in the order they subscribed."""
        order: list[str] = []
        bus.subscribe(MapEvent.ZOOM_END, lambda _: order.append("first"))
        bus.subscribe(MapEvent.ZOOM_END, lambda _: order.append("second"))
        bus.emit(MapEvent.ZOOM_END)
        assert order == ["first", "second"]

    def test_accepts_string_event_names(self, bus: EventBus) -> None:
        """"click" and MapEvent.CLICK are the same event."""
        payloads: list[object] = []
        bus.subscribe("click", payloads.append)
        bus.emit(MapEvent.CLICK, {"x": 1})
        assert payloads == [{"x": 1}]

    def test_unknown_event_name_raises(self, bus: EventBus) -> None:
        """Event names outside MapEvent are rejected."""
        with pytest.raises(ValueError):
            bus.subscribe("teleport", lambda _: None)

    def test_raising_subscriber_does_not_stop_delivery(self, bus: EventBus) -> None:
        """A failing subscriber is logged; later subscribers still run."""
        delivered: list[bool] = []

        def broken(_: object) -> None:
            raise RuntimeError("boom")

        bus.subscribe(MapEvent.CLICK, broken)
        bus.subscribe(MapEvent.CLICK, lambda _: delivered.append(True))
        bus.emit(MapEvent.CLICK)
        assert delivered == [True]

    def test_unsubscribe_during_delivery_skips_subscriber(self, bus: EventBus) -> None:
        """A subscriber removed by an earlier one in the same emit is skipped."""
        delivered: list[str] = []
        second = None

        def first(_: object) -> None:
            delivered.append("first")
            second.unsubscribe()

        bus.subscribe(MapEvent.PAN_END, first)
        second = bus.subscribe(MapEvent.PAN_END, lambda _: delivered.append("second"))
        bus.emit(MapEvent.PAN_END)
        assert delivered == ["first"]
        assert bus.subscriber_count(MapEvent.PAN_END) == 1


# =============================================================================
# PROJECTION
# =============================================================================


class TestWebMercator:
    """WebMercator - slippy-map world pixels via pyproj."""

    def test_world_size_doubles_per_zoom(self) -> None:
        """256 px at zoom 0, 512 at zoom 1."""
        assert WebMercator.world_size(0) == 256
        assert WebMercator.world_size(1) == 512

    def test_origin_is_world_center(self) -> None:
        """(0, 0) projects to the middle of the world."""
        pixel = WebMercator.to_world_pixel(LatLng(lat=0.0, lng=0.0), zoom=0)
        assert pixel.x == pytest.approx(128)
        assert pixel.y == pytest.approx(128)

    def test_top_left_corner(self) -> None:
        """The north-west corner of the projected world is pixel (0, 0)."""
        pixel = WebMercator.to_world_pixel(LatLng(lat=MERCATOR_LAT_BOUND, lng=-180.0), zoom=2)
        assert pixel.x == pytest.approx(0, abs=1e-6)
        assert pixel.y == pytest.approx(0, abs=1e-3)

    def test_poles_are_clamped(self) -> None:
        """Latitudes beyond the Mercator bound project onto the edge."""
        north = WebMercator.to_world_pixel(LatLng(lat=90.0, lng=0.0), zoom=0)
        edge = WebMercator.to_world_pixel(LatLng(lat=MERCATOR_LAT_BOUND, lng=0.0), zoom=0)
        assert north.y == pytest.approx(edge.y)

    @given(
        lat=st.floats(min_value=-85.0, max_value=85.0),
        lng=st.floats(min_value=-179.999, max_value=179.999),
        zoom=st.integers(min_value=0, max_value=20),
    )
    @settings(max_examples=100, deadline=None)
    def test_projection_roundtrip(self, lat: float, lng: float, zoom: int) -> None:
        """Unprojecting a projected location gives the location back."""
        back = WebMercator.from_world_pixel(WebMercator.to_world_pixel(LatLng(lat=lat, lng=lng), zoom), zoom)
        assert back.lat == pytest.approx(lat, abs=1e-6)
        assert back.lng == pytest.approx(lng, abs=1e-6)

    def test_fit_zoom_world(self) -> None:
        """The whole world fits an 800x600 container at zoom 1."""
        world = Bounds(n=MERCATOR_LAT_BOUND, s=-MERCATOR_LAT_BOUND, e=180.0, w=-180.0)
        assert WebMercator.fit_zoom(world, width=800, height=600, padding=0, max_zoom=22) == 1

    def test_fit_zoom_single_point_is_max_zoom(self) -> None:
        """Degenerate bounds zoom all the way in."""
        point = Bounds(n=46.5, s=46.5, e=7.9, w=7.9)
        assert WebMercator.fit_zoom(point, width=800, height=600, padding=30, max_zoom=18) == 18

    def test_fit_zoom_padding_never_zooms_in(self) -> None:
        """Padding can only lower the fitted zoom."""
        bounds = Bounds(n=47.0, s=46.0, e=8.0, w=7.0)
        loose = WebMercator.fit_zoom(bounds, width=800, height=600, padding=0, max_zoom=22)
        tight = WebMercator.fit_zoom(bounds, width=800, height=600, padding=200, max_zoom=22)
        assert tight <= loose


# =============================================================================
# IMAGE PROBE
# =============================================================================


class TestImageDimensionProbe:
    """ImageDimensionProbe - polls an image until it reports a size."""

    def test_loaded_image_resolves_immediately(self, scheduler: ManualScheduler) -> None:
        """An already decoded image resolves inside start()."""
        future = ImageDimensionProbe(scheduler=scheduler, source=StaticImage(width=24, height=32)).start()
        assert future.done()
        assert future.result() == (24, 32)
        assert scheduler.pending == 0

    def test_resolves_on_next_poll_after_load(self, scheduler: ManualScheduler) -> None:
        """The probe picks the size up on the first poll after loading."""
        image = StaticImage()
        probe = ImageDimensionProbe(scheduler=scheduler, source=image, interval_ms=10)
        future = probe.start()
        scheduler.advance(50)
        assert not future.done()

        image.load(width=16, height=20)
        scheduler.advance(10)
        assert future.result() == (16, 20)
        assert probe.done

    def test_zero_width_keeps_polling(self, scheduler: ManualScheduler) -> None:
        """Both dimensions must be nonzero."""
        probe = ImageDimensionProbe(scheduler=scheduler, source=StaticImage(width=0, height=12))
        probe.start()
        scheduler.advance(100)
        assert not probe.done
        assert scheduler.pending == 1

    def test_times_out(self, scheduler: ManualScheduler) -> None:
        """An image that never loads fails with ImageDimensionTimeout."""
        future = ImageDimensionProbe(scheduler=scheduler, source=StaticImage(), timeout_ms=100).start()
        scheduler.advance(200)
        with pytest.raises(ImageDimensionTimeout):
            future.result(timeout=0)

    def test_unbounded_probe_never_times_out(self, scheduler: ManualScheduler) -> None:
        """timeout_ms=None polls for as long as it takes."""
        probe = ImageDimensionProbe(scheduler=scheduler, source=StaticImage(), timeout_ms=None)
        probe.start()
        scheduler.advance(120_000)
        assert not probe.done
        probe.cancel()
        assert scheduler.pending == 0


# =============================================================================
# ZOOM RANGE GUARD
# =============================================================================


class ViewSink:
    """Records guard corrections and serves the zoom it is told to read."""

    def __init__(self, zoom: float) -> None:
        self.zoom = zoom
        self.calls: list[tuple[LatLng, float]] = []

    def read(self) -> float:
        return self.zoom

    def set_view(self, center: LatLng, zoom: float) -> None:
        self.calls.append((center, zoom))
        self.zoom = zoom


class TestZoomRangeGuard:
    """ZoomRangeGuard - effective zoom range and correction."""

    def test_defaults_without_restriction(self) -> None:
        """No restriction means [0, 20]."""
        guard = ZoomRangeGuard(read_zoom=lambda: 4, set_view=lambda c, z: None)
        guard.configure(None)
        assert (guard.min, guard.max) == (0, 20)

    def test_auto_max_and_floored_min(self) -> None:
        """{min: 2, max: "auto"} at zoom 10 gives [3, 10]."""
        guard = ZoomRangeGuard(read_zoom=lambda: 10, set_view=lambda c, z: None)
        guard.configure(RestrictZoom(min=2, max="auto"))
        assert (guard.min, guard.max) == (3, 10)

    def test_explicit_zero_min_is_floored(self) -> None:
        """An explicit min of 0 is still raised to 3."""
        guard = ZoomRangeGuard(read_zoom=lambda: 5, set_view=lambda c, z: None)
        guard.configure(RestrictZoom(min=0))
        assert guard.min == 3

    def test_auto_min(self) -> None:
        """min "auto" resolves to the current zoom."""
        guard = ZoomRangeGuard(read_zoom=lambda: 7, set_view=lambda c, z: None)
        guard.configure(RestrictZoom(min="auto"))
        assert guard.min == 7

    def test_invalid_bound_raises(self) -> None:
        """Only numbers and "auto" are accepted."""
        guard = ZoomRangeGuard(read_zoom=lambda: 7, set_view=lambda c, z: None)
        with pytest.raises(ValueError):
            guard.configure(RestrictZoom(max="max"))

    def test_corrects_above_max(self) -> None:
        """Zoom 15 with max 10 is set back to 10 at the old center."""
        sink = ViewSink(zoom=15)
        guard = ZoomRangeGuard(read_zoom=sink.read, set_view=sink.set_view)
        guard.configure(RestrictZoom(max=10), current_zoom=10)
        center = LatLng(lat=46.5, lng=7.9)
        assert guard.correct(center) == 10
        assert sink.calls == [(center, 10)]

    def test_corrects_below_min(self) -> None:
        """Zoom 1 with min 3 is raised to 3."""
        sink = ViewSink(zoom=1)
        guard = ZoomRangeGuard(read_zoom=sink.read, set_view=sink.set_view)
        guard.configure(RestrictZoom(min=3))
        assert guard.correct(LatLng(lat=0, lng=0)) == 3

    def test_pending_correction_not_repeated(self) -> None:
        """While a correction is in flight the same bound is not requested again."""
        calls: list[float] = []
        guard = ZoomRangeGuard(read_zoom=lambda: 15, set_view=lambda c, z: calls.append(z))
        guard.configure(RestrictZoom(max=10), current_zoom=10)
        assert guard.correct(LatLng(lat=0, lng=0)) == 10
        assert guard.correct(LatLng(lat=0, lng=0)) is None
        assert calls == [10]

        guard.correction_applied()
        assert guard.correct(LatLng(lat=0, lng=0)) == 10
        assert calls == [10, 10]

    def test_in_range_read_clears_pending(self) -> None:
        """Seeing an in-range zoom forgets the pending correction."""
        sink = ViewSink(zoom=15)
        guard = ZoomRangeGuard(read_zoom=sink.read, set_view=sink.set_view)
        guard.configure(RestrictZoom(max=10), current_zoom=10)
        guard.correct(LatLng(lat=0, lng=0))
        assert guard.correct(LatLng(lat=0, lng=0)) is None
        sink.zoom = 14
        assert guard.correct(LatLng(lat=0, lng=0)) == 10
        assert sink.calls == [(LatLng(lat=0, lng=0), 10), (LatLng(lat=0, lng=0), 10)]

    def test_unrestricted_base_layer_skips_max(self) -> None:
        """An exempt base layer may exceed max but not go below min."""
        sink = ViewSink(zoom=18)
        guard = ZoomRangeGuard(read_zoom=sink.read, set_view=sink.set_view, is_unrestricted=lambda: True)
        guard.configure(RestrictZoom(min=4, max=10))
        assert guard.correct(LatLng(lat=0, lng=0)) is None
        sink.zoom = 2
        assert guard.correct(LatLng(lat=0, lng=0)) == 4

    @given(
        zoom=st.floats(min_value=0, max_value=22, allow_nan=False),
        low=st.integers(min_value=3, max_value=10),
        span=st.integers(min_value=0, max_value=10),
    )
    @settings(max_examples=100)
    def test_correction_lands_in_range(self, zoom: float, low: int, span: int) -> None:
        """After correction the zoom is always within [min, max]."""
        sink = ViewSink(zoom=zoom)
        guard = ZoomRangeGuard(read_zoom=sink.read, set_view=sink.set_view)
        guard.configure(RestrictZoom(min=low, max=low + span))
        target = guard.correct(LatLng(lat=0, lng=0))
        assert guard.contains(sink.zoom)
        assert (target is None) == (low <= zoom <= low + span)
