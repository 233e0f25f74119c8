"""Unit tests for fallback positioning."""

import threading
import time

import pytest

from rideassist.positioning import (
    FallbackPositionLookup,
    NullPositionProvider,
    PositionFix,
    StaticPositionProvider,
    create_position_provider,
)


class BlockingProvider:
    """Provider that waits for the test to release it."""

    def __init__(self):
        self.release = threading.Event()
        self.calls = 0

    def locate(self):
        self.calls += 1
        self.release.wait(timeout=2.0)
        return PositionFix(lat=10.0, lon=20.0, obtained_at=time.monotonic())


class FailingProvider:
    def locate(self):
        raise OSError("location services off")


class StaleProvider:
    def locate(self):
        return PositionFix(lat=1.0, lon=1.0, obtained_at=time.monotonic() - 120.0)


class TestProviders:
    """Tests for position providers and the factory."""

    def test_null_provider(self):
        assert NullPositionProvider().locate() is None

    def test_static_provider(self):
        fix = StaticPositionProvider(12.9716, 77.5946).locate()
        assert (fix.lat, fix.lon) == (12.9716, 77.5946)

    @pytest.mark.parametrize("lat,lon", [(91.0, 0.0), (0.0, -181.0)])
    def test_static_provider_rejects_out_of_range(self, lat, lon):
        with pytest.raises(ValueError):
            StaticPositionProvider(lat, lon)

    def test_factory(self):
        assert isinstance(create_position_provider("none"), NullPositionProvider)
        assert isinstance(create_position_provider("static", 1.0, 2.0), StaticPositionProvider)
        assert isinstance(create_position_provider("static"), NullPositionProvider)
        with pytest.raises(ValueError):
            create_position_provider("satellite-phone")


class TestFallbackPositionLookup:
    """Tests for the fire-and-forget lookup."""

    def test_request_returns_immediately(self):
        provider = BlockingProvider()
        lookup = FallbackPositionLookup(provider)

        start = time.monotonic()
        assert lookup.request() is True
        assert time.monotonic() - start < 0.5
        assert lookup.latest_fix() is None

        provider.release.set()
        lookup.wait_idle(timeout=2.0)
        assert lookup.latest_fix().lat == 10.0

    def test_one_lookup_in_flight(self):
        provider = BlockingProvider()
        lookup = FallbackPositionLookup(provider)

        assert lookup.request() is True
        assert lookup.request() is False
        provider.release.set()
        lookup.wait_idle(timeout=2.0)

        assert provider.calls == 1
        assert lookup.requests == 1
        assert lookup.successes == 1

    def test_failure_is_silent(self):
        lookup = FallbackPositionLookup(FailingProvider())
        lookup.request()
        lookup.wait_idle(timeout=2.0)
        assert lookup.latest_fix() is None
        assert lookup.failures == 1

    def test_null_provider_counts_failure(self):
        lookup = FallbackPositionLookup(NullPositionProvider())
        lookup.request()
        lookup.wait_idle(timeout=2.0)
        assert lookup.failures == 1

    def test_stale_fix_not_returned(self):
        lookup = FallbackPositionLookup(StaleProvider(), max_fix_age_s=30.0)
        lookup.request()
        lookup.wait_idle(timeout=2.0)
        assert lookup.successes == 1
        assert lookup.latest_fix() is None

    def test_disabled_lookup_never_runs(self):
        lookup = FallbackPositionLookup(StaticPositionProvider(1.0, 2.0), enabled=False)
        assert lookup.request() is False
        assert lookup.requests == 0

    def test_no_requests_after_stop(self):
        lookup = FallbackPositionLookup(StaticPositionProvider(1.0, 2.0))
        lookup.stop()
        assert lookup.request() is False
