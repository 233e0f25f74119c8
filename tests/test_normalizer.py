"""
Unit tests for sample normalization.

Tests speed source selection, jitter filtering, ride mode bands,
acceleration magnitude and soft failure on malformed samples.
"""

import math

import pytest

from rideassist.config import NormalizerConfig
from rideassist.positioning import PositionFix
from rideassist.telemetry import RideMode, SampleNormalizer, SKIP, classify_ride_mode
from rideassist.telemetry.normalizer import parse_number, select_speed, filter_speed
from rideassist.utils.timing import WallClock

from conftest import make_sample


class StubLookup:
    """Fallback lookup double with a preset fix."""

    def __init__(self, fix=None):
        self.fix = fix
        self.requests = 0

    def request(self):
        self.requests += 1
        return True

    def latest_fix(self):
        return self.fix


@pytest.fixture
def normalizer(fixed_clock):
    return SampleNormalizer(clock=fixed_clock)


# =============================================================================
# Speed selection
# =============================================================================

class TestSpeed:
    """Tests for speed source precedence and filtering."""

    def test_gps_speed_takes_precedence(self, normalizer):
        reading = normalizer.normalize(make_sample(gps_spd=12.3456, mpu_spd=40.0))
        assert reading.speed_kmh == 12.35

    def test_inertial_speed_used_when_gps_zero(self, normalizer):
        reading = normalizer.normalize(make_sample(gps_spd=0, mpu_spd=3.0))
        assert reading.speed_kmh == 3.0

    def test_inertial_speed_used_when_gps_missing(self, normalizer):
        reading = normalizer.normalize(make_sample(mpu_spd=7.25))
        assert reading.speed_kmh == 7.25

    def test_negative_gps_falls_through(self, normalizer):
        reading = normalizer.normalize(make_sample(gps_spd=-4.0, mpu_spd=2.0))
        assert reading.speed_kmh == 2.0

    def test_no_speed_sources_is_zero(self, normalizer):
        reading = normalizer.normalize(make_sample())
        assert reading.speed_kmh == 0.0
        assert reading.ride_mode == RideMode.IDLE

    def test_jitter_below_threshold_snaps_to_zero(self, normalizer):
        reading = normalizer.normalize(make_sample(gps_spd=0.79))
        assert reading.speed_kmh == 0.0

    def test_threshold_itself_is_kept(self, normalizer):
        reading = normalizer.normalize(make_sample(gps_spd=0.8))
        assert reading.speed_kmh == 0.8

    def test_speed_strings_are_parsed(self, normalizer):
        reading = normalizer.normalize(make_sample(gps_spd="6.5"))
        assert reading.speed_kmh == 6.5

    def test_garbled_speed_treated_as_absent(self, normalizer):
        reading = normalizer.normalize(make_sample(gps_spd="fast", mpu_spd=4.0))
        assert reading.speed_kmh == 4.0

    def test_select_speed_helper(self):
        assert select_speed(None, None) == 0.0
        assert select_speed(5.0, 9.0) == 5.0
        assert select_speed(0.0, 9.0) == 9.0

    def test_filter_speed_helper(self):
        config = NormalizerConfig()
        assert filter_speed(0.5, config) == 0.0
        assert filter_speed(33.333, config) == 33.33

    def test_filter_speed_ties_round_half_up(self):
        config = NormalizerConfig()
        assert filter_speed(1.125, config) == 1.13
        assert filter_speed(3.625, config) == 3.63


# =============================================================================
# Ride mode
# =============================================================================

class TestRideMode:
    """Tests for ride mode band boundaries."""

    @pytest.mark.parametrize("speed,expected", [
        (0.0, RideMode.IDLE),
        (1.69, RideMode.IDLE),
        (1.7, RideMode.WALKING),
        (5.49, RideMode.WALKING),
        (5.5, RideMode.SCOOTER),
        (9.59, RideMode.SCOOTER),
        (9.6, RideMode.MOTORCYCLE),
        (80.0, RideMode.MOTORCYCLE),
    ])
    def test_bands(self, speed, expected):
        assert classify_ride_mode(speed) == expected

    def test_mode_follows_normalized_speed(self, normalizer):
        reading = normalizer.normalize(make_sample(gps_spd=1.7))
        assert reading.ride_mode == RideMode.WALKING

        reading = normalizer.normalize(make_sample(gps_spd=9.6))
        assert reading.ride_mode == RideMode.MOTORCYCLE

    def test_custom_thresholds(self):
        config = NormalizerConfig(walking_min_kmh=1.0, scooter_min_kmh=4.0, motorcycle_min_kmh=20.0)
        assert classify_ride_mode(15.0, config) == RideMode.SCOOTER


# =============================================================================
# Acceleration
# =============================================================================

class TestAcceleration:
    """Tests for acceleration magnitude."""

    @pytest.mark.parametrize("x,y,z", [
        (0.0, 0.0, 9.8),
        (3.0, 4.0, 12.0),
        (-20.0, 15.5, -7.25),
        (0.0, 0.0, 0.0),
    ])
    def test_magnitude_in_g(self, normalizer, x, y, z):
        reading = normalizer.normalize({"ax": x, "ay": y, "az": z})
        expected = math.sqrt(x * x + y * y + z * z) / 9.8
        assert reading.acceleration_magnitude_g == pytest.approx(expected)
        assert reading.acceleration == (x, y, z)

    def test_magnitude_never_negative(self, normalizer):
        reading = normalizer.normalize({"ax": -30.0, "ay": -30.0, "az": -30.0})
        assert reading.acceleration_magnitude_g > 0


# =============================================================================
# Malformed samples
# =============================================================================

class TestSkip:
    """Samples that cannot be trusted must be skipped, never raise."""

    @pytest.mark.parametrize("raw", [
        None,
        "not a sample",
        [1, 2, 3],
        {},
        {"gps_spd": 20.0, "lat": 1.0, "lon": 2.0},
        {"ax": 1.0, "ay": 2.0},
        {"ax": 1.0, "ay": None, "az": 3.0},
        {"ax": "x", "ay": 0.0, "az": 9.8},
        {"ax": float("nan"), "ay": 0.0, "az": 9.8},
        {"ax": float("inf"), "ay": 0.0, "az": 9.8},
        {"ax": True, "ay": 0.0, "az": 9.8},
    ])
    def test_skipped(self, normalizer, raw):
        assert normalizer.normalize(raw) is SKIP

    def test_parse_number(self):
        assert parse_number(3) == 3.0
        assert parse_number(" 2.5 ") == 2.5
        assert parse_number(None) is None
        assert parse_number(False) is None
        assert parse_number("abc") is None
        assert parse_number({"v": 1}) is None


# =============================================================================
# Passthrough, position and timestamps
# =============================================================================

class TestFields:
    """Tests for passthrough fields, positions and timestamps."""

    def test_tilt_and_posture_pass_through(self, normalizer):
        reading = normalizer.normalize(make_sample(tilt=12.5, posture="Leaning"))
        assert reading.tilt == 12.5
        assert reading.posture == "Leaning"

    def test_non_string_posture_dropped(self, normalizer):
        reading = normalizer.normalize(make_sample(posture=3))
        assert reading.posture is None

    def test_unknown_keys_kept_as_extras(self, normalizer):
        reading = normalizer.normalize(make_sample(battery=87, gps_spd=1.0))
        assert reading.extras == {"battery": 87}

    def test_extras_detached_from_raw_payload(self, normalizer):
        raw = make_sample(device={"fw": "1.0"})
        reading = normalizer.normalize(raw)

        raw["device"]["fw"] = "tampered"
        raw["injected"] = 1
        assert reading.extras == {"device": {"fw": "1.0"}}

    def test_extras_read_only(self, normalizer):
        reading = normalizer.normalize(make_sample(battery=87))
        with pytest.raises(TypeError):
            reading.extras["battery"] = 0

    def test_device_position_used(self, fixed_clock):
        lookup = StubLookup()
        normalizer = SampleNormalizer(clock=fixed_clock, position_lookup=lookup)
        reading = normalizer.normalize(make_sample(lat=12.97, lon=77.59))
        assert reading.position == (12.97, 77.59)
        assert reading.position_source == "device"
        assert lookup.requests == 0

    def test_zero_coordinates_count_as_present(self, normalizer):
        reading = normalizer.normalize(make_sample(lat=0.0, lon=0.0))
        assert reading.has_position
        assert reading.position_source == "device"

    def test_missing_position_requests_fallback(self, fixed_clock):
        lookup = StubLookup()
        normalizer = SampleNormalizer(clock=fixed_clock, position_lookup=lookup)
        reading = normalizer.normalize(make_sample(lat=12.97))
        assert lookup.requests == 1
        assert not reading.has_position
        assert reading.position_source is None

    def test_fallback_fix_attached(self, fixed_clock):
        lookup = StubLookup(PositionFix(lat=1.5, lon=2.5, obtained_at=0.0))
        normalizer = SampleNormalizer(clock=fixed_clock, position_lookup=lookup)
        reading = normalizer.normalize(make_sample())
        assert reading.position == (1.5, 2.5)
        assert reading.position_source == "fallback"

    def test_no_lookup_leaves_position_absent(self, normalizer):
        reading = normalizer.normalize(make_sample())
        assert reading.lat is None and reading.lon is None

    def test_timestamp_from_clock(self, normalizer):
        reading = normalizer.normalize(make_sample())
        assert reading.captured_at_ms == 1_700_000_000_000

    def test_timestamps_never_decrease(self):
        times = iter([100.0, 99.0, 101.0])
        normalizer = SampleNormalizer(clock=WallClock(source=lambda: next(times)))
        stamps = [normalizer.normalize(make_sample()).captured_at_ms for _ in range(3)]
        assert stamps == [100_000, 100_000, 101_000]

    def test_same_input_same_reading(self, normalizer):
        sample = make_sample(gps_spd=22.0, tilt=3.0)
        assert normalizer.normalize(sample) == normalizer.normalize(sample)
