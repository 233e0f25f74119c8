"""
Sample normalizer - converts raw device samples into canonical readings.

Raw samples come straight from the device's JSON endpoint and may be
incomplete or garbled. Normalization never raises: anything that cannot
be trusted for crash detection is reported as SKIP.
"""

import logging
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Mapping, Optional, Union

import numpy as np

from rideassist.config import NormalizerConfig
from rideassist.utils.timing import WallClock
from .types import CanonicalReading, RideMode, Skip, SKIP

logger = logging.getLogger(__name__)

# Raw keys consumed by normalization; anything else is passed through as extras
ACCEL_KEYS = ("ax", "ay", "az")
KNOWN_KEYS = frozenset(ACCEL_KEYS + ("tilt", "posture", "gps_spd", "mpu_spd", "lat", "lon"))


def parse_number(value: Any) -> Optional[float]:
    """
    Coerce a raw field to a finite float.

    Accepts ints, floats and numeric strings. Booleans, non-numeric values
    and NaN/inf are rejected.

    Returns:
        Float value, or None if the field is absent or unusable
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def select_speed(gps_speed: Optional[float], inertial_speed: Optional[float]) -> float:
    """Pick the raw speed: GPS if positive, else inertial if positive, else 0."""
    if gps_speed is not None and gps_speed > 0:
        return gps_speed
    if inertial_speed is not None and inertial_speed > 0:
        return inertial_speed
    return 0.0


def filter_speed(raw_speed: float, config: NormalizerConfig) -> float:
    """
    Suppress jitter below the threshold, otherwise round.

    Ties round half up on the exact binary value, so 1.125 gives 1.13.
    """
    if raw_speed < config.jitter_threshold_kmh:
        return 0.0
    quantum = Decimal(1).scaleb(-config.speed_decimals)
    return float(Decimal(raw_speed).quantize(quantum, rounding=ROUND_HALF_UP))


def classify_ride_mode(speed_kmh: float, config: Optional[NormalizerConfig] = None) -> RideMode:
    """
    Classify ride mode from speed.

    Each band includes its lower bound and excludes its upper bound.
    """
    config = config or NormalizerConfig()
    if speed_kmh < config.walking_min_kmh:
        return RideMode.IDLE
    if speed_kmh < config.scooter_min_kmh:
        return RideMode.WALKING
    if speed_kmh < config.motorcycle_min_kmh:
        return RideMode.SCOOTER
    return RideMode.MOTORCYCLE


def acceleration_magnitude_g(ax: float, ay: float, az: float, gravity: float = 9.8) -> float:
    """Acceleration vector magnitude expressed in G."""
    return float(np.linalg.norm(np.array([ax, ay, az], dtype=np.float64))) / gravity


class SampleNormalizer:
    """
    Validates raw samples and derives ride metrics.

    Pipeline per sample:
    1. Reject samples without a complete acceleration vector
    2. Compute acceleration magnitude in G
    3. Select speed source and filter jitter
    4. Classify ride mode
    5. Attach device position, or request/attach a fallback position

    Usage:
        normalizer = SampleNormalizer()
        reading = normalizer.normalize({"ax": 0.1, "ay": 0.2, "az": 9.7})
        if reading is not SKIP:
            ...
    """

    def __init__(
        self,
        config: Optional[NormalizerConfig] = None,
        clock: Optional[WallClock] = None,
        position_lookup=None,
    ):
        """
        Initialize normalizer.

        Args:
            config: Normalization thresholds (defaults if None)
            clock: Timestamp source for captured_at_ms
            position_lookup: Optional FallbackPositionLookup for samples without lat/lon
        """
        self._config = config or NormalizerConfig()
        self._clock = clock or WallClock()
        self._position_lookup = position_lookup

    @property
    def config(self) -> NormalizerConfig:
        return self._config

    def normalize(self, raw: Any) -> Union[CanonicalReading, Skip]:
        """
        Convert a raw sample into a canonical reading.

        Args:
            raw: Raw sample mapping

        Returns:
            CanonicalReading, or SKIP if the sample cannot be trusted
        """
        if not isinstance(raw, Mapping):
            logger.debug(f"Skipping non-mapping sample: {type(raw).__name__}")
            return SKIP

        accel = [parse_number(raw.get(key)) for key in ACCEL_KEYS]
        if any(component is None for component in accel):
            logger.debug("Skipping sample without complete acceleration vector")
            return SKIP
        ax, ay, az = accel

        gps_speed = parse_number(raw.get("gps_spd"))
        inertial_speed = parse_number(raw.get("mpu_spd"))
        speed = filter_speed(select_speed(gps_speed, inertial_speed), self._config)

        tilt = parse_number(raw.get("tilt"))
        posture = raw.get("posture")
        if not isinstance(posture, str):
            posture = None

        lat, lon, position_source = self._resolve_position(
            parse_number(raw.get("lat")), parse_number(raw.get("lon"))
        )

        extras = {key: value for key, value in raw.items() if key not in KNOWN_KEYS}

        return CanonicalReading(
            acceleration=(ax, ay, az),
            acceleration_magnitude_g=acceleration_magnitude_g(ax, ay, az, self._config.gravity),
            speed_kmh=speed,
            ride_mode=classify_ride_mode(speed, self._config),
            captured_at_ms=self._clock.now_ms(),
            tilt=tilt,
            posture=posture,
            gps_speed_kmh=gps_speed,
            inertial_speed_kmh=inertial_speed,
            lat=lat,
            lon=lon,
            position_source=position_source,
            extras=extras,
        )

    def _resolve_position(self, lat: Optional[float], lon: Optional[float]):
        """Return (lat, lon, source) using the fallback lookup when the device has no fix."""
        if lat is not None and lon is not None:
            return lat, lon, "device"

        if self._position_lookup is None:
            return None, None, None

        # Fire-and-forget; the result lands on a later reading
        self._position_lookup.request()
        fix = self._position_lookup.latest_fix()
        if fix is None:
            return None, None, None
        return fix.lat, fix.lon, "fallback"
