"""Type definitions for ride telemetry readings."""

import copy
from enum import Enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Optional, Tuple, Mapping, Any


class RideMode(Enum):
    """Coarse activity classification derived purely from speed."""
    IDLE = "Idle"
    WALKING = "Walking"
    SCOOTER = "Scooter"
    MOTORCYCLE = "Motorcycle"

    @property
    def display_name(self) -> str:
        """Human-readable display name."""
        return self.value


class Skip(Enum):
    """Marker returned by the normalizer for samples that must be dropped."""
    SKIP = "skip"


SKIP = Skip.SKIP


@dataclass(frozen=True)
class CanonicalReading:
    """
    Normalized, unit-consistent telemetry sample.

    Attributes:
        acceleration: Raw (ax, ay, az) vector in m/s^2
        acceleration_magnitude_g: Vector magnitude divided by standard gravity
        speed_kmh: Selected, jitter-filtered and rounded speed
        ride_mode: Classification of speed_kmh
        captured_at_ms: Wall-clock milliseconds assigned at normalization
        tilt: Tilt angle in degrees, if reported
        posture: Posture label, if reported
        gps_speed_kmh: GPS speed as reported by the device
        inertial_speed_kmh: Inertial speed estimate as reported by the device
        lat: Latitude, if known
        lon: Longitude, if known
        position_source: "device", "fallback" or None
        extras: Unrecognized raw keys (read-only copy)
    """
    acceleration: Tuple[float, float, float]
    acceleration_magnitude_g: float
    speed_kmh: float
    ride_mode: RideMode
    captured_at_ms: int
    tilt: Optional[float] = None
    posture: Optional[str] = None
    gps_speed_kmh: Optional[float] = None
    inertial_speed_kmh: Optional[float] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    position_source: Optional[str] = None
    extras: Mapping[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        """Validate reading invariants."""
        if self.speed_kmh < 0:
            raise ValueError(f"speed_kmh must be non-negative, got {self.speed_kmh}")
        if self.acceleration_magnitude_g < 0:
            raise ValueError(
                f"acceleration_magnitude_g must be non-negative, got {self.acceleration_magnitude_g}"
            )
        # Readings hold a private, read-only copy of their extras
        object.__setattr__(self, "extras", MappingProxyType(copy.deepcopy(dict(self.extras))))

    @property
    def has_position(self) -> bool:
        """Check if the reading carries a position."""
        return self.lat is not None and self.lon is not None

    @property
    def position(self) -> Optional[Tuple[float, float]]:
        """Get (lat, lon) or None."""
        if not self.has_position:
            return None
        return (self.lat, self.lon)
