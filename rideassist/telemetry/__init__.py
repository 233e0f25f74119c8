"""
Ride telemetry module.

Provides sample normalization, bounded ride history, export and
JSON Lines logging of canonical readings.
"""

from .types import CanonicalReading, RideMode, Skip, SKIP
from .normalizer import SampleNormalizer, classify_ride_mode
from .history import HistoryBuffer
from .logger import RideLogger

__all__ = [
    "CanonicalReading",
    "RideMode",
    "Skip",
    "SKIP",
    "SampleNormalizer",
    "classify_ride_mode",
    "HistoryBuffer",
    "RideLogger",
]
