"""Crash detector - threshold predicate over a single reading."""

import logging
from typing import Optional

from rideassist.telemetry.types import CanonicalReading
from .types import CrashSignal

logger = logging.getLogger(__name__)


class CrashDetector:
    """
    Flags readings whose acceleration magnitude exceeds a G threshold.

    The detector is stateless and looks at one reading at a time. It will
    keep flagging every reading above the threshold; suppressing repeats
    during an active countdown is the controller's job.
    """

    DEFAULT_THRESHOLD_G = 3.5

    def __init__(self, threshold_g: float = DEFAULT_THRESHOLD_G):
        if threshold_g <= 0:
            raise ValueError(f"threshold_g must be positive, got {threshold_g}")
        self._threshold_g = threshold_g

    @property
    def threshold_g(self) -> float:
        return self._threshold_g

    def evaluate(self, reading: CanonicalReading) -> Optional[CrashSignal]:
        """
        Check a reading for the crash signature.

        Returns:
            CrashSignal if acceleration magnitude is strictly above the threshold
        """
        g_force = reading.acceleration_magnitude_g
        if g_force <= self._threshold_g:
            return None

        logger.debug(f"Crash signature: {g_force:.2f}G > {self._threshold_g:.2f}G")
        return CrashSignal(g_force=g_force, detected_at_ms=reading.captured_at_ms)
