"""
Fallback positioning for readings that arrive without a GPS fix.

The device's GPS module is optional. When a sample carries no position,
the normalizer asks a FallbackPositionLookup for one. Lookups run on a
detached daemon thread and never block sample processing; the resulting
fix is picked up by whichever reading is normalized next.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PositionFix:
    """A single position fix from a fallback provider."""
    lat: float
    lon: float
    obtained_at: float  # time.monotonic() seconds

    def age_s(self, now: Optional[float] = None) -> float:
        """Seconds since the fix was obtained."""
        if now is None:
            now = time.monotonic()
        return now - self.obtained_at


class NullPositionProvider:
    """
    Provider used when no fallback positioning is available.

    Always reports no fix.
    """

    def locate(self) -> Optional[PositionFix]:
        """Locate (always None)."""
        return None


class StaticPositionProvider:
    """Provider that reports a fixed, configured position."""

    def __init__(self, lat: float, lon: float):
        if not -90.0 <= lat <= 90.0:
            raise ValueError(f"Latitude out of range: {lat}")
        if not -180.0 <= lon <= 180.0:
            raise ValueError(f"Longitude out of range: {lon}")
        self._lat = float(lat)
        self._lon = float(lon)

    def locate(self) -> Optional[PositionFix]:
        """Return the configured position stamped with the current time."""
        return PositionFix(lat=self._lat, lon=self._lon, obtained_at=time.monotonic())


class FallbackPositionLookup:
    """
    Fire-and-forget wrapper around a position provider.

    Features:
    - At most one lookup in flight at a time
    - Lookups run on a daemon thread, request() returns immediately
    - Provider failures are logged at debug level and otherwise ignored
    - Stale fixes (older than max_fix_age_s) are not handed out

    Usage:
        lookup = FallbackPositionLookup(StaticPositionProvider(12.97, 77.59))
        lookup.request()

        # Later, on another reading:
        fix = lookup.latest_fix()
    """

    def __init__(self, provider, max_fix_age_s: float = 30.0, enabled: bool = True):
        """
        Initialize fallback lookup.

        Args:
            provider: Object with a locate() -> Optional[PositionFix] method
            max_fix_age_s: Fixes older than this are treated as unavailable
            enabled: When False, request() does nothing
        """
        self._provider = provider
        self._max_fix_age_s = max_fix_age_s
        self._enabled = enabled

        self._lock = threading.Lock()
        self._latest: Optional[PositionFix] = None
        self._worker: Optional[threading.Thread] = None
        self._stopped = False

        # Statistics
        self._requests = 0
        self._successes = 0
        self._failures = 0

    def request(self) -> bool:
        """
        Start a lookup unless one is already running.

        Returns:
            True if a new lookup was started
        """
        if not self._enabled:
            return False

        with self._lock:
            if self._stopped:
                return False
            if self._worker is not None and self._worker.is_alive():
                return False

            self._requests += 1
            self._worker = threading.Thread(
                target=self._run_lookup,
                name="FallbackPositionLookup",
                daemon=True,
            )
            self._worker.start()
            return True

    def _run_lookup(self) -> None:
        """Worker body: query the provider and store the result."""
        try:
            fix = self._provider.locate()
        except Exception as e:
            logger.debug(f"Fallback position unavailable: {e}")
            fix = None

        with self._lock:
            if fix is None:
                self._failures += 1
                return
            self._successes += 1
            if self._latest is None or fix.obtained_at >= self._latest.obtained_at:
                self._latest = fix

    def latest_fix(self) -> Optional[PositionFix]:
        """
        Get the most recent fix, if it is still fresh.

        Returns:
            PositionFix, or None if no fresh fix is available
        """
        with self._lock:
            fix = self._latest
        if fix is None or fix.age_s() > self._max_fix_age_s:
            return None
        return fix

    def wait_idle(self, timeout: Optional[float] = None) -> None:
        """Block until any in-flight lookup finishes (used by shutdown and tests)."""
        worker = self._worker
        if worker is not None:
            worker.join(timeout=timeout)

    def stop(self) -> None:
        """Refuse further lookups and wait briefly for the in-flight one."""
        with self._lock:
            self._stopped = True
        self.wait_idle(timeout=1.0)

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def requests(self) -> int:
        return self._requests

    @property
    def successes(self) -> int:
        return self._successes

    @property
    def failures(self) -> int:
        return self._failures


def create_position_provider(
    provider: str = "none",
    static_lat: Optional[float] = None,
    static_lon: Optional[float] = None,
):
    """
    Factory function to create the configured position provider.

    Falls back to NullPositionProvider when a static provider is requested
    without coordinates.
    """
    if provider == "none":
        return NullPositionProvider()

    if provider == "static":
        if static_lat is None or static_lon is None:
            logger.warning("Static positioning selected without coordinates - disabled")
            return NullPositionProvider()
        return StaticPositionProvider(static_lat, static_lon)

    raise ValueError(f"Unknown position provider: {provider}")
