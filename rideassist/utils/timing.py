"""
Timing utilities for sample polling and reading timestamps.

Provides a non-decreasing wall clock and poll rate enforcement.
"""

import threading
import time
from typing import Callable, Optional


class WallClock:
    """
    Millisecond wall clock that never goes backwards.

    Readings are stamped with wall-clock time so exports line up with real
    time, but a system clock step backwards must not reorder history.
    """

    def __init__(self, source: Optional[Callable[[], float]] = None):
        """
        Initialize clock.

        Args:
            source: Callable returning seconds since the epoch (defaults to time.time)
        """
        self._source = source or time.time
        self._last_ms = 0
        self._lock = threading.Lock()

    def now_ms(self) -> int:
        """
        Get current wall-clock time in milliseconds.

        Returns:
            Milliseconds, at least as large as the previous call's result
        """
        with self._lock:
            now = int(self._source() * 1000)
            if now < self._last_ms:
                now = self._last_ms
            self._last_ms = now
            return now


class PollRateEnforcer:
    """
    Enforces a target poll interval by sleeping when a poll finishes early.

    The sleep is interruptible through an optional stop event so shutdown
    does not wait out a full interval.
    """

    def __init__(self, interval_ms: float, stop_event: Optional[threading.Event] = None):
        """
        Initialize poll rate enforcer.

        Args:
            interval_ms: Target interval between poll starts (must be > 0)
            stop_event: Event that cuts the sleep short when set
        """
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")

        self._interval_s = interval_ms / 1000.0
        self._stop_event = stop_event or threading.Event()
        self._poll_count = 0
        self._overruns = 0

    @property
    def interval_ms(self) -> float:
        """Get target interval in milliseconds."""
        return self._interval_s * 1000.0

    def start_poll(self) -> float:
        """
        Mark the start of a poll.

        Returns:
            Monotonic timestamp of poll start
        """
        return time.monotonic()

    def end_poll(self, poll_start: float) -> float:
        """
        Mark the end of a poll and sleep for the rest of the interval.

        Args:
            poll_start: Timestamp from start_poll()

        Returns:
            Actual sleep time in milliseconds (0 if the poll overran)
        """
        elapsed = time.monotonic() - poll_start
        remaining = self._interval_s - elapsed
        self._poll_count += 1

        if remaining <= 0:
            self._overruns += 1
            return 0.0

        self._stop_event.wait(remaining)
        return remaining * 1000.0

    @property
    def poll_count(self) -> int:
        return self._poll_count

    @property
    def overruns(self) -> int:
        """Number of polls that took longer than the interval."""
        return self._overruns
