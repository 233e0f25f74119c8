"""Bounded ride history of canonical readings."""

import threading
from collections import deque
from typing import Iterator, Optional, Tuple

from .types import CanonicalReading


class HistoryBuffer:
    """
    Append-only, insertion-ordered history with FIFO eviction.

    Once the buffer holds `capacity` readings, each append drops the
    oldest one. There is no other way to remove or reorder entries.
    Read operations return tuples, so callers never see the live buffer.
    """

    DEFAULT_CAPACITY = 1000

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._readings: deque = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._evicted = 0

    def append(self, reading: CanonicalReading) -> None:
        """Append a reading, evicting the oldest one when full."""
        with self._lock:
            if len(self._readings) == self._capacity:
                self._evicted += 1
            self._readings.append(reading)

    def snapshot(self) -> Tuple[CanonicalReading, ...]:
        """Get all readings, oldest first."""
        with self._lock:
            return tuple(self._readings)

    def last_n(self, k: int, newest_first: bool = False) -> Tuple[CanonicalReading, ...]:
        """
        Get the most recent k readings.

        Args:
            k: Number of readings (k <= 0 gives an empty tuple)
            newest_first: Reverse the order for display lists

        Returns:
            Up to k readings, oldest first unless newest_first is set
        """
        if k <= 0:
            return ()
        with self._lock:
            recent = list(self._readings)[-k:]
        if newest_first:
            recent.reverse()
        return tuple(recent)

    def latest(self) -> Optional[CanonicalReading]:
        """Get the newest reading, or None if empty."""
        with self._lock:
            return self._readings[-1] if self._readings else None

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def evicted(self) -> int:
        """Number of readings dropped by capacity eviction."""
        return self._evicted

    def __len__(self) -> int:
        with self._lock:
            return len(self._readings)

    def __iter__(self) -> Iterator[CanonicalReading]:
        return iter(self.snapshot())
