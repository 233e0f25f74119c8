"""Shared fixtures for RideAssist tests."""

import sys
from pathlib import Path
from typing import Callable, List, Optional

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from rideassist.config import Config
from rideassist.utils.timing import WallClock

GRAVITY = 9.8


class FakeTimer:
    """Countdown timer handle driven by the test instead of a thread."""

    def __init__(self):
        self.callback: Optional[Callable[[], None]] = None
        self.cancelled = False
        self.joined = False

    def start(self, callback: Callable[[], None]) -> None:
        self.callback = callback

    def cancel(self) -> None:
        self.cancelled = True

    def join(self, timeout: Optional[float] = None) -> None:
        self.joined = True

    def fire(self, times: int = 1, force: bool = False) -> None:
        """
        Deliver ticks.

        A cancelled timer delivers nothing unless force is set, which
        simulates a tick that was already in flight when cancel ran.
        """
        for _ in range(times):
            if self.cancelled and not force:
                return
            self.callback()


class FakeTimerFactory:
    """Creates FakeTimers and remembers them in order."""

    def __init__(self):
        self.timers: List[FakeTimer] = []

    def __call__(self) -> FakeTimer:
        timer = FakeTimer()
        self.timers.append(timer)
        return timer

    @property
    def current(self) -> FakeTimer:
        return self.timers[-1]


class RecordingCallPlacer:
    """Call placer that records numbers, optionally failing."""

    def __init__(self, fail: bool = False):
        self.calls: List[str] = []
        self._fail = fail

    def place_call(self, number: str) -> None:
        self.calls.append(number)
        if self._fail:
            raise RuntimeError("dialer unavailable")


def make_sample(g: float = 1.0, **fields) -> dict:
    """Raw sample whose acceleration magnitude is g (all on the z axis)."""
    sample = {"ax": 0.0, "ay": 0.0, "az": g * GRAVITY}
    sample.update(fields)
    return sample


@pytest.fixture
def timer_factory():
    return FakeTimerFactory()


@pytest.fixture
def call_placer():
    return RecordingCallPlacer()


@pytest.fixture
def fixed_clock():
    """Wall clock frozen at 1_700_000_000 s."""
    return WallClock(source=lambda: 1_700_000_000.0)


@pytest.fixture
def quiet_config():
    """Default configuration without background positioning lookups."""
    config = Config()
    config.positioning.enabled = False
    return config
