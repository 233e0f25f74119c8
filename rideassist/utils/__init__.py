"""Utility modules for the RideAssist telemetry system."""

from rideassist.utils.timing import WallClock, PollRateEnforcer

__all__ = [
    "WallClock",
    "PollRateEnforcer",
]
