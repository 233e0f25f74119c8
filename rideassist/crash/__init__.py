"""
Crash Response Module.

Provides crash detection, the emergency countdown state machine and
call placement backends.
"""

from .types import CountdownPhase, CountdownState, CrashSignal
from .detector import CrashDetector
from .countdown import EmergencyCountdownController
from .timer import CountdownTimer, ThreadedCountdownTimer, threaded_timer_factory
from .caller import LoggingCallPlacer, TelUriCallPlacer, create_call_placer

__all__ = [
    "CountdownPhase",
    "CountdownState",
    "CrashSignal",
    "CrashDetector",
    "EmergencyCountdownController",
    "CountdownTimer",
    "ThreadedCountdownTimer",
    "threaded_timer_factory",
    "LoggingCallPlacer",
    "TelUriCallPlacer",
    "create_call_placer",
]
