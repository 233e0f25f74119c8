"""Crash detection and countdown types."""

from enum import Enum
from dataclasses import dataclass
from typing import Optional


class CountdownPhase(Enum):
    """
    Emergency countdown phase.

    TRIGGERED is transient: it is reported to listeners while the call is
    being placed, after which the controller is IDLE again.
    """
    IDLE = "idle"
    ACTIVE = "active"
    TRIGGERED = "triggered"


@dataclass(frozen=True)
class CrashSignal:
    """Crash signature observed on a single reading."""
    g_force: float
    detected_at_ms: int


@dataclass(frozen=True)
class CountdownState:
    """
    Immutable snapshot of the countdown controller.

    Attributes:
        phase: Current phase
        seconds_remaining: Seconds until the call (0 unless ACTIVE)
        trigger_g_force: G-force of the crash that started the episode
        episode: Episode number (increments on each crash episode, 0 before any)
    """
    phase: CountdownPhase
    seconds_remaining: int = 0
    trigger_g_force: Optional[float] = None
    episode: int = 0

    @property
    def is_active(self) -> bool:
        return self.phase == CountdownPhase.ACTIVE
