"""Emergency countdown controller - crash episode state machine."""

import logging
import threading
from typing import Callable, List, Optional

from .types import CountdownPhase, CountdownState, CrashSignal
from .timer import CountdownTimer, threaded_timer_factory

logger = logging.getLogger(__name__)


class EmergencyCountdownController:
    """
    Runs a cancellable countdown from a crash signal to an emergency call.

    State transitions:
        IDLE → ACTIVE(N): Crash signal
        ACTIVE(n) → ACTIVE(n-1): One tick, n > 1
        ACTIVE(1) → TRIGGERED → IDLE(0): One tick; call placed once
        ACTIVE(n) → TRIGGERED → IDLE(0): call_now(); call placed once
        ACTIVE(n) → IDLE(0): cancel()
        ACTIVE/TRIGGERED + crash signal: ignored

    Every episode gets its own timer handle. The handle is cancelled under
    the state lock before any state change, and each tick carries the
    episode number it was armed for, so a tick that was already in flight
    when the episode ended finds a different episode and does nothing.

    The call placer and state listeners run outside the lock.
    """

    DEFAULT_COUNTDOWN_S = 30

    def __init__(
        self,
        call_placer,
        emergency_number: str,
        countdown_s: int = DEFAULT_COUNTDOWN_S,
        timer_factory: Optional[Callable[[], CountdownTimer]] = None,
    ):
        """
        Initialize controller.

        Args:
            call_placer: Object with place_call(number)
            emergency_number: Number passed to the call placer
            countdown_s: Countdown length in ticks (seconds)
            timer_factory: Creates a timer handle per episode (threaded 1s timer by default)
        """
        if countdown_s <= 0:
            raise ValueError(f"countdown_s must be positive, got {countdown_s}")

        self._call_placer = call_placer
        self._emergency_number = emergency_number
        self._countdown_s = countdown_s
        self._timer_factory = timer_factory or threaded_timer_factory(1.0)

        self._lock = threading.RLock()
        self._phase = CountdownPhase.IDLE
        self._seconds_remaining = 0
        self._trigger_g_force: Optional[float] = None
        self._episode = 0
        self._timer: Optional[CountdownTimer] = None

        self._listeners: List[Callable[[CountdownState], None]] = []
        self._calls_placed = 0

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def on_crash(self, signal: CrashSignal) -> bool:
        """
        Start a countdown episode if idle.

        Returns:
            True if a new episode started, False if the signal was ignored
        """
        with self._lock:
            if self._phase != CountdownPhase.IDLE:
                logger.debug(f"Crash signal ({signal.g_force:.2f}G) ignored - episode in progress")
                return False

            self._episode += 1
            self._phase = CountdownPhase.ACTIVE
            self._seconds_remaining = self._countdown_s
            self._trigger_g_force = signal.g_force

            episode = self._episode
            self._timer = self._timer_factory()
            self._timer.start(lambda: self._on_tick(episode))
            state = self._snapshot()

        logger.warning(
            f"Crash detected ({signal.g_force:.2f}G) - "
            f"emergency call in {self._countdown_s}s unless cancelled"
        )
        self._notify(state)
        return True

    def cancel(self) -> bool:
        """
        Cancel the active countdown.

        The timer is stopped before this returns; no later tick can change
        state or place a call.

        Returns:
            True if an active episode was cancelled
        """
        with self._lock:
            if self._phase != CountdownPhase.ACTIVE:
                return False

            timer = self._stop_timer()
            remaining = self._seconds_remaining
            self._reset()
            state = self._snapshot()

        self._join_timer(timer)
        logger.info(f"Emergency countdown cancelled with {remaining}s remaining")
        self._notify(state)
        return True

    def call_now(self) -> bool:
        """
        Place the emergency call immediately.

        During an active countdown this ends the episode exactly as natural
        expiry does. When idle the call is placed directly.

        Returns:
            True if a call was placed
        """
        with self._lock:
            if self._phase == CountdownPhase.TRIGGERED:
                return False
            if self._phase == CountdownPhase.IDLE:
                direct = True
            else:
                direct = False
                timer = self._stop_timer()
                self._phase = CountdownPhase.TRIGGERED
                state = self._snapshot()

        if direct:
            logger.info("Manual emergency call requested")
            self._place_call()
            return True

        self._join_timer(timer)
        logger.info("Emergency countdown skipped - calling now")
        self._complete_trigger(state)
        return True

    def shutdown(self) -> None:
        """Cancel any active countdown without placing a call."""
        self.cancel()

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    def _on_tick(self, episode: int) -> None:
        """Handle one elapsed second for the given episode."""
        with self._lock:
            if self._phase != CountdownPhase.ACTIVE or episode != self._episode:
                return

            if self._seconds_remaining > 1:
                self._seconds_remaining -= 1
                state = self._snapshot()
                expired = False
            else:
                self._stop_timer()
                self._phase = CountdownPhase.TRIGGERED
                state = self._snapshot()
                expired = True

        if expired:
            logger.warning("Emergency countdown expired")
            self._complete_trigger(state)
        else:
            self._notify(state)

    def _stop_timer(self) -> Optional[CountdownTimer]:
        """Cancel and detach the current timer handle. Caller holds the lock."""
        timer = self._timer
        self._timer = None
        if timer is not None:
            timer.cancel()
        return timer

    @staticmethod
    def _join_timer(timer: Optional[CountdownTimer]) -> None:
        if timer is not None:
            timer.join()

    # ------------------------------------------------------------------
    # Trigger
    # ------------------------------------------------------------------

    def _complete_trigger(self, triggered_state: CountdownState) -> None:
        """Announce TRIGGERED, place the call, then return to IDLE."""
        self._notify(triggered_state)
        try:
            self._place_call()
        finally:
            with self._lock:
                self._reset()
                state = self._snapshot()
            self._notify(state)

    def _place_call(self) -> None:
        try:
            self._call_placer.place_call(self._emergency_number)
        except Exception as e:
            logger.error(f"Emergency call placement failed: {e}")
        finally:
            with self._lock:
                self._calls_placed += 1

    def _reset(self) -> None:
        """Return to IDLE. Caller holds the lock."""
        self._phase = CountdownPhase.IDLE
        self._seconds_remaining = 0
        self._trigger_g_force = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _snapshot(self) -> CountdownState:
        return CountdownState(
            phase=self._phase,
            seconds_remaining=self._seconds_remaining,
            trigger_g_force=self._trigger_g_force,
            episode=self._episode,
        )

    @property
    def state(self) -> CountdownState:
        """Current state snapshot."""
        with self._lock:
            return self._snapshot()

    @property
    def calls_placed(self) -> int:
        """Number of call placement attempts made."""
        with self._lock:
            return self._calls_placed

    @property
    def emergency_number(self) -> str:
        return self._emergency_number

    def add_listener(self, callback: Callable[[CountdownState], None]) -> None:
        """Register a callback invoked with each new state snapshot."""
        self._listeners.append(callback)

    def _notify(self, state: CountdownState) -> None:
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error(f"Countdown listener failed: {e}")
