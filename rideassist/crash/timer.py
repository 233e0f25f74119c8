"""
Countdown timer handles.

A timer delivers one callback per interval on its own thread until it is
cancelled. The countdown controller creates a fresh handle for every
crash episode and cancels it before touching its own state.
"""

import logging
import threading
import time
from typing import Callable, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class CountdownTimer(Protocol):
    """Timer handle used by the countdown controller, one per episode."""

    def start(self, callback: Callable[[], None]) -> None:
        ...

    def cancel(self) -> None:
        ...

    def join(self, timeout: Optional[float] = None) -> None:
        ...


class ThreadedCountdownTimer:
    """
    Periodic timer running on a daemon thread.

    Ticks are scheduled against monotonic deadlines (start + k * interval)
    so a slow callback does not make the countdown drift.

    Usage:
        timer = ThreadedCountdownTimer(interval_s=1.0)
        timer.start(on_tick)
        ...
        timer.cancel()   # no new tick starts after this
        timer.join()     # wait for the thread to exit
    """

    def __init__(self, interval_s: float = 1.0):
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self._interval_s = interval_s
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self, callback: Callable[[], None]) -> None:
        """Start ticking. A handle can only be started once."""
        if self._thread is not None:
            raise RuntimeError("Timer already started")

        self._thread = threading.Thread(
            target=self._run,
            args=(callback,),
            name="CountdownTimer",
            daemon=True,
        )
        self._thread.start()

    def _run(self, callback: Callable[[], None]) -> None:
        started = time.monotonic()
        ticks = 0
        while True:
            ticks += 1
            deadline = started + ticks * self._interval_s
            if self._stop_event.wait(max(0.0, deadline - time.monotonic())):
                return
            try:
                callback()
            except Exception as e:
                logger.error(f"Countdown tick failed: {e}")

    def cancel(self) -> None:
        """Stop future ticks. Safe to call from any thread, including the tick thread."""
        self._stop_event.set()

    def join(self, timeout: Optional[float] = 2.0) -> None:
        """Wait for the timer thread to exit (no-op from the timer thread itself)."""
        thread = self._thread
        if thread is None or thread is threading.current_thread():
            return
        thread.join(timeout=timeout)

    @property
    def cancelled(self) -> bool:
        return self._stop_event.is_set()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self.cancelled


def threaded_timer_factory(interval_s: float = 1.0) -> Callable[[], ThreadedCountdownTimer]:
    """Build a factory that creates one ThreadedCountdownTimer per episode."""
    def factory() -> ThreadedCountdownTimer:
        return ThreadedCountdownTimer(interval_s=interval_s)
    return factory
