"""
Telemetry coordinator - per-sample processing pipeline.

Owns the current reading, the ride history and the countdown controller,
and is the single object handed to the transport, exporters and the
dashboard.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

from rideassist.config import Config
from rideassist.crash import (
    CountdownState,
    CrashDetector,
    EmergencyCountdownController,
    create_call_placer,
    threaded_timer_factory,
)
from rideassist.positioning import (
    FallbackPositionLookup,
    NullPositionProvider,
    create_position_provider,
)
from rideassist.telemetry import CanonicalReading, HistoryBuffer, SampleNormalizer, SKIP

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CoordinatorStats:
    """Sample processing counters."""
    samples_received: int = 0
    samples_skipped: int = 0
    crashes_detected: int = 0
    episodes_started: int = 0


class TelemetryCoordinator:
    """
    Composes normalizer, history, detector and countdown per sample.

    Processing order for each raw sample:
    1. Normalize (SKIP stops here)
    2. Append to history and make it the current reading
    3. Evaluate crash signature
    4. Deliver any crash signal to the countdown controller
    5. Hand the reading to registered sinks (e.g. the ride log)

    on_sample calls are serialized; the countdown controller serializes
    its own state against its timer thread.
    """

    def __init__(
        self,
        normalizer: SampleNormalizer,
        history: HistoryBuffer,
        detector: CrashDetector,
        controller: EmergencyCountdownController,
        position_lookup: Optional[FallbackPositionLookup] = None,
    ):
        self._normalizer = normalizer
        self._history = history
        self._detector = detector
        self._controller = controller
        self._position_lookup = position_lookup

        self._lock = threading.RLock()
        self._current: Optional[CanonicalReading] = None
        self._sinks: List[Callable[[CanonicalReading], Any]] = []

        self._samples_received = 0
        self._samples_skipped = 0
        self._crashes_detected = 0
        self._episodes_started = 0

    def on_sample(self, raw: Any) -> Optional[CanonicalReading]:
        """
        Process one raw sample.

        Never raises for bad input; malformed samples are counted and dropped.

        Returns:
            The canonical reading, or None if the sample was skipped
        """
        with self._lock:
            self._samples_received += 1

            reading = self._normalizer.normalize(raw)
            if reading is SKIP:
                self._samples_skipped += 1
                return None

            self._history.append(reading)
            self._current = reading

            signal = self._detector.evaluate(reading)
            if signal is not None:
                self._crashes_detected += 1
                if self._controller.on_crash(signal):
                    self._episodes_started += 1

            sinks = list(self._sinks)

        for sink in sinks:
            try:
                sink(reading)
            except Exception as e:
                logger.error(f"Reading sink failed: {e}")

        return reading

    def add_sink(self, sink: Callable[[CanonicalReading], Any]) -> None:
        """Register a callable that receives every accepted reading."""
        with self._lock:
            self._sinks.append(sink)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def cancel_emergency(self) -> bool:
        """Cancel the active emergency countdown."""
        return self._controller.cancel()

    def call_emergency_now(self) -> bool:
        """Place the emergency call immediately."""
        return self._controller.call_now()

    def shutdown(self) -> None:
        """Cancel any countdown and stop background lookups."""
        self._controller.shutdown()
        if self._position_lookup is not None:
            self._position_lookup.stop()

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    @property
    def current_reading(self) -> Optional[CanonicalReading]:
        with self._lock:
            return self._current

    @property
    def history(self) -> HistoryBuffer:
        """Ride history (use its read methods only)."""
        return self._history

    def history_snapshot(self) -> Tuple[CanonicalReading, ...]:
        return self._history.snapshot()

    @property
    def countdown_state(self) -> CountdownState:
        return self._controller.state

    @property
    def controller(self) -> EmergencyCountdownController:
        return self._controller

    @property
    def position_lookup(self) -> Optional[FallbackPositionLookup]:
        return self._position_lookup

    @property
    def stats(self) -> CoordinatorStats:
        with self._lock:
            return CoordinatorStats(
                samples_received=self._samples_received,
                samples_skipped=self._samples_skipped,
                crashes_detected=self._crashes_detected,
                episodes_started=self._episodes_started,
            )


def create_coordinator(
    config: Optional[Config] = None,
    call_placer=None,
    timer_factory=None,
    clock=None,
) -> TelemetryCoordinator:
    """
    Factory function to build a coordinator from configuration.

    Args:
        config: System configuration (defaults if None)
        call_placer: Overrides the configured call backend
        timer_factory: Overrides the threaded countdown timer
        clock: Overrides the normalizer's wall clock
    """
    config = config or Config()

    position_lookup = None
    if config.positioning.enabled:
        provider = create_position_provider(
            config.positioning.provider,
            config.positioning.static_lat,
            config.positioning.static_lon,
        )
        # A provider that can never answer gets no lookup threads
        if not isinstance(provider, NullPositionProvider):
            position_lookup = FallbackPositionLookup(
                provider,
                max_fix_age_s=config.positioning.max_fix_age_s,
            )

    controller = EmergencyCountdownController(
        call_placer=call_placer or create_call_placer(config.emergency.backend),
        emergency_number=config.emergency.number,
        countdown_s=config.crash.countdown_s,
        timer_factory=timer_factory or threaded_timer_factory(config.crash.tick_interval_s),
    )

    return TelemetryCoordinator(
        normalizer=SampleNormalizer(config.normalizer, clock=clock, position_lookup=position_lookup),
        history=HistoryBuffer(config.history.capacity),
        detector=CrashDetector(config.crash.threshold_g),
        controller=controller,
        position_lookup=position_lookup,
    )
