"""
Integration tests for the telemetry coordinator.

Drives raw samples through normalize, history, detection and countdown.
"""

import pytest

from rideassist.coordinator import create_coordinator
from rideassist.crash import CountdownPhase
from rideassist.telemetry import RideMode

from conftest import make_sample


@pytest.fixture
def coordinator(quiet_config, call_placer, timer_factory, fixed_clock):
    return create_coordinator(
        quiet_config,
        call_placer=call_placer,
        timer_factory=timer_factory,
        clock=fixed_clock,
    )


class TestOnSample:
    """Tests for per-sample processing."""

    def test_accepted_sample_becomes_current_and_history(self, coordinator):
        reading = coordinator.on_sample(make_sample(gps_spd=7.0))
        assert reading is not None
        assert reading.ride_mode == RideMode.SCOOTER
        assert coordinator.current_reading is reading
        assert coordinator.history_snapshot() == (reading,)

    def test_malformed_sample_skipped(self, coordinator):
        good = coordinator.on_sample(make_sample())
        assert coordinator.on_sample({"gps_spd": 4.0}) is None
        assert coordinator.on_sample(None) is None

        assert coordinator.current_reading is good
        assert len(coordinator.history) == 1
        stats = coordinator.stats
        assert stats.samples_received == 3
        assert stats.samples_skipped == 2

    def test_normal_riding_stays_idle(self, coordinator):
        for _ in range(10):
            coordinator.on_sample(make_sample(g=1.1, gps_spd=30.0))
        assert coordinator.countdown_state.phase == CountdownPhase.IDLE

    def test_crash_reading_starts_countdown(self, coordinator):
        coordinator.on_sample(make_sample(g=4.0))
        state = coordinator.countdown_state
        assert state.phase == CountdownPhase.ACTIVE
        assert state.seconds_remaining == 30
        assert state.trigger_g_force == pytest.approx(4.0)
        assert coordinator.stats.episodes_started == 1

    def test_second_crash_while_active_is_ignored(self, coordinator, timer_factory):
        coordinator.on_sample(make_sample(g=4.0))
        timer_factory.current.fire()
        coordinator.on_sample(make_sample(g=4.0))

        assert coordinator.countdown_state.seconds_remaining == 29
        stats = coordinator.stats
        assert stats.crashes_detected == 2
        assert stats.episodes_started == 1

    def test_crash_reading_still_recorded(self, coordinator):
        reading = coordinator.on_sample(make_sample(g=6.0))
        assert coordinator.history.latest() is reading

    def test_history_capacity_from_config(self, quiet_config, call_placer, timer_factory):
        quiet_config.history.capacity = 5
        coordinator = create_coordinator(quiet_config, call_placer=call_placer, timer_factory=timer_factory)
        for _ in range(8):
            coordinator.on_sample(make_sample())
        assert len(coordinator.history) == 5


class TestCommands:
    """Tests for commands forwarded to the countdown controller."""

    def test_cancel_emergency(self, coordinator, timer_factory, call_placer):
        coordinator.on_sample(make_sample(g=4.0))
        timer_factory.current.fire(15)

        assert coordinator.cancel_emergency() is True
        assert coordinator.countdown_state.phase == CountdownPhase.IDLE

        timer_factory.current.fire(30, force=True)
        assert call_placer.calls == []

    def test_call_now(self, coordinator, call_placer, quiet_config):
        coordinator.on_sample(make_sample(g=4.0))
        assert coordinator.call_emergency_now() is True
        assert call_placer.calls == [quiet_config.emergency.number]
        assert coordinator.countdown_state.phase == CountdownPhase.IDLE

    def test_expiry_then_new_crash(self, coordinator, timer_factory, call_placer):
        coordinator.on_sample(make_sample(g=4.0))
        timer_factory.current.fire(30)
        assert len(call_placer.calls) == 1

        coordinator.on_sample(make_sample(g=4.0))
        state = coordinator.countdown_state
        assert state.phase == CountdownPhase.ACTIVE
        assert state.seconds_remaining == 30

    def test_shutdown_cancels_countdown(self, coordinator, call_placer):
        coordinator.on_sample(make_sample(g=4.0))
        coordinator.shutdown()
        assert coordinator.countdown_state.phase == CountdownPhase.IDLE
        assert call_placer.calls == []


class TestSinks:
    """Tests for reading sinks."""

    def test_sink_receives_accepted_readings(self, coordinator):
        received = []
        coordinator.add_sink(received.append)

        coordinator.on_sample(make_sample())
        coordinator.on_sample({})
        assert len(received) == 1

    def test_failing_sink_does_not_interrupt(self, coordinator):
        def bad_sink(reading):
            raise OSError("disk full")

        coordinator.add_sink(bad_sink)
        assert coordinator.on_sample(make_sample()) is not None
        assert len(coordinator.history) == 1


class TestFallbackPositioning:
    """Coordinator built with a static fallback provider."""

    def test_fallback_position_reaches_later_reading(self, call_placer, timer_factory):
        from rideassist.config import Config

        config = Config()
        config.positioning.provider = "static"
        config.positioning.static_lat = 12.9716
        config.positioning.static_lon = 77.5946
        coordinator = create_coordinator(config, call_placer=call_placer, timer_factory=timer_factory)

        try:
            first = coordinator.on_sample(make_sample())
            coordinator.position_lookup.wait_idle(timeout=2.0)
            second = coordinator.on_sample(make_sample())

            assert first.position_source in (None, "fallback")
            assert second.position == (12.9716, 77.5946)
            assert second.position_source == "fallback"
        finally:
            coordinator.shutdown()

    def test_no_lookup_without_a_provider(self, call_placer, timer_factory):
        from rideassist.config import Config

        coordinator = create_coordinator(Config(), call_placer=call_placer, timer_factory=timer_factory)
        reading = coordinator.on_sample(make_sample())

        assert coordinator.position_lookup is None
        assert reading.position_source is None

    def test_no_lookup_for_static_without_coordinates(self, call_placer, timer_factory):
        from rideassist.config import Config

        config = Config()
        config.positioning.provider = "static"
        coordinator = create_coordinator(config, call_placer=call_placer, timer_factory=timer_factory)
        assert coordinator.position_lookup is None
