#!/usr/bin/env python3
"""
RideAssist - Main Entry Point

Live ride telemetry with crash detection and an auto emergency call.

The sensor unit on the bike (Raspberry Pi + MPU, optional GPS) serves its
latest sample over HTTP. RideAssist polls it, derives speed, G-force and
ride mode, keeps the recent ride history and, when a crash-level impact
is seen, counts down to an emergency call that the rider can cancel.

Usage:
    # Headless (log-only call backend)
    python -m rideassist.main --url http://10.240.213.80:5000/data --headless

    # With dashboard window
    python -m rideassist.main --display

    # Export history on exit
    python -m rideassist.main --export-dir rides/
"""

import argparse
import logging
import signal
import sys
import time
from typing import Optional

from rideassist.config import Config, load_config
from rideassist.coordinator import TelemetryCoordinator, create_coordinator
from rideassist.crash import create_call_placer
from rideassist.source import HttpSampleSource, SamplePoller
from rideassist.telemetry import RideLogger
from rideassist.telemetry.export import write_export

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Dashboard refresh period when the window is open
UI_FRAME_S = 0.05


class RideAssist:
    """
    Main application class.

    Wires together:
    1. HTTP sample polling (background thread)
    2. Telemetry coordinator (normalize, history, crash detection, countdown)
    3. Optional JSON Lines ride log
    4. Optional dashboard window (main thread)
    """

    def __init__(
        self,
        config: Config,
        display_enabled: bool = False,
        export_dir: Optional[str] = None,
        duration_s: Optional[float] = None,
    ):
        """
        Initialize RideAssist.

        Args:
            config: System configuration
            display_enabled: Whether to open the dashboard window
            export_dir: Directory for JSON/CSV history exports on shutdown
            duration_s: Stop automatically after this many seconds
        """
        self._config = config
        self._display_enabled = display_enabled
        self._export_dir = export_dir
        self._duration_s = duration_s

        self._running = False
        self._cleaned_up = False

        # Module instances (initialized in setup)
        self._coordinator: Optional[TelemetryCoordinator] = None
        self._source: Optional[HttpSampleSource] = None
        self._poller: Optional[SamplePoller] = None
        self._ride_log: Optional[RideLogger] = None
        self._display = None

        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    @property
    def coordinator(self) -> Optional[TelemetryCoordinator]:
        return self._coordinator

    def setup(self) -> bool:
        """
        Initialize all modules.

        Returns:
            True if setup succeeded
        """
        logger.info("=" * 60)
        logger.info("RideAssist Pro - Starting")
        logger.info("=" * 60)

        try:
            call_placer = create_call_placer(self._config.emergency.backend)
        except ValueError as e:
            logger.error(str(e))
            return False

        self._coordinator = create_coordinator(self._config, call_placer=call_placer)
        logger.info(
            f"Crash threshold {self._config.crash.threshold_g}G, "
            f"countdown {self._config.crash.countdown_s}s, "
            f"emergency contact {self._config.emergency.number}"
        )

        if self._config.system.ride_log_enabled:
            self._ride_log = RideLogger(
                self._config.system.ride_log_file,
                flush_interval=self._config.system.log_flush_interval_s,
            )
            self._ride_log.start()
            self._coordinator.add_sink(self._ride_log)

        self._source = HttpSampleSource(
            self._config.source.url,
            timeout_s=self._config.source.timeout_s,
        )
        self._poller = SamplePoller(
            self._source,
            self._coordinator.on_sample,
            interval_ms=self._config.source.poll_interval_ms,
        )

        if self._display_enabled:
            self._setup_display()

        return True

    def _setup_display(self) -> None:
        # Imported lazily so headless installs never load OpenCV
        from rideassist.display import DashboardRenderer, DashboardConfig

        disp = self._config.display
        self._display = DashboardRenderer(DashboardConfig(
            window_name=disp.window_name,
            width=disp.width,
            height=disp.height,
            history_rows=self._config.history.display_rows,
        ))
        if not self._display.initialize():
            logger.warning("Display unavailable - continuing headless")
            self._display = None

    def run(self) -> None:
        """Run until a signal, the quit key or the configured duration."""
        logger.info("Starting ride telemetry...")
        self._running = True
        self._poller.start()
        started = time.monotonic()

        try:
            while self._running:
                if self._duration_s is not None and time.monotonic() - started >= self._duration_s:
                    logger.info("Configured duration reached")
                    break

                if self._display is not None:
                    self._update_display()
                    time.sleep(UI_FRAME_S)
                else:
                    time.sleep(0.2)
        finally:
            self.cleanup()

    def _update_display(self) -> None:
        """Render the dashboard and act on keyboard commands."""
        from rideassist.display.renderer import KEY_CANCEL, KEY_CALL_NOW

        coordinator = self._coordinator
        canvas = self._display.render(
            coordinator.current_reading,
            coordinator.countdown_state,
            coordinator.history.last_n(self._config.history.display_rows, newest_first=True),
        )
        self._display.show(canvas)

        key = self._display.last_key
        if key in KEY_CANCEL:
            coordinator.cancel_emergency()
        elif key in KEY_CALL_NOW:
            coordinator.call_emergency_now()
        elif self._display.should_quit():
            logger.info("Quit requested via display")
            self._running = False

    def export_history(self, directory: str) -> None:
        """Write JSON and CSV exports of the current history."""
        readings = self._coordinator.history_snapshot()
        if not readings:
            logger.info("No readings to export")
            return
        for kind in ("json", "csv"):
            try:
                write_export(readings, directory, kind)
            except OSError as e:
                logger.error(f"History export ({kind}) failed: {e}")

    def cleanup(self) -> None:
        """Clean up all resources."""
        if self._cleaned_up:
            return
        self._cleaned_up = True

        logger.info("Cleaning up...")
        self._running = False

        if self._poller:
            self._poller.stop()

        if self._source:
            self._source.close()

        if self._coordinator:
            self._coordinator.shutdown()
            stats = self._coordinator.stats
            logger.info(
                f"Samples: {stats.samples_received} received, "
                f"{stats.samples_skipped} skipped, "
                f"{stats.crashes_detected} crash readings, "
                f"{stats.episodes_started} countdowns"
            )
            if self._export_dir:
                self.export_history(self._export_dir)

        if self._ride_log:
            self._ride_log.stop()

        if self._display:
            self._display.cleanup()

        logger.info("Cleanup complete")

    def _signal_handler(self, signum, frame) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, shutting down...")
        self._running = False


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="RideAssist ride telemetry and crash response",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Headless, log-only emergency calls
  python -m rideassist.main --headless

  # Dashboard window, dial through the tel: handler
  python -m rideassist.main --display --call-backend tel_uri

  # Poll a different sensor unit and export history on exit
  python -m rideassist.main --url http://192.168.4.1:5000/data --export-dir rides/
        """,
    )

    source_group = parser.add_argument_group("Input Source")
    source_group.add_argument(
        "--url",
        type=str,
        default=None,
        help="Sensor unit sample URL (default: from config)",
    )
    source_group.add_argument(
        "--poll-ms",
        type=int,
        default=None,
        help="Poll interval in milliseconds (default: from config)",
    )

    display_group = parser.add_argument_group("Display")
    display_mutex = display_group.add_mutually_exclusive_group()
    display_mutex.add_argument(
        "--display",
        action="store_true",
        help="Open the dashboard window",
    )
    display_mutex.add_argument(
        "--headless",
        action="store_true",
        help="No window (default unless enabled in config)",
    )

    emergency_group = parser.add_argument_group("Emergency")
    emergency_group.add_argument(
        "--emergency-number",
        type=str,
        default=None,
        help="Emergency contact number (default: from config)",
    )
    emergency_group.add_argument(
        "--call-backend",
        type=str,
        choices=["log", "tel_uri"],
        default=None,
        help="How to place the call (default: from config)",
    )

    config_group = parser.add_argument_group("Configuration")
    config_group.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to configuration YAML file",
    )
    config_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: from config)",
    )
    config_group.add_argument(
        "--ride-log",
        type=str,
        default=None,
        help="Write readings to this JSON Lines file",
    )
    config_group.add_argument(
        "--export-dir",
        type=str,
        default=None,
        help="Export history as JSON and CSV to this directory on exit",
    )

    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after this many seconds",
    )

    return parser.parse_args(argv)


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Apply command-line overrides to a loaded configuration."""
    if args.url:
        config.source.url = args.url
    if args.poll_ms:
        config.source.poll_interval_ms = args.poll_ms
    if args.emergency_number:
        config.emergency.number = args.emergency_number
    if args.call_backend:
        config.emergency.backend = args.call_backend
    if args.log_level:
        config.system.log_level = args.log_level
    if args.ride_log:
        config.system.ride_log_file = args.ride_log
        config.system.ride_log_enabled = True
    if args.display:
        config.display.enabled = True
    elif args.headless:
        config.display.enabled = False
    config.validate()
    return config


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )

    try:
        config = apply_overrides(load_config(args.config), args)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    logging.getLogger().setLevel(getattr(logging, config.system.log_level.upper(), logging.INFO))

    app = RideAssist(
        config=config,
        display_enabled=config.display.enabled,
        export_dir=args.export_dir,
        duration_s=args.duration,
    )

    try:
        if not app.setup():
            logger.critical("System setup failed - aborting")
            return 1

        app.run()
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1
    finally:
        app.cleanup()


if __name__ == "__main__":
    sys.exit(main())
