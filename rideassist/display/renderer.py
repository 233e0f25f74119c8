"""
Dashboard renderer for live ride telemetry.

Renders metric cards, the recent history list and the crash countdown
banner onto an OpenCV canvas.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence, Tuple

import numpy as np
import cv2

from rideassist.crash.types import CountdownState
from rideassist.telemetry.types import CanonicalReading

logger = logging.getLogger(__name__)

# Keys understood by the dashboard window
KEY_CANCEL = (ord('c'), ord('C'))
KEY_CALL_NOW = (ord('n'), ord('N'))
KEY_QUIT = (ord('q'), ord('Q'), 27)


@dataclass
class DashboardConfig:
    """Configuration for dashboard rendering."""
    window_name: str = "RideAssist Pro"
    width: int = 480
    height: int = 640

    # Colors (BGR format)
    background: Tuple[int, int, int] = (39, 24, 17)
    card_color: Tuple[int, int, int] = (55, 41, 31)
    text_color: Tuple[int, int, int] = (255, 255, 255)
    muted_color: Tuple[int, int, int] = (175, 163, 156)
    banner_color: Tuple[int, int, int] = (28, 28, 185)

    font_scale: float = 0.5
    banner_height: int = 60
    card_height: int = 70
    history_rows: int = 20


# Card accent colors (BGR), echoing the phone app's tiles
CARD_ACCENTS = {
    "Speed": (235, 99, 37),
    "Tilt": (219, 39, 147),
    "G-Force": (12, 88, 234),
    "Posture": (74, 163, 22),
    "Ride Mode": (128, 128, 128),
}


def format_cards(reading: Optional[CanonicalReading]) -> Sequence[Tuple[str, str]]:
    """Build (title, value) pairs for the metric cards."""
    if reading is None:
        return (
            ("Speed", "0 km/h"),
            ("Tilt", "0.0 deg"),
            ("G-Force", "0.00G"),
            ("Posture", "Upright"),
            ("Ride Mode", "Idle"),
        )
    tilt = f"{reading.tilt:.1f} deg" if reading.tilt is not None else "0.0 deg"
    return (
        ("Speed", f"{reading.speed_kmh:g} km/h"),
        ("Tilt", tilt),
        ("G-Force", f"{reading.acceleration_magnitude_g:.2f}G"),
        ("Posture", reading.posture or "Upright"),
        ("Ride Mode", reading.ride_mode.display_name),
    )


def format_history_row(reading: CanonicalReading) -> str:
    """One line of the history list: local time, speed, ride mode."""
    stamp = datetime.fromtimestamp(reading.captured_at_ms / 1000.0).strftime("%H:%M:%S")
    return f"{stamp}   {reading.speed_kmh:g} km/h   {reading.ride_mode.display_name}"


def banner_text(state: CountdownState) -> str:
    return f"Crash Detected! Auto calling in {state.seconds_remaining}s"


class DashboardRenderer:
    """
    Renders the live dashboard.

    Features:
    - Speed, tilt, G-force, posture and ride mode cards
    - Latest position line
    - Recent history list, newest first
    - Flashing crash banner with cancel / call-now key hints

    Usage:
        renderer = DashboardRenderer()
        renderer.initialize()

        # In UI loop:
        canvas = renderer.render(reading, countdown_state, recent)
        renderer.show(canvas)
        key = renderer.last_key

        # On shutdown:
        renderer.cleanup()
    """

    def __init__(self, config: Optional[DashboardConfig] = None):
        """
        Initialize dashboard renderer.

        Args:
            config: Dashboard configuration (uses defaults if None)
        """
        self._config = config or DashboardConfig()
        self._window_created = False
        self._last_key = -1

    def initialize(self) -> bool:
        """
        Initialize the display window.

        Returns:
            True if initialization successful
        """
        try:
            cv2.namedWindow(self._config.window_name, cv2.WINDOW_NORMAL)
            self._window_created = True
            logger.info(f"Display window created: {self._config.window_name}")
            return True
        except Exception as e:
            logger.error(f"Display initialization failed: {e}")
            return False

    def render(
        self,
        reading: Optional[CanonicalReading],
        countdown: Optional[CountdownState] = None,
        recent: Sequence[CanonicalReading] = (),
        now: Optional[float] = None,
    ) -> np.ndarray:
        """
        Render the dashboard.

        Args:
            reading: Current reading (None before the first sample)
            countdown: Countdown controller state
            recent: History rows to list, already in display order
            now: Time used for banner flashing (defaults to time.time())

        Returns:
            BGR image of shape (height, width, 3)
        """
        cfg = self._config
        canvas = np.full((cfg.height, cfg.width, 3), cfg.background, dtype=np.uint8)

        y = 10
        if countdown is not None and countdown.is_active:
            canvas = self._draw_crash_banner(canvas, countdown, now)
            y = cfg.banner_height + 10

        y = self._draw_cards(canvas, reading, y)
        y = self._draw_position(canvas, reading, y)
        self._draw_history(canvas, recent, y)
        return canvas

    def _draw_crash_banner(
        self,
        canvas: np.ndarray,
        state: CountdownState,
        now: Optional[float],
    ) -> np.ndarray:
        """Draw crash countdown banner at top of canvas."""
        cfg = self._config
        output = canvas.copy()
        h, w = canvas.shape[:2]

        overlay = output.copy()
        cv2.rectangle(overlay, (0, 0), (w, cfg.banner_height), cfg.banner_color, -1)
        output = cv2.addWeighted(overlay, 0.85, output, 0.15, 0)

        text = banner_text(state)
        (tw, th), _ = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, 0.6, 2)
        tx = max(5, (w - tw) // 2)
        cv2.putText(output, text, (tx, 25), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 0, 0), 4)
        cv2.putText(output, text, (tx, 25), cv2.FONT_HERSHEY_SIMPLEX, 0.6, cfg.text_color, 2)

        hint = "[C] Cancel    [N] Call Now"
        (hw, _), _ = cv2.getTextSize(hint, cv2.FONT_HERSHEY_SIMPLEX, cfg.font_scale, 1)
        cv2.putText(
            output, hint, (max(5, (w - hw) // 2), 50),
            cv2.FONT_HERSHEY_SIMPLEX, cfg.font_scale, cfg.text_color, 1, cv2.LINE_AA,
        )

        # Flashing border
        now = time.time() if now is None else now
        if int(now * 2) % 2 == 0:
            cv2.rectangle(output, (0, 0), (w - 1, h - 1), cfg.banner_color, 6)

        return output

    def _draw_cards(self, canvas: np.ndarray, reading: Optional[CanonicalReading], y: int) -> int:
        """Draw metric cards in a two-column grid. Returns next free y."""
        cfg = self._config
        w = canvas.shape[1]
        gap = 10
        card_w = (w - 3 * gap) // 2

        for i, (title, value) in enumerate(format_cards(reading)):
            col = i % 2
            row = i // 2
            x1 = gap + col * (card_w + gap)
            y1 = y + row * (cfg.card_height + gap)
            x2 = x1 + card_w
            y2 = y1 + cfg.card_height

            cv2.rectangle(canvas, (x1, y1), (x2, y2), cfg.card_color, -1)
            cv2.rectangle(canvas, (x1, y1), (x1 + 4, y2), CARD_ACCENTS.get(title, cfg.muted_color), -1)
            cv2.putText(
                canvas, title, (x1 + 12, y1 + 22),
                cv2.FONT_HERSHEY_SIMPLEX, cfg.font_scale, cfg.muted_color, 1, cv2.LINE_AA,
            )
            cv2.putText(
                canvas, value, (x1 + 12, y1 + 55),
                cv2.FONT_HERSHEY_SIMPLEX, 0.8, cfg.text_color, 2, cv2.LINE_AA,
            )

        rows = (len(CARD_ACCENTS) + 1) // 2
        return y + rows * (cfg.card_height + gap)

    def _draw_position(self, canvas: np.ndarray, reading: Optional[CanonicalReading], y: int) -> int:
        cfg = self._config
        if reading is not None and reading.has_position:
            source = f" ({reading.position_source})" if reading.position_source else ""
            text = f"Position: {reading.lat:.5f}, {reading.lon:.5f}{source}"
        else:
            text = "Position: unavailable"
        cv2.putText(
            canvas, text, (10, y + 15),
            cv2.FONT_HERSHEY_SIMPLEX, cfg.font_scale, cfg.muted_color, 1, cv2.LINE_AA,
        )
        return y + 30

    def _draw_history(self, canvas: np.ndarray, recent: Sequence[CanonicalReading], y: int) -> None:
        cfg = self._config
        h = canvas.shape[0]
        cv2.putText(
            canvas, "Ride History", (10, y + 15),
            cv2.FONT_HERSHEY_SIMPLEX, 0.6, cfg.text_color, 1, cv2.LINE_AA,
        )
        y += 35

        if not recent:
            cv2.putText(
                canvas, "No rides recorded yet...", (10, y),
                cv2.FONT_HERSHEY_SIMPLEX, cfg.font_scale, cfg.muted_color, 1, cv2.LINE_AA,
            )
            return

        line_height = 20
        for reading in recent[:cfg.history_rows]:
            if y > h - 5:
                break
            cv2.putText(
                canvas, format_history_row(reading), (10, y),
                cv2.FONT_HERSHEY_SIMPLEX, cfg.font_scale, cfg.text_color, 1, cv2.LINE_AA,
            )
            y += line_height

    def show(self, canvas: np.ndarray) -> None:
        """
        Display canvas in window and poll the keyboard.

        Args:
            canvas: Rendered dashboard
        """
        if not self._window_created:
            return

        try:
            cv2.imshow(self._config.window_name, canvas)
            self._last_key = cv2.waitKey(1) & 0xFF
        except Exception as e:
            logger.error(f"Display error: {e}")

    @property
    def last_key(self) -> int:
        return self._last_key

    def should_quit(self) -> bool:
        """Check if 'q' or ESC was pressed."""
        return self._last_key in KEY_QUIT

    def cleanup(self) -> None:
        """Clean up display resources."""
        if self._window_created:
            try:
                cv2.destroyWindow(self._config.window_name)
            except cv2.error:
                pass
            self._window_created = False

        logger.info("Display renderer cleaned up")

    @property
    def is_active(self) -> bool:
        """Check if display is active."""
        return self._window_created
