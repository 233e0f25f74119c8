"""
Emergency call placement backends.

The countdown controller decides when to call and these backends place
the call. A backend may raise; the controller logs the failure.
"""

import logging
import threading
import webbrowser
from typing import List

logger = logging.getLogger(__name__)


class LoggingCallPlacer:
    """
    Call placer that only logs and records the request.

    Used headless and in development, where there is no dialer.
    """

    def __init__(self):
        self._calls: List[str] = []
        self._lock = threading.Lock()

    def place_call(self, number: str) -> None:
        """Record and log an emergency call request."""
        with self._lock:
            self._calls.append(number)
        logger.critical(f"EMERGENCY CALL requested to {number}")

    @property
    def calls(self) -> List[str]:
        """Numbers called so far, in order."""
        with self._lock:
            return list(self._calls)


class TelUriCallPlacer:
    """
    Call placer that hands a tel: URI to the platform's URI handler.

    On phones and desktops with a dialer registered for tel: links this
    opens the dialer with the number filled in.
    """

    def __init__(self, opener=webbrowser.open):
        self._opener = opener

    @staticmethod
    def tel_uri(number: str) -> str:
        """Build a tel: URI, dropping formatting characters."""
        digits = "".join(ch for ch in number if ch.isdigit() or ch == "+")
        return f"tel:{digits}"

    def place_call(self, number: str) -> None:
        """Open the tel: URI for number."""
        uri = self.tel_uri(number)
        logger.critical(f"EMERGENCY CALL: opening {uri}")
        if not self._opener(uri):
            logger.error(f"No handler accepted {uri}")


def create_call_placer(backend: str = "log"):
    """
    Factory function to create the configured call placer.

    Args:
        backend: "log" or "tel_uri"
    """
    if backend == "log":
        return LoggingCallPlacer()
    if backend == "tel_uri":
        return TelUriCallPlacer()
    raise ValueError(f"Unknown call backend: {backend}")
