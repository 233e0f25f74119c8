"""
HTTP sample source for the ride sensor unit.

The Pi on the bike serves its latest sensor sample as JSON on /data.
The poller fetches it at a fixed interval and hands each decoded sample
to a callback (normally TelemetryCoordinator.on_sample).
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import requests

from rideassist.utils.timing import PollRateEnforcer

logger = logging.getLogger(__name__)


@dataclass
class SourceMetrics:
    """
    Counters for the HTTP source.

    Thread-safe access via lock.
    """
    fetch_count: int = 0
    failure_count: int = 0
    last_latency_ms: float = 0.0
    total_downtime_ms: float = 0.0
    outage_started: Optional[float] = None

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record_success(self, latency_ms: float) -> bool:
        """Record a good fetch. Returns True if this ends an outage."""
        with self._lock:
            self.fetch_count += 1
            self.last_latency_ms = latency_ms
            if self.outage_started is None:
                return False
            self.total_downtime_ms += (time.monotonic() - self.outage_started) * 1000
            self.outage_started = None
            return True

    def record_failure(self) -> bool:
        """Record a failed fetch. Returns True if this starts an outage."""
        with self._lock:
            self.fetch_count += 1
            self.failure_count += 1
            if self.outage_started is not None:
                return False
            self.outage_started = time.monotonic()
            return True


class HttpSampleSource:
    """
    Fetches one JSON sample per call from the sensor unit.

    Failures (unreachable host, HTTP errors, truncated responses, bad JSON,
    non-object payloads) return None. A warning is logged when an outage
    starts and an info message when it ends, so a dead link does not flood
    the log.
    """

    def __init__(
        self,
        url: str,
        timeout_s: float = 2.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize source.

        Args:
            url: Sample endpoint, e.g. http://10.240.213.80:5000/data
            timeout_s: Per-request timeout
            session: HTTP session to reuse (created on first fetch if None)
        """
        self._url = url
        self._timeout_s = timeout_s
        self._session = session
        self.metrics = SourceMetrics()

    @property
    def url(self) -> str:
        return self._url

    def _get_session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({"Accept": "application/json"})
        return self._session

    def fetch(self) -> Optional[dict]:
        """
        Fetch the latest sample.

        Returns:
            Decoded sample dict, or None on any failure
        """
        start = time.monotonic()
        try:
            response = self._get_session().get(self._url, timeout=self._timeout_s)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            self._on_failure(f"Could not read sample from sensor unit: {e}")
            return None

        if not isinstance(payload, dict):
            self._on_failure(f"Unexpected payload type from sensor unit: {type(payload).__name__}")
            return None

        if self.metrics.record_success((time.monotonic() - start) * 1000):
            logger.info(f"Sensor unit reachable again: {self._url}")
        return payload

    def _on_failure(self, message: str) -> None:
        if self.metrics.record_failure():
            logger.warning(message)
        else:
            logger.debug(message)

    def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None:
            self._session.close()
            self._session = None


class SamplePoller:
    """
    Polls a sample source on a background thread.

    Usage:
        poller = SamplePoller(source, coordinator.on_sample, interval_ms=500)
        poller.start()
        ...
        poller.stop()
    """

    def __init__(
        self,
        source: HttpSampleSource,
        on_sample: Callable[[Any], Any],
        interval_ms: float = 500,
    ):
        self._source = source
        self._on_sample = on_sample
        self._stop_event = threading.Event()
        self._rate = PollRateEnforcer(interval_ms, stop_event=self._stop_event)
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the polling thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            name="SamplePoller",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Polling {self._source.url} every {self._rate.interval_ms:.0f}ms")

    def stop(self) -> None:
        """Stop polling and wait for the thread to exit."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None
        logger.info("Sample polling stopped")

    def poll_once(self) -> bool:
        """
        Fetch one sample and deliver it.

        Returns:
            True if a sample was delivered
        """
        try:
            sample = self._source.fetch()
        except Exception as e:
            logger.error(f"Sample fetch failed: {e}")
            return False
        if sample is None:
            return False
        try:
            self._on_sample(sample)
        except Exception as e:
            logger.error(f"Sample handler failed: {e}")
        return True

    def _poll_loop(self) -> None:
        while not self._stop_event.is_set():
            poll_start = self._rate.start_poll()
            self.poll_once()
            self._rate.end_poll(poll_start)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
