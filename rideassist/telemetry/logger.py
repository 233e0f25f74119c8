"""
JSON Lines ride logger.

Writes one export record per accepted reading so a ride can be analyzed
offline with tools/analyze_ride.py. Each run starts a fresh trace at the
configured path; the previous run's trace is archived next to it.
"""

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from queue import Queue, Full, Empty
from typing import List, Optional

from .export import reading_to_record
from .types import CanonicalReading

logger = logging.getLogger(__name__)


def reading_to_json(reading: CanonicalReading) -> str:
    """Serialize a reading as one compact JSON line."""
    return json.dumps(reading_to_record(reading), separators=(',', ':'), default=str)


class RideLogger:
    """
    Per-run JSON Lines trace of ride readings.

    Readings are queued by the caller and written in batches by a
    background thread, so a slow disk never stalls sample processing.
    When the queue is full new readings are dropped and counted.

    Usage:
        with RideLogger("ride_log.jsonl") as ride_log:
            coordinator.add_sink(ride_log)
            ...
    """

    def __init__(
        self,
        log_file: str,
        flush_interval: float = 1.0,
        max_buffer: int = 1000,
    ):
        """
        Initialize ride logger.

        Args:
            log_file: Path of the current run's .jsonl trace
            flush_interval: Longest time a queued reading waits before being written
            max_buffer: Maximum readings queued in memory
        """
        self._path = Path(log_file)
        self._flush_interval = flush_interval
        self._queue: Queue = Queue(maxsize=max_buffer)

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._handle = None
        self._archived_path: Optional[Path] = None

        self._records_written = 0
        self._records_dropped = 0

    def start(self) -> None:
        """Archive the previous run's trace and start writing."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._archived_path = self._archive_previous_run()
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._writer_loop,
            name="RideLogWriter",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Ride log: {self._path}")

    def stop(self) -> None:
        """Write everything still queued and close the trace."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None

        self._write(self._drain(wait=False))

        if self._handle is not None:
            self._handle.close()
            self._handle = None

        logger.info(
            f"Ride log closed: {self._records_written} readings written, "
            f"{self._records_dropped} dropped"
        )

    def log(self, reading: CanonicalReading) -> bool:
        """
        Queue a reading (non-blocking).

        Returns:
            True if queued, False if dropped because the queue is full
        """
        try:
            self._queue.put_nowait(reading)
            return True
        except Full:
            self._records_dropped += 1
            return False

    # Coordinator sinks are plain callables
    __call__ = log

    def _archive_previous_run(self) -> Optional[Path]:
        """Move a non-empty trace from an earlier run aside, stamped with its last write."""
        try:
            if not self._path.exists() or self._path.stat().st_size == 0:
                return None
            stamp = datetime.fromtimestamp(self._path.stat().st_mtime).strftime("%Y%m%d_%H%M%S")
            target = self._path.with_name(f"{self._path.stem}.{stamp}{self._path.suffix}")
            counter = 1
            while target.exists():
                target = self._path.with_name(f"{self._path.stem}.{stamp}_{counter}{self._path.suffix}")
                counter += 1
            self._path.rename(target)
        except OSError as e:
            logger.error(f"Could not archive previous ride log: {e}")
            return None

        logger.info(f"Previous ride log archived to {target}")
        return target

    def _writer_loop(self) -> None:
        while not self._stop_event.is_set():
            self._write(self._drain(wait=True))

    def _drain(self, wait: bool) -> List[CanonicalReading]:
        """Take every queued reading, waiting up to one flush interval for the first."""
        batch: List[CanonicalReading] = []
        try:
            if wait:
                batch.append(self._queue.get(timeout=self._flush_interval))
            while True:
                batch.append(self._queue.get_nowait())
        except Empty:
            pass
        return batch

    def _write(self, batch: List[CanonicalReading]) -> None:
        if not batch:
            return
        try:
            if self._handle is None:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                self._handle = open(self._path, "a", encoding="utf-8")
            self._handle.writelines(reading_to_json(r) + "\n" for r in batch)
            self._handle.flush()
            self._records_written += len(batch)
        except OSError as e:
            logger.error(f"Ride log write error: {e}")
            self._records_dropped += len(batch)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def archived_path(self) -> Optional[Path]:
        """Where start() moved the previous run's trace, if there was one."""
        return self._archived_path

    @property
    def records_written(self) -> int:
        return self._records_written

    @property
    def records_dropped(self) -> int:
        return self._records_dropped

    def __enter__(self) -> "RideLogger":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
