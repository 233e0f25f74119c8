"""
History export to JSON and CSV.

Record field names are a stable contract with downstream tooling (the
ride analysis tool and anything consuming the downloads), so they follow
the device's wire keys plus the derived gForce/spd/ride_mode/timestamp.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .types import CanonicalReading

logger = logging.getLogger(__name__)

EXPORT_KINDS = ("json", "csv")


def reading_to_record(reading: CanonicalReading) -> Dict[str, Any]:
    """
    Flatten a reading into an export record.

    Passthrough extras come first, then the raw device fields that were
    present, then the derived fields.
    """
    record: Dict[str, Any] = dict(reading.extras)

    ax, ay, az = reading.acceleration
    record["ax"] = ax
    record["ay"] = ay
    record["az"] = az

    optional = (
        ("tilt", reading.tilt),
        ("posture", reading.posture),
        ("gps_spd", reading.gps_speed_kmh),
        ("mpu_spd", reading.inertial_speed_kmh),
        ("lat", reading.lat),
        ("lon", reading.lon),
    )
    for key, value in optional:
        if value is not None:
            record[key] = value

    record["gForce"] = reading.acceleration_magnitude_g
    record["spd"] = reading.speed_kmh
    record["ride_mode"] = reading.ride_mode.value
    record["timestamp"] = reading.captured_at_ms
    return record


def to_records(readings: Iterable[CanonicalReading]) -> List[Dict[str, Any]]:
    """Convert readings to export records, preserving order."""
    return [reading_to_record(r) for r in readings]


def to_json(readings: Iterable[CanonicalReading], indent: Optional[int] = 2) -> str:
    """Serialize readings as a JSON array of records."""
    return json.dumps(to_records(readings), indent=indent, default=str)


def _csv_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def to_csv(readings: Iterable[CanonicalReading]) -> str:
    """
    Serialize readings as comma-joined text.

    The header is the key set of the first record; later records are
    written in that column order, with empty cells for missing keys.
    Values are not quoted.
    """
    records = to_records(readings)
    if not records:
        return ""

    headers = list(records[0].keys())
    lines = [",".join(headers)]
    for record in records:
        lines.append(",".join(_csv_value(record.get(key)) for key in headers))
    return "\n".join(lines)


def export_filename(kind: str, now: Optional[datetime] = None) -> str:
    """Build a download-style file name: ride_<ISO timestamp>.<kind>."""
    if kind not in EXPORT_KINDS:
        raise ValueError(f"Unknown export kind: {kind}")
    now = now or datetime.now(timezone.utc)
    # Colons are not portable in file names
    stamp = now.isoformat(timespec="milliseconds").replace(":", "-")
    return f"ride_{stamp}.{kind}"


def write_export(
    readings: Iterable[CanonicalReading],
    directory: str,
    kind: str = "json",
    now: Optional[datetime] = None,
) -> Path:
    """
    Write an export file.

    Args:
        readings: Readings to export (typically a history snapshot)
        directory: Output directory (created if missing)
        kind: "json" or "csv"
        now: Timestamp used in the file name

    Returns:
        Path of the written file
    """
    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / export_filename(kind, now)

    readings = list(readings)
    content = to_json(readings) if kind == "json" else to_csv(readings)
    path.write_text(content, encoding="utf-8")

    logger.info(f"Exported {len(readings)} readings to {path}")
    return path
