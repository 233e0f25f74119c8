"""RideAssist - ride telemetry processing and crash response."""

__version__ = "1.0.0"
