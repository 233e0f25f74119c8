"""Sample sources feeding the telemetry coordinator."""

from .http_poller import HttpSampleSource, SamplePoller, SourceMetrics

__all__ = [
    "HttpSampleSource",
    "SamplePoller",
    "SourceMetrics",
]
