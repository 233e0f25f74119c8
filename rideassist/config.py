"""
Configuration management for the RideAssist telemetry system.

Handles loading, validation, and access to system configuration.
"""

import yaml
from dataclasses import dataclass, field
from typing import Optional
from pathlib import Path


@dataclass
class SourceConfig:
    """Remote device polling configuration."""
    url: str = "http://10.240.213.80:5000/data"
    poll_interval_ms: int = 500
    timeout_s: float = 2.0


@dataclass
class NormalizerConfig:
    """Sample normalization thresholds."""
    gravity: float = 9.8
    jitter_threshold_kmh: float = 0.8  # Speeds below this snap to 0
    speed_decimals: int = 2
    walking_min_kmh: float = 1.7
    scooter_min_kmh: float = 5.5
    motorcycle_min_kmh: float = 9.6


@dataclass
class HistoryConfig:
    """Ride history retention configuration."""
    capacity: int = 1000
    display_rows: int = 20


@dataclass
class CrashConfig:
    """Crash detection and countdown configuration."""
    threshold_g: float = 3.5
    countdown_s: int = 30
    tick_interval_s: float = 1.0


@dataclass
class EmergencyConfig:
    """Emergency call configuration."""
    number: str = "+911234567890"
    backend: str = "log"  # "log" or "tel_uri"


@dataclass
class PositioningConfig:
    """Fallback positioning configuration."""
    enabled: bool = True
    provider: str = "none"  # "none" or "static"
    static_lat: Optional[float] = None
    static_lon: Optional[float] = None
    max_fix_age_s: float = 30.0


@dataclass
class DisplayConfig:
    """Dashboard window configuration."""
    enabled: bool = False
    window_name: str = "RideAssist Pro"
    width: int = 480
    height: int = 640


@dataclass
class SystemConfig:
    """Top-level system configuration."""
    log_level: str = "INFO"
    ride_log_file: str = "ride_log.jsonl"
    ride_log_enabled: bool = False
    log_flush_interval_s: float = 1.0


@dataclass
class Config:
    """Complete system configuration."""
    system: SystemConfig = field(default_factory=SystemConfig)
    source: SourceConfig = field(default_factory=SourceConfig)
    normalizer: NormalizerConfig = field(default_factory=NormalizerConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    crash: CrashConfig = field(default_factory=CrashConfig)
    emergency: EmergencyConfig = field(default_factory=EmergencyConfig)
    positioning: PositioningConfig = field(default_factory=PositioningConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)

    def validate(self) -> None:
        """
        Check cross-field constraints.

        Raises:
            ValueError: If any value is out of range
        """
        norm = self.normalizer
        if not 0 <= norm.walking_min_kmh < norm.scooter_min_kmh < norm.motorcycle_min_kmh:
            raise ValueError(
                "Ride mode thresholds must be strictly increasing, got "
                f"{norm.walking_min_kmh}/{norm.scooter_min_kmh}/{norm.motorcycle_min_kmh}"
            )
        if norm.gravity <= 0:
            raise ValueError(f"gravity must be positive, got {norm.gravity}")
        if self.history.capacity <= 0:
            raise ValueError(f"history capacity must be positive, got {self.history.capacity}")
        if self.crash.countdown_s <= 0:
            raise ValueError(f"countdown_s must be positive, got {self.crash.countdown_s}")
        if self.crash.tick_interval_s <= 0:
            raise ValueError(f"tick_interval_s must be positive, got {self.crash.tick_interval_s}")
        if self.source.poll_interval_ms <= 0:
            raise ValueError(f"poll_interval_ms must be positive, got {self.source.poll_interval_ms}")


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, uses default config.yaml

    Returns:
        Populated Config object

    Raises:
        yaml.YAMLError: If config file is malformed
        ValueError: If a configured value is out of range
    """
    if config_path is None:
        # Look for config.yaml in project root
        config_path = Path(__file__).parent.parent / "config.yaml"
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        # Return default configuration
        return Config()

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    config = Config()

    if "system" in data:
        sys_data = data["system"] or {}
        config.system = SystemConfig(
            log_level=sys_data.get("log_level", "INFO"),
            ride_log_file=sys_data.get("ride_log_file", "ride_log.jsonl"),
            ride_log_enabled=sys_data.get("ride_log_enabled", False),
            log_flush_interval_s=sys_data.get("log_flush_interval_s", 1.0),
        )

    if "source" in data:
        src_data = data["source"] or {}
        config.source = SourceConfig(
            url=src_data.get("url", "http://10.240.213.80:5000/data"),
            poll_interval_ms=src_data.get("poll_interval_ms", 500),
            timeout_s=src_data.get("timeout_s", 2.0),
        )

    if "normalizer" in data:
        norm_data = data["normalizer"] or {}
        config.normalizer = NormalizerConfig(
            gravity=norm_data.get("gravity", 9.8),
            jitter_threshold_kmh=norm_data.get("jitter_threshold_kmh", 0.8),
            speed_decimals=norm_data.get("speed_decimals", 2),
            walking_min_kmh=norm_data.get("walking_min_kmh", 1.7),
            scooter_min_kmh=norm_data.get("scooter_min_kmh", 5.5),
            motorcycle_min_kmh=norm_data.get("motorcycle_min_kmh", 9.6),
        )

    if "history" in data:
        hist_data = data["history"] or {}
        config.history = HistoryConfig(
            capacity=hist_data.get("capacity", 1000),
            display_rows=hist_data.get("display_rows", 20),
        )

    if "crash" in data:
        crash_data = data["crash"] or {}
        config.crash = CrashConfig(
            threshold_g=crash_data.get("threshold_g", 3.5),
            countdown_s=crash_data.get("countdown_s", 30),
            tick_interval_s=crash_data.get("tick_interval_s", 1.0),
        )

    if "emergency" in data:
        em_data = data["emergency"] or {}
        config.emergency = EmergencyConfig(
            number=str(em_data.get("number", "+911234567890")),
            backend=em_data.get("backend", "log"),
        )

    if "positioning" in data:
        pos_data = data["positioning"] or {}
        config.positioning = PositioningConfig(
            enabled=pos_data.get("enabled", True),
            provider=pos_data.get("provider", "none"),
            static_lat=pos_data.get("static_lat"),
            static_lon=pos_data.get("static_lon"),
            max_fix_age_s=pos_data.get("max_fix_age_s", 30.0),
        )

    if "display" in data:
        disp_data = data["display"] or {}
        config.display = DisplayConfig(
            enabled=disp_data.get("enabled", False),
            window_name=disp_data.get("window_name", "RideAssist Pro"),
            width=disp_data.get("width", 480),
            height=disp_data.get("height", 640),
        )

    config.validate()
    return config
