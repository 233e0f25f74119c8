#!/usr/bin/env python3
"""
Ride Analysis Tool for RideAssist

Analyzes ride history exports (JSON) or ride logs (JSONL) and generates
ride statistics with graphs saved as PNG files.

Usage:
    python tools/analyze_ride.py [ride_file] [--output-dir DIR]

Examples:
    python tools/analyze_ride.py ride_log.jsonl
    python tools/analyze_ride.py rides/ride_2026-10-19T08-00-00.000+00-00.json -o reports/
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Dict
from dataclasses import dataclass, field

import numpy as np
import pandas as pd
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import matplotlib.dates as mdates

RIDE_MODES = ["Idle", "Walking", "Scooter", "Motorcycle"]
CRASH_THRESHOLD_G = 3.5


@dataclass
class RideStats:
    """Statistics computed from ride records."""
    total_samples: int = 0
    duration_seconds: float = 0.0

    # Speed stats (km/h)
    speed_mean: float = 0.0
    speed_max: float = 0.0
    moving_speed_mean: float = 0.0

    # G-force stats
    g_mean: float = 0.0
    g_p95: float = 0.0
    g_max: float = 0.0
    crash_samples: int = 0

    # Ride mode breakdown (seconds per mode)
    mode_seconds: Dict[str, float] = field(default_factory=dict)

    # Position coverage
    position_ratio: float = 0.0


def load_ride(filepath: Path) -> pd.DataFrame:
    """Load a JSON export or JSONL ride log into a DataFrame."""
    text = filepath.read_text(encoding="utf-8").strip()
    records = []

    if text.startswith("["):
        records = json.loads(text)
    else:
        for line_num, line in enumerate(text.splitlines(), 1):
            line = line.strip()
            if not line:
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as e:
                print(f"Warning: Skipping invalid JSON at line {line_num}: {e}")

    if not records:
        raise ValueError(f"No valid ride records found in {filepath}")

    df = pd.DataFrame(records)

    if "timestamp" in df.columns:
        df["timestamp"] = pd.to_datetime(df["timestamp"], unit="ms")
        df = df.sort_values("timestamp").reset_index(drop=True)

    print(f"Loaded {len(df)} ride records from {filepath}")
    return df


def compute_stats(df: pd.DataFrame, crash_threshold_g: float = CRASH_THRESHOLD_G) -> RideStats:
    """Compute statistics from ride DataFrame."""
    stats = RideStats()
    stats.total_samples = len(df)

    if "timestamp" in df.columns and len(df) > 1:
        stats.duration_seconds = (df["timestamp"].iloc[-1] - df["timestamp"].iloc[0]).total_seconds()

    if "spd" in df.columns:
        speed = df["spd"].dropna()
        if len(speed) > 0:
            stats.speed_mean = float(speed.mean())
            stats.speed_max = float(speed.max())
            moving = speed[speed > 0]
            if len(moving) > 0:
                stats.moving_speed_mean = float(moving.mean())

    if "gForce" in df.columns:
        g = df["gForce"].dropna()
        if len(g) > 0:
            stats.g_mean = float(g.mean())
            stats.g_p95 = float(np.percentile(g, 95))
            stats.g_max = float(g.max())
            stats.crash_samples = int((g > crash_threshold_g).sum())

    if "ride_mode" in df.columns and "timestamp" in df.columns and len(df) > 1:
        # Each sample's mode holds until the next sample arrives
        dt = df["timestamp"].diff().shift(-1).dt.total_seconds().fillna(0.0)
        by_mode = dt.groupby(df["ride_mode"]).sum()
        stats.mode_seconds = {mode: float(by_mode.get(mode, 0.0)) for mode in RIDE_MODES}

    if "lat" in df.columns and "lon" in df.columns:
        stats.position_ratio = float((df["lat"].notna() & df["lon"].notna()).mean())

    return stats


def print_stats(stats: RideStats) -> None:
    """Print ride statistics."""
    print("\n" + "=" * 50)
    print("RIDE SUMMARY")
    print("=" * 50)
    print(f"Samples:           {stats.total_samples}")
    print(f"Duration:          {stats.duration_seconds:.1f}s")
    print(f"Speed (mean/max):  {stats.speed_mean:.2f} / {stats.speed_max:.2f} km/h")
    print(f"Moving speed mean: {stats.moving_speed_mean:.2f} km/h")
    print(f"G-force (mean/p95/max): {stats.g_mean:.2f} / {stats.g_p95:.2f} / {stats.g_max:.2f}")
    print(f"Crash-level samples: {stats.crash_samples}")
    print(f"Position coverage: {stats.position_ratio * 100:.1f}%")
    if stats.mode_seconds:
        print("\nTime per ride mode:")
        for mode, seconds in stats.mode_seconds.items():
            print(f"  {mode:<11} {seconds:8.1f}s")


def generate_graphs(df: pd.DataFrame, stats: RideStats, output_dir: Path) -> List[Path]:
    """Generate ride graphs and save as PNG files."""
    output_dir.mkdir(parents=True, exist_ok=True)
    generated_files: List[Path] = []

    if "timestamp" in df.columns and "spd" in df.columns:
        fig, ax = plt.subplots(figsize=(12, 5))
        ax.plot(df["timestamp"], df["spd"], color="tab:blue", linewidth=1)
        ax.set_xlabel("Time")
        ax.set_ylabel("Speed (km/h)")
        ax.set_title("Speed Over Time")
        ax.xaxis.set_major_formatter(mdates.DateFormatter("%H:%M:%S"))
        plt.xticks(rotation=45)
        plt.tight_layout()

        filepath = output_dir / "speed.png"
        plt.savefig(filepath, dpi=150)
        plt.close(fig)
        generated_files.append(filepath)
        print(f"  + {filepath.name}")

    if "timestamp" in df.columns and "gForce" in df.columns:
        fig, ax = plt.subplots(figsize=(12, 5))
        ax.plot(df["timestamp"], df["gForce"], color="tab:orange", linewidth=1)
        ax.axhline(CRASH_THRESHOLD_G, color="red", linestyle="--", label=f"Crash ({CRASH_THRESHOLD_G}G)")
        ax.set_xlabel("Time")
        ax.set_ylabel("G-Force")
        ax.set_title("G-Force Over Time")
        ax.legend()
        ax.xaxis.set_major_formatter(mdates.DateFormatter("%H:%M:%S"))
        plt.xticks(rotation=45)
        plt.tight_layout()

        filepath = output_dir / "g_force.png"
        plt.savefig(filepath, dpi=150)
        plt.close(fig)
        generated_files.append(filepath)
        print(f"  + {filepath.name}")

    if stats.mode_seconds and sum(stats.mode_seconds.values()) > 0:
        labels = [m for m, s in stats.mode_seconds.items() if s > 0]
        values = [stats.mode_seconds[m] for m in labels]
        fig, ax = plt.subplots(figsize=(8, 8))
        colors = plt.cm.Set3(np.linspace(0, 1, len(labels)))
        ax.pie(values, labels=labels, autopct="%1.1f%%", colors=colors)
        ax.set_title("Time per Ride Mode")
        plt.tight_layout()

        filepath = output_dir / "ride_modes.png"
        plt.savefig(filepath, dpi=150)
        plt.close(fig)
        generated_files.append(filepath)
        print(f"  + {filepath.name}")

    return generated_files


def main():
    parser = argparse.ArgumentParser(
        description="Analyze RideAssist ride exports and logs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python tools/analyze_ride.py ride_log.jsonl
    python tools/analyze_ride.py rides/ride_export.json --output-dir reports/
        """
    )
    parser.add_argument("ride_file", type=str, nargs="?", default="ride_log.jsonl",
                        help="Path to JSON export or JSONL ride log (default: ride_log.jsonl)")
    parser.add_argument("-o", "--output-dir", type=str, default="ride_reports",
                        help="Output directory for graphs (default: ride_reports)")
    parser.add_argument("--no-graphs", action="store_true",
                        help="Skip graph generation, print stats only")

    args = parser.parse_args()

    ride_path = Path(args.ride_file)
    output_dir = Path(args.output_dir)

    if not ride_path.exists():
        print(f"Error: Ride file not found: {ride_path}")
        sys.exit(1)

    try:
        df = load_ride(ride_path)
        stats = compute_stats(df)
        print_stats(stats)

        if not args.no_graphs:
            print(f"\nGenerating graphs in: {output_dir}/")
            generated_files = generate_graphs(df, stats, output_dir)
            print(f"\nGenerated {len(generated_files)} graph(s)")

    except (OSError, ValueError) as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
