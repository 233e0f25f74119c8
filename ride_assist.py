#!/usr/bin/env python3
"""
RideAssist - Entry Point

Run this file directly or use: python -m rideassist.main

Usage:
    python ride_assist.py --help
    python ride_assist.py --headless
    python ride_assist.py --display --export-dir rides/
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from rideassist.main import main

if __name__ == "__main__":
    sys.exit(main())
