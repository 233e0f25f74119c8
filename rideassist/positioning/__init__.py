"""Fallback positioning for samples without a device GPS fix."""

from .fallback import (
    PositionFix,
    NullPositionProvider,
    StaticPositionProvider,
    FallbackPositionLookup,
    create_position_provider,
)

__all__ = [
    "PositionFix",
    "NullPositionProvider",
    "StaticPositionProvider",
    "FallbackPositionLookup",
    "create_position_provider",
]
