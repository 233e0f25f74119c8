"""
Display module for the live ride dashboard.
"""

from .renderer import DashboardRenderer, DashboardConfig

__all__ = [
    "DashboardRenderer",
    "DashboardConfig",
]
