"""
Dashboard module: per-user metrics with counter self-correction.
"""

from .factory import create_dashboard_module

__all__ = ["create_dashboard_module"]
