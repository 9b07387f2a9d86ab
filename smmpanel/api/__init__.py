"""
HTTP surface for the panel's monitoring endpoints.
"""

from .server import build_health_app

__all__ = ["build_health_app"]
