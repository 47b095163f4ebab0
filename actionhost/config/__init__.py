"""
actionhost Configuration

Environment-driven settings.
"""

from .schemas import AppSettings

__all__ = [
    "AppSettings",
]
