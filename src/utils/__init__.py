"""
Utility helpers for the folder reconciler.
"""

from .logging_setup import BASE_LOGGER, setup_logging
from .resource_monitor import ResourceMonitor

__all__ = ["BASE_LOGGER", "ResourceMonitor", "setup_logging"]
