"""
Configuration package for the folder reconciler.
"""

from .settings import AppConfig, DEFAULT_EXTENSIONS

__all__ = ["AppConfig", "DEFAULT_EXTENSIONS"]
