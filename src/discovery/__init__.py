"""
Filesystem discovery of image files.
"""

from .scanner import FolderUnreadable, Scanner

__all__ = ["FolderUnreadable", "Scanner"]
