"""
Bulk job orchestration.
"""

from .main import BulkRunner, main

__all__ = ["BulkRunner", "main"]
