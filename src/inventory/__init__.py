"""
Inventory package: persisted folders and files.
"""

from .manager import (
    ACTIVE_FILTERS,
    ACTIVE_ONLY,
    ALL_FOLDERS,
    INACTIVE_ONLY,
    STATUS_ALREADY_OPTIMIZED,
    STATUS_ERROR,
    STATUS_SUCCESS,
    FileRecord,
    Folder,
    InsertFailed,
    InventoryStore,
    NewFile,
    RowDecodeError,
    StoreQueryFailed,
)
from .schema import create_inventory_db

__all__ = [
    "ACTIVE_FILTERS",
    "ACTIVE_ONLY",
    "ALL_FOLDERS",
    "INACTIVE_ONLY",
    "STATUS_ALREADY_OPTIMIZED",
    "STATUS_ERROR",
    "STATUS_SUCCESS",
    "FileRecord",
    "Folder",
    "InsertFailed",
    "InventoryStore",
    "NewFile",
    "RowDecodeError",
    "StoreQueryFailed",
    "create_inventory_db",
]
