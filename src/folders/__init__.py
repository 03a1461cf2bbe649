"""
Folder registry: tracked folders resolved by type.
"""

from .registry import (
    CUSTOM_FOLDERS,
    PLUGINS,
    THEMES,
    FolderProvider,
    FolderRegistrationError,
    FolderRegistry,
    InstalledRoots,
)

__all__ = [
    "CUSTOM_FOLDERS",
    "PLUGINS",
    "THEMES",
    "FolderProvider",
    "FolderRegistrationError",
    "FolderRegistry",
    "InstalledRoots",
]
