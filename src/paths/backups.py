"""
Backup location mapping for tracked files.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from .placeholders import PathLike, normalize_path

DEFAULT_BACKUP_DIRNAME = "imagify-backup"


class BackupLocator:
    """Map a tracked file to the place its pre-optimization copy would live."""

    def __init__(self, install_root: PathLike, backup_dir: Optional[PathLike] = None) -> None:
        self.install_root = normalize_path(install_root).rstrip("/") + "/"
        if backup_dir is None:
            backup_dir = self.install_root + DEFAULT_BACKUP_DIRNAME
        self.backup_dir = normalize_path(backup_dir).rstrip("/") + "/"

    @classmethod
    def from_config(cls, config) -> "BackupLocator":
        roots = config.root_paths()
        return cls(roots["install"], config.optional_path("paths", "backup_dir"))

    def backup_path(self, file_path: PathLike) -> Optional[str]:
        """Return the backup path for ``file_path`` or None when it is outside the install root."""
        value = normalize_path(file_path)
        if not value or not value.startswith(self.install_root):
            return None
        return self.backup_dir + value[len(self.install_root):]

    def has_backup(self, file_path: PathLike) -> bool:
        backup = self.backup_path(file_path)
        return backup is not None and os.path.isfile(backup)

    def as_path(self) -> Path:
        return Path(self.backup_dir)
