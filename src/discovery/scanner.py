"""
Image discovery inside tracked folders.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Iterable, Iterator, Optional

from config import DEFAULT_EXTENSIONS
from paths import ForbiddenPathPolicy, normalize_path
from utils import ResourceMonitor


class FolderUnreadable(OSError):
    """Raised when a folder to scan is missing, not a directory or unreadable."""

    def __init__(self, folder_path: str, reason: str) -> None:
        super().__init__(f"Cannot scan {folder_path}: {reason}")
        self.folder_path = folder_path
        self.reason = reason


class Scanner:
    """Walk a folder tree and collect the image files it contains."""

    def __init__(
        self,
        policy: ForbiddenPathPolicy,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        follow_symlinks: bool = False,
        monitor: Optional[ResourceMonitor] = None,
        logger: Optional[logging.Logger] = None,
        performance_logger: Optional[logging.Logger] = None,
    ) -> None:
        self.policy = policy
        self.extensions = frozenset(ext.lower() for ext in extensions)
        self.follow_symlinks = follow_symlinks
        self.monitor = monitor
        self.logger = logger or logging.getLogger("folder_reconciler")
        self.performance_logger = performance_logger or logging.getLogger("folder_reconciler.performance")

    @classmethod
    def from_config(
        cls,
        config,
        policy: ForbiddenPathPolicy,
        monitor: Optional[ResourceMonitor] = None,
        logger: Optional[logging.Logger] = None,
        performance_logger: Optional[logging.Logger] = None,
    ) -> "Scanner":
        return cls(
            policy,
            extensions=config.scan_extensions(),
            follow_symlinks=bool(config.get("scan", "follow_symlinks", default=False)),
            monitor=monitor,
            logger=logger,
            performance_logger=performance_logger,
        )

    def scan(self, folder_path: str | Path) -> set[str]:
        """Return the normalized absolute paths of every image below ``folder_path``.

        A forbidden folder yields no files. ``FolderUnreadable`` is raised only when
        the folder itself cannot be read.
        """
        root = normalize_path(folder_path)
        self._check_root(root)
        if self.policy.is_forbidden(root):
            self.logger.info("Not scanning forbidden folder %s", root)
            return set()
        started = time.monotonic()
        found = set(self._iter_images(root))
        self.performance_logger.info(
            "Scanned %s: %s files in %.2fs", root, len(found), time.monotonic() - started
        )
        return found

    def is_image(self, path: str) -> bool:
        return os.path.splitext(path)[1].lower() in self.extensions

    @staticmethod
    def _is_storable_name(name: str) -> bool:
        """False for names that are not valid UTF-8 on disk and cannot be stored."""
        try:
            os.fsencode(name).decode("utf-8")
        except UnicodeDecodeError:
            return False
        return True

    def _check_root(self, root: str) -> None:
        if not os.path.exists(root):
            raise FolderUnreadable(root, "missing")
        if not os.path.isdir(root):
            raise FolderUnreadable(root, "not a directory")
        if not os.access(root, os.R_OK | os.X_OK):
            raise FolderUnreadable(root, "permission denied")
        try:
            with os.scandir(root):
                pass
        except OSError as exc:
            raise FolderUnreadable(root, str(exc)) from exc

    def _iter_images(self, root: str) -> Iterator[str]:
        """Yield image paths under a root, pruning forbidden sub-directories."""

        def on_error(error: OSError) -> None:
            self.logger.warning("Skipping unreadable directory %s: %s", error.filename, error)

        for dirpath, dirnames, filenames in os.walk(
            root, topdown=True, onerror=on_error, followlinks=self.follow_symlinks
        ):
            if self.monitor is not None:
                self.monitor.throttle()
            current = normalize_path(dirpath).rstrip("/")
            dirnames[:] = sorted(
                name
                for name in dirnames
                if self._is_storable_name(name) and not self.policy.is_forbidden(f"{current}/{name}/")
            )
            for filename in sorted(filenames):
                file_path = f"{current}/{filename}"
                if not self._is_storable_name(filename):
                    self.logger.debug("Skipping file with undecodable name %r", file_path)
                    continue
                if not self.is_image(file_path):
                    continue
                if not self.follow_symlinks and os.path.islink(file_path):
                    continue
                if self.policy.is_forbidden(file_path):
                    self.logger.debug("Skipping forbidden file %s", file_path)
                    continue
                yield file_path
