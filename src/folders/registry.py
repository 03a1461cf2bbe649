"""
Tracked folder lookup by folder type.

Theme and plugin folders are recognized by comparing stored folder paths with
the directories of the installed themes and plugins. Those directories are
held in an ``InstalledRoots`` snapshot owned by the caller, which refreshes it
explicitly when the installation changes.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Protocol, Union

from inventory import (
    ACTIVE_FILTERS,
    ACTIVE_ONLY,
    Folder,
    InventoryStore,
    RowDecodeError,
)
from paths import ROOT_TOKENS, ForbiddenPathPolicy, PlaceholderCodec, PlaceholderError, normalize_path

THEMES = "themes"
PLUGINS = "plugins"
CUSTOM_FOLDERS = "custom-folders"

_PLUGIN_HEADER = re.compile(r"^[ \t/*#@]*Plugin Name:", re.IGNORECASE | re.MULTILINE)
_HEADER_BYTES = 8 * 1024


class FolderProvider(Protocol):
    """Supplies folder rows for an extension-defined folder type."""

    def resolve(self, active_filter: str) -> Iterable[Union[Folder, Mapping]]:
        ...


class FolderRegistrationError(ValueError):
    """Raised when a path cannot be registered as a tracked folder."""


def _is_plugin_file(path: Path) -> bool:
    try:
        with path.open("r", encoding="utf-8", errors="ignore") as handle:
            header = handle.read(_HEADER_BYTES)
    except OSError:
        return False
    return _PLUGIN_HEADER.search(header) is not None


@dataclass
class InstalledRoots:
    """Snapshot of installed theme and plugin directories, keyed by portable path."""

    codec: PlaceholderCodec
    policy: ForbiddenPathPolicy
    themes: Dict[str, str] = field(default_factory=dict)
    plugins: Dict[str, str] = field(default_factory=dict)
    loaded: bool = False

    def refresh(self) -> "InstalledRoots":
        """Re-read the themes and plugins roots from disk."""
        self.themes = self._collect(self._theme_dirs())
        self.plugins = self._collect(self._plugin_dirs())
        self.loaded = True
        return self

    def ensure_loaded(self) -> None:
        if not self.loaded:
            self.refresh()

    def all_roots(self) -> Dict[str, str]:
        self.ensure_loaded()
        return {**self.themes, **self.plugins}

    def _collect(self, directories: Iterable[Path]) -> Dict[str, str]:
        found: Dict[str, str] = {}
        for directory in directories:
            path = normalize_path(directory).rstrip("/") + "/"
            if self.policy.is_forbidden(path):
                continue
            found[self.codec.encode(path)] = path
        return found

    def _subdirectories(self, token: str) -> list[Path]:
        root = Path(self.codec.root_for(token))
        if not root.is_dir():
            return []
        return sorted(entry for entry in root.iterdir() if entry.is_dir())

    def _theme_dirs(self) -> Iterable[Path]:
        for directory in self._subdirectories(ROOT_TOKENS[THEMES]):
            if (directory / "style.css").is_file():
                yield directory

    def _plugin_dirs(self) -> Iterable[Path]:
        for directory in self._subdirectories(ROOT_TOKENS[PLUGINS]):
            if any(_is_plugin_file(entry) for entry in sorted(directory.glob("*.php"))):
                yield directory


class FolderRegistry:
    """Resolve tracked folders from the inventory by folder type."""

    def __init__(
        self,
        store: InventoryStore,
        codec: PlaceholderCodec,
        policy: ForbiddenPathPolicy,
        installed: Optional[InstalledRoots] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.codec = codec
        self.policy = policy
        self.installed = installed or InstalledRoots(codec, policy)
        self.logger = logger or logging.getLogger("folder_reconciler")
        self._providers: Dict[str, FolderProvider] = {}

    def register_provider(self, folder_type: str, provider: FolderProvider) -> None:
        """Attach a provider for a custom folder type."""
        folder_type = folder_type.lower()
        if folder_type in (THEMES, PLUGINS, CUSTOM_FOLDERS):
            raise ValueError(f"Folder type {folder_type!r} is built in")
        self._providers[folder_type] = provider

    def folder_types(self) -> list[str]:
        return [THEMES, PLUGINS, CUSTOM_FOLDERS, *sorted(self._providers)]

    def register_folder(self, absolute_path: str | Path, active: bool = True) -> Folder:
        """Add a folder to the inventory, or return the existing row for it."""
        path = normalize_path(absolute_path).rstrip("/") + "/"
        if not os.path.isdir(path):
            raise FolderRegistrationError(f"Not a directory: {path}")
        if self.policy.is_forbidden(path):
            raise FolderRegistrationError(f"Forbidden folder: {path}")
        try:
            portable = self.codec.encode(path)
        except PlaceholderError as exc:
            raise FolderRegistrationError(str(exc)) from exc
        folder_id = self.store.insert_folder(portable, active=active)
        return Folder(folder_id=folder_id, portable_path=portable, active=active, absolute_path=path)

    def resolve_folders(self, folder_type: str, active_filter: str = ACTIVE_ONLY) -> Dict[int, Folder]:
        """Return the usable folders of a type, keyed by folder ID."""
        if active_filter not in ACTIVE_FILTERS:
            raise ValueError(f"Unknown active filter: {active_filter!r}")
        folder_type = folder_type.lower()
        if folder_type == THEMES:
            self.installed.ensure_loaded()
            rows = self.store.select_folders(paths=self.installed.themes, active_filter=active_filter)
        elif folder_type == PLUGINS:
            self.installed.ensure_loaded()
            rows = self.store.select_folders(paths=self.installed.plugins, active_filter=active_filter)
        elif folder_type == CUSTOM_FOLDERS:
            rows = self.store.select_folders(
                exclude_paths=self.installed.all_roots(), active_filter=active_filter
            )
        elif folder_type in self._providers:
            rows = self._provider_rows(folder_type, active_filter)
        else:
            self.logger.debug("No provider for folder type %s", folder_type)
            return {}

        folders: Dict[int, Folder] = {}
        for row in rows:
            folder = self._with_absolute_path(row)
            if folder is not None:
                folders[folder.folder_id] = folder
        return folders

    def _provider_rows(self, folder_type: str, active_filter: str) -> list[Folder]:
        rows: list[Folder] = []
        for row in self._providers[folder_type].resolve(active_filter) or []:
            if isinstance(row, Folder):
                rows.append(row)
                continue
            try:
                rows.append(Folder.from_row(row))
            except RowDecodeError as exc:
                self.logger.warning("Provider %s returned a bad folder row: %s", folder_type, exc)
        return rows

    def _with_absolute_path(self, folder: Folder) -> Optional[Folder]:
        try:
            absolute = self.codec.decode(folder.portable_path)
        except PlaceholderError as exc:
            self.logger.warning("Skipping folder %s: %s", folder.folder_id, exc)
            return None
        if not os.path.isdir(absolute) or self.policy.is_forbidden(absolute):
            self.logger.info("Skipping unavailable folder %s (%s)", folder.folder_id, absolute)
            return None
        return folder.with_absolute_path(absolute)
