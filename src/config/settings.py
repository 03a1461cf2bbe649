"""
Configuration loader and root-path helpers for the folder reconciler.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

DEFAULT_CONFIG_PATH = Path("config.yaml")
ENV_CONFIG_PATH = "FOLDER_RECONCILER_CONFIG"
DEFAULT_EXTENSIONS = (".jpg", ".jpeg", ".jpe", ".png", ".gif")


@dataclass(frozen=True)
class AppConfig:
    """Container for raw configuration data and path helpers."""

    root_dir: Path
    raw: Dict[str, Any]

    @classmethod
    def load(cls, path: Path | None = None) -> "AppConfig":
        """Load configuration from YAML, falling back to the environment and the working directory."""
        config_value = os.environ.get(ENV_CONFIG_PATH)
        config_path = path
        if config_path is None:
            config_path = Path(config_value) if config_value else DEFAULT_CONFIG_PATH
        config_path = config_path.expanduser()
        if not config_path.is_absolute():
            config_path = (Path.cwd() / config_path).resolve()
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        return cls(root_dir=config_path.parent, raw=data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], root_dir: Path | None = None) -> "AppConfig":
        """Build a configuration from an in-memory mapping."""
        return cls(root_dir=root_dir or Path.cwd(), raw=dict(data))

    def get(self, *keys: str, default: Any = None) -> Any:
        """Retrieve nested configuration values with an optional default."""
        node: Any = self.raw
        for key in keys:
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
        return node

    def resolve_path(self, *keys: str, default: str | None = None) -> Path:
        """Resolve a path from configuration keys to an absolute Path."""
        value = self.get(*keys, default=default)
        if value is None:
            raise KeyError(f"Missing config path for {'.'.join(keys)}")
        path = Path(value).expanduser()
        if not path.is_absolute():
            path = (self.root_dir / path).resolve()
        return path

    def optional_path(self, *keys: str) -> Optional[Path]:
        """Resolve a path if it is configured, otherwise return None."""
        if self.get(*keys) is None:
            return None
        return self.resolve_path(*keys)

    def root_paths(self) -> Dict[str, Path]:
        """Return the install, content, themes and plugins roots with their defaults applied."""
        install = self.resolve_path("roots", "install")
        content = self.optional_path("roots", "content") or install / "wp-content"
        themes = self.optional_path("roots", "themes") or content / "themes"
        plugins = self.optional_path("roots", "plugins") or content / "plugins"
        return {"install": install, "content": content, "themes": themes, "plugins": plugins}

    def scan_extensions(self) -> frozenset[str]:
        """Return the lower-cased image extensions the scanner keeps."""
        values = self.get("scan", "extensions", default=None) or DEFAULT_EXTENSIONS
        return frozenset(
            value.lower() if value.startswith(".") else f".{value.lower()}" for value in values
        )
