"""
Rules deciding which paths may never be scanned or tracked.
"""

from __future__ import annotations

import fnmatch
import os
from typing import Callable, Iterable, List, Optional

from .placeholders import PathLike, PlaceholderCodec, is_within, normalize_path

DenyRule = Callable[[str], bool]


class ForbiddenPathPolicy:
    """Exclude paths outside the known roots, protected directories, hidden entries and deny-listed names."""

    def __init__(
        self,
        codec: PlaceholderCodec,
        protected_paths: Iterable[PathLike] = (),
        patterns: Iterable[str] = (),
        skip_hidden: bool = True,
    ) -> None:
        self.codec = codec
        self.protected_paths: List[str] = [normalize_path(path).rstrip("/") for path in protected_paths]
        self.patterns: List[str] = list(patterns)
        self.skip_hidden = skip_hidden
        self._rules: List[DenyRule] = []
        self._real_roots: List[str] = [
            normalize_path(os.path.realpath(root)).rstrip("/") for root in codec.roots()
        ]

    @classmethod
    def from_config(cls, config, codec: PlaceholderCodec, backup_dir: Optional[PathLike] = None) -> "ForbiddenPathPolicy":
        protected = [str(path) for path in config.get("exclusions", "paths", default=[]) or []]
        engine_dir = config.optional_path("paths", "engine_dir")
        if engine_dir is not None:
            protected.append(str(engine_dir))
        if backup_dir is not None:
            protected.append(str(backup_dir))
        return cls(
            codec,
            protected_paths=protected,
            patterns=config.get("exclusions", "patterns", default=[]) or [],
            skip_hidden=bool(config.get("scan", "skip_hidden", default=True)),
        )

    def add_rule(self, rule: DenyRule) -> None:
        """Register an extra predicate; it receives a normalized absolute path."""
        self._rules.append(rule)

    def add_protected_path(self, path: PathLike) -> None:
        self.protected_paths.append(normalize_path(path).rstrip("/"))

    def is_forbidden(self, path: PathLike) -> bool:
        value = normalize_path(path)
        if not self.codec.can_encode(value):
            return True
        real = normalize_path(os.path.realpath(value))
        if real.rstrip("/") != value.rstrip("/") and not self._inside_roots(real):
            # Symlink pointing outside the known roots.
            return True
        for protected in self.protected_paths:
            if is_within(value, protected) or is_within(real, protected):
                return True
        if self.skip_hidden and self._has_hidden_part(value):
            return True
        if self._matches_patterns(value):
            return True
        return any(rule(value) for rule in self._rules)

    def _inside_roots(self, real: str) -> bool:
        if self.codec.can_encode(real):
            return True
        return any(is_within(real, root) for root in self._real_roots)

    def _has_hidden_part(self, value: str) -> bool:
        for root in self.codec.roots():
            if value.startswith(root):
                relative = value[len(root):]
                return any(part.startswith(".") for part in relative.split("/") if part)
        return False

    def _matches_patterns(self, value: str) -> bool:
        name = value.rstrip("/").rsplit("/", 1)[-1]
        for pattern in self.patterns:
            if fnmatch.fnmatch(name, pattern) or fnmatch.fnmatch(value, pattern):
                return True
        return False
