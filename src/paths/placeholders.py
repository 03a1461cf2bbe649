"""
Portable path placeholders.

Stored paths replace their root segment with a token such as ``{{THEMES}}`` so
that rows survive a move of the install, content, themes or plugins roots.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Tuple, Union

PathLike = Union[str, Path]

ROOT_TOKENS = {
    "install": "{{ABSPATH}}",
    "content": "{{CONTENT}}",
    "themes": "{{THEMES}}",
    "plugins": "{{PLUGINS}}",
}

_MULTI_SLASH = re.compile(r"/{2,}")
_TOKEN_PATTERN = re.compile(r"^\{\{[A-Z_]+\}\}")


class PlaceholderError(ValueError):
    """Base error for placeholder encoding and decoding."""


class PathNotEncodable(PlaceholderError):
    """Raised when an absolute path sits under none of the known roots."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Path is outside every known root: {path}")
        self.path = path


class UnknownPlaceholder(PlaceholderError):
    """Raised when a portable path does not start with a known token."""

    def __init__(self, portable_path: str) -> None:
        super().__init__(f"Portable path has no known placeholder: {portable_path}")
        self.portable_path = portable_path


def normalize_path(path: PathLike) -> str:
    """Normalize separators and duplicate slashes, keeping any trailing slash."""
    value = str(path).replace("\\", "/")
    value = _MULTI_SLASH.sub("/", value)
    if len(value) > 1 and value[1] == ":":
        value = value[0].upper() + value[1:]
    return value


def _strip_root(path: PathLike) -> str:
    value = normalize_path(path)
    return value.rstrip("/") if value != "/" else ""


def is_within(path: PathLike, root: PathLike) -> bool:
    """Return True when ``path`` equals ``root`` or sits below it."""
    value = normalize_path(path)
    base = _strip_root(root)
    return value == base or value.startswith(base + "/")


class PlaceholderCodec:
    """Convert absolute paths to portable paths and back."""

    def __init__(self, roots: Mapping[str, PathLike], tokens: Optional[Mapping[str, str]] = None) -> None:
        tokens = dict(tokens or ROOT_TOKENS)
        self._roots: Dict[str, str] = {}
        for name, root in roots.items():
            if name not in tokens:
                raise KeyError(f"No placeholder token for root {name!r}")
            self._roots[tokens[name]] = _strip_root(root)
        # Longest root first so the most specific token wins.
        self._by_length: Tuple[Tuple[str, str], ...] = tuple(
            sorted(self._roots.items(), key=lambda item: len(item[1]), reverse=True)
        )

    @classmethod
    def from_config(cls, config) -> "PlaceholderCodec":
        return cls(config.root_paths())

    @property
    def tokens(self) -> Iterable[str]:
        return self._roots.keys()

    def root_for(self, token: str) -> str:
        """Return the absolute root bound to ``token``, with a trailing slash."""
        return self._roots[token] + "/"

    def roots(self) -> list[str]:
        return [root + "/" for _, root in self._by_length]

    def can_encode(self, path: PathLike) -> bool:
        return self._match(normalize_path(path)) is not None

    def encode(self, path: PathLike) -> str:
        """Replace the most specific root of ``path`` with its token."""
        value = normalize_path(path)
        match = self._match(value)
        if match is None:
            raise PathNotEncodable(value)
        token, root = match
        return token + value[len(root):]

    def decode(self, portable_path: str) -> str:
        """Replace the leading token of ``portable_path`` with its current root."""
        token_match = _TOKEN_PATTERN.match(portable_path)
        if token_match is None:
            raise UnknownPlaceholder(portable_path)
        token = token_match.group(0)
        rest = portable_path[len(token):]
        if token not in self._roots or (rest and not rest.startswith("/")):
            raise UnknownPlaceholder(portable_path)
        root = self._roots[token]
        if not root and not rest:
            return "/"
        return root + rest

    def _match(self, value: str) -> Optional[Tuple[str, str]]:
        for token, root in self._by_length:
            if value == root or value.startswith(root + "/"):
                return token, root
        return None
