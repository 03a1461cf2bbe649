"""
Path handling: portable placeholders, backup mapping and the forbidden-path policy.
"""

from .backups import BackupLocator
from .placeholders import (
    PathNotEncodable,
    PlaceholderCodec,
    PlaceholderError,
    ROOT_TOKENS,
    UnknownPlaceholder,
    is_within,
    normalize_path,
)
from .policy import ForbiddenPathPolicy

__all__ = [
    "BackupLocator",
    "ForbiddenPathPolicy",
    "PathNotEncodable",
    "PlaceholderCodec",
    "PlaceholderError",
    "ROOT_TOKENS",
    "UnknownPlaceholder",
    "is_within",
    "normalize_path",
]
