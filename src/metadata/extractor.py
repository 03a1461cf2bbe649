"""
Metadata captured when a newly discovered file is added to the inventory.
"""

from __future__ import annotations

import hashlib
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError


@dataclass(frozen=True)
class ImageMetadata:
    """Dimensions, content hash, MIME type and size of a file on disk."""

    width: int
    height: int
    hash: str
    mime_type: Optional[str]
    original_size: int
    modified: int


class MetadataExtractor:
    """Read the values stored alongside a new inventory row."""

    def __init__(self, chunk_size: int = 4 * 1024 * 1024) -> None:
        self.chunk_size = chunk_size

    def extract(self, path: Path) -> ImageMetadata:
        """Return metadata for ``path``; OSError propagates when the file is unreadable."""
        stat = path.stat()
        content_hash = self._md5(path)
        width, height, image_format = self._read_image(path)
        return ImageMetadata(
            width=width,
            height=height,
            hash=content_hash,
            mime_type=self._mime_type(path, image_format),
            original_size=int(stat.st_size),
            modified=int(stat.st_mtime),
        )

    def _md5(self, path: Path) -> str:
        """Compute an MD5 digest in streaming mode."""
        hasher = hashlib.md5()
        with path.open("rb") as handle:
            while True:
                data = handle.read(self.chunk_size)
                if not data:
                    break
                hasher.update(data)
        return hasher.hexdigest()

    def _read_image(self, path: Path) -> tuple[int, int, Optional[str]]:
        try:
            with Image.open(path) as image:
                width, height = image.size
                return int(width), int(height), image.format
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError):
            return 0, 0, None

    def _mime_type(self, path: Path, image_format: Optional[str]) -> Optional[str]:
        if image_format:
            mime = Image.MIME.get(image_format.upper())
            if mime:
                return mime
        guessed, _ = mimetypes.guess_type(path.name)
        return guessed
