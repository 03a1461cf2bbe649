"""
File metadata extraction.
"""

from .extractor import ImageMetadata, MetadataExtractor

__all__ = ["ImageMetadata", "MetadataExtractor"]
