"""
Core extraction engine.

This package contains the primary logic. The `AudioExtractor` drives the
persona fallback for one video, delegating URL resolution and downloads to
the media layer and, when every persona fails, handing over to the
`LegacyExtractor`.
"""

from .extractor import AudioExtractor
from .legacy import LegacyExtractor, extract_with_external_tool

__all__ = ["AudioExtractor", "LegacyExtractor", "extract_with_external_tool"]
