"""
Media Layer.

This package is responsible for turning a selected stream format into audio
bytes: resolving its URL and downloading it.
"""

from .downloader import AudioDownloader
from .resolver import StreamResolver

__all__ = ["AudioDownloader", "StreamResolver"]
