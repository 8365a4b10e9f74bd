"""
Data Models Layer.

This package contains Pydantic models that define the core data structures
used throughout the node, such as configuration, catalog formats and
extraction results.
"""

from .config import NodeConfig, get_default_personas
from .media import (
    BasicInfo,
    ExtractedAudio,
    FormatDescriptor,
    Persona,
    ResolvedStream,
    VideoInfo,
)

__all__ = [
    "BasicInfo",
    "ExtractedAudio",
    "FormatDescriptor",
    "NodeConfig",
    "Persona",
    "ResolvedStream",
    "VideoInfo",
    "get_default_personas",
]
