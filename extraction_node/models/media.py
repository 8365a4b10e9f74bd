"""
Pydantic models for catalog data and extraction results.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_MIME_TYPE = "audio/webm"
DEFAULT_AUTHOR = "YouTube Channel"


class Persona(str, Enum):
    """Client identities the upstream platform treats differently."""

    WEB = "WEB"
    ANDROID = "ANDROID"
    TV_EMBEDDED = "TV_EMBEDDED"

    @property
    def accepts_proof_token(self) -> bool:
        return self is Persona.WEB

    @classmethod
    def names(cls) -> set[str]:
        return {p.value for p in cls}


def default_title(video_id: str) -> str:
    return f"YouTube Video {video_id}"


def default_thumbnail(video_id: str) -> str:
    return f"https://img.youtube.com/vi/{video_id}/mqdefault.jpg"


class FormatDescriptor(BaseModel):
    """
    One candidate encoding offered by the catalog.

    Bitrates are in bits per second. `http_headers` are the request headers the
    catalog requires when fetching `url`.
    """

    format_id: Optional[str] = None
    mime_type: Optional[str] = None
    bitrate: Optional[int] = None
    average_bitrate: Optional[int] = None
    url: Optional[str] = None
    has_audio: Optional[bool] = None
    http_headers: Dict[str, str] = Field(default_factory=dict)

    class Config:
        """Pydantic model configuration."""

        extra = "ignore"

    @property
    def is_audio(self) -> bool:
        return bool(self.mime_type and self.mime_type.startswith("audio/")) and (
            self.has_audio is not False
        )

    @property
    def effective_bitrate(self) -> int:
        if self.bitrate is not None:
            return self.bitrate
        if self.average_bitrate is not None:
            return self.average_bitrate
        return 0


class BasicInfo(BaseModel):
    """Descriptive metadata of a video as reported by the catalog."""

    title: Optional[str] = None
    duration: Optional[int] = None
    channel_name: Optional[str] = None
    thumbnail_url: Optional[str] = None


class VideoInfo(BaseModel):
    """The result of one catalog query under one persona."""

    basic_info: BasicInfo = Field(default_factory=BasicInfo)
    adaptive_formats: list[FormatDescriptor] = Field(default_factory=list)


class ResolvedStream(BaseModel):
    """A concrete fetchable URL and the mime type of the chosen format."""

    url: str
    mime_type: str = DEFAULT_MIME_TYPE
    headers: Dict[str, str] = Field(default_factory=dict)


class ExtractedAudio(BaseModel):
    """The terminal result of a successful extraction."""

    data: bytes = Field(repr=False)
    title: str
    duration: float = 0
    author: str = DEFAULT_AUTHOR
    thumbnail: str
    mime_type: str = DEFAULT_MIME_TYPE
    source: str = ""

    class Config:
        """Pydantic model configuration."""

        frozen = True

    @field_validator("duration", mode="before")
    @classmethod
    def coerce_duration(cls, v: Any) -> float:
        """Upstream durations may be missing or strings."""
        try:
            return float(v or 0)
        except (TypeError, ValueError):
            return 0.0

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def content_type(self) -> str:
        """The mime type without codec parameters."""
        return self.mime_type.split(";")[0].strip()
