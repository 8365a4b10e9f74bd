"""
Catalog client that queries a video under a chosen client persona through
yt-dlp's YouTube extractor.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

import yt_dlp
from yt_dlp.utils import DownloadError
from yt_dlp.version import __version__ as YT_DLP_VERSION

from extraction_node.exceptions import CatalogQueryError
from extraction_node.models.media import BasicInfo, FormatDescriptor, Persona, VideoInfo

log = logging.getLogger(__name__)

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"
SOCKET_TIMEOUT = 10

# Persona -> yt-dlp player_client name
PERSONA_CLIENTS: Dict[Persona, str] = {
    Persona.WEB: "web",
    Persona.ANDROID: "android",
    Persona.TV_EMBEDDED: "tv_embedded",
}

_DIRECT_PROTOCOLS = {"http", "https"}
_CONTAINER_SUBTYPES = {"m4a": "mp4", "mp4": "mp4", "webm": "webm", "3gp": "3gpp"}

BASE_OPTIONS: Dict[str, Any] = {
    "quiet": True,
    "no_warnings": True,
    "noplaylist": True,
    "skip_download": True,
    "format": "bestaudio/best",
    "ignore_no_formats_error": True,
    "socket_timeout": SOCKET_TIMEOUT,
}


class _YtDlpLogger:
    """Routes yt-dlp's messages into the node's logging tree."""

    def debug(self, msg: str) -> None:
        log.debug(msg)

    def info(self, msg: str) -> None:
        log.debug(msg)

    def warning(self, msg: str) -> None:
        log.debug(f"yt-dlp warning: {msg}")

    def error(self, msg: str) -> None:
        log.debug(f"yt-dlp error: {msg}")


def _is_codec(value: Optional[str]) -> bool:
    return bool(value) and value != "none"


def _to_bps(kbps: Any) -> Optional[int]:
    if isinstance(kbps, (int, float)) and kbps > 0:
        return int(round(kbps * 1000))
    return None


def format_mime_type(raw: Dict[str, Any]) -> Optional[str]:
    """
    Derives a mime type such as 'audio/webm; codecs="opus"' from a yt-dlp
    format entry. Returns None when the container is unknown.
    """
    acodec, vcodec = raw.get("acodec"), raw.get("vcodec")
    if _is_codec(acodec) and vcodec == "none":
        kind, container, codec = "audio", raw.get("audio_ext") or raw.get("ext"), acodec
    else:
        kind, container, codec = "video", raw.get("video_ext") or raw.get("ext"), vcodec

    if not container or container == "none":
        return None
    mime = f"{kind}/{_CONTAINER_SUBTYPES.get(container, container)}"
    if _is_codec(codec):
        mime += f'; codecs="{codec}"'
    return mime


def parse_format(raw: Dict[str, Any]) -> FormatDescriptor:
    acodec = raw.get("acodec")
    return FormatDescriptor(
        format_id=raw.get("format_id"),
        mime_type=format_mime_type(raw),
        bitrate=_to_bps(raw.get("tbr")),
        average_bitrate=_to_bps(raw.get("abr")),
        url=raw.get("url"),
        has_audio=None if acodec is None else _is_codec(acodec),
        http_headers=raw.get("http_headers") or {},
    )


def parse_video_info(info: Dict[str, Any]) -> VideoInfo:
    """Builds a VideoInfo from a yt-dlp info dict, keeping directly fetchable formats."""
    formats = [
        parse_format(raw)
        for raw in info.get("formats") or []
        if raw.get("protocol", "https") in _DIRECT_PROTOCOLS
    ]

    try:
        duration = int(info.get("duration") or 0)
    except (TypeError, ValueError):
        duration = 0

    return VideoInfo(
        basic_info=BasicInfo(
            title=info.get("title"),
            duration=duration,
            channel_name=info.get("uploader") or info.get("channel"),
            thumbnail_url=info.get("thumbnail"),
        ),
        adaptive_formats=formats,
    )


class InnertubeSession:
    """
    Process-wide client-emulation context.

    Holds the yt-dlp options shared by every query. Each query runs its own
    `YoutubeDL` instance in a worker thread, since extractor arguments differ
    per persona.
    """

    def __init__(
        self,
        options: Optional[Dict[str, Any]] = None,
        ydl_factory: Callable[[Dict[str, Any]], Any] = yt_dlp.YoutubeDL,
    ):
        self._options = {**BASE_OPTIONS, "logger": _YtDlpLogger(), **(options or {})}
        self._ydl_factory = ydl_factory
        self._closed = False

    @classmethod
    async def create(cls) -> "InnertubeSession":
        """Creates a session with the default yt-dlp options."""
        log.debug(f"Client emulation through yt-dlp {YT_DLP_VERSION}")
        return cls()

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        self._closed = True

    def build_options(
        self,
        persona: Persona,
        po_token: Optional[str],
        visitor_data: Optional[str],
    ) -> Dict[str, Any]:
        """Builds the yt-dlp options of one query under the given persona."""
        client = PERSONA_CLIENTS[persona]
        youtube_args: Dict[str, Any] = {"player_client": [client]}

        # Proof tokens are bound to the visitor that minted them.
        if po_token:
            youtube_args["po_token"] = [f"{client}+{po_token}"]
            if visitor_data:
                youtube_args["visitor_data"] = [visitor_data]
                youtube_args["player_skip"] = ["webpage", "configs"]

        return {**self._options, "extractor_args": {"youtube": youtube_args}}

    async def get_info(
        self,
        video_id: str,
        persona: Persona,
        po_token: Optional[str] = None,
        visitor_data: Optional[str] = None,
    ) -> VideoInfo:
        """
        Queries the catalog for a video under the given persona.

        Raises:
            CatalogQueryError: If the session is closed or the video is not
                available to this persona.
        """
        if self._closed:
            raise CatalogQueryError("Client-emulation session is closed.")

        options = self.build_options(persona, po_token, visitor_data)
        url = WATCH_URL.format(video_id=video_id)

        def _extract() -> Any:
            with self._ydl_factory(options) as ydl:
                return ydl.extract_info(url, download=False)

        try:
            info = await asyncio.to_thread(_extract)
        except DownloadError as e:
            raise CatalogQueryError(f"{persona.value} query failed: {e}") from e

        if not isinstance(info, dict):
            raise CatalogQueryError(f"{persona.value} query returned no video info")
        return parse_video_info(info)
