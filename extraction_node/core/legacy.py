"""
Fallback extraction through the yt-dlp command-line tool, used when every
persona of the primary pipeline has failed.
"""

import asyncio
import json
import logging
import tempfile
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Optional

import aiofiles

from extraction_node.exceptions import LegacyExtractionFailed, ProcessError
from extraction_node.models.media import (
    DEFAULT_AUTHOR,
    ExtractedAudio,
    default_thumbnail,
    default_title,
)
from extraction_node.utils.process import run_command

log = logging.getLogger(__name__)

LEGACY_COMMAND = "yt-dlp"
METADATA_TIMEOUT = 30
DOWNLOAD_TIMEOUT = 120
MAX_OUTPUT_SIZE = 10 * 1024 * 1024  # 10 MB

EXTENSION_MIME_TYPES = {
    "webm": "audio/webm",
    "m4a": "audio/mp4",
    "mp4": "audio/mp4",
    "opus": "audio/ogg",
    "ogg": "audio/ogg",
    "mp3": "audio/mpeg",
    "aac": "audio/aac",
    "flac": "audio/flac",
    "wav": "audio/wav",
}
FALLBACK_MIME_TYPE = "audio/mpeg"

# yt-dlp leaves these behind for interrupted downloads
_PARTIAL_SUFFIXES = {".part", ".ytdl", ".temp"}

Runner = Callable[..., Awaitable[bytes]]


def mime_type_for(path: Path) -> str:
    """Maps a file's extension to an audio mime type."""
    return EXTENSION_MIME_TYPES.get(path.suffix.lstrip(".").lower(), FALLBACK_MIME_TYPE)


def _remove_matching(directory: Path, prefix: str) -> None:
    for path in directory.glob(f"{prefix}*"):
        try:
            path.unlink()
        except OSError as e:
            log.debug(f"Could not remove temp file '{path.name}': {e}")


@asynccontextmanager
async def temp_download_prefix(
    video_id: str, temp_dir: Optional[Path] = None
) -> AsyncIterator[tuple[Path, str]]:
    """
    Yields a directory and a filename prefix unique to one invocation, and
    removes every file carrying that prefix on exit.
    """
    directory = Path(temp_dir or tempfile.gettempdir())
    prefix = f"extract-{video_id}-{uuid.uuid4().hex[:12]}"
    try:
        yield directory, prefix
    finally:
        await asyncio.to_thread(_remove_matching, directory, prefix)


class LegacyExtractor:
    """Extracts audio by shelling out to yt-dlp."""

    def __init__(
        self,
        command: str = LEGACY_COMMAND,
        temp_dir: Optional[Path] = None,
        runner: Runner = run_command,
    ):
        self.command = command
        self.temp_dir = temp_dir
        self._run = runner

    async def extract(self, video_id: str) -> ExtractedAudio:
        """
        Raises:
            LegacyExtractionFailed: If metadata or audio cannot be obtained.
        """
        log.info(f"Falling back to {self.command} for {video_id}")
        try:
            return await self._extract(video_id)
        except LegacyExtractionFailed:
            raise
        except (ProcessError, OSError, ValueError) as e:
            raise LegacyExtractionFailed(
                f"{self.command} failed for {video_id}: {e}"
            ) from e

    async def _extract(self, video_id: str) -> ExtractedAudio:
        url = f"https://www.youtube.com/watch?v={video_id}"

        raw = await self._run(
            self.command,
            ["--dump-json", "--skip-download", "--no-playlist", "--no-warnings", url],
            timeout=METADATA_TIMEOUT,
            max_output=MAX_OUTPUT_SIZE,
        )
        meta = json.loads(raw)
        if not isinstance(meta, dict):
            raise ValueError("metadata dump is not a JSON object")

        async with temp_download_prefix(video_id, self.temp_dir) as (directory, prefix):
            await self._run(
                self.command,
                [
                    "-f",
                    "bestaudio",
                    "--no-playlist",
                    "--no-warnings",
                    "--no-progress",
                    "-o",
                    str(directory / f"{prefix}.%(ext)s"),
                    url,
                ],
                timeout=DOWNLOAD_TIMEOUT,
                max_output=MAX_OUTPUT_SIZE,
            )

            produced = sorted(
                p
                for p in directory.glob(f"{prefix}*")
                if p.suffix not in _PARTIAL_SUFFIXES
            )
            if not produced:
                raise LegacyExtractionFailed(
                    f"{self.command} produced no audio file for {video_id}"
                )

            audio_path = produced[0]
            async with aiofiles.open(audio_path, "rb") as f:
                data = await f.read()

        log.info(
            f"{self.command} extracted {len(data)} bytes for {video_id} "
            f"({audio_path.suffix.lstrip('.')})"
        )
        return ExtractedAudio(
            data=data,
            title=meta.get("title") or default_title(video_id),
            duration=meta.get("duration") or 0,
            author=meta.get("uploader") or meta.get("channel") or DEFAULT_AUTHOR,
            thumbnail=meta.get("thumbnail") or default_thumbnail(video_id),
            mime_type=mime_type_for(audio_path),
            source="legacy",
        )


async def extract_with_external_tool(video_id: str) -> ExtractedAudio:
    """Runs the default legacy extractor for one video."""
    return await LegacyExtractor().extract(video_id)
