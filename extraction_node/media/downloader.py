"""
Handles the low-level downloading of audio streams over HTTP, with a full GET
first and a sequential byte-range fallback.
"""

import asyncio
import logging
import re
from typing import Mapping, Optional

import aiohttp

from extraction_node.exceptions import DownloadFailed

log = logging.getLogger(__name__)

YOUTUBE_ORIGIN = "https://www.youtube.com"
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36"
    ),
    "Origin": YOUTUBE_ORIGIN,
    "Referer": f"{YOUTUBE_ORIGIN}/",
}
MAX_FULL_DOWNLOAD_SIZE = 50 * 1024 * 1024  # 50 MB
RANGE_WINDOW = 524288  # 512 KB
READ_CHUNK_SIZE = 65536

_CONTENT_RANGE_REGEX = re.compile(r"bytes \d+-\d+/(\d+)")

_connection_pool: aiohttp.ClientSession | None = None
_pool_lock = asyncio.Lock()


async def get_connection_pool() -> aiohttp.ClientSession:
    """
    Gets or creates a shared aiohttp ClientSession for downloads.

    This function ensures that only one connection pool is created for the
    lifetime of the process.
    """
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            return _connection_pool

        connector = aiohttp.TCPConnector(
            limit=16,
            ttl_dns_cache=600,  # 10 minutes
            keepalive_timeout=30,
            enable_cleanup_closed=True,
        )
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=15, sock_read=90)
        _connection_pool = aiohttp.ClientSession(connector=connector, timeout=timeout)
        log.debug("Created download connection pool")

    return _connection_pool


async def close_connection_pool() -> None:
    """Closes the shared global connection pool."""
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            await _connection_pool.close()
            _connection_pool = None
            log.debug("Shared download connection pool closed.")


def parse_total_size(content_range: Optional[str]) -> Optional[int]:
    """Extracts the total resource size from a Content-Range header."""
    if not content_range:
        return None
    match = _CONTENT_RANGE_REGEX.search(content_range)
    return int(match.group(1)) if match else None


class AudioDownloader:
    """A stream downloader with a full GET phase and a chunked range phase."""

    def __init__(
        self,
        http: aiohttp.ClientSession | None = None,
        max_full_size: int = MAX_FULL_DOWNLOAD_SIZE,
        window: int = RANGE_WINDOW,
    ):
        self._http = http
        self.max_full_size = max_full_size
        self.window = window

    async def _get_http(self) -> aiohttp.ClientSession:
        return self._http if self._http is not None else await get_connection_pool()

    async def download(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
        video_id: str = "",
    ) -> bytes:
        """
        Downloads the full stream behind a resolved URL.

        Raises:
            DownloadFailed: If both the full GET and the chunked download fail.
        """
        request_headers = dict(BROWSER_HEADERS if headers is None else headers)
        http = await self._get_http()

        data = await self._download_full(http, url, request_headers, video_id)
        if data:
            log.info(f"Downloaded {len(data)} bytes for {video_id} (full)")
            return data

        return await self._download_chunked(http, url, request_headers, video_id)

    async def _download_full(
        self,
        http: aiohttp.ClientSession,
        url: str,
        headers: dict[str, str],
        video_id: str,
    ) -> Optional[bytes]:
        """Phase 1: one unranged GET, bounded by the size cap."""
        try:
            async with http.get(url, headers=headers) as response:
                if not response.ok:
                    log.debug(
                        f"Full download for {video_id} returned HTTP "
                        f"{response.status}, trying ranges"
                    )
                    return None

                declared = response.headers.get("Content-Length")
                if declared and int(declared) > self.max_full_size:
                    log.debug(
                        f"Full download for {video_id} declares {declared} bytes, "
                        f"over the {self.max_full_size} byte cap"
                    )
                    response.close()
                    return None

                buffer = bytearray()
                async for chunk in response.content.iter_chunked(READ_CHUNK_SIZE):
                    buffer.extend(chunk)
                    if len(buffer) > self.max_full_size:
                        log.debug(
                            f"Full download for {video_id} passed the "
                            f"{self.max_full_size} byte cap, trying ranges"
                        )
                        response.close()
                        return None
                data = bytes(buffer)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            log.debug(f"Full download for {video_id} failed: {e}")
            return None

        if not data:
            log.debug(f"Full download for {video_id} returned an empty body")
            return None
        return data

    async def _fetch_range(
        self,
        http: aiohttp.ClientSession,
        url: str,
        headers: dict[str, str],
        start: int,
        end: int,
    ) -> tuple[bytes, Optional[str]]:
        range_headers = {**headers, "Range": f"bytes={start}-{end}"}
        async with http.get(url, headers=range_headers) as response:
            if not response.ok and response.status != 206:
                raise DownloadFailed(
                    f"Chunk download failed: HTTP {response.status} "
                    f"for bytes {start}-{end}"
                )
            return await response.read(), response.headers.get("Content-Range")

    async def _download_chunked(
        self,
        http: aiohttp.ClientSession,
        url: str,
        headers: dict[str, str],
        video_id: str,
    ) -> bytes:
        """Phase 2: sequential fixed-size byte ranges."""
        try:
            first_chunk, content_range = await self._fetch_range(
                http, url, headers, 0, self.window - 1
            )
            if not first_chunk:
                raise DownloadFailed("Audio download returned empty response")

            total_size = parse_total_size(content_range)
            if total_size is None or len(first_chunk) >= total_size:
                log.info(
                    f"Downloaded {len(first_chunk)} bytes for {video_id} (single chunk)"
                )
                return first_chunk

            chunks = [first_chunk]
            for start in range(self.window, total_size, self.window):
                end = min(start + self.window - 1, total_size - 1)
                chunk, _ = await self._fetch_range(http, url, headers, start, end)
                chunks.append(chunk)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise DownloadFailed(f"Chunked download failed: {e}") from e

        data = b"".join(chunks)
        if len(data) != total_size:
            raise DownloadFailed(
                f"Chunked download returned {len(data)} of {total_size} bytes"
            )
        log.info(f"Downloaded {len(data)} bytes for {video_id} ({len(chunks)} chunks)")
        return data
