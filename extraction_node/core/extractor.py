"""
Orchestrates one audio extraction: persona fallback, format selection,
URL resolution, download, and the external-tool fallback.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional, Sequence

from extraction_node.api.session import get_session
from extraction_node.exceptions import (
    ExhaustionError,
    ExtractionFailed,
    LegacyExtractionFailed,
    PersonaError,
)
from extraction_node.media import AudioDownloader, StreamResolver
from extraction_node.media.downloader import BROWSER_HEADERS
from extraction_node.models.config import RESIDENTIAL_NODE_TYPE, get_default_personas
from extraction_node.models.media import (
    DEFAULT_AUTHOR,
    DEFAULT_MIME_TYPE,
    ExtractedAudio,
    FormatDescriptor,
    Persona,
    ResolvedStream,
    default_thumbnail,
    default_title,
)

from .legacy import LegacyExtractor

log = logging.getLogger(__name__)

PERSONA_TIMEOUT = 10.0


def resolve_persona_order(
    requested: Optional[Sequence[str]], node_type: str
) -> list[Persona]:
    """
    Returns the personas to try, in order.

    A non-empty request is filtered to known personas with its order kept, and
    may filter down to nothing. No request means the node type's default order.
    """
    if requested:
        known = Persona.names()
        return [Persona(name) for name in requested if name in known]
    return list(get_default_personas(node_type))


def select_best_format(
    formats: Iterable[FormatDescriptor],
) -> Optional[FormatDescriptor]:
    """Picks the highest effective bitrate; the earliest candidate wins ties."""
    best = None
    for fmt in formats:
        if best is None or fmt.effective_bitrate > best.effective_bitrate:
            best = fmt
    return best


class AudioExtractor:
    """
    Drives the extraction pipeline for a single node.
    """

    def __init__(
        self,
        node_type: str = RESIDENTIAL_NODE_TYPE,
        session_provider: Callable[[], Awaitable[Any]] = get_session,
        resolver: Optional[StreamResolver] = None,
        downloader: Optional[AudioDownloader] = None,
        legacy: Optional[LegacyExtractor] = None,
        persona_timeout: float = PERSONA_TIMEOUT,
    ):
        self.node_type = node_type
        self.persona_timeout = persona_timeout
        self._get_session = session_provider
        self.resolver = resolver or StreamResolver()
        self.downloader = downloader or AudioDownloader()
        self.legacy = legacy or LegacyExtractor()

    async def extract_audio(
        self,
        video_id: str,
        po_token: Optional[str] = None,
        visitor_data: Optional[str] = None,
        personas: Optional[Sequence[str]] = None,
    ) -> ExtractedAudio:
        """
        Extracts the audio track of a video.

        Raises:
            ExtractionFailed: If every persona and the fallback tool failed.
        """
        order = resolve_persona_order(personas, self.node_type)
        log.debug(
            f"Persona order for {video_id}: {', '.join(p.value for p in order) or 'none'}"
        )

        try:
            return await self._try_personas(video_id, order, po_token, visitor_data)
        except ExhaustionError as e:
            last_error = e.last_error
            log.warning(f"[yellow]{e}, trying fallback tool[/yellow]")

        try:
            return await self.legacy.extract(video_id)
        except LegacyExtractionFailed as legacy_error:
            log.error(f"[red]✗ Fallback failed for {video_id}:[/red] {legacy_error}")
            if last_error is not None:
                raise ExtractionFailed(str(last_error)) from last_error
            raise ExtractionFailed(str(legacy_error)) from legacy_error

    async def _try_personas(
        self,
        video_id: str,
        order: list[Persona],
        po_token: Optional[str],
        visitor_data: Optional[str],
    ) -> ExtractedAudio:
        last_error: Optional[PersonaError] = None
        for persona in order:
            try:
                return await self._attempt(persona, video_id, po_token, visitor_data)
            except PersonaError as e:
                last_error = e
                log.warning(f"[yellow]{e}[/yellow]")

        raise ExhaustionError(video_id, last_error)

    async def _attempt(
        self,
        persona: Persona,
        video_id: str,
        po_token: Optional[str],
        visitor_data: Optional[str],
    ) -> ExtractedAudio:
        """Runs one persona attempt end to end, raising PersonaError on failure."""

        def fail(message: str) -> PersonaError:
            return PersonaError(persona.value, video_id, message)

        token = po_token if persona.accepts_proof_token else None
        try:
            session = await self._get_session()
            info = await asyncio.wait_for(
                session.get_info(
                    video_id,
                    persona,
                    po_token=token,
                    visitor_data=visitor_data if token else None,
                ),
                self.persona_timeout,
            )
        except asyncio.TimeoutError:
            raise fail(f"timed out after {self.persona_timeout:.0f}s") from None
        except Exception as e:
            raise fail(str(e) or type(e).__name__) from e

        if not info.adaptive_formats:
            raise fail("returned no adaptive formats")

        audio_formats = [f for f in info.adaptive_formats if f.is_audio]
        if not audio_formats:
            raise fail("no audio stream available")

        best = select_best_format(audio_formats)
        url = await self.resolver.resolve(session, best)
        if not url:
            raise fail("no audio stream URL available")

        stream = ResolvedStream(
            url=url,
            mime_type=best.mime_type or DEFAULT_MIME_TYPE,
            headers={**BROWSER_HEADERS, **best.http_headers},
        )
        try:
            data = await self.downloader.download(
                stream.url, headers=stream.headers, video_id=video_id
            )
        except Exception as e:
            raise fail(str(e) or type(e).__name__) from e

        log.info(f"[green]✓[/green] {persona.value} succeeded for {video_id}")
        basic = info.basic_info
        return ExtractedAudio(
            data=data,
            title=basic.title or default_title(video_id),
            duration=basic.duration or 0,
            author=basic.channel_name or DEFAULT_AUTHOR,
            thumbnail=basic.thumbnail_url or default_thumbnail(video_id),
            mime_type=stream.mime_type,
            source=persona.value,
        )
