"""
HTTP boundary of the extraction node.

Endpoints:
    GET  /health         Health check
    POST /extract-audio  Extract and download a video's audio
"""

import asyncio
import logging
import re
from typing import Any, AsyncIterator, Dict, Optional
from urllib.parse import quote

import aiohttp
from aiohttp import web

from extraction_node.api.session import close_session
from extraction_node.core import AudioExtractor
from extraction_node.exceptions import (
    ExtractionFailed,
    RegistrationError,
    ValidationError,
)
from extraction_node.media.downloader import close_connection_pool
from extraction_node.models.config import NodeConfig

from .registration import CoordinatorClient

log = logging.getLogger(__name__)

VIDEO_ID_REGEX = re.compile(r"^[a-zA-Z0-9_-]{11}$")

CONFIG_KEY = web.AppKey("config", NodeConfig)
EXTRACTOR_KEY = web.AppKey("extractor", AudioExtractor)


def encode_header_value(value: str) -> str:
    """Percent-encodes a header value the way browsers' encodeURIComponent does."""
    return quote(value, safe="!~*'()")


def format_duration_header(duration: float) -> str:
    """Renders a duration in seconds without exponent notation."""
    duration = float(duration)
    return str(int(duration)) if duration.is_integer() else repr(duration)


def parse_extract_request(body: Any) -> Dict[str, Any]:
    """
    Validates an /extract-audio request body.

    Raises:
        ValidationError: If the body or the video id is malformed.
    """
    if not isinstance(body, dict):
        raise ValidationError("Invalid JSON")

    video_id = body.get("videoId")
    if not isinstance(video_id, str) or not VIDEO_ID_REGEX.match(video_id):
        raise ValidationError("Invalid video ID")

    clients = body.get("clients")
    if clients is not None and (
        not isinstance(clients, list) or not all(isinstance(c, str) for c in clients)
    ):
        raise ValidationError("Invalid clients list")

    return {
        "video_id": video_id,
        "po_token": body.get("poToken") or None,
        "visitor_data": body.get("visitorData") or None,
        "personas": clients,
    }


async def health(request: web.Request) -> web.Response:
    config = request.app[CONFIG_KEY]
    return web.json_response(
        {
            "status": "ok",
            "name": config.node_name,
            "type": config.node_type,
            "region": config.region,
        }
    )


async def extract_audio(request: web.Request) -> web.Response:
    try:
        body = await request.json()
    except ValueError:
        return web.json_response({"error": "Invalid JSON"}, status=400)

    try:
        params = parse_extract_request(body)
    except ValidationError as e:
        return web.json_response({"error": str(e)}, status=400)

    video_id = params["video_id"]
    log.info(
        f"Starting extraction for {video_id} "
        f"(clients: {','.join(params['personas'] or ['default'])})"
    )

    try:
        audio = await request.app[EXTRACTOR_KEY].extract_audio(**params)
    except ExtractionFailed as e:
        log.error(f"[red]✗ Extraction failed for {video_id}:[/red] {e}")
        return web.json_response(
            {"error": "Extraction failed", "detail": str(e)}, status=422
        )

    log.info(f"[green]✓ Success for {video_id}[/green] ({audio.size} bytes)")
    return web.Response(
        body=audio.data,
        status=200,
        content_type=audio.content_type,
        headers={
            "X-Video-Title": encode_header_value(audio.title),
            "X-Video-Duration": format_duration_header(audio.duration),
            "X-Video-Author": encode_header_value(audio.author),
            "X-Audio-Mime-Type": audio.mime_type,
            "X-Video-Thumbnail": audio.thumbnail,
        },
    )


async def _register(coordinator: CoordinatorClient, base_url: str) -> None:
    try:
        await coordinator.register(base_url)
    except (RegistrationError, aiohttp.ClientError, asyncio.TimeoutError) as e:
        log.error(
            f"[red]Registration failed:[/red] {e}. "
            "Continuing anyway, the service is still running locally."
        )
        return
    coordinator.start_heartbeat(base_url)


def _coordinator_context(config: NodeConfig):
    async def coordinator_ctx(app: web.Application) -> AsyncIterator[None]:
        coordinator = CoordinatorClient(config)
        task = asyncio.create_task(_register(coordinator, config.base_url))
        yield
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        await coordinator.close()

    return coordinator_ctx


async def _close_shared_sessions(app: web.Application) -> None:
    await close_session()
    await close_connection_pool()


def create_app(
    config: NodeConfig,
    extractor: Optional[AudioExtractor] = None,
    register: bool = False,
) -> web.Application:
    """
    Builds the node's web application.

    Args:
        config: The validated node configuration.
        extractor: The extraction pipeline; one is built for the node type if omitted.
        register: Register with the coordinator and send heartbeats while running.
    """
    app = web.Application()
    app[CONFIG_KEY] = config
    app[EXTRACTOR_KEY] = extractor or AudioExtractor(node_type=config.node_type)

    app.router.add_get("/health", health)
    app.router.add_post("/extract-audio", extract_audio)

    if register:
        if config.base_url:
            app.cleanup_ctx.append(_coordinator_context(config))
        else:
            log.warning(
                "[yellow]No public base URL configured, skipping coordinator "
                "registration.[/yellow]"
            )

    app.on_cleanup.append(_close_shared_sessions)
    return app


def run_server(config: NodeConfig, register: bool = True) -> None:
    """Runs the node's HTTP server until interrupted."""
    log.info(
        f"Starting on {config.host}:{config.port} "
        f"({config.node_name}, {config.node_type})"
    )
    web.run_app(
        create_app(config, register=register),
        host=config.host,
        port=config.port,
        print=None,
    )
