import asyncio
from urllib.parse import unquote

from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from extraction_node.exceptions import ExtractionFailed
from extraction_node.models.config import NodeConfig
from extraction_node.models.media import ExtractedAudio
from extraction_node.server import app as app_module
from extraction_node.server.app import (
    _coordinator_context,
    create_app,
    encode_header_value,
    format_duration_header,
)

VIDEO_ID = "dQw4w9WgXcQ"


class FakeExtractor:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def extract_audio(self, video_id, po_token=None, visitor_data=None, personas=None):
        self.calls.append((video_id, po_token, visitor_data, personas))
        if self.error:
            raise self.error
        return self.result


def _config(**overrides):
    return NodeConfig(node_name="test-node", node_type="residential", region="eu", **overrides)


def _request(app, method, path, **kwargs):
    async def run():
        async with TestClient(TestServer(app)) as client:
            response = await client.request(method, path, **kwargs)
            return response.status, response.headers, await response.read()

    return asyncio.run(run())


def test_health_reports_identity() -> None:
    status, _, body = _request(create_app(_config(), FakeExtractor()), "GET", "/health")

    assert status == 200
    assert b'"status": "ok"' in body
    assert b'"name": "test-node"' in body


def test_malformed_json_is_rejected() -> None:
    extractor = FakeExtractor()

    status, _, body = _request(
        create_app(_config(), extractor), "POST", "/extract-audio", data="{not json"
    )

    assert status == 400
    assert b"Invalid JSON" in body
    assert extractor.calls == []


def test_invalid_video_id_is_rejected() -> None:
    extractor = FakeExtractor()

    status, _, body = _request(
        create_app(_config(), extractor), "POST", "/extract-audio", json={"videoId": "short"}
    )

    assert status == 400
    assert b"Invalid video ID" in body
    assert extractor.calls == []


def test_successful_extraction_returns_audio_and_metadata_headers() -> None:
    audio = ExtractedAudio(
        data=b"\x1aE\xdf\xa3audio",
        title="Déjà vu & friends",
        duration=212,
        author="Artist",
        thumbnail="https://i.ytimg.com/vi/x/hq.jpg",
        mime_type='audio/webm; codecs="opus"',
        source="WEB",
    )
    extractor = FakeExtractor(result=audio)

    status, headers, body = _request(
        create_app(_config(), extractor),
        "POST",
        "/extract-audio",
        json={"videoId": VIDEO_ID, "poToken": "tok", "clients": ["WEB", "ANDROID"]},
    )

    assert status == 200
    assert body == audio.data
    assert headers["Content-Type"].startswith("audio/webm")
    assert unquote(headers["X-Video-Title"]) == "Déjà vu & friends"
    assert headers["X-Video-Duration"] == "212"
    assert headers["X-Video-Author"] == "Artist"
    assert headers["X-Audio-Mime-Type"] == 'audio/webm; codecs="opus"'
    assert headers["X-Video-Thumbnail"] == "https://i.ytimg.com/vi/x/hq.jpg"
    assert extractor.calls == [(VIDEO_ID, "tok", None, ["WEB", "ANDROID"])]


def test_failed_extraction_returns_422_with_detail() -> None:
    extractor = FakeExtractor(
        error=ExtractionFailed(f"TV_EMBEDDED failed for {VIDEO_ID}: UNPLAYABLE")
    )

    status, _, body = _request(
        create_app(_config(), extractor), "POST", "/extract-audio", json={"videoId": VIDEO_ID}
    )

    assert status == 422
    assert b'"error": "Extraction failed"' in body
    assert b"TV_EMBEDDED failed" in body


def test_header_encoding_matches_uri_component_rules() -> None:
    assert encode_header_value("a b/c") == "a%20b%2Fc"
    assert encode_header_value("(it's)!") == "(it's)!"


def test_app_registers_with_coordinator_on_startup() -> None:
    registrations = []
    heartbeats = []

    async def register(request):
        registrations.append(await request.json())
        return web.json_response({"nodeId": "node-1"})

    async def heartbeat(request):
        heartbeats.append(await request.json())
        return web.json_response({"ok": True})

    coordinator = web.Application()
    coordinator.router.add_post("/api/nodes/register", register)
    coordinator.router.add_post("/api/nodes/heartbeat", heartbeat)

    async def run():
        async with TestServer(coordinator) as coordinator_server:
            config = _config(
                coordinator_url=str(coordinator_server.make_url("/")),
                base_url="https://node.example",
            )
            app = create_app(config, FakeExtractor(), register=True)
            async with TestClient(TestServer(app)):
                for _ in range(100):
                    if heartbeats:
                        break
                    await asyncio.sleep(0.02)

    asyncio.run(run())

    assert registrations[0]["baseUrl"] == "https://node.example"
    assert registrations[0]["name"] == "test-node"
    assert heartbeats[0] == {"nodeId": "node-1", "baseUrl": "https://node.example"}


def test_duration_header_avoids_exponent_notation() -> None:
    assert format_duration_header(212) == "212"
    assert format_duration_header(1234567.0) == "1234567"
    assert format_duration_header(212.5) == "212.5"


def test_shutdown_waits_for_registration_before_closing_coordinator(monkeypatch) -> None:
    events = []

    class FakeCoordinator:
        def __init__(self, config):
            self.config = config

        async def close(self):
            events.append("closed")

    async def slow_register(coordinator, base_url):
        try:
            await asyncio.sleep(60)
        except asyncio.CancelledError:
            events.append("cancelled")
            raise

    monkeypatch.setattr(app_module, "CoordinatorClient", FakeCoordinator)
    monkeypatch.setattr(app_module, "_register", slow_register)

    async def run():
        ctx = _coordinator_context(_config(base_url="https://node.example"))(web.Application())
        await ctx.__anext__()
        await asyncio.sleep(0)
        try:
            await ctx.__anext__()
        except StopAsyncIteration:
            pass

    asyncio.run(run())

    assert events == ["cancelled", "closed"]
