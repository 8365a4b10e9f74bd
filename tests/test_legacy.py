import asyncio
import json
from pathlib import Path

import pytest

from extraction_node.core.legacy import (
    DOWNLOAD_TIMEOUT,
    METADATA_TIMEOUT,
    LegacyExtractor,
    extract_with_external_tool,
    mime_type_for,
)
from extraction_node.exceptions import LegacyExtractionFailed, ProcessFailedError

VIDEO_ID = "dQw4w9WgXcQ"


class FakeRunner:
    """Plays yt-dlp: answers metadata dumps and writes the requested file."""

    def __init__(self, meta=None, ext="m4a", data=b"legacy-audio", download_error=None):
        self.meta = {"title": "Song", "duration": 61, "uploader": "Artist"} if meta is None else meta
        self.ext = ext
        self.data = data
        self.download_error = download_error
        self.calls = []

    async def __call__(self, command, args, timeout, max_output):
        self.calls.append((command, list(args), timeout))
        if "--dump-json" in args:
            return json.dumps(self.meta).encode()

        template = args[args.index("-o") + 1]
        if self.ext:
            target = Path(template.replace("%(ext)s", self.ext))
            target.write_bytes(self.data)
            Path(f"{target}.part").write_bytes(b"partial")
        if self.download_error:
            raise self.download_error
        return b""


def _extract(runner, tmp_path):
    extractor = LegacyExtractor(temp_dir=tmp_path, runner=runner)
    return asyncio.run(extractor.extract(VIDEO_ID))


def test_extracts_audio_and_metadata(tmp_path) -> None:
    runner = FakeRunner()

    audio = _extract(runner, tmp_path)

    assert audio.data == b"legacy-audio"
    assert audio.title == "Song"
    assert audio.duration == 61
    assert audio.author == "Artist"
    assert audio.mime_type == "audio/mp4"
    assert audio.source == "legacy"
    assert [c[2] for c in runner.calls] == [METADATA_TIMEOUT, DOWNLOAD_TIMEOUT]
    assert list(tmp_path.iterdir()) == []


def test_download_targets_unique_prefix(tmp_path) -> None:
    runner = FakeRunner()

    _extract(runner, tmp_path)

    _, download_args, _ = runner.calls[1]
    assert download_args[:2] == ["-f", "bestaudio"]
    template = download_args[download_args.index("-o") + 1]
    assert template.startswith(str(tmp_path / f"extract-{VIDEO_ID}-"))
    assert download_args[-1] == f"https://www.youtube.com/watch?v={VIDEO_ID}"


def test_missing_metadata_gets_defaults(tmp_path) -> None:
    audio = _extract(FakeRunner(meta={"channel": "Channel"}, ext="opus"), tmp_path)

    assert audio.title == f"YouTube Video {VIDEO_ID}"
    assert audio.author == "Channel"
    assert audio.duration == 0
    assert audio.thumbnail == f"https://img.youtube.com/vi/{VIDEO_ID}/mqdefault.jpg"
    assert audio.mime_type == "audio/ogg"


def test_failed_download_cleans_up(tmp_path) -> None:
    runner = FakeRunner(download_error=ProcessFailedError("yt-dlp exited with code 1"))

    with pytest.raises(LegacyExtractionFailed, match="exited with code 1"):
        _extract(runner, tmp_path)

    assert list(tmp_path.iterdir()) == []


def test_no_output_file_is_a_failure(tmp_path) -> None:
    with pytest.raises(LegacyExtractionFailed, match="no audio file"):
        _extract(FakeRunner(ext=None), tmp_path)


def test_invalid_metadata_is_a_failure(tmp_path) -> None:
    runner = FakeRunner(meta=["not", "an", "object"])

    with pytest.raises(LegacyExtractionFailed, match="not a JSON object"):
        _extract(runner, tmp_path)
    assert len(runner.calls) == 1


def test_mime_type_for_extensions() -> None:
    assert mime_type_for(Path("a.webm")) == "audio/webm"
    assert mime_type_for(Path("a.M4A")) == "audio/mp4"
    assert mime_type_for(Path("a.weird")) == "audio/mpeg"


def test_extract_with_external_tool_uses_default_extractor(monkeypatch) -> None:
    seen = []

    async def fake_extract(self, video_id):
        seen.append((self.command, video_id))
        return "audio"

    monkeypatch.setattr(LegacyExtractor, "extract", fake_extract)

    assert asyncio.run(extract_with_external_tool(VIDEO_ID)) == "audio"
    assert seen == [("yt-dlp", VIDEO_ID)]
