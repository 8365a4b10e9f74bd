import pytest
from typer.testing import CliRunner

from extraction_node import __main__ as entry
from extraction_node.cli import app as cli_app
from extraction_node.models.media import ExtractedAudio
from extraction_node.utils.formatting import (
    extension_for_mime_type,
    format_duration,
    format_size,
)

runner = CliRunner()


class FakeExtractor:
    calls = []

    def __init__(self, node_type):
        self.node_type = node_type

    async def extract_audio(self, video_id, po_token, visitor_data, personas):
        FakeExtractor.calls.append((self.node_type, video_id, po_token, personas))
        return ExtractedAudio(
            data=b"OggS-audio",
            title="Song",
            duration=61,
            thumbnail="https://t",
            mime_type='audio/ogg; codecs="opus"',
            source="ANDROID",
        )


def test_config_command_shows_effective_settings(monkeypatch) -> None:
    monkeypatch.setenv("NODE_NAME", "cli-node")
    monkeypatch.delenv("FLY_APP_NAME", raising=False)

    result = runner.invoke(cli_app.app, ["config"])

    assert result.exit_code == 0
    assert "cli-node" in result.output


def test_extract_rejects_invalid_video_id() -> None:
    result = runner.invoke(cli_app.app, ["extract", "bad id"])

    assert result.exit_code == 1
    assert "Invalid video ID" in result.output


def test_extract_writes_audio_file(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("NODE_NAME", "cli-node")
    monkeypatch.setenv("NODE_TYPE", "vps")
    monkeypatch.delenv("FLY_APP_NAME", raising=False)
    monkeypatch.setattr(cli_app, "AudioExtractor", FakeExtractor)
    FakeExtractor.calls = []
    output = tmp_path / "song.ogg"

    result = runner.invoke(
        cli_app.app,
        ["extract", "dQw4w9WgXcQ", "--persona", "ANDROID", "-o", str(output)],
    )

    assert result.exit_code == 0, result.output
    assert output.read_bytes() == b"OggS-audio"
    assert FakeExtractor.calls == [("vps", "dQw4w9WgXcQ", None, ["ANDROID"])]


def test_formatting_helpers() -> None:
    assert format_size(0) == "0 B"
    assert format_size(1536) == "1.5 KB"
    assert format_duration(3725) == "1h 2m 5s"
    assert format_duration(0) == "0s"
    assert extension_for_mime_type('audio/mp4; codecs="mp4a.40.2"') == "m4a"
    assert extension_for_mime_type("application/octet-stream") == "bin"


def test_fly_machine_without_arguments_serves(monkeypatch) -> None:
    monkeypatch.setenv("FLY_APP_NAME", "extract-node")
    monkeypatch.setenv("FLY_REGION", "ams")
    monkeypatch.delenv("NODE_NAME", raising=False)
    served = []
    monkeypatch.setattr(
        cli_app,
        "run_server",
        lambda config, register=True: served.append((config.node_name, register)),
    )

    with pytest.raises(SystemExit) as exc:
        entry.main([])

    assert exc.value.code == 0
    assert served == [("fly-ams", True)]


def test_local_run_without_arguments_keeps_help(monkeypatch) -> None:
    monkeypatch.delenv("FLY_APP_NAME", raising=False)

    assert entry.resolve_args([]) == []
    assert entry.resolve_args(["config"]) == ["config"]
