"""
Defines the command-line interface for the extraction node using Typer.
"""

import asyncio
import logging
from pathlib import Path

import aiofiles
import typer
from rich.console import Console
from rich.logging import RichHandler

from extraction_node import __version__
from extraction_node.api.session import close_session
from extraction_node.core import AudioExtractor
from extraction_node.media.downloader import close_connection_pool
from extraction_node.models.media import Persona
from extraction_node.server.app import VIDEO_ID_REGEX, run_server
from extraction_node.storage.config_manager import ConfigManager
from extraction_node.utils.formatting import extension_for_mime_type

from .formatters import print_audio_summary, print_config

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("extraction_node")

app = typer.Typer(
    name="extraction-node",
    help=(
        "An audio extraction worker node. Use 'extraction-node <command> --help'"
        " for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Enable debug logging.",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
):
    """Extraction Node CLI"""
    if version:
        console.print(
            f"[bold]extraction-node[/bold] version [cyan]{__version__}[/cyan]"
        )
        raise typer.Exit()

    log_level = "INFO"
    if verbose:
        log_level = "DEBUG"
    logging.getLogger("extraction_node").setLevel(log_level)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Interface to bind."),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to listen on."),
    base_url: str | None = typer.Option(
        None, "--base-url", help="Public URL announced to the coordinator."
    ),
    register: bool = typer.Option(
        True,
        "--register/--no-register",
        help="Register with the coordinator and send heartbeats.",
    ),
):
    """Run the extraction HTTP service."""
    config = ConfigManager().load_config(
        {"host": host, "port": port, "base_url": base_url}
    )
    run_server(config, register=register)


@app.command()
def extract(
    video_id: str = typer.Argument(..., help="The 11-character video id."),
    personas: list[str] | None = typer.Option(  # noqa: B008
        None,
        "--persona",
        help=(
            "Persona to try, repeatable and tried in order "
            f"({', '.join(p.value for p in Persona)})."
        ),
    ),
    po_token: str | None = typer.Option(
        None, "--po-token", help="Proof token for the WEB persona."
    ),
    visitor_data: str | None = typer.Option(
        None, "--visitor-data", help="Visitor data the proof token was minted for."
    ),
    output: Path | None = typer.Option(  # noqa: B008
        None, "-o", "--output", help="Where to save the audio file."
    ),
):
    """Extract a video's audio track to a local file."""
    if not VIDEO_ID_REGEX.match(video_id):
        console.print(f"[red]✗ Invalid video ID:[/red] {video_id}")
        raise typer.Exit(code=1)

    config = ConfigManager().load_config()

    async def _extract_async():
        extractor = AudioExtractor(node_type=config.node_type)
        try:
            audio = await extractor.extract_audio(
                video_id, po_token, visitor_data, personas
            )
        finally:
            await close_session()
            await close_connection_pool()

        path = output or Path(
            f"{video_id}.{extension_for_mime_type(audio.mime_type)}"
        )
        async with aiofiles.open(path, "wb") as f:
            await f.write(audio.data)
        print_audio_summary(audio, path)

    asyncio.run(_extract_async())


@app.command(name="config")
def config_command():
    """Display the effective node configuration."""
    print_config(ConfigManager().load_config())
