"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from extraction_node.models.config import NodeConfig
from extraction_node.models.media import ExtractedAudio
from extraction_node.utils.formatting import format_duration, format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ExtractionFailed": [
            "• Every persona and the yt-dlp fallback failed for this video.",
            "• The video may be private, age-restricted or region-locked.",
            "• Supply a fresh --po-token and --visitor-data for the WEB persona.",
        ],
        "ConfigurationError": [
            "• Check the node's environment variables (PORT, NODE_TYPE, ...).",
            "• Run `extraction-node config` to see the effective settings.",
        ],
        "LegacyExtractionFailed": [
            "• Make sure `yt-dlp` is installed and on your PATH.",
            "• Update yt-dlp, the platform changes frequently.",
        ],
        "RegistrationError": [
            "• The coordinator rejected this node.",
            "• Verify COORDINATOR_URL and BASE_URL.",
        ],
        "ClientResponseError": [
            "• A network connection issue occurred.",
            "• The upstream platform might be temporarily unavailable.",
            "• Please try again in a few minutes.",
        ],
        "TimeoutError": [
            "• A request timed out, which may indicate network throttling.",
            "• Check your internet connection.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config: NodeConfig):
    """Displays the effective node configuration."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("Node Name:", config.node_name)
    table.add_row("Node Type:", f"[green]{config.node_type}[/green]")
    table.add_row("Region:", config.region or "[dim]-[/dim]")
    table.add_row("Listen:", f"{config.host}:{config.port}")
    table.add_row("Coordinator:", f"[dim]{config.coordinator_url}[/dim]")
    table.add_row("Public URL:", config.base_url or "[dim]not set[/dim]")
    table.add_row(
        "Bandwidth Cap:",
        f"{config.bandwidth_limit_gb} GB" if config.bandwidth_limit_gb else "✗ None",
    )
    table.add_row(
        "Persona Order:", " → ".join(p.value for p in config.default_personas)
    )

    console.print(
        Panel(table, title="[bold cyan]Node Configuration[/bold cyan]", border_style="cyan")
    )


def print_audio_summary(audio: ExtractedAudio, output_path: Path):
    """Displays a summary of an extracted audio track."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    table.add_row("Title:", audio.title)
    table.add_row("Author:", audio.author)
    table.add_row("Duration:", format_duration(audio.duration))
    table.add_row("Format:", audio.mime_type)
    table.add_row("Size:", format_size(audio.size))
    table.add_row("Source:", audio.source or "unknown")
    table.add_row("Saved To:", f"[dim]{output_path}[/dim]")

    console.print(
        Panel(
            table,
            title="[bold green]✓ Audio Extracted[/bold green]",
            border_style="green",
            expand=False,
        )
    )
