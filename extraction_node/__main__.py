"""
Main entry point for the extraction node.
This module handles top-level setup, exception handling, and CLI invocation.
"""

import asyncio
import logging
import sys

import typer
from rich.console import Console

from extraction_node.cli.app import app
from extraction_node.cli.formatters import format_error_with_suggestions
from extraction_node.exceptions import ExtractionNodeError
from extraction_node.storage.config_manager import ConfigManager


def resolve_args(argv: list[str]) -> list[str]:
    """Fly machines boot the container without arguments and must serve."""
    if not argv and ConfigManager().is_fly:
        return ["serve"]
    return argv


def main(argv: list[str] | None = None) -> None:
    """Main entry point function."""
    args = resolve_args(sys.argv[1:] if argv is None else list(argv))
    log = logging.getLogger("extraction_node")
    console = Console()

    try:
        app(args=args)
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print("\n[yellow]⚠️  Operation cancelled by user.[/yellow]")
        sys.exit(0)
    except ExtractionNodeError as e:
        console.print(f"\n{format_error_with_suggestions(e)}")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n{format_error_with_suggestions(e, {'type': 'Unexpected'})}")
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
