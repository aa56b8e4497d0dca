"""
Main entry point for the twspace-dl application.
Runs the Typer app and turns uncaught errors into exit codes.
"""

import asyncio
import logging
import sys

import typer
from rich.console import Console

from twspace_dl.cli.app import app
from twspace_dl.cli.formatters import format_error_with_suggestions
from twspace_dl.exceptions import TwspaceError


def main() -> None:
    """Main entry point function."""
    log = logging.getLogger("twspace_dl")
    console = Console()

    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print("\n[yellow]⚠️  Download cancelled by user.[/yellow]")
        sys.exit(130)
    except TwspaceError as e:
        console.print(f"\n{format_error_with_suggestions(e)}")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n{format_error_with_suggestions(e, {'type': 'Unexpected'})}")
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
