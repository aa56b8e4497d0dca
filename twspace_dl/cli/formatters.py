"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from twspace_dl.models.config import DownloaderConfig
from twspace_dl.models.metadata import TEMPLATE_FIELDS
from twspace_dl.models.stats import DownloadStats, OutcomeStatus
from twspace_dl.utils.formatting import format_duration


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "CredentialError": [
            "• Twitter did not hand out a guest token.",
            "• Check your internet connection and try again in a few minutes.",
        ],
        "ResolutionError": [
            "• The Space may be private, deleted, or not started yet.",
            "• Twitter may have changed its API. Run with -v for details.",
        ],
        "BroadcastEndedError": [
            "• The host did not enable recording, so there is nothing to download.",
        ],
        "ExtensionAbort": [
            "• A plugin stopped the download. Check its block list or rules.",
        ],
        "FFmpegNotFoundError": [
            "• Install FFmpeg and make sure it is on your PATH.",
            "• Or point to it with --ffmpeg /path/to/ffmpeg.",
        ],
        "JobFailedError": [
            "• Run with --show-ffmpeg-output to see what FFmpeg reported.",
            "• Drop --fail-fast to let the remaining jobs run anyway.",
        ],
        "ConfigurationError": [
            "• Check the values in your configuration file.",
            "• Run `twspace-dl init --force` to write a fresh one.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -v for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("What to try", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]twspace-dl could not continue[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration."""
    console = Console()
    content = "\n".join(f"{key} = {value}" for key, value in config_data.items())
    console.print(
        Panel(
            escape(content),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: DownloaderConfig):
    """Displays a summary of the current settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("Filename Template:", f"[dim]{escape(config.template)}[/dim]")
    table.add_row("Save Directory:", escape(config.save_dir))
    table.add_row("FFmpeg:", escape(config.ffmpeg_path or "ffmpeg (from PATH)"))
    table.add_row("Max Workers:", str(config.max_workers))
    table.add_row(
        "Keep Recorded Part:", "✓ Enabled" if config.keep_recorded else "✗ Disabled"
    )
    table.add_row("Fail Fast:", "✓ Enabled" if config.fail_fast else "✗ Disabled")
    table.add_row(
        "Guest Token Retries:",
        f"{config.guest_token_attempts} × {config.guest_token_retry_delay:g}s",
    )

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_summary_panel(stats: DownloadStats):
    """Displays the final summary of the download run."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=22)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row("✓ Downloaded:", f"[bold green]{stats.downloaded}[/bold green]")
    if stats.skipped:
        stats_table.add_row("○ Already Downloaded:", f"[yellow]{stats.skipped}[/yellow]")
    if stats.ended:
        stats_table.add_row("⚠ Ended, No Replay:", f"[yellow]{stats.ended}[/yellow]")
    if stats.failed:
        stats_table.add_row("✗ Failed:", f"[bold red]{stats.failed}[/bold red]")
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(stats.elapsed)}[/blue]")

    problems = [
        outcome
        for outcome in stats.outcomes
        if outcome.status in (OutcomeStatus.FAILED, OutcomeStatus.VETOED)
    ]
    if problems:
        stats_table.add_row("", "")
        for outcome in problems:
            stats_table.add_row(
                f"[red]{outcome.status.value}[/red]",
                f"{escape(outcome.source)} [dim]{escape(outcome.reason)}[/dim]",
            )

    border_color = "green" if not stats.failed else "yellow"
    console.print()
    console.print(
        Panel(
            stats_table,
            title="🎙 [bold]Download Complete![/bold]",
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    console.print()


def print_template_help():
    """Displays a help panel for filename templates."""
    console = Console()

    ph_table = Table(
        box=box.ROUNDED,
        title="[bold]Filename Template Placeholders[/bold]",
        title_style="",
    )
    ph_table.add_column("Placeholder", style="bold magenta", no_wrap=True)
    ph_table.add_column("Description")

    descriptions = {
        "title": "Title of the Space.",
        "created_at": "Creation time, in milliseconds since the epoch.",
        "ended_at": "End time, in milliseconds since the epoch.",
        "rest_id": "The Space id.",
        "started_at": "Start time, in milliseconds since the epoch.",
        "total_participated": "Number of listeners who took part.",
        "total_replay_watched": "Number of replay plays.",
        "updated_at": "Last update time, in milliseconds since the epoch.",
    }
    for field in TEMPLATE_FIELDS:
        ph_table.add_row(escape(f"%{{{field}}}"), descriptions[field])

    example = Text.from_markup(
        "[bold]Example:[/bold] "
        + escape("space-%{title}-%{rest_id}")
        + "  →  space-Hello-1OyJADqBEgDGb\n"
        "Unknown placeholders are replaced with nothing. The extension "
        "(.m4a) is added automatically."
    )

    console.print(ph_table)
    console.print(Panel(example, border_style="cyan", padding=(1, 2)))
