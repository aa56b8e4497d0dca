"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import importlib
import logging
import os
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from twspace_dl import __version__
from twspace_dl.api.client import TwitterAPIClient
from twspace_dl.core.download_manager import DownloadManager
from twspace_dl.core.hooks import BlocklistHooks, SpaceHooks
from twspace_dl.exceptions import ConfigurationError, TwspaceError
from twspace_dl.media.ffmpeg import FFmpegRunner, find_ffmpeg
from twspace_dl.models.config import DownloaderConfig
from twspace_dl.storage.config_manager import ConfigManager

from .formatters import (
    format_error_with_suggestions,
    print_config,
    print_summary_panel,
    print_template_help,
    print_validation_table,
)

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
            show_level=False,
            markup=True,
        )
    ],
)


app = typer.Typer(
    name="twspace-dl",
    help=(
        "Download Twitter Space audio, live or from replay. Use 'twspace-dl"
        " <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "twspace-dl"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def load_hooks(plugin: str, exclude: list[str]) -> SpaceHooks | None:
    """
    Builds the extension hooks for a run.

    Args:
        plugin: 'module:attribute' naming a SpaceHooks subclass or instance.
        exclude: Space ids to block.
    """
    if plugin and exclude:
        raise ConfigurationError("--exclude cannot be combined with --plugin.")
    if exclude:
        return BlocklistHooks(exclude)
    if not plugin:
        return None

    module_name, _, attribute = plugin.partition(":")
    if not module_name or not attribute:
        raise ConfigurationError(
            f"Plugin must be given as 'module:attribute', got '{plugin}'."
        )
    try:
        target = getattr(importlib.import_module(module_name), attribute)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Cannot load plugin '{plugin}': {e}") from e

    hooks = target() if isinstance(target, type) else target
    if not isinstance(hooks, SpaceHooks):
        raise ConfigurationError(f"Plugin '{plugin}' is not a SpaceHooks.")
    return hooks


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="-v shows debug logs, -vv adds debug logs from aiohttp and asyncio.",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
    template_help: bool = typer.Option(
        False,
        "--template-help",
        help="Show the filename template placeholders and exit.",
        is_eager=True,
    ),
):
    """Twitter Space Downloader CLI"""
    if template_help:
        print_template_help()
        raise typer.Exit()

    if version:
        console.print(f"[bold]twspace-dl[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    if verbose >= 1:
        logging.getLogger("twspace_dl").setLevel("DEBUG")
    if verbose >= 2:
        logging.getLogger().setLevel("DEBUG")

    if show_config:
        config = ConfigManager(CONFIG_FILE).load_config()
        print_config(
            CONFIG_FILE,
            {key: getattr(config, key) for key in DownloaderConfig.get_ini_keys()},
        )
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration file."
    ),
):
    """Write a configuration file with default settings."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    ConfigManager(CONFIG_FILE).save_new_config({})
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Ready to download! Try: [cyan]twspace-dl download <SPACE URL>[/cyan]")


def _read_sources_from_stdin() -> list[str]:
    """Reads Space URLs or ids from stdin, one per line."""
    if sys.stdin.isatty():
        console.print(
            "[yellow]⚠️  No input detected on stdin. Please pipe URLs or redirect"
            " a file.[/yellow]"
        )
        raise typer.Exit(code=1)

    sources = [
        line.strip()
        for line in sys.stdin
        if line.strip() and not line.startswith("#")
    ]
    if not sources:
        console.print("[yellow]⚠️  No valid Spaces found in stdin.[/yellow]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ Read {len(sources)} Spaces from stdin.[/green]")
    return sources


@app.command(name="download")
def download_command(
    sources: list[str] | None = typer.Argument(  # noqa: B008
        None, help="Space URLs, Space ids, or files containing them."
    ),
    users: list[str] | None = typer.Option(  # noqa: B008
        None,
        "-u",
        "--user",
        help="Download every Space linked from this user's recent tweets.",
    ),
    template: str | None = typer.Option(
        None,
        "-o",
        "--template",
        help="Filename template. Use twspace-dl --template-help for placeholders.",
    ),
    save_dir: str | None = typer.Option(
        None, "-d", "--save-dir", help="Directory to save the audio into."
    ),
    workers: int | None = typer.Option(
        None, "-w", "--workers", help="Number of Spaces to download at once."
    ),
    show_ffmpeg_output: bool | None = typer.Option(
        None,
        "--show-ffmpeg-output/--hide-ffmpeg-output",
        help="Forward FFmpeg's own output to the terminal.",
    ),
    keep_recorded: bool | None = typer.Option(
        None,
        "--keep-recorded/--no-keep-recorded",
        help="Keep the separately recorded part after merging a live Space.",
    ),
    fail_fast: bool | None = typer.Option(
        None,
        "--fail-fast/--no-fail-fast",
        help="Stop a Space's job sequence at the first failed FFmpeg job.",
    ),
    ffmpeg_path: str | None = typer.Option(
        None, "--ffmpeg", help="Path to the FFmpeg executable."
    ),
    plugin: str | None = typer.Option(
        None, "--plugin", help="Extension hooks, as 'module:attribute'."
    ),
    exclude: list[str] | None = typer.Option(  # noqa: B008
        None, "--exclude", help="Space id to skip. Can be repeated."
    ),
    stdin: bool = typer.Option(
        False, "--stdin", help="Read Space URLs from standard input, one per line."
    ),
):
    """Download Twitter Spaces."""
    if stdin:
        sources = [*(sources or []), *_read_sources_from_stdin()]
    if not sources and not users:
        console.print(
            "[red]✗ Nothing to download.[/red] "
            "Use: [cyan]twspace-dl download <SPACE URL>[/cyan] or [cyan]--user[/cyan]"
        )
        raise typer.Exit(code=1)

    cli_options = {
        key: value
        for key, value in {
            "sources": sources,
            "usernames": users,
            "template": template,
            "save_dir": save_dir,
            "max_workers": workers,
            "show_ffmpeg_output": show_ffmpeg_output,
            "keep_recorded": keep_recorded,
            "fail_fast": fail_fast,
            "ffmpeg_path": ffmpeg_path,
            "plugin": plugin,
            "exclude": exclude,
        }.items()
        if value is not None
    }

    async def _download_async():
        config = ConfigManager(CONFIG_FILE).load_config(cli_options)
        hooks = load_hooks(config.plugin, config.exclude)
        runner = FFmpegRunner(
            find_ffmpeg(config.ffmpeg_path),
            output_callback=(
                (lambda text: console.out(text, end="", highlight=False))
                if config.show_ffmpeg_output
                else None
            ),
        )

        async with TwitterAPIClient(config.max_workers) as api_client:
            manager = DownloadManager(config, api_client, runner, hooks)
            console.print("[bold cyan]🎙 Starting download session...[/bold cyan]")
            try:
                await manager.execute_downloads()
            finally:
                print_summary_panel(manager.stats)
        return manager.stats

    try:
        stats = asyncio.run(_download_async())
    except TwspaceError as e:
        if getattr(e, "silent", False):
            raise typer.Exit(code=1) from e
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e

    if stats.failed:
        raise typer.Exit(code=1)


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        config = ConfigManager(CONFIG_FILE).load_config()
        print_validation_table(config)
    except TwspaceError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e


@app.command()
def diagnose():
    """Diagnose common configuration and connectivity issues."""
    console.print("\n[bold cyan]Running diagnostics...[/bold cyan]\n")
    issues_found = False
    config = None

    if CONFIG_FILE.is_file():
        console.print(f"[green]✓[/] Config file exists at: [dim]{CONFIG_FILE}[/dim]")
    else:
        console.print("[yellow]○[/] No config file; defaults will be used.")

    try:
        config = ConfigManager(CONFIG_FILE).load_config()
        console.print("[green]✓[/] Configuration is valid.")
    except TwspaceError as e:
        console.print(f"[red]✗ Configuration validation failed: {e}[/red]")
        issues_found = True

    try:
        ffmpeg = find_ffmpeg(config.ffmpeg_path if config else "")
        console.print(f"[green]✓[/] FFmpeg found at: [dim]{ffmpeg}[/dim]")
    except TwspaceError as e:
        console.print(f"[red]✗ {e}[/red]")
        issues_found = True

    console.print("\n[dim]Testing connectivity to Twitter...[/dim]")

    async def test_connection() -> bool:
        async with TwitterAPIClient() as client:
            try:
                await client.fetch_home_page()
            except Exception as e:
                console.print(f"[red]✗ Connection test failed: {e}[/red]")
                return False
        console.print("[green]✓[/] Successfully connected to Twitter.")
        return True

    if not asyncio.run(test_connection()):
        issues_found = True
    console.print()
    if not issues_found:
        console.print(
            "[bold green]✓ All checks passed! Your setup looks good.[/bold green]\n"
        )
    else:
        console.print(
            "[bold red]✗ Some issues were found. "
            "Please review the messages above.[/bold red]\n"
        )
        raise typer.Exit(code=1)

