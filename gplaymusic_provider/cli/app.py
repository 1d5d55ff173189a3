"""
Defines the command-line interface for the provider using Typer.
"""

import asyncio
import logging
import os
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from gplaymusic_provider import __version__
from gplaymusic_provider.core.provider import GPlayMusicProvider
from gplaymusic_provider.core.suggester import StationSuggester
from gplaymusic_provider.exceptions import GPlayMusicError
from gplaymusic_provider.models.config import DEFAULT_FALLBACK_SONG_ID, StreamQuality
from gplaymusic_provider.storage.config_manager import ConfigManager

from .formatters import (
    print_config,
    print_songs_table,
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
log = logging.getLogger("gplaymusic_provider")

app = typer.Typer(
    name="gplaymusic-provider",
    help=(
        "Search, download and get radio suggestions from Google Play Music. Use"
        " 'gplaymusic-provider <command> --help' for more info."
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
    return base_dir.expanduser() / "gplaymusic-provider"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def _parse_quality(value: str | None) -> StreamQuality | None:
    if value is None:
        return None
    try:
        return StreamQuality.from_name(value)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e


def _load_provider(cli_options: dict | None = None) -> GPlayMusicProvider:
    config_manager = ConfigManager(CONFIG_FILE)
    config = config_manager.load_config(cli_options)
    return GPlayMusicProvider(config, config_manager)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """Google Play Music Provider CLI"""
    if version:
        console.print(
            f"[bold]gplaymusic-provider[/bold] version [cyan]{__version__}[/cyan]"
        )
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("gplaymusic_provider").setLevel(log_level)

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run "
                "[cyan]gplaymusic-provider init[/cyan] first."
            )
            raise typer.Exit(code=1)
        config_manager = ConfigManager(CONFIG_FILE)
        config_manager._read()
        print_config(CONFIG_FILE, config_manager._get_config_as_dict())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    username: str = typer.Argument(..., help="Google account e-mail address."),
    password: str = typer.Argument(..., help="Account password or app password."),
    device_id: str = typer.Argument(
        ..., help="Android device id registered with the account."
    ),
    quality: str = typer.Option(
        StreamQuality.HIGH.name, "-q", "--quality", help="LOW, MEDIUM or HIGH."
    ),
    cache_time: int = typer.Option(
        60, "--cache-time", help="Minutes an unused song is kept (1-3600)."
    ),
    fallback: str = typer.Option(
        DEFAULT_FALLBACK_SONG_ID,
        "--fallback",
        help="Song suggested when the radio station has nothing to offer.",
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite existing configuration without asking."
    ),
):
    """Initialize configuration with Google Play Music credentials."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {
        "username": username,
        "password": password,
        "device_id": device_id,
        "quality": _parse_quality(quality),
        "cache_time": cache_time,
        "fallback_song_id": fallback,
    }
    config_manager = ConfigManager(CONFIG_FILE)
    try:
        config_manager.save_new_config(settings)
        config_manager.load_config()
    except GPlayMusicError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e

    console.print(
        f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]"
    )
    console.print("Ready! Try: [cyan]gplaymusic-provider search <QUERY>[/cyan]")


@app.command()
def search(
    query: str = typer.Argument(..., help="Search terms."),
    offset: int = typer.Option(0, "--offset", help="Index of the first result."),
):
    """Search the catalog for songs."""

    async def _search_async():
        provider = _load_provider()
        try:
            await provider.initialize()
            songs = await provider.search(query, offset)
        finally:
            await provider.close()
        print_songs_table(songs, f"Results for '{query}'", offset)

    _run(_search_async())


@app.command()
def lookup(track_id: str = typer.Argument(..., help="Catalog track id.")):
    """Show the song of a track id."""

    async def _lookup_async():
        provider = _load_provider()
        try:
            await provider.initialize()
            song = await provider.lookup(track_id)
        finally:
            await provider.close()
        print_songs_table([song], "Song")

    _run(_lookup_async())


@app.command()
def download(
    track_id: str = typer.Argument(..., help="Catalog track id."),
    quality: str | None = typer.Option(
        None, "-q", "--quality", help="LOW, MEDIUM or HIGH. Defaults to the config."
    ),
):
    """Download a song into the song directory."""
    stream_quality = _parse_quality(quality)

    async def _download_async():
        provider = _load_provider()
        try:
            await provider.initialize()
            song = await provider.lookup(track_id)
            console.print(f"[cyan]Downloading '{song.title}'...[/cyan]")
            path = await provider.ensure_local(song, stream_quality)
        finally:
            await provider.close()
        console.print(f"[green]✓ Saved to '{path}'[/green]")

    _run(_download_async())


@app.command()
def radio(
    count: int = typer.Option(
        10, "--count", "-n", help="Number of suggestions to show."
    ),
):
    """Show upcoming radio suggestions based on the last played song."""

    async def _radio_async():
        provider = _load_provider()
        config = provider.config
        suggester = None
        try:
            await provider.initialize()
            suggester = StationSuggester(
                provider,
                lambda: provider.api,
                config.fallback_song_id,
                config.base_song_id,
                provider.config_manager,
            )
            await suggester.initialize()
            songs = await suggester.get_next_suggestions(count)
            print_songs_table(songs, suggester.subject)
        finally:
            if suggester is not None:
                await suggester.close()
            await provider.close()

    _run(_radio_async())


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        config_manager = ConfigManager(CONFIG_FILE)
        config = config_manager.load_config()
        print_validation_table(config)
    except GPlayMusicError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e


def _run(coro) -> None:
    try:
        asyncio.run(coro)
    except GPlayMusicError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        log.debug("Full traceback:", exc_info=True)
        raise typer.Exit(code=1) from e
