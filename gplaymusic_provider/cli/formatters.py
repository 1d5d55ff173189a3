"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any, Iterable

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from gplaymusic_provider.models.config import QUALITY_MAP, SECRET_KEYS, ProviderConfig
from gplaymusic_provider.models.track import Song
from gplaymusic_provider.utils.formatting import format_duration, mask_secret


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "AuthenticationError": [
            "• Verify your username, password and device id in the config file.",
            "• Use an app password if two-factor authentication is enabled.",
            "• Token requests are limited to one per minute. Wait and retry.",
        ],
        "InitializationError": [
            "• Check the credentials with `gplaymusic-provider validate`.",
            "• Make sure the song directory is writable.",
            "• Check that the fallback song id still exists in the catalog.",
        ],
        "NoSuchTrackError": [
            "• Catalog track ids start with 'T'.",
            "• The track may not be available in your region.",
        ],
        "SongLoadError": [
            "• A network connection issue occurred during the download.",
            "• Check the free space of the song directory.",
            "• Try a lower quality with the -q flag.",
        ],
        "ConfigurationError": [
            "• Run `gplaymusic-provider init` to create a fresh config file.",
        ],
        "ClientResponseError": [
            "• A network connection issue occurred.",
            "• The catalog API might be temporarily unavailable.",
            "• Please try again in a few minutes.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration, hiding sensitive data."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        if key in SECRET_KEYS:
            value = mask_secret(str(value)) or "[dim](empty)[/dim]"
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: ProviderConfig):
    """Displays a summary of the current settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    quality_info = QUALITY_MAP[config.quality]

    table.add_row("Account:", f"[green]{config.username}[/green]")
    table.add_row("Saved Token:", "✓ Present" if config.token else "✗ None")
    table.add_row(
        "Quality:", f"[{quality_info['color']}]{quality_info['name']}[/]"
    )
    table.add_row("Cache Time:", f"{config.cache_time} min")
    table.add_row("Song Directory:", f"[dim]{config.songs_path}[/dim]")
    table.add_row(
        "Purge On Close:", "✓ Enabled" if config.purge_on_close else "✗ Disabled"
    )
    table.add_row("Fallback Song:", config.fallback_song_id)
    table.add_row("Last Seed:", config.base_song_id or "[dim](none)[/dim]")

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_songs_table(songs: Iterable[Song], title: str, offset: int = 0):
    """Displays songs as a numbered table."""
    console = Console()
    table = Table(title=title)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Artist")
    table.add_column("Length", justify="right", style="green")
    table.add_column("ID", style="dim")

    rows = 0
    for i, song in enumerate(songs, offset + 1):
        table.add_row(
            str(i),
            song.title,
            song.description,
            format_duration(song.duration),
            song.id,
        )
        rows += 1

    if rows == 0:
        console.print("[yellow]No songs found.[/yellow]")
        return
    console.print(table)
