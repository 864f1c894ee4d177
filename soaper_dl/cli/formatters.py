"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from soaper_dl.core.session import JobOutcome
from soaper_dl.models.config import SoaperConfig
from soaper_dl.models.stats import RetrievalStats
from soaper_dl.utils.formatting import format_duration, format_size
from soaper_dl.web.scraper import Episode, SearchResult


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ResolutionError": [
            "• The page path may be wrong or the title may have been removed.",
            "• The site may have changed its resolver endpoint.",
            "• Check that the host in your configuration is reachable.",
        ],
        "ManifestError": [
            "• The stream has no playable segments; try the movie/episode page again later.",
            "• Use -l to print the manifest link and inspect it.",
        ],
        "FetchError": [
            "• Some segments could not be downloaded. Run the command again.",
            "• Reduce `--workers` if the CDN is throttling you.",
        ],
        "AssemblyError": [
            "• Make sure ffmpeg is installed and on your PATH.",
            "• Set `ffmpeg_path` in the configuration file to its full path.",
        ],
        "ScrapeError": [
            "• Check the spelling of the title or the page path.",
            "• Run `soaper-dl search <name>` to list matching pages.",
        ],
        "SelectionError": [
            "• Episodes are written season.episode, e.g. 1.2",
            "• Ranges stay inside one season: 1.2-1.5 or 1.2-5",
            "• Separate several selections with commas: 1.1,2.3-4",
        ],
        "ConfigurationError": [
            "• Fix the value named above in your config file.",
            "• Run `soaper-dl init --force` to write a fresh default config.",
        ],
        "ClientResponseError": [
            "• A network connection issue occurred.",
            "• The site might be temporarily unavailable.",
            "• Please try again in a few minutes.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )
    retryable = getattr(error, "retryable", None)
    if retryable:
        suggestions = suggestions + ["• This failure is transient; retrying may succeed."]

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


def print_search_results(results: list[SearchResult], console: Console | None = None):
    """Lists search results with a number to pick them by."""
    console = console or Console()
    table = Table(title="Search Results")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Info", style="yellow")
    table.add_column("Path", style="dim")
    for i, result in enumerate(results, 1):
        table.add_row(str(i), escape(result.title), escape(result.label), result.path)
    console.print(table)


def print_episode_table(episodes: list[Episode], console: Console | None = None):
    console = console or Console()
    table = Table(title="Episodes", show_lines=False)
    table.add_column("No.", style="bold cyan", justify="right")
    table.add_column("Title")
    for episode in episodes:
        table.add_row(episode.number, escape(episode.title))
    console.print(table)


def print_links(
    outcomes: list[JobOutcome],
    console: Console | None = None,
    subtitles_only: bool = False,
):
    """
    Prints the resolved links of link-only jobs.

    URLs are added as plain Text so escaped subtitle paths are shown verbatim.
    """
    console = console or Console()
    table = Table(show_header=True, box=None, padding=(0, 2))
    table.add_column("Item", style="bold cyan")
    table.add_column("Link", overflow="fold")
    for outcome in outcomes:
        result = outcome.result
        label = Text(outcome.label)
        if not result.ok or result.playback is None:
            table.add_row(label, Text("✗ unresolved", style="red"))
            continue
        subtitle_url = result.playback.subtitle_url
        if subtitles_only:
            if subtitle_url:
                table.add_row(label, Text(subtitle_url))
            else:
                table.add_row(label, Text("no subtitle in this language", style="yellow"))
            continue
        table.add_row(label, Text(result.playback.manifest_url))
        if subtitle_url:
            table.add_row("", Text(subtitle_url, style="dim"))
    console.print(Panel(table, title="[bold]🔗 Links[/bold]", border_style="cyan"))


def print_config(config_path: Path, config: SoaperConfig):
    """Displays the effective configuration."""
    console = Console()
    content = "\n".join(
        f"{key} = {getattr(config, key)}" for key in sorted(SoaperConfig.get_ini_keys())
    )
    console.print(
        Panel(
            content,
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_summary_panel(stats: RetrievalStats, progress_stats: dict | None = None):
    """Displays the final summary of the session."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row("✓ Completed:", f"[bold green]{stats.jobs_completed}[/bold green]")
    if stats.links_listed:
        stats_table.add_row("🔗 Links Listed:", f"[cyan]{stats.links_listed}[/cyan]")
    if stats.subtitles_downloaded:
        stats_table.add_row("Subtitles:", f"[cyan]{stats.subtitles_downloaded}[/cyan]")
    if stats.jobs_failed:
        stats_table.add_row("✗ Failed:", f"[bold red]{stats.jobs_failed}[/bold red]")
        for title in stats.failed_titles:
            stats_table.add_row("", f"[red]{escape(title)}[/red]")

    stats_table.add_row("", "")
    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(stats.total_size_downloaded)}[/cyan]"
    )
    elapsed = stats.elapsed
    avg_speed = stats.total_size_downloaded / elapsed if elapsed > 0 else 0
    stats_table.add_row("Avg. Speed:", f"[magenta]{format_size(int(avg_speed))}/s[/magenta]")
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(elapsed)}[/blue]")

    if progress_stats and (
        progress_stats.get("segments_completed") or progress_stats.get("segments_failed")
    ):
        stats_table.add_row(
            "Segments:",
            f"[green]{progress_stats.get('segments_completed', 0)}[/green] ok / "
            f"[red]{progress_stats.get('segments_failed', 0)}[/red] failed",
        )

    border = "green" if stats.jobs_failed == 0 else "yellow"
    console.print(
        Panel(
            stats_table,
            title="[bold]📊 Session Summary[/bold]",
            border_style=border,
            expand=False,
        )
    )
