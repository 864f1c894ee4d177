"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from soaper_dl import __version__
from soaper_dl.api.client import SoaperClient
from soaper_dl.core.orchestrator import RetrievalOrchestrator
from soaper_dl.core.session import TitleSession
from soaper_dl.exceptions import SoaperDlError
from soaper_dl.models.media import RetrievalMode
from soaper_dl.models.stats import RetrievalStats
from soaper_dl.storage.config_manager import ConfigManager
from soaper_dl.storage.search_index import SearchIndex
from soaper_dl.utils.path import normalize_page_path
from soaper_dl.web.scraper import Episode, SearchResult, SoaperScraper

from .formatters import (
    format_error_with_suggestions,
    print_config,
    print_episode_table,
    print_links,
    print_search_results,
    print_summary_panel,
)
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="WARNING",
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
log = logging.getLogger("soaper_dl")
log.setLevel("INFO")

app = typer.Typer(
    name="soaper-dl",
    help=(
        "Download movies and TV episodes from soaper. Use 'soaper-dl"
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
    return base_dir.expanduser() / "soaper-dl"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-v for debug, -vv for library logs too).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the effective configuration."
    ),
):
    """Soaper Downloader CLI"""
    if version:
        console.print(f"[bold]soaper-dl[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    if verbose >= 1:
        log.setLevel("DEBUG")
    if verbose >= 2:
        logging.getLogger().setLevel("DEBUG")

    if show_config:
        try:
            config = ConfigManager(CONFIG_FILE).load_config()
        except SoaperDlError as e:
            console.print(format_error_with_suggestions(e))
            raise typer.Exit(code=1) from e
        print_config(CONFIG_FILE, config)
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing config without asking."
    ),
):
    """Write a configuration file with the default settings."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    ConfigManager(CONFIG_FILE).save_new_config()
    console.print(f"[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Ready to download! Try: [cyan]soaper-dl download -n <name>[/cyan]")


@app.command()
def search(
    name: str = typer.Argument(..., help="Movie or TV series name to look up."),
):
    """Search the site and remember the results for later downloads."""

    async def _search_async() -> list[SearchResult]:
        config = ConfigManager(CONFIG_FILE).load_config()
        async with SoaperClient(config) as client:
            return await SoaperScraper(client).search(name)

    try:
        results = asyncio.run(_search_async())
    except SoaperDlError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e

    SearchIndex(CONFIG_DIR).save(results)
    print_search_results(results, console)


def _choose_result(results: list[SearchResult]) -> SearchResult:
    """Picks one search result, asking only when there is a choice to make."""
    if len(results) == 1:
        return results[0]
    print_search_results(results, console)
    while True:
        choice = typer.prompt("Which one? Enter a number", type=int)
        if 1 <= choice <= len(results):
            return results[choice - 1]
        console.print(f"[red]✗ Choose a number between 1 and {len(results)}.[/red]")


def _resolve_mode(link_only: bool, subtitle_only: bool) -> RetrievalMode:
    # With both flags only the subtitle links are listed.
    if link_only:
        return RetrievalMode.LINK_ONLY
    if subtitle_only:
        return RetrievalMode.SUBTITLE_ONLY
    return RetrievalMode.FULL


@app.command(name="download")
def download_command(
    name: str | None = typer.Option(
        None, "-n", "--name", help="Movie or TV series name to search for."
    ),
    path: str | None = typer.Option(
        None,
        "-p",
        "--path",
        help="Page path or URL, e.g. '/tv_abc.html' (skips the search).",
    ),
    episodes: str | None = typer.Option(
        None,
        "-e",
        "--episodes",
        help="Episodes to fetch, e.g. '1.1', '1.2,1.4-1.6' or '2.3-5'.",
    ),
    link_only: bool = typer.Option(
        False,
        "-l",
        "--link-only",
        help="Only print the stream links (with -s, only the subtitle links).",
    ),
    subtitle_only: bool = typer.Option(
        False, "-s", "--subtitle-only", help="Only download the subtitles."
    ),
    output_dir: Path | None = typer.Option(  # noqa: B008
        None, "-o", "--output-dir", help="Directory the media folders are created in."
    ),
    workers: int | None = typer.Option(
        None, "-w", "--workers", help="Number of simultaneous segment downloads."
    ),
    lang: str | None = typer.Option(
        None, "--lang", help="Subtitle language code (default 'en')."
    ),
):
    """Download a movie or TV episodes."""
    mode = _resolve_mode(link_only, subtitle_only)

    page_path = None
    if path:
        page_path = normalize_page_path(path)
        if page_path is None:
            console.print(f"[red]✗ Not a movie or series page: '{path}'[/red]")
            raise typer.Exit(code=1)
    elif not name:
        console.print(
            "[red]✗ Nothing to download.[/red] "
            "Use: [cyan]soaper-dl download -n <name>[/cyan] or [cyan]-p <path>[/cyan]"
        )
        raise typer.Exit(code=1)

    cli_options = {
        key: value
        for key, value in {
            "output_dir": str(output_dir) if output_dir else None,
            "max_workers": workers,
            "subtitle_lang": lang,
        }.items()
        if value is not None
    }

    async def _download_async():
        stats = RetrievalStats()
        progress_stats = None
        outcomes = []

        config = ConfigManager(CONFIG_FILE).load_config(cli_options)
        search_index = SearchIndex(CONFIG_DIR)

        async with SoaperClient(config) as client:
            scraper = SoaperScraper(client)
            target = page_path
            if target is None:
                results = await scraper.search(name)
                search_index.save(results)
                target = _choose_result(results).path

            async with ProgressManager(
                console=console, enabled=mode is RetrievalMode.FULL
            ) as progress_manager:

                def prompt_episodes(available: list[Episode]) -> str:
                    with progress_manager.paused():
                        print_episode_table(available, console)
                        return typer.prompt("Which episode(s) to download")

                orchestrator = RetrievalOrchestrator(
                    config, client, progress_manager=progress_manager
                )
                session = TitleSession(
                    config, orchestrator, scraper, search_index, stats=stats
                )
                outcomes = await session.run(
                    target, mode, episode_expr=episodes, prompt=prompt_episodes
                )
                progress_stats = progress_manager.get_statistics()

        if mode is RetrievalMode.LINK_ONLY:
            print_links(outcomes, console, subtitles_only=subtitle_only)
        print_summary_panel(stats, progress_stats)
        return stats

    try:
        stats = asyncio.run(_download_async())
    except SoaperDlError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e

    if stats.jobs_failed:
        raise typer.Exit(code=1)
