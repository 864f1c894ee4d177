"""
Drives the retrieval of one title: a movie, or a selection of series episodes.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from rich.markup import escape

from soaper_dl.exceptions import ScrapeError, SelectionError
from soaper_dl.models.config import SoaperConfig
from soaper_dl.models.media import MediaReference, RetrievalMode, RetrievalResult
from soaper_dl.models.stats import RetrievalStats
from soaper_dl.storage.search_index import SearchIndex
from soaper_dl.utils.path import create_dir, media_dir_name, media_output_path
from soaper_dl.utils.selection import parse_episode_expr
from soaper_dl.web.scraper import Episode, SoaperScraper

from .orchestrator import RetrievalOrchestrator

log = logging.getLogger(__name__)

# Asks the user which episodes to fetch; returns a selection expression.
EpisodePrompt = Callable[[list[Episode]], str]


@dataclass
class JobOutcome:
    """A finished job together with the label it is reported under."""

    label: str
    result: RetrievalResult


class TitleSession:
    """
    Resolves a title's name and episodes, then runs one job per item in order.
    """

    def __init__(
        self,
        config: SoaperConfig,
        orchestrator: RetrievalOrchestrator,
        scraper: SoaperScraper,
        search_index: SearchIndex,
        stats: Optional[RetrievalStats] = None,
    ):
        self.config = config
        self.orchestrator = orchestrator
        self.scraper = scraper
        self.search_index = search_index
        self.stats = stats or RetrievalStats()

    async def resolve_media_name(self, path: str) -> str:
        """Title from the last search if the path was in it, else from the page."""
        if title := self.search_index.title_for(path):
            return title
        return await self.scraper.fetch_media_name(path)

    async def run(
        self,
        path: str,
        mode: RetrievalMode = RetrievalMode.FULL,
        episode_expr: Optional[str] = None,
        prompt: Optional[EpisodePrompt] = None,
    ) -> list[JobOutcome]:
        """
        Retrieves a movie, or the selected episodes of a series.

        Raises:
            ScrapeError: If the title page or episode list cannot be read.
            SelectionError: If the selection is invalid or names unknown episodes.
        """
        name = await self.resolve_media_name(path)
        output_dir = Path(self.config.output_dir)
        if mode is not RetrievalMode.LINK_ONLY:
            create_dir(output_dir / media_dir_name(name))
        log.info(f"[bold cyan]▶ {escape(name)}[/bold cyan] [dim]{escape(path)}[/dim]")

        title_reference = MediaReference.from_path(path)
        if title_reference.is_movie:
            output_path = media_output_path(output_dir, name, name)
            return [await self._run_job(name, title_reference, output_path, mode)]

        episodes = await self.scraper.fetch_episode_list(path)
        selected = self.select_episodes(episodes, episode_expr, prompt)

        outcomes = []
        for episode in selected:
            output_path = media_output_path(output_dir, name, episode.number)
            outcomes.append(
                await self._run_job(
                    f"{name} {episode.number}",
                    MediaReference(episode.path, is_movie=False),
                    output_path,
                    mode,
                )
            )
        return outcomes

    def select_episodes(
        self,
        episodes: list[Episode],
        episode_expr: Optional[str],
        prompt: Optional[EpisodePrompt],
    ) -> list[Episode]:
        """Expands the selection and maps it onto the episode list."""
        if not episode_expr:
            if prompt is None:
                raise SelectionError("No episodes selected.")
            episode_expr = prompt(episodes)

        by_number = {episode.number: episode for episode in episodes}
        numbers = parse_episode_expr(episode_expr)
        unknown = [n for n in numbers if n not in by_number]
        if unknown:
            raise SelectionError(f"Episode not found: {', '.join(unknown)}")
        return [by_number[n] for n in numbers]

    async def _run_job(
        self,
        label: str,
        reference: MediaReference,
        output_path: Path,
        mode: RetrievalMode,
    ) -> JobOutcome:
        if "/" not in reference.page_identifier:
            raise ScrapeError(f"Wrong download link for {label}: '{reference.page_identifier}'")
        result = await self.orchestrator.retrieve(reference, output_path, mode)
        self.stats.record_result(label, result)
        return JobOutcome(label=label, result=result)
