"""
Scrapes Soaper pages for search results, media titles and episode lists.
"""

import asyncio
import logging
from dataclasses import dataclass
from urllib.parse import quote

import aiohttp
from bs4 import BeautifulSoup

from soaper_dl.api.client import SoaperClient
from soaper_dl.exceptions import ScrapeError
from soaper_dl.utils.formatting import clean_text

log = logging.getLogger(__name__)

SEARCH_PATH = "/search/keyword/"


@dataclass(frozen=True)
class SearchResult:
    """One card on the search results page."""

    path: str
    label: str
    title: str

    def __str__(self) -> str:
        return f"[{self.path}][{self.label}] {self.title}"


@dataclass(frozen=True)
class Episode:
    """An episode of a series, numbered 'season.episode'."""

    number: str
    title: str
    path: str


def parse_search_results(html: str) -> list[SearchResult]:
    """Extracts every `.thumbnail` card from a search page."""
    soup = BeautifulSoup(html, "html.parser")
    results = []
    for card in soup.select(".thumbnail"):
        link = card.select_one("h5 a")
        if link is None or not link.get("href"):
            continue
        label = card.select_one(".label-info")
        results.append(
            SearchResult(
                path=link["href"].strip(),
                label=clean_text(label.get_text()) if label else "",
                title=clean_text(link.get_text()),
            )
        )
    return results


def parse_media_name(html: str) -> str:
    """Returns the title shown in the first `.panel-body h4` of a media page."""
    soup = BeautifulSoup(html, "html.parser")
    heading = soup.select_one(".panel-body h4")
    return clean_text(heading.get_text()) if heading else ""


def parse_episode_list(html: str) -> list[Episode]:
    """
    Builds the episode list of a series page.

    Seasons are listed newest first, each in an `.alert-info-ex` block whose
    links are also newest first: the last block is season 1 and the last link
    in a block is episode 1.
    """
    soup = BeautifulSoup(html, "html.parser")
    episodes = []
    for season_no, block in enumerate(reversed(soup.select(".alert-info-ex")), 1):
        links = [a for a in block.select("div a") if a.get("href")]
        for episode_no, link in enumerate(reversed(links), 1):
            container = link.find_parent("div")
            title = clean_text((container or link).get_text(" "))
            episodes.append(
                Episode(
                    number=f"{season_no}.{episode_no}",
                    title=title,
                    path=link["href"].strip(),
                )
            )
    return episodes


class SoaperScraper:
    """Fetches site pages through the shared client and parses them."""

    def __init__(self, client: SoaperClient):
        self.client = client

    async def _fetch_page(self, path: str) -> str:
        try:
            return await self.client.get_text(path)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ScrapeError(f"Could not fetch page '{path}': {e}", retryable=True) from e

    async def search(self, name: str) -> list[SearchResult]:
        """
        Searches the site by title.

        Raises:
            ScrapeError: If the page cannot be fetched or nothing matched.
        """
        html = await self._fetch_page(SEARCH_PATH + quote(name.strip()))
        results = parse_search_results(html)
        if not results:
            raise ScrapeError(f"Media not found: '{name}'")
        log.debug(f"Search '{name}' returned {len(results)} results.")
        return results

    async def fetch_media_name(self, path: str) -> str:
        name = parse_media_name(await self._fetch_page(path))
        if not name:
            raise ScrapeError(f"No media title found on page '{path}'.")
        return name

    async def fetch_episode_list(self, path: str) -> list[Episode]:
        episodes = parse_episode_list(await self._fetch_page(path))
        if not episodes:
            raise ScrapeError(f"No episodes listed on page '{path}'.")
        log.debug(f"Found {len(episodes)} episodes on '{path}'.")
        return episodes
