import asyncio
from pathlib import Path

import pytest

from conftest import make_config
from soaper_dl.core.session import TitleSession
from soaper_dl.exceptions import ScrapeError, SelectionError
from soaper_dl.models.media import JobState, RetrievalMode, RetrievalResult
from soaper_dl.storage.search_index import SearchIndex
from soaper_dl.web.scraper import Episode, SearchResult

EPISODES = [
    Episode("1.1", "1.Pilot", "/episode_a.html"),
    Episode("1.2", "2.Second", "/episode_b.html"),
    Episode("2.1", "1.Return", "/episode_c.html"),
]


class FakeScraper:
    def __init__(self, name="The Show", episodes=EPISODES):
        self.name = name
        self.episodes = episodes
        self.name_requests = 0

    async def fetch_media_name(self, path):
        self.name_requests += 1
        return self.name

    async def fetch_episode_list(self, path):
        return list(self.episodes)


class FakeOrchestrator:
    def __init__(self, failing=()):
        self.calls = []
        self.failing = failing

    async def retrieve(self, reference, output_path, mode):
        self.calls.append((reference, output_path, mode))
        failed = reference.page_identifier in self.failing
        return RetrievalResult(
            reference=reference,
            mode=mode,
            state=JobState.FAILED if failed else JobState.DONE,
            bytes_downloaded=0 if failed else 10,
        )


def _session(tmp_path: Path, scraper=None, orchestrator=None):
    config = make_config(output_dir=str(tmp_path / "out"))
    return TitleSession(
        config,
        orchestrator or FakeOrchestrator(),
        scraper or FakeScraper(),
        SearchIndex(tmp_path / "cfg"),
    )


def test_movie_runs_one_job_named_after_the_title(tmp_path: Path) -> None:
    orchestrator = FakeOrchestrator()
    session = _session(tmp_path, FakeScraper(name="Big Movie"), orchestrator)

    outcomes = asyncio.run(session.run("/movie_Q1.html"))

    [(reference, output_path, mode)] = orchestrator.calls
    assert reference.is_movie
    assert output_path == tmp_path / "out" / "Big Movie" / "Big Movie.mp4"
    assert mode is RetrievalMode.FULL
    assert [o.label for o in outcomes] == ["Big Movie"]
    assert (tmp_path / "out" / "Big Movie").is_dir()


def test_series_runs_selected_episodes_in_order(tmp_path: Path) -> None:
    orchestrator = FakeOrchestrator()
    session = _session(tmp_path, orchestrator=orchestrator)

    outcomes = asyncio.run(session.run("/tv_x.html", episode_expr="2.1,1.1"))

    assert [o.label for o in outcomes] == ["The Show 1.1", "The Show 2.1"]
    assert [call[0].page_identifier for call in orchestrator.calls] == [
        "/episode_a.html",
        "/episode_c.html",
    ]
    assert orchestrator.calls[0][1].name == "1.1.mp4"
    assert not any(call[0].is_movie for call in orchestrator.calls)


def test_prompt_is_used_when_no_selection_is_given(tmp_path: Path) -> None:
    seen = []

    def prompt(episodes):
        seen.extend(episodes)
        return "1.2"

    orchestrator = FakeOrchestrator()
    session = _session(tmp_path, orchestrator=orchestrator)

    asyncio.run(session.run("/tv_x.html", prompt=prompt))

    assert seen == EPISODES
    assert [call[0].page_identifier for call in orchestrator.calls] == ["/episode_b.html"]


def test_unknown_episode_is_rejected_before_any_job(tmp_path: Path) -> None:
    orchestrator = FakeOrchestrator()
    session = _session(tmp_path, orchestrator=orchestrator)

    with pytest.raises(SelectionError, match="3.1"):
        asyncio.run(session.run("/tv_x.html", episode_expr="1.1,3.1"))
    assert orchestrator.calls == []


def test_no_selection_and_no_prompt_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(SelectionError):
        asyncio.run(_session(tmp_path).run("/tv_x.html"))


def test_malformed_episode_link_is_rejected(tmp_path: Path) -> None:
    scraper = FakeScraper(episodes=[Episode("1.1", "x", "episode_a.html")])

    with pytest.raises(ScrapeError, match="Wrong download link"):
        asyncio.run(_session(tmp_path, scraper).run("/tv_x.html", episode_expr="1.1"))


def test_failures_are_counted_and_later_jobs_still_run(tmp_path: Path) -> None:
    orchestrator = FakeOrchestrator(failing={"/episode_a.html"})
    session = _session(tmp_path, orchestrator=orchestrator)

    outcomes = asyncio.run(session.run("/tv_x.html", episode_expr="1.1-1.2"))

    assert [o.result.ok for o in outcomes] == [False, True]
    assert session.stats.jobs_failed == 1
    assert session.stats.failed_titles == ["The Show 1.1"]
    assert session.stats.jobs_completed == 1
    assert session.stats.total_size_downloaded == 10


def test_link_only_creates_no_directories(tmp_path: Path) -> None:
    session = _session(tmp_path)

    asyncio.run(session.run("/movie_Q1.html", RetrievalMode.LINK_ONLY))

    assert not (tmp_path / "out").exists()
    assert session.stats.links_listed == 1


def test_title_from_the_last_search_skips_the_page_fetch(tmp_path: Path) -> None:
    scraper = FakeScraper()
    session = _session(tmp_path, scraper)
    session.search_index.save([SearchResult("/tv_x.html", "TV", "Cached Title")])

    name = asyncio.run(session.resolve_media_name("/tv_x.html"))

    assert name == "Cached Title"
    assert scraper.name_requests == 0


def test_search_index_survives_a_corrupt_file(tmp_path: Path) -> None:
    index = SearchIndex(tmp_path)
    index.index_path.write_text("{not json", encoding="utf-8")

    assert index.load() == []
    assert index.title_for("/tv_x.html") is None
