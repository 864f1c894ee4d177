import io

from rich.console import Console

from soaper_dl.cli.formatters import print_links
from soaper_dl.core.session import JobOutcome
from soaper_dl.models.media import (
    JobState,
    MediaReference,
    PlaybackInfo,
    RetrievalMode,
    RetrievalResult,
)

SUBTITLE = "http://h/s/\\[1\\]%20en.srt"


def _outcome(label, playback=None, state=JobState.DONE):
    return JobOutcome(
        label,
        RetrievalResult(
            reference=MediaReference("/episode_a.html", False),
            mode=RetrievalMode.LINK_ONLY,
            state=state,
            playback=playback,
        ),
    )


def _render(outcomes, **kwargs) -> str:
    console = Console(file=io.StringIO(), width=300, color_system=None)
    print_links(outcomes, console, **kwargs)
    return console.file.getvalue()


def test_links_are_printed_verbatim() -> None:
    playback = PlaybackInfo("http://h/hls/[a].m3u8", subtitle_url=SUBTITLE)

    text = _render([_outcome("Show 1.1", playback)])

    assert playback.manifest_url in text
    assert playback.subtitle_url in text


def test_subtitles_only_lists_just_the_subtitle_links() -> None:
    outcomes = [
        _outcome("Show 1.1", PlaybackInfo("http://h/a.m3u8", subtitle_url=SUBTITLE)),
        _outcome("Show 1.2", PlaybackInfo("http://h/b.m3u8")),
        _outcome("Show 1.3", state=JobState.FAILED),
    ]

    text = _render(outcomes, subtitles_only=True)

    assert SUBTITLE in text
    assert "a.m3u8" not in text
    assert "b.m3u8" not in text
    assert "no subtitle" in text
    assert "unresolved" in text
