import asyncio
import json

import aiohttp
import pytest

from conftest import make_config
from soaper_dl.api.client import SoaperClient
from soaper_dl.api.locator import (
    EPISODE_ENDPOINT,
    MOVIE_ENDPOINT,
    MediaLocator,
    derive_pass_token,
    escape_subtitle_path,
)
from soaper_dl.exceptions import ResolutionError
from soaper_dl.models.media import MediaReference

HOST = "https://soaper.test"


def _locator(body=None, error=None, **config):
    """A locator whose client answers every POST with `body` (or raises `error`)."""
    client = SoaperClient(make_config(host=HOST, **config))
    calls = []

    async def post_form(path, data, referer=None):
        calls.append({"path": path, "data": data, "referer": referer})
        if error is not None:
            raise error
        return body if isinstance(body, str) else json.dumps(body)

    client.post_form = post_form
    return MediaLocator(client.config, client), calls


@pytest.mark.parametrize(
    "path, token",
    [
        ("/episode_AbC12.html", "AbC12"),
        ("/movie_XyZ.html", "XyZ"),
    ],
)
def test_pass_token_is_the_page_identifier_without_prefix_and_extension(path, token):
    assert derive_pass_token(path) == token


def test_episode_reference_uses_the_episode_endpoint() -> None:
    locator, calls = _locator({"val": "/hls/e1.m3u8"})

    playback = asyncio.run(locator.locate(MediaReference("/episode_AbC12.html", False)))

    assert calls == [
        {
            "path": EPISODE_ENDPOINT,
            "data": {"pass": "AbC12"},
            "referer": f"{HOST}/episode_AbC12.html",
        }
    ]
    assert playback.manifest_url == f"{HOST}/hls/e1.m3u8"


def test_movie_reference_uses_the_movie_endpoint() -> None:
    locator, calls = _locator({"val": "/hls/m.m3u8"})

    asyncio.run(locator.locate(MediaReference.from_path("/movie_XyZ.html")))

    assert calls[0]["path"] == MOVIE_ENDPOINT
    assert calls[0]["data"] == {"pass": "XyZ"}


def test_primary_manifest_wins_when_it_is_one() -> None:
    locator, _ = _locator()

    playback = locator.parse_playback({"val": "/a.m3u8", "val_bak": "/b.m3u8"})

    assert playback.primary_manifest_url == f"{HOST}/a.m3u8"
    assert playback.manifest_url == f"{HOST}/a.m3u8"


def test_fallback_is_used_when_primary_is_not_a_manifest() -> None:
    locator, _ = _locator()

    playback = locator.parse_playback({"val": "/a.mp4", "val_bak": "/b.m3u8"})

    assert playback.manifest_url == f"{HOST}/b.m3u8"


def test_no_manifest_anywhere_is_a_resolution_error() -> None:
    locator, _ = _locator()

    with pytest.raises(ResolutionError):
        locator.parse_playback({"val": "/a.mp4", "val_bak": ""})


def test_subtitle_matches_language_and_is_escaped() -> None:
    locator, _ = _locator()

    playback = locator.parse_playback(
        {
            "val": "/a.m3u8",
            "subs": [
                {"name": "Francais fr", "path": "/s/[1] fr.srt"},
                {"name": "English en", "path": "/s/[1] en.srt"},
            ],
        }
    )

    assert playback.subtitle_url == f"{HOST}/s/\\[1\\]%20en.srt"
    assert playback.subtitle_fetch_url == f"{HOST}/s/[1]%20en.srt"


def test_subtitle_language_comes_from_config() -> None:
    locator, _ = _locator(subtitle_lang="FR")

    playback = locator.parse_playback(
        {
            "val": "/a.m3u8",
            "subs": [
                {"name": "English en", "path": "/s/en.srt"},
                {"name": "Francais fr", "path": "/s/fr.srt"},
            ],
        }
    )

    assert playback.subtitle_url == f"{HOST}/s/fr.srt"


def test_missing_language_leaves_subtitle_empty() -> None:
    locator, _ = _locator()

    playback = locator.parse_playback(
        {"val": "/a.m3u8", "subs": [{"name": "German de", "path": "/s/de.srt"}]}
    )

    assert playback.subtitle_url is None
    assert playback.subtitle_fetch_url is None


def test_escape_subtitle_path() -> None:
    assert escape_subtitle_path("/x/[a] b.srt") == "/x/\\[a\\]%20b.srt"


def test_invalid_json_is_not_retryable() -> None:
    locator, _ = _locator("<html>not json</html>")

    with pytest.raises(ResolutionError) as excinfo:
        asyncio.run(locator.locate(MediaReference("/episode_x.html", False)))
    assert excinfo.value.retryable is False


def test_non_object_response_is_rejected() -> None:
    locator, _ = _locator(["val"])

    with pytest.raises(ResolutionError):
        asyncio.run(locator.locate(MediaReference("/episode_x.html", False)))


def test_transport_failure_is_retryable() -> None:
    locator, _ = _locator(error=aiohttp.ClientConnectionError("refused"))

    with pytest.raises(ResolutionError) as excinfo:
        asyncio.run(locator.locate(MediaReference("/episode_x.html", False)))
    assert excinfo.value.retryable is True


def test_manifest_primary_without_fallback_or_subtitles() -> None:
    locator, _ = _locator()

    playback = locator.parse_playback({"val": "/p/1.m3u8", "val_bak": "", "subs": []})

    assert playback.primary_manifest_url == f"{HOST}/p/1.m3u8"
    assert playback.fallback_manifest_url == ""
    assert playback.subtitle_url is None


def test_language_is_matched_inside_the_subtitle_name() -> None:
    locator, _ = _locator()

    playback = locator.parse_playback(
        {"val": "/p/1.m3u8", "subs": [{"name": "English", "path": "/s/[1] en.srt"}]}
    )

    assert playback.subtitle_url == f"{HOST}/s/\\[1\\]%20en.srt"
