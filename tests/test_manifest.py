import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from conftest import make_config
from soaper_dl.api.client import SoaperClient
from soaper_dl.exceptions import ManifestError
from soaper_dl.media.manifest import ManifestResolver, manifest_base_url, parse_manifest


def test_comment_lines_are_skipped_and_relative_refs_resolved() -> None:
    descriptors = parse_manifest("a.ts\n#comment\nb.ts\n", "https://x/y/index.m3u8")

    assert [d.sequence_index for d in descriptors] == [0, 1]
    assert [d.source_url for d in descriptors] == ["https://x/y/a.ts", "https://x/y/b.ts"]


def test_sequence_indexes_follow_line_order_among_references() -> None:
    lines = ["#EXTM3U", "#EXT-X-TARGETDURATION:10"]
    for n in range(12):
        lines += ["#EXTINF:10.0,", f"seg-{n}.ts"]
    text = "\n".join(lines) + "\n#EXT-X-ENDLIST\n"

    descriptors = parse_manifest(text, "https://cdn.example/v/playlist.m3u8?token=abc")

    assert len(descriptors) == 12
    assert [d.sequence_index for d in descriptors] == list(range(12))
    assert descriptors[7].source_url == "https://cdn.example/v/seg-7.ts"


def test_absolute_references_pass_through_unchanged() -> None:
    descriptors = parse_manifest(
        "https://other.example/a.ts\n\n  b.ts  \n", "https://x/y/index.m3u8"
    )

    assert descriptors[0].source_url == "https://other.example/a.ts"
    assert descriptors[1].source_url == "https://x/y/b.ts"


def test_leading_byte_order_mark_is_ignored() -> None:
    descriptors = parse_manifest(
        "\ufeff#EXTM3U\n#EXTINF:4.0,\n0.ts\n", "https://x/y/index.m3u8"
    )

    assert [d.source_url for d in descriptors] == ["https://x/y/0.ts"]


def test_base_url_drops_query_and_last_component() -> None:
    assert manifest_base_url("https://x/y/z/index.m3u8?a=1/2") == "https://x/y/z/"


@pytest.mark.parametrize(
    "text", ["", "   \n", "\ufeff", "#EXTM3U\n#EXT-X-ENDLIST\n"]
)
def test_manifest_without_segments_is_rejected(text: str) -> None:
    with pytest.raises(ManifestError) as excinfo:
        parse_manifest(text, "https://x/y/index.m3u8")
    assert excinfo.value.retryable is False


def test_resolver_fetches_and_parses_over_http() -> None:
    async def playlist(request):
        return web.Response(text="#EXTM3U\n#EXTINF:4,\n0.ts\n#EXTINF:4,\n1.ts\n")

    async def scenario():
        app = web.Application()
        app.router.add_get("/hls/index.m3u8", playlist)
        async with TestServer(app) as server:
            config = make_config(host=f"http://{server.host}:{server.port}")
            async with SoaperClient(config) as client:
                url = client.absolute_url("/hls/index.m3u8")
                return url, await ManifestResolver(client).resolve(url)

    url, descriptors = asyncio.run(scenario())

    assert [d.source_url for d in descriptors] == [
        url.replace("index.m3u8", "0.ts"),
        url.replace("index.m3u8", "1.ts"),
    ]


def test_unreachable_manifest_is_retryable() -> None:
    async def scenario():
        app = web.Application()
        async with TestServer(app) as server:
            config = make_config(host=f"http://{server.host}:{server.port}")
            async with SoaperClient(config) as client:
                await ManifestResolver(client).resolve(client.absolute_url("/gone.m3u8"))

    # 404 is not transient for the transport but still a fetch failure here.
    with pytest.raises(ManifestError) as excinfo:
        asyncio.run(scenario())
    assert excinfo.value.retryable is True
