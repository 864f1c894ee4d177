"""
Exchanges a page identifier for playback URLs through the site's resolver endpoint.
"""

import asyncio
import json
import logging
import re
from typing import Any, Optional

import aiohttp

from soaper_dl.exceptions import ResolutionError
from soaper_dl.models.config import SoaperConfig
from soaper_dl.models.media import MediaReference, PlaybackInfo, looks_like_manifest

from .client import SoaperClient

log = logging.getLogger(__name__)

MOVIE_ENDPOINT = "/home/index/GetMInfoAjax"
EPISODE_ENDPOINT = "/home/index/GetEInfoAjax"

_TOKEN_PREFIX_REGEX = re.compile(r"^.*e_")


def derive_pass_token(page_identifier: str) -> str:
    """
    Strips the page path down to its opaque token.

    '/episode_AbC12.html' -> 'AbC12', '/movie_XyZ.html' -> 'XyZ'.
    """
    token = _TOKEN_PREFIX_REGEX.sub("", page_identifier, count=1)
    return token.replace(".html", "", 1)


def escape_subtitle_path(path: str) -> str:
    """Encodes spaces and escapes literal brackets in a subtitle path."""
    return path.replace(" ", "%20").replace("[", "\\[").replace("]", "\\]")


class MediaLocator:
    """Resolves a MediaReference into a PlaybackInfo."""

    def __init__(self, config: SoaperConfig, client: SoaperClient):
        self.config = config
        self.client = client

    def _absolute(self, path: str) -> str:
        if not path:
            return ""
        return self.client.absolute_url(path)

    async def locate(self, reference: MediaReference) -> PlaybackInfo:
        """
        Performs the token exchange for one page.

        Raises:
            ResolutionError: If the endpoint is unreachable, returns unparseable
                JSON, or offers no manifest at all.
        """
        endpoint = MOVIE_ENDPOINT if reference.is_movie else EPISODE_ENDPOINT
        token = derive_pass_token(reference.page_identifier)
        referer = self.client.absolute_url(reference.page_identifier)
        log.debug(f"Resolving '{reference.page_identifier}' with pass={token}")

        try:
            body = await self.client.post_form(
                endpoint, data={"pass": token}, referer=referer
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ResolutionError(
                f"Resolver endpoint unreachable for '{reference.page_identifier}': {e}",
                retryable=True,
            ) from e

        try:
            payload = json.loads(body)
        except json.JSONDecodeError as e:
            raise ResolutionError(
                f"Resolver returned invalid JSON for '{reference.page_identifier}'."
            ) from e

        return self.parse_playback(payload)

    def parse_playback(self, payload: Any) -> PlaybackInfo:
        """Builds absolute playback URLs from a resolver response."""
        if not isinstance(payload, dict):
            raise ResolutionError("Resolver response is not a JSON object.")

        primary = self._absolute(str(payload.get("val") or ""))
        fallback = ""
        if not looks_like_manifest(primary):
            fallback = self._absolute(str(payload.get("val_bak") or ""))
            if not fallback:
                raise ResolutionError(
                    "Resolver response contains no manifest URL "
                    f"(val={payload.get('val')!r}, val_bak is empty)."
                )
            log.debug(f"Primary '{primary}' is not a manifest, using fallback.")

        return PlaybackInfo(
            primary_manifest_url=primary,
            fallback_manifest_url=fallback,
            subtitle_url=self._select_subtitle(payload.get("subs")),
        )

    def _select_subtitle(self, subs: Any) -> Optional[str]:
        """Picks the first subtitle whose name mentions the configured language."""
        if not isinstance(subs, list) or not subs:
            return None

        lang = self.config.subtitle_lang
        for entry in subs:
            if not isinstance(entry, dict):
                continue
            name = str(entry.get("name") or "")
            path = entry.get("path")
            if lang in name.lower() and path:
                return self._absolute(escape_subtitle_path(str(path)))

        log.info(f"No '{lang}' subtitle among {len(subs)} available.")
        return None

