"""
Fetches an HLS playlist and turns it into an ordered list of segment descriptors.
"""

import asyncio
import logging
from urllib.parse import urljoin

import aiohttp

from soaper_dl.api.client import SoaperClient
from soaper_dl.exceptions import ManifestError
from soaper_dl.models.media import SegmentDescriptor

log = logging.getLogger(__name__)

COMMENT_MARKER = "#"


def manifest_base_url(manifest_url: str) -> str:
    """The manifest URL with its final path component removed."""
    return manifest_url.split("?", 1)[0].rsplit("/", 1)[0] + "/"


def parse_manifest(text: str, manifest_url: str) -> list[SegmentDescriptor]:
    """
    Parses a line-oriented playlist.

    Comment lines and blank lines are skipped; every other line is a segment
    reference, and its position among references is its sequence index.
    Relative references are resolved against the manifest's base URL.

    Raises:
        ManifestError: If the document is empty or lists no segments.
    """
    # A leading byte-order mark would otherwise hide the first comment marker.
    text = text.lstrip("\ufeff") if text else text
    if not text or not text.strip():
        raise ManifestError(f"Manifest at '{manifest_url}' is empty.")

    base_url = manifest_base_url(manifest_url)
    descriptors = []
    for line in text.splitlines():
        reference = line.strip()
        if not reference or reference.startswith(COMMENT_MARKER):
            continue
        if not reference.startswith(("http://", "https://")):
            reference = urljoin(base_url, reference)
        descriptors.append(
            SegmentDescriptor(sequence_index=len(descriptors), source_url=reference)
        )

    if not descriptors:
        raise ManifestError(f"Manifest at '{manifest_url}' lists no segments.")
    return descriptors


class ManifestResolver:
    """Downloads and parses the manifest for one job."""

    def __init__(self, client: SoaperClient):
        self.client = client

    async def resolve(self, manifest_url: str) -> list[SegmentDescriptor]:
        """
        Returns the manifest's segments in playback order.

        Raises:
            ManifestError: If the manifest cannot be fetched (retryable) or is
                empty (not retryable).
        """
        if not manifest_url:
            raise ManifestError("No manifest URL to resolve.")

        log.info(f"Downloading HLS playlist from: [dim]{manifest_url}[/dim]")
        try:
            text = await self.client.get_text(manifest_url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ManifestError(
                f"Could not fetch manifest '{manifest_url}': {e}", retryable=True
            ) from e

        descriptors = parse_manifest(text, manifest_url)
        log.debug(f"Manifest lists {len(descriptors)} segments.")
        return descriptors
