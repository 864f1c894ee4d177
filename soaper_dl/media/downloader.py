"""
Handles the low-level downloading of single files over HTTP.
"""

import asyncio
import logging
import os
from typing import Optional

import aiofiles
import aiohttp

from soaper_dl.api.client import SoaperClient, backoff_delay, is_transient

log = logging.getLogger(__name__)


class Downloader:
    """A low-level file downloader with bounded retry and exponential backoff."""

    CHUNK_SIZE = 262144  # 256 KB

    def __init__(self, client: SoaperClient):
        self.client = client
        self.max_attempts = client.config.max_attempts
        self.base_delay = client.config.base_delay

    async def download_file(
        self, url: str, destination_path: str, referer: Optional[str] = None
    ) -> int:
        """
        Streams a URL to a file, overwriting it on every attempt.

        Returns:
            The number of bytes written.

        Raises:
            aiohttp.ClientError / asyncio.TimeoutError: When every attempt failed
                or the failure is not transient.
        """
        headers = {"referer": referer} if referer else None
        last_exception: Optional[BaseException] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                session = await self.client.get_session()
                async with session.get(
                    url, headers=headers, allow_redirects=True
                ) as response:
                    response.raise_for_status()
                    bytes_downloaded = 0
                    async with aiofiles.open(destination_path, "wb") as f:
                        async for chunk in response.content.iter_chunked(
                            self.CHUNK_SIZE
                        ):
                            await f.write(chunk)
                            bytes_downloaded += len(chunk)
                return bytes_downloaded
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e
                if not is_transient(e):
                    break
                log.debug(
                    f"Download attempt {attempt}/{self.max_attempts} for "
                    f"'{os.path.basename(destination_path)}' failed: {e!r}. Retrying..."
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(backoff_delay(self.base_delay, attempt))

        raise last_exception
