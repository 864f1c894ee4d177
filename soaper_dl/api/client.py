"""
Async HTTP transport for the Soaper site with connection pooling and bounded retry.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import aiohttp

from soaper_dl.models.config import SoaperConfig

log = logging.getLogger(__name__)

# Statuses worth another attempt; anything else in 4xx/5xx fails immediately.
RETRYABLE_STATUS = frozenset({408, 429, 500, 502, 503, 504})


def is_transient(error: BaseException) -> bool:
    """Tells whether a transport error may go away on a later attempt."""
    if isinstance(error, aiohttp.ClientResponseError):
        return error.status in RETRYABLE_STATUS
    return isinstance(error, (aiohttp.ClientError, asyncio.TimeoutError))


def backoff_delay(base_delay: float, attempt: int) -> float:
    """Exponential backoff: base, 2*base, 4*base, ..."""
    return base_delay * (2 ** (attempt - 1))


class SoaperClient:
    """
    Shared aiohttp session for every request a job makes.

    Features:
    - Connection pooling with a per-host ceiling
    - Bounded retry with exponential backoff on transient failures
    - Site-relative paths resolved against the configured host
    """

    def __init__(self, config: SoaperConfig):
        """
        Initializes the client.

        Args:
            config: The application configuration; supplies host, timeouts,
                retry policy and connection limits.
        """
        self.config = config
        self._session: Optional[aiohttp.ClientSession] = None

    async def _initialize_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.config.max_workers * 2,
                limit_per_host=self.config.connections_per_host,
                ttl_dns_cache=300,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={"User-Agent": self.config.user_agent},
                timeout=aiohttp.ClientTimeout(
                    total=self.config.request_timeout,
                    sock_connect=self.config.connect_timeout,
                ),
            )
            log.debug(
                f"Created session with limit_per_host={self.config.connections_per_host}"
            )
        return self._session

    async def get_session(self) -> aiohttp.ClientSession:
        return await self._initialize_session()

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "SoaperClient":
        await self._initialize_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def absolute_url(self, path: str) -> str:
        """Prefixes a site-relative path with the host; absolute URLs pass through."""
        if path.startswith(("http://", "https://")):
            return path
        if not path.startswith("/"):
            path = "/" + path
        return self.config.host + path

    async def _request_text(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Performs a request and returns the body as text, retrying transient failures.
        """
        session = await self._initialize_session()
        last_exception: Optional[BaseException] = None

        for attempt in range(1, self.config.max_attempts + 1):
            start_time = time.monotonic()
            try:
                async with session.request(
                    method, url, headers=headers, data=data, allow_redirects=True
                ) as response:
                    response.raise_for_status()
                    body = await response.text()
                    log.debug(
                        f"{method} {url} -> {response.status} "
                        f"({(time.monotonic() - start_time) * 1000:.0f} ms)"
                    )
                    return body
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e
                if not is_transient(e):
                    raise
                log.debug(
                    f"{method} attempt {attempt}/{self.config.max_attempts} for "
                    f"'{url}' failed: {e!r}"
                )
                if attempt < self.config.max_attempts:
                    await asyncio.sleep(backoff_delay(self.config.base_delay, attempt))

        raise last_exception

    async def get_text(self, url: str, referer: Optional[str] = None) -> str:
        """Fetches a page or document; `url` may be site-relative."""
        headers = {"referer": referer} if referer else None
        return await self._request_text("GET", self.absolute_url(url), headers=headers)

    async def post_form(
        self, path: str, data: Dict[str, Any], referer: Optional[str] = None
    ) -> str:
        """POSTs a url-encoded form and returns the raw response body."""
        headers = {"referer": referer} if referer else None
        return await self._request_text(
            "POST", self.absolute_url(path), headers=headers, data=data
        )
