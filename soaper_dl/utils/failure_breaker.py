"""
Consecutive-failure breaker that stops launching downloads once an origin looks down.
"""

import asyncio
import logging
from enum import Enum

log = logging.getLogger(__name__)


class BreakerState(Enum):
    """States of the failure breaker."""

    CLOSED = "closed"  # Downloads pass through
    OPEN = "open"  # New downloads are refused


class BreakerOpenError(Exception):
    """Raised when a download is attempted while the breaker is open."""


class FailureBreaker:
    """
    Trips after `failure_threshold` consecutive failures and stays open.

    One breaker covers one batch of downloads; a success resets the count.
    Used as an async context manager around each download:

        async with breaker:
            await download(...)
    """

    def __init__(self, failure_threshold: int = 8):
        self.failure_threshold = failure_threshold
        self._state = BreakerState.CLOSED
        self._consecutive_failures = 0
        self._lock = asyncio.Lock()

    @property
    def state(self) -> BreakerState:
        return self._state

    @property
    def tripped(self) -> bool:
        return self._state is BreakerState.OPEN

    async def _on_success(self) -> None:
        async with self._lock:
            self._consecutive_failures = 0

    async def _on_failure(self) -> None:
        async with self._lock:
            self._consecutive_failures += 1
            if (
                self._state is BreakerState.CLOSED
                and self._consecutive_failures >= self.failure_threshold
            ):
                log.error(
                    f"[red]✗ {self._consecutive_failures} consecutive download "
                    "failures, not starting any more.[/red]"
                )
                self._state = BreakerState.OPEN

    async def __aenter__(self):
        if self._state is BreakerState.OPEN:
            raise BreakerOpenError(
                f"Breaker open after {self.failure_threshold} consecutive failures."
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            await self._on_failure()
        else:
            await self._on_success()
        return False
