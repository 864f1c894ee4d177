"""
Manages a Rich progress display for segment downloads.
"""

import asyncio
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
)

from soaper_dl.utils.formatting import format_size


class ProgressManager:
    """
    Shows one bar per running job, counting segments, plus session counters.
    """

    def __init__(self, console: Console, enabled: bool = True):
        self.console = console
        self.enabled = enabled

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=30),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            MofNCompleteColumn(),
            "segments",
            "•",
            TextColumn("[magenta]{task.fields[size]}"),
            "•",
            TimeRemainingColumn(),
            console=console,
            transient=True,
        )

        self._stats = {
            "segments_completed": 0,
            "segments_failed": 0,
            "bytes_downloaded": 0,
            "start_time": None,
        }
        self._task_bytes: dict[TaskID, int] = {}

    def add_job_task(self, description: str, total_segments: int) -> TaskID | None:
        if not self.enabled:
            return None
        if len(description) > 40:
            description = description[:37] + "..."
        task_id = self.progress.add_task(
            f"[cyan]{description}[/cyan]", total=total_segments, size="0 B"
        )
        self._task_bytes[task_id] = 0
        return task_id

    def segment_callback(
        self, task_id: TaskID | None
    ) -> Callable[[int, bool, int], None]:
        """Builds the per-segment hook handed to the SegmentFetcher."""

        def on_segment(sequence_index: int, success: bool, size: int) -> None:
            if success:
                self._stats["segments_completed"] += 1
                self._stats["bytes_downloaded"] += size
            else:
                self._stats["segments_failed"] += 1
            if task_id is None or not self.enabled:
                return
            self._task_bytes[task_id] = self._task_bytes.get(task_id, 0) + size
            self.progress.update(
                task_id,
                advance=1,
                size=format_size(self._task_bytes[task_id]),
            )

        return on_segment

    def remove_task(self, task_id: TaskID | None) -> None:
        if task_id is None or not self.enabled:
            return
        try:
            self.progress.remove_task(task_id)
        except KeyError:
            pass
        self._task_bytes.pop(task_id, None)

    def get_statistics(self) -> dict:
        return self._stats.copy()

    @contextmanager
    def paused(self) -> Iterator[None]:
        """Stops redrawing while the user answers a prompt."""
        if not self.enabled:
            yield
            return
        self.progress.stop()
        try:
            yield
        finally:
            self.progress.start()

    async def __aenter__(self):
        self._stats["start_time"] = datetime.now()
        if self.enabled:
            self.progress.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.enabled:
            await asyncio.sleep(0.1)
            self.progress.stop()

