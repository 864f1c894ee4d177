"""
Dataclass for tracking download session statistics.
"""

import time
from dataclasses import dataclass, field

from .media import RetrievalMode, RetrievalResult


@dataclass
class RetrievalStats:
    """Tracks statistics for a download session."""

    jobs_completed: int = 0
    jobs_failed: int = 0
    links_listed: int = 0
    subtitles_downloaded: int = 0
    total_size_downloaded: int = 0
    failed_titles: list[str] = field(default_factory=list)
    _start_time: float = field(default_factory=time.monotonic, repr=False)

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._start_time

    def record_result(self, label: str, result: RetrievalResult) -> None:
        """Folds one job's outcome into the session totals."""
        if not result.ok:
            self.jobs_failed += 1
            self.failed_titles.append(label)
            return

        self.jobs_completed += 1
        self.total_size_downloaded += result.bytes_downloaded
        if result.mode is RetrievalMode.LINK_ONLY:
            self.links_listed += 1
        if result.subtitle_path is not None:
            self.subtitles_downloaded += 1

