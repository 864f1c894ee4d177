"""
Data structures passed between the stages of the retrieval pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from urllib.parse import urlsplit

MANIFEST_EXTENSION = ".m3u8"
CANONICAL_PREFIX = "segment_"
CANONICAL_SUFFIX = ".ts"


class JobState(Enum):
    """States a retrieval job moves through."""

    RESOLVING = "resolving"
    MANIFEST_FETCHED = "manifest_fetched"
    SEGMENTS_FETCHING = "segments_fetching"
    ASSEMBLING = "assembling"
    DONE = "done"
    FAILED = "failed"


class RetrievalMode(Enum):
    """What a job produces."""

    FULL = "full"
    LINK_ONLY = "link_only"
    SUBTITLE_ONLY = "subtitle_only"


# Allowed forward moves. FAILED is reachable from every non-terminal state.
_TRANSITIONS = {
    JobState.RESOLVING: {JobState.MANIFEST_FETCHED, JobState.DONE},
    JobState.MANIFEST_FETCHED: {JobState.SEGMENTS_FETCHING},
    JobState.SEGMENTS_FETCHING: {JobState.ASSEMBLING},
    JobState.ASSEMBLING: {JobState.DONE},
    JobState.DONE: set(),
    JobState.FAILED: set(),
}


def looks_like_manifest(url: str) -> bool:
    """True if the URL path ends in the HLS manifest extension."""
    return urlsplit(url).path.endswith(MANIFEST_EXTENSION)


@dataclass(frozen=True)
class MediaReference:
    """A site page that can be exchanged for playback URLs."""

    page_identifier: str
    is_movie: bool

    @classmethod
    def from_path(cls, path: str) -> "MediaReference":
        """Classifies a page path by its `/movie_` prefix."""
        return cls(page_identifier=path, is_movie=path.startswith("/movie_"))


@dataclass(frozen=True)
class PlaybackInfo:
    """Absolute playback URLs returned by the resolver endpoint."""

    primary_manifest_url: str
    fallback_manifest_url: str = ""
    subtitle_url: str | None = None

    @property
    def manifest_url(self) -> str:
        """The URL to fetch the manifest from."""
        if looks_like_manifest(self.primary_manifest_url):
            return self.primary_manifest_url
        return self.fallback_manifest_url

    @property
    def subtitle_fetch_url(self) -> str | None:
        """The subtitle URL without the bracket escapes, suitable for an HTTP client."""
        if not self.subtitle_url:
            return None
        return self.subtitle_url.replace("\\[", "[").replace("\\]", "]")


@dataclass(frozen=True)
class SegmentDescriptor:
    """One media segment, positioned by its manifest line order."""

    sequence_index: int
    source_url: str

    def __post_init__(self):
        if self.sequence_index < 0:
            raise ValueError("sequence_index must be >= 0")

    def canonical_name(self, width: int = 5) -> str:
        return f"{CANONICAL_PREFIX}{self.sequence_index + 1:0{width}d}{CANONICAL_SUFFIX}"


def canonical_width(segment_count: int) -> int:
    """Zero-padding wide enough that name order always equals index order."""
    return max(5, len(str(segment_count)))


@dataclass
class RetrievalJob:
    """A single retrieval, owning its working directory exclusively."""

    output_path: Path
    work_dir: Path | None = None
    manifest: tuple[SegmentDescriptor, ...] = ()
    state: JobState = JobState.RESOLVING
    history: list[JobState] = field(default_factory=lambda: [JobState.RESOLVING])

    def transition(self, new_state: JobState) -> None:
        """Moves the job forward, rejecting skipped or backward moves."""
        if new_state is JobState.FAILED:
            if self.state in (JobState.DONE, JobState.FAILED):
                raise ValueError(f"Cannot fail a job in state {self.state.name}")
        elif new_state not in _TRANSITIONS[self.state]:
            raise ValueError(
                f"Illegal transition {self.state.name} -> {new_state.name}"
            )
        self.state = new_state
        self.history.append(new_state)


@dataclass
class FetchReport:
    """Outcome of a segment fetch, in manifest order."""

    segments: list[Path] = field(default_factory=list)
    missing: list[int] = field(default_factory=list)
    bytes_downloaded: int = 0

    @property
    def complete(self) -> bool:
        return not self.missing


@dataclass
class RetrievalResult:
    """Typed outcome of one job, returned instead of raising."""

    reference: MediaReference
    mode: RetrievalMode
    state: JobState
    playback: PlaybackInfo | None = None
    output_path: Path | None = None
    subtitle_path: Path | None = None
    error: Exception | None = None
    retryable: bool = False
    history: list[JobState] = field(default_factory=list)
    bytes_downloaded: int = 0

    @property
    def ok(self) -> bool:
        return self.state is JobState.DONE
