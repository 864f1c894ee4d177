"""
Data Models Layer.

This package contains the configuration model and the data structures
passed between the stages of the retrieval pipeline.
"""

from .config import SoaperConfig
from .media import (
    FetchReport,
    JobState,
    MediaReference,
    PlaybackInfo,
    RetrievalJob,
    RetrievalMode,
    RetrievalResult,
    SegmentDescriptor,
)
from .stats import RetrievalStats

__all__ = [
    "FetchReport",
    "JobState",
    "MediaReference",
    "PlaybackInfo",
    "RetrievalJob",
    "RetrievalMode",
    "RetrievalResult",
    "RetrievalStats",
    "SegmentDescriptor",
    "SoaperConfig",
]
