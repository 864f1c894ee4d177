"""
Media Processing Layer.

This package is responsible for the segmented-stream pipeline: manifest
parsing, concurrent segment downloads, and lossless reassembly.
"""

from .assembler import StreamAssembler
from .downloader import Downloader
from .fetcher import SegmentFetcher
from .manifest import ManifestResolver

__all__ = ["Downloader", "ManifestResolver", "SegmentFetcher", "StreamAssembler"]
