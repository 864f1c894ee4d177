"""
Downloads the segments of a manifest concurrently and gives them canonical,
sequence-ordered names.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Callable, Optional, Sequence

import aiohttp

from soaper_dl.api.client import SoaperClient
from soaper_dl.exceptions import FetchError
from soaper_dl.models.config import SoaperConfig
from soaper_dl.models.media import FetchReport, SegmentDescriptor, canonical_width
from soaper_dl.utils.failure_breaker import BreakerOpenError, FailureBreaker

from .downloader import Downloader

log = logging.getLogger(__name__)

# Called once per segment with (sequence_index, success, bytes_written).
SegmentCallback = Callable[[int, bool, int], None]


class SegmentFetcher:
    """
    Bounded worker pool over a list of SegmentDescriptor.

    Each worker owns one in-flight download. Completion order is irrelevant:
    files are written under index-derived names and renamed in manifest order
    once every download has settled.
    """

    def __init__(
        self,
        config: SoaperConfig,
        client: SoaperClient,
        downloader: Optional[Downloader] = None,
    ):
        self.config = config
        self.client = client
        self.downloader = downloader or Downloader(client)

    @staticmethod
    def _part_path(dest_dir: Path, descriptor: SegmentDescriptor, width: int) -> Path:
        return dest_dir / f"part_{descriptor.sequence_index:0{width}d}"

    async def fetch(
        self,
        descriptors: Sequence[SegmentDescriptor],
        dest_dir: Path,
        on_segment: Optional[SegmentCallback] = None,
    ) -> FetchReport:
        """
        Downloads every segment into `dest_dir`.

        Missing segments are logged and listed in the report rather than
        raised; the caller decides whether a gap is fatal.

        Raises:
            FetchError: If no segment at all could be retrieved, or a local
                I/O error interrupted the batch.
        """
        if not descriptors:
            raise FetchError("No segments to fetch.")

        dest_dir.mkdir(parents=True, exist_ok=True)
        width = canonical_width(len(descriptors))
        semaphore = asyncio.Semaphore(self.config.max_workers)
        breaker = FailureBreaker(failure_threshold=max(8, self.config.max_workers))

        log.info(
            f"Downloading {len(descriptors)} segments "
            f"({self.config.max_workers} at a time)..."
        )

        async def fetch_one(descriptor: SegmentDescriptor) -> Optional[int]:
            part_path = self._part_path(dest_dir, descriptor, width)
            size: Optional[int] = None
            async with semaphore:
                try:
                    async with breaker:
                        size = await self.downloader.download_file(
                            descriptor.source_url, str(part_path)
                        )
                except BreakerOpenError:
                    log.debug(f"Skipped segment {descriptor.sequence_index}: breaker open.")
                except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                    log.warning(
                        f"[yellow]Segment {descriptor.sequence_index} failed: {e!r}[/yellow]"
                    )
            if on_segment:
                on_segment(descriptor.sequence_index, size is not None, size or 0)
            return size

        results = await asyncio.gather(
            *(fetch_one(d) for d in descriptors), return_exceptions=True
        )

        unexpected = [r for r in results if isinstance(r, BaseException)]
        if unexpected:
            raise FetchError(
                f"Segment download aborted by a local error: {unexpected[0]}"
            ) from unexpected[0]

        report = self._rename_in_order(descriptors, results, dest_dir, width)
        if not report.segments:
            raise FetchError(
                f"None of the {len(descriptors)} segments could be retrieved.",
                retryable=True,
            )
        return report

    def _rename_in_order(
        self,
        descriptors: Sequence[SegmentDescriptor],
        sizes: Sequence[Optional[int]],
        dest_dir: Path,
        width: int,
    ) -> FetchReport:
        """Renames part files to canonical names, strictly in manifest order."""
        report = FetchReport()
        for descriptor, size in zip(descriptors, sizes):
            part_path = self._part_path(dest_dir, descriptor, width)

            if size is None or not part_path.is_file():
                log.warning(
                    f"[yellow]Segment {descriptor.sequence_index} "
                    f"({os.path.basename(descriptor.source_url)}) not found after download.[/yellow]"
                )
                part_path.unlink(missing_ok=True)
                report.missing.append(descriptor.sequence_index)
                continue

            # An empty body is never a valid segment.
            if part_path.stat().st_size == 0:
                log.warning(
                    f"[yellow]Segment {descriptor.sequence_index} is empty, "
                    "treating it as missing.[/yellow]"
                )
                part_path.unlink()
                report.missing.append(descriptor.sequence_index)
                continue

            canonical_path = dest_dir / descriptor.canonical_name(width)
            try:
                os.replace(part_path, canonical_path)
            except OSError as e:
                raise FetchError(
                    f"Could not rename segment {descriptor.sequence_index}: {e}"
                ) from e
            report.segments.append(canonical_path)
            report.bytes_downloaded += size

        if report.missing:
            log.warning(
                f"[yellow]⚠ {len(report.missing)}/{len(descriptors)} segments missing.[/yellow]"
            )
        return report
