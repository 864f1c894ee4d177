"""
Coordinates one retrieval job: resolve, fetch the manifest, download segments,
assemble, and place the result at its final path.
"""

import asyncio
import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import aiohttp
from rich.markup import escape

from soaper_dl.api.client import SoaperClient
from soaper_dl.api.locator import MediaLocator
from soaper_dl.cli.progress_manager import ProgressManager
from soaper_dl.exceptions import FetchError, SoaperDlError
from soaper_dl.media import Downloader, ManifestResolver, SegmentFetcher, StreamAssembler
from soaper_dl.media.assembler import partial_output_path
from soaper_dl.models.config import SoaperConfig
from soaper_dl.models.media import (
    JobState,
    MediaReference,
    PlaybackInfo,
    RetrievalJob,
    RetrievalMode,
    RetrievalResult,
)

log = logging.getLogger(__name__)


def subtitle_path_for(output_path: Path, lang: str) -> Path:
    """'<dir>/1.2.mp4' -> '<dir>/1.2_en.srt'."""
    return output_path.with_name(f"{output_path.stem}_{lang}.srt")


class RetrievalOrchestrator:
    """
    Runs one job at a time through the pipeline.

    Pipeline errors never escape `retrieve`; they end the job in FAILED and
    are reported through the returned RetrievalResult.
    """

    def __init__(
        self,
        config: SoaperConfig,
        client: SoaperClient,
        locator: Optional[MediaLocator] = None,
        resolver: Optional[ManifestResolver] = None,
        fetcher: Optional[SegmentFetcher] = None,
        assembler: Optional[StreamAssembler] = None,
        downloader: Optional[Downloader] = None,
        progress_manager: Optional[ProgressManager] = None,
    ):
        self.config = config
        self.client = client
        self.downloader = downloader or Downloader(client)
        self.locator = locator or MediaLocator(config, client)
        self.resolver = resolver or ManifestResolver(client)
        self.fetcher = fetcher or SegmentFetcher(config, client, self.downloader)
        self.assembler = assembler or StreamAssembler(config)
        self.progress_manager = progress_manager

    @contextmanager
    def _working_directory(self, output_path: Path) -> Iterator[Path]:
        """A per-job directory next to the output, removed on every exit path."""
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            work_dir = Path(
                tempfile.mkdtemp(prefix=f"hls_{output_path.stem}_", dir=output_path.parent)
            )
        except OSError as e:
            raise FetchError(f"Could not create a working directory: {e}") from e
        log.debug(f"Working directory: {work_dir}")
        try:
            yield work_dir
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)
            log.debug(f"Removed working directory: {work_dir}")

    async def retrieve(
        self,
        reference: MediaReference,
        output_path: Path,
        mode: RetrievalMode = RetrievalMode.FULL,
    ) -> RetrievalResult:
        """Runs a single job and reports how it ended."""
        job = RetrievalJob(output_path=output_path)
        result = RetrievalResult(
            reference=reference, mode=mode, state=job.state, history=job.history
        )
        subtitle_path = subtitle_path_for(output_path, self.config.subtitle_lang)

        try:
            if mode is RetrievalMode.FULL:
                with self._working_directory(output_path) as work_dir:
                    job.work_dir = work_dir
                    playback = await self.locator.locate(reference)
                    result.playback = playback
                    if playback.subtitle_url:
                        result.subtitle_path = await self._download_subtitle(
                            playback, subtitle_path, required=False
                        )
                    await self._retrieve_stream(job, playback, result)
            else:
                playback = await self.locator.locate(reference)
                result.playback = playback
                if mode is RetrievalMode.SUBTITLE_ONLY:
                    result.subtitle_path = await self._download_subtitle(
                        playback, subtitle_path, required=True
                    )
                job.transition(JobState.DONE)
        except SoaperDlError as e:
            self._fail(job, result, e)
        except OSError as e:
            self._fail(job, result, SoaperDlError(f"Local file error: {e}"))
        finally:
            result.state = job.state

        return result

    async def _retrieve_stream(
        self, job: RetrievalJob, playback: PlaybackInfo, result: RetrievalResult
    ) -> None:
        descriptors = await self.resolver.resolve(playback.manifest_url)
        job.manifest = tuple(descriptors)
        job.transition(JobState.MANIFEST_FETCHED)

        job.transition(JobState.SEGMENTS_FETCHING)
        task_id = None
        on_segment = None
        if self.progress_manager:
            task_id = self.progress_manager.add_job_task(
                job.output_path.name, total_segments=len(descriptors)
            )
            on_segment = self.progress_manager.segment_callback(task_id)

        try:
            report = await self.fetcher.fetch(descriptors, job.work_dir, on_segment)
        finally:
            if self.progress_manager and task_id is not None:
                self.progress_manager.remove_task(task_id)

        result.bytes_downloaded = report.bytes_downloaded
        if not report.complete:
            preview = ", ".join(str(i) for i in report.missing[:5])
            raise FetchError(
                f"{len(report.missing)} of {len(descriptors)} segments missing "
                f"(index {preview}{', ...' if len(report.missing) > 5 else ''}).",
                retryable=True,
            )

        job.transition(JobState.ASSEMBLING)
        await self.assembler.assemble(job.work_dir, job.output_path)
        result.output_path = job.output_path
        job.transition(JobState.DONE)
        log.info(f"[green]✓ Saved[/green] [dim]{escape(str(job.output_path))}[/dim]")

    async def _download_subtitle(
        self, playback: PlaybackInfo, subtitle_path: Path, required: bool
    ) -> Optional[Path]:
        """
        Saves the subtitle next to the output.

        A failure only matters when the subtitle is what the job is for.
        """
        url = playback.subtitle_fetch_url
        if not url:
            log.warning("[yellow]⚠ No subtitle available in the requested language.[/yellow]")
            return None

        log.info(f"Downloading subtitle [dim]{escape(subtitle_path.name)}[/dim]...")
        subtitle_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            await self.downloader.download_file(url, str(subtitle_path))
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            subtitle_path.unlink(missing_ok=True)
            if required:
                raise FetchError(f"Subtitle download failed: {e}", retryable=True) from e
            log.warning(f"[yellow]⚠ Subtitle download failed: {e}[/yellow]")
            return None
        return subtitle_path

    def _fail(
        self, job: RetrievalJob, result: RetrievalResult, error: SoaperDlError
    ) -> None:
        job.transition(JobState.FAILED)
        result.error = error
        result.retryable = error.retryable
        log.error(
            f"[red]✗ {escape(job.output_path.name)} failed in "
            f"{job.history[-2].name.lower()}: {escape(str(error))}[/red]"
        )
        self._discard_partial_artifacts(job, result)

    def _discard_partial_artifacts(
        self, job: RetrievalJob, result: RetrievalResult
    ) -> None:
        """Removes whatever a failed job wrote outside its working directory."""
        leftovers = [partial_output_path(job.output_path)]
        if result.subtitle_path is not None and result.mode is RetrievalMode.FULL:
            leftovers.append(result.subtitle_path)
            result.subtitle_path = None
        for path in leftovers:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                log.debug(f"Could not remove {path}: {e}")
