"""
Concatenates canonically named segments into one file with ffmpeg's concat demuxer.
"""

import asyncio
import logging
import os
from pathlib import Path

from soaper_dl.exceptions import AssemblyError
from soaper_dl.models.config import SoaperConfig
from soaper_dl.models.media import CANONICAL_PREFIX, CANONICAL_SUFFIX

log = logging.getLogger(__name__)

CONCAT_LIST_NAME = "concat.txt"


def partial_output_path(output_path: Path) -> Path:
    """Hidden sibling of the output, keeping the extension so ffmpeg picks the muxer."""
    return output_path.with_name(f".{output_path.stem}.partial{output_path.suffix}")


def _quote_concat_path(path: Path) -> str:
    # The concat demuxer reads single-quoted strings; a quote is written as '\''.
    return "'" + str(path.resolve()).replace("'", "'\\''") + "'"


class StreamAssembler:
    """Stream-copies ordered segments into the final output without re-encoding."""

    def __init__(self, config: SoaperConfig):
        self.ffmpeg_path = config.ffmpeg_path

    @staticmethod
    def ordered_segments(segment_dir: Path) -> list[Path]:
        """Canonical segment files sorted by name, which is manifest order."""
        return sorted(
            p
            for p in segment_dir.glob(f"{CANONICAL_PREFIX}*{CANONICAL_SUFFIX}")
            if p.is_file()
        )

    def write_concat_list(self, segment_dir: Path, segments: list[Path]) -> Path:
        list_path = segment_dir / CONCAT_LIST_NAME
        with open(list_path, "w", encoding="utf-8") as f:
            for segment in segments:
                f.write(f"file {_quote_concat_path(segment)}\n")
        return list_path

    async def assemble(self, segment_dir: Path, output_path: Path) -> Path:
        """
        Joins every canonical segment in `segment_dir` into `output_path`.

        The output only appears once ffmpeg has exited cleanly; an existing
        file at that path is overwritten.

        Raises:
            AssemblyError: If there are no segments, ffmpeg is missing or exits
                non-zero, or the output cannot be written.
        """
        segments = self.ordered_segments(segment_dir)
        if not segments:
            raise AssemblyError(f"No segments to assemble in '{segment_dir}'.")

        partial_path = partial_output_path(output_path)
        try:
            list_path = self.write_concat_list(segment_dir, segments)
            output_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise AssemblyError(f"Could not prepare assembly of '{output_path}': {e}") from e

        command = [
            self.ffmpeg_path,
            "-hide_banner",
            "-loglevel",
            "error",
            "-f",
            "concat",
            "-safe",
            "0",
            "-i",
            str(list_path),
            "-c",
            "copy",
            "-y",
            str(partial_path),
        ]
        log.info(f"Combining {len(segments)} segments with ffmpeg...")
        log.debug(f"Running: {' '.join(command)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise AssemblyError(
                f"Could not run ffmpeg at '{self.ffmpeg_path}'. Install it or set ffmpeg_path ({e})."
            ) from e

        try:
            _, stderr = await process.communicate()
            if process.returncode != 0:
                message = stderr.decode("utf-8", errors="replace").strip()
                raise AssemblyError(
                    f"ffmpeg exited with code {process.returncode}: {message or 'no output'}"
                )
            if not partial_path.is_file():
                raise AssemblyError("ffmpeg reported success but wrote no output.")
            try:
                os.replace(partial_path, output_path)
            except OSError as e:
                raise AssemblyError(f"Could not move the result into place: {e}") from e
        finally:
            partial_path.unlink(missing_ok=True)

        log.debug(f"Assembled '{output_path}' ({output_path.stat().st_size} bytes).")
        return output_path
