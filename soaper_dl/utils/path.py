"""
Utilities for handling file paths and site page paths.
"""

import re
from pathlib import Path
from typing import Optional

from pathvalidate import sanitize_filename

VIDEO_EXTENSION = "mp4"

_PAGE_PATH_REGEX = re.compile(r"^/(?:movie|tv|episode)_[\w-]+\.html$")


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def normalize_page_path(value: str) -> Optional[str]:
    """
    Accepts a page path or a full page URL and returns the site-relative path.

    'https://soaper.live/tv_abc.html' -> '/tv_abc.html'
    """
    value = value.strip()
    match = re.match(r"^https?://[^/]+(/.*)$", value)
    if match:
        value = match.group(1)
    if not value.startswith("/"):
        value = "/" + value
    return value if _PAGE_PATH_REGEX.match(value) else None


def media_dir_name(title: str) -> str:
    """Turns a media title into a single safe directory name."""
    name = sanitize_filename(title.replace("/", "_"), platform="auto").strip()
    return name or "Unknown Title"


def media_output_path(output_dir: Path, title: str, stem: str) -> Path:
    """'<output_dir>/<title>/<stem>.mp4', both parts sanitized."""
    safe_stem = sanitize_filename(stem, platform="auto") or "video"
    return output_dir / media_dir_name(title) / f"{safe_stem}.{VIDEO_EXTENSION}"
