"""
Keeps the most recent search results on disk so a later run can name a page path.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from soaper_dl.web.scraper import SearchResult

log = logging.getLogger(__name__)


class SearchIndex:
    """A JSON file mapping page paths to the search results they came from."""

    FILE_NAME = "search_index.json"

    def __init__(self, config_dir: Path):
        self.index_path = config_dir / self.FILE_NAME

    def save(self, results: list[SearchResult]) -> None:
        """Replaces the index with the given results."""
        payload = [
            {"path": r.path, "label": r.label, "title": r.title} for r in results
        ]
        try:
            self.index_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.index_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
        except OSError as e:
            log.warning(f"[yellow]Could not save search index:[/] {e}")

    def load(self) -> list[SearchResult]:
        if not self.index_path.is_file():
            return []
        try:
            with open(self.index_path, encoding="utf-8") as f:
                payload = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            log.debug(f"Search index unreadable: {e}")
            return []
        return [
            SearchResult(
                path=str(item.get("path", "")),
                label=str(item.get("label", "")),
                title=str(item.get("title", "")),
            )
            for item in payload
            if isinstance(item, dict) and item.get("path")
        ]

    def title_for(self, path: str) -> Optional[str]:
        """The recorded title of a page path, if it was in the last search."""
        for result in self.load():
            if result.path == path and result.title:
                return result.title
        return None
