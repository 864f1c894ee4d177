"""
Web Scraping Layer.

This package contains modules for fetching and parsing Soaper HTML pages:
search results, media titles and episode lists.
"""

from .scraper import Episode, SearchResult, SoaperScraper

__all__ = ["Episode", "SearchResult", "SoaperScraper"]
