"""
Storage Layer.

This package handles data persistence: the configuration file and the
index of the most recent search results.
"""

from .config_manager import ConfigManager
from .search_index import SearchIndex

__all__ = ["ConfigManager", "SearchIndex"]
