"""Hybrid search orchestration."""

from .options import SearchOptions
from .search_manager import SearchManager

__all__ = ["SearchManager", "SearchOptions"]
