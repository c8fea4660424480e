"""
Feed sources module.

Provides the feed catalog and the ingestion front half:
- Source registry (categorized feed endpoints)
- HTTP fetcher for feed markup
- RSS/Atom parser producing raw entries
"""

from .base import FeedCategory, FeedSource
from .registry import SourceRegistry, get_source_registry
from .rss import FeedFetcher
from .parser import RawEntry, parse_feed

__all__ = [
    "FeedCategory",
    "FeedSource",
    "SourceRegistry",
    "get_source_registry",
    "FeedFetcher",
    "RawEntry",
    "parse_feed",
]
