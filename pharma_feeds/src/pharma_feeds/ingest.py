"""
Refresh pipeline: fetch -> parse -> classify -> cache, per source.

A full cycle fans out one task per registered source and waits for all of
them. Each source is isolated: whatever happens to one source only decides
what ends up in that source's cache entry.

Per-source outcomes:
    success   new snapshot cached
    fallback  fetch failed, the previous fresh snapshot stays in place
    empty     fetch failed with nothing to fall back on, an empty snapshot
              carrying the error is cached
"""

import asyncio
import uuid
from typing import Iterable, Optional

from .cache import SnapshotCache
from .classifier import classify_entries
from .config import get_settings
from .errors import FetchError
from .logging_conf import get_logger, log_context
from .models import FeedSnapshot, RefreshResult, SourceOutcome
from .sources.base import FeedSource
from .sources.parser import parse_feed
from .sources.registry import SourceRegistry
from .sources.rss import FeedFetcher

logger = get_logger(__name__)

NO_ITEMS_MESSAGE = "No valid items found"


class FeedIngestor:
    """
    Runs refresh cycles over a registry and writes results to the cache.

    Only one full cycle runs at a time: ``refresh_all()`` called while a
    cycle is in flight returns immediately with ``skipped=True``.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        cache: SnapshotCache,
        fetcher: Optional[FeedFetcher] = None,
        max_concurrent: Optional[int] = None,
        max_items: Optional[int] = None,
    ):
        """
        Initialize ingestor.

        Args:
            registry: Feed catalog to refresh
            cache: Snapshot cache written by the pipeline
            fetcher: Feed fetcher (default: one built from settings)
            max_concurrent: Concurrent fetches per cycle
            max_items: Items kept per snapshot
        """
        settings = get_settings()

        self.registry = registry
        self.cache = cache
        self.fetcher = fetcher or FeedFetcher()
        self.max_concurrent = max_concurrent or settings.max_concurrent_fetches
        self.max_items = max_items or settings.max_items_per_source

        self._cycle_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        """Whether a full refresh cycle is in flight."""
        return self._cycle_lock.locked()

    async def refresh_source(self, source: FeedSource) -> tuple[FeedSnapshot, SourceOutcome]:
        """
        Run the pipeline for one source.

        Never raises; failures are turned into a fallback or empty snapshot.
        """
        try:
            markup = await self.fetcher.fetch(source)
        except FetchError as e:
            return self._handle_failure(source, e.snapshot_message(), e.cause)
        except Exception as e:
            logger.error("feed_pipeline_error", source=source.name, error=str(e))
            return self._handle_failure(
                source, f"Feed temporarily unavailable: {e}", str(e)
            )

        now = self.cache.clock()
        entries = parse_feed(markup, source, self.max_items)
        items = classify_entries(entries, source, now=now)

        if not items:
            logger.warning("feed_no_valid_items", source=source.name, entries=len(entries))
            return self._handle_failure(source, NO_ITEMS_MESSAGE, NO_ITEMS_MESSAGE)

        snapshot = FeedSnapshot(
            source=source.name,
            category=source.category,
            description=source.description,
            last_updated=now,
            items=tuple(items[:self.max_items]),
        )
        self.cache.put(snapshot)

        logger.info("feed_updated", source=source.name, items=len(snapshot.items))
        return snapshot, SourceOutcome.SUCCESS

    def _handle_failure(
        self,
        source: FeedSource,
        message: str,
        cause: str,
    ) -> tuple[FeedSnapshot, SourceOutcome]:
        """Keep a fresh prior snapshot, or cache an empty one carrying the error."""
        prior = self.cache.get_fallback(source.name)
        if prior is not None:
            logger.info(
                "feed_fallback_to_cache",
                source=source.name,
                cause=cause,
                cached_at=prior.last_updated.isoformat(),
            )
            return prior, SourceOutcome.FALLBACK

        snapshot = FeedSnapshot(
            source=source.name,
            category=source.category,
            description=source.description,
            last_updated=self.cache.clock(),
            items=(),
            error=message,
        )
        self.cache.put(snapshot)

        logger.warning("feed_unavailable", source=source.name, error=message)
        return snapshot, SourceOutcome.EMPTY

    async def refresh_sources(
        self,
        sources: Iterable[FeedSource],
    ) -> dict[str, tuple[FeedSnapshot, SourceOutcome]]:
        """Refresh several sources concurrently, bounded by ``max_concurrent``."""
        sources = list(sources)
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def refresh_with_semaphore(source: FeedSource):
            async with semaphore:
                return await self.refresh_source(source)

        results = await asyncio.gather(
            *(refresh_with_semaphore(source) for source in sources),
            return_exceptions=True,
        )

        outcomes = {}
        for source, result in zip(sources, results):
            if isinstance(result, Exception):
                logger.error("feed_pipeline_error", source=source.name, error=str(result))
                result = self._handle_failure(
                    source, f"Feed temporarily unavailable: {result}", str(result)
                )
            elif isinstance(result, BaseException):
                raise result
            outcomes[source.name] = result
        return outcomes

    async def refresh_all(self) -> RefreshResult:
        """
        Run one full refresh cycle over every registered source.

        The cycle completes when every source has resolved; it never fails
        as a whole.
        """
        started_at = self.cache.clock()

        if self._cycle_lock.locked():
            logger.warning("refresh_skipped_already_running")
            return RefreshResult(started_at=started_at, finished_at=started_at, skipped=True)

        async with self._cycle_lock:
            with log_context(cycle_id=uuid.uuid4().hex[:8]):
                sources = self.registry.list_sources()
                logger.info("refresh_cycle_starting", total_sources=len(sources))

                results = await self.refresh_sources(sources)

                result = RefreshResult(
                    started_at=started_at,
                    finished_at=self.cache.clock(),
                    outcomes={name: outcome for name, (_, outcome) in results.items()},
                )

                logger.info(
                    "refresh_cycle_completed",
                    succeeded=result.succeeded,
                    fallback=result.fallback,
                    empty=result.empty,
                )
                return result
