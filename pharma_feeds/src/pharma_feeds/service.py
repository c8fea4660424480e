"""
Feed service facade.

Wires registry, fetcher, cache, ingestor and query engine together and
exposes the operations consumed by the routing layer and the CLI:

- refresh_all()                          one full refresh cycle
- get_all_feeds() / get_feeds_by_category()
- search() / company_news()
- trending()
- get_feed_status() / has_working_feeds()

The service is constructed explicitly; nothing starts on import. The
periodic refresh only runs between ``start()`` and ``stop()``.
"""

from datetime import timedelta
from typing import Optional

from .cache import Clock, SnapshotCache, utc_now
from .config import Settings, get_settings
from .ingest import FeedIngestor
from .logging_conf import get_logger
from .models import FeedItem, FeedSnapshot, FeedStatus, RefreshResult, TrendingTopic
from .query import DEFAULT_COMPANY_NEWS_LIMIT, QueryEngine
from .scheduler import FeedScheduler
from .sources.base import FeedCategory
from .sources.registry import SourceRegistry
from .sources.rss import FeedFetcher

logger = get_logger(__name__)


class FeedService:
    """
    Aggregated, classified industry news with per-source failure isolation.
    """

    def __init__(
        self,
        registry: Optional[SourceRegistry] = None,
        fetcher: Optional[FeedFetcher] = None,
        settings: Optional[Settings] = None,
        clock: Clock = utc_now,
    ):
        """
        Initialize service.

        Args:
            registry: Feed catalog (default: the built-in feeds)
            fetcher: Feed fetcher (default: built from settings)
            settings: Settings override (default: environment settings)
            clock: Current-time source shared by cache and pipeline
        """
        self.settings = settings or get_settings()
        self.registry = SourceRegistry() if registry is None else registry
        self.cache = SnapshotCache(
            ttl=timedelta(minutes=self.settings.cache_ttl_minutes),
            clock=clock,
        )
        self.fetcher = fetcher or FeedFetcher(
            timeout=self.settings.fetch_timeout,
            max_redirects=self.settings.max_redirects,
            user_agent=self.settings.user_agent,
        )
        self.ingestor = FeedIngestor(
            self.registry,
            self.cache,
            fetcher=self.fetcher,
            max_concurrent=self.settings.max_concurrent_fetches,
            max_items=self.settings.max_items_per_source,
        )
        self.query = QueryEngine(
            self.registry,
            self.cache,
            self.ingestor,
            max_search_results=self.settings.max_search_results,
        )
        self.scheduler = FeedScheduler(
            self.ingestor.refresh_all,
            interval_minutes=self.settings.refresh_interval_minutes,
        )

        logger.info(
            "feed_service_initialized",
            sources=len(self.registry),
            cache_ttl_minutes=self.settings.cache_ttl_minutes,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Open the shared HTTP client and start periodic refreshes."""
        await self.fetcher.open()
        self.scheduler.start()

    async def stop(self) -> None:
        """Stop periodic refreshes and close the HTTP client."""
        self.scheduler.stop()
        await self.fetcher.aclose()

    async def __aenter__(self) -> "FeedService":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def refresh_all(self) -> RefreshResult:
        """Run one full refresh cycle now and wait for it."""
        return await self.ingestor.refresh_all()

    async def get_all_feeds(
        self,
        limit: Optional[int] = None,
    ) -> dict[FeedCategory, list[FeedSnapshot]]:
        return await self.query.get_all(limit=limit)

    async def get_feeds_by_category(
        self,
        category: FeedCategory,
        limit: Optional[int] = None,
    ) -> list[FeedSnapshot]:
        return await self.query.get_category(category, limit=limit)

    async def search(
        self,
        query: str,
        category: Optional[FeedCategory] = None,
        limit: Optional[int] = None,
    ) -> list[FeedItem]:
        return await self.query.search(query, category=category, limit=limit)

    async def company_news(
        self,
        company: str,
        limit: int = DEFAULT_COMPANY_NEWS_LIMIT,
    ) -> list[FeedItem]:
        return await self.query.company_news(company, limit=limit)

    async def trending(
        self,
        window_hours: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[TrendingTopic]:
        return await self.query.trending(
            window_hours=(
                self.settings.trending_window_hours if window_hours is None else window_hours
            ),
            limit=self.settings.trending_limit if limit is None else limit,
        )

    def get_feed_status(self) -> dict[FeedCategory, list[FeedStatus]]:
        """
        Operational view of every source's cache entry.

        A source is ``active`` when it has a cached, non-degraded snapshot.
        """
        status = {}
        for category, sources in self.registry.list_sources_by_category().items():
            entries = []
            for source in sources:
                cached = self.cache.get(source.name)
                active = cached is not None and not cached.is_degraded
                entries.append(FeedStatus(
                    name=source.name,
                    url=source.url,
                    category=source.category,
                    description=source.description,
                    last_updated=cached.last_updated if cached else None,
                    status="active" if active else "inactive",
                    item_count=len(cached.items) if cached else 0,
                    error=cached.error if cached else None,
                ))
            status[category] = entries
        return status

    def has_working_feeds(self) -> bool:
        """Whether any source currently has items cached."""
        return any(
            snapshot is not None and snapshot.items
            for snapshot in (self.cache.get(name) for name in self.cache.names())
        )
