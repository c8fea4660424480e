"""
Read side of the service: category views, search and trending topics.

Reads come from the snapshot cache. A source whose snapshot is missing or
stale is refreshed on demand, and only that source: a category view waits
for its own stale sources, never for unrelated ones.
"""

import asyncio
import re
from collections import Counter
from datetime import timedelta
from typing import Optional

from .cache import SnapshotCache
from .classifier import recency_key
from .config import get_settings
from .ingest import FeedIngestor
from .logging_conf import get_logger
from .models import FeedItem, FeedSnapshot, Relevance, TrendingTopic
from .sources.base import FeedCategory
from .sources.registry import SourceRegistry

logger = get_logger(__name__)

DEFAULT_COMPANY_NEWS_LIMIT = 20

_TOKEN_RE = re.compile(r"\b\w{4,}\b")

STOPWORDS = frozenset({
    "this", "that", "with", "from", "they", "have", "been", "will", "were",
    "their", "about", "after", "also", "into", "more", "over", "said", "than",
    "them", "then", "there", "these", "what", "when", "which", "while", "would",
    "could", "should", "other", "some", "such", "only", "most", "your", "where",
    "under", "first", "year", "years", "news", "says", "week", "today",
})

TIMEFRAMES = {"24h": 24, "7d": 7 * 24, "30d": 30 * 24}


def parse_timeframe(timeframe: Optional[str]) -> int:
    """Window hours for ``24h``/``7d``/``30d``; anything else means 24 hours."""
    if not timeframe:
        return TIMEFRAMES["24h"]
    return TIMEFRAMES.get(timeframe.strip().lower(), TIMEFRAMES["24h"])


def rank_items(items: list[FeedItem]) -> list[FeedItem]:
    """Order by relevance tier, then most recent first (undated last)."""
    return sorted(
        items,
        key=lambda item: (item.relevance.rank, *recency_key(item)),
        reverse=True,
    )


def extract_keywords(text: str) -> list[str]:
    """Keyword candidates in a text: lower-cased words of 4+ chars, no stopwords."""
    return [
        token for token in _TOKEN_RE.findall(text.lower())
        if not token.isdigit() and token not in STOPWORDS
    ]


class QueryEngine:
    """
    Serves views over the cached snapshots.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        cache: SnapshotCache,
        ingestor: FeedIngestor,
        max_search_results: Optional[int] = None,
    ):
        self.registry = registry
        self.cache = cache
        self.ingestor = ingestor
        if max_search_results is None:
            max_search_results = get_settings().max_search_results
        self.max_search_results = max_search_results

    async def get_category(
        self,
        category: FeedCategory,
        limit: Optional[int] = None,
    ) -> list[FeedSnapshot]:
        """
        Snapshots for every source in a category, in registry order.

        Fresh snapshots are served from cache; missing or stale ones are
        refreshed concurrently before returning.
        """
        category = FeedCategory.parse(category)
        sources = self.registry.list_sources(category)

        snapshots: dict[str, FeedSnapshot] = {}
        stale = []
        for source in sources:
            cached = self.cache.get_fresh(source.name)
            if cached is not None:
                snapshots[source.name] = cached
            else:
                stale.append(source)

        if stale:
            logger.info(
                "category_refresh_on_demand",
                category=category.value,
                sources=[s.name for s in stale],
            )
            refreshed = await self.ingestor.refresh_sources(stale)
            for name, (snapshot, _) in refreshed.items():
                snapshots[name] = snapshot

        return [snapshots[s.name].with_item_limit(limit) for s in sources]

    async def get_all(self, limit: Optional[int] = None) -> dict[FeedCategory, list[FeedSnapshot]]:
        """Category views for every category."""
        categories = self.registry.categories
        views = await asyncio.gather(
            *(self.get_category(category, limit) for category in categories)
        )
        return dict(zip(categories, views))

    async def _all_items(self, category: Optional[FeedCategory] = None) -> list[FeedItem]:
        if category is not None:
            snapshots = await self.get_category(category)
        else:
            views = await self.get_all()
            snapshots = [s for view in views.values() for s in view]
        return [item for snapshot in snapshots for item in snapshot.items]

    async def search(
        self,
        query: str,
        category: Optional[FeedCategory] = None,
        limit: Optional[int] = None,
    ) -> list[FeedItem]:
        """
        Case-insensitive substring search over title and description.

        Results are ranked by relevance tier, then recency.
        """
        needle = (query or "").strip().lower()
        if not needle:
            return []

        if category is not None:
            category = FeedCategory.parse(category)

        matches = [
            item for item in await self._all_items(category)
            if needle in item.search_text
        ]

        if limit is None:
            limit = self.max_search_results
        results = rank_items(matches)[:max(limit, 0)]

        logger.debug(
            "search_completed",
            query=query,
            category=category.value if category else "all",
            matches=len(matches),
            returned=len(results),
        )
        return results

    async def company_news(
        self,
        company: str,
        limit: int = DEFAULT_COMPANY_NEWS_LIMIT,
    ) -> list[FeedItem]:
        """News mentioning a company across every category."""
        return await self.search(company, limit=limit)

    async def trending(
        self,
        window_hours: int = 24,
        limit: int = 10,
    ) -> list[TrendingTopic]:
        """
        Most frequent keywords among items published within the window.

        Ties on frequency are broken by the best relevance among the items
        mentioning the keyword, then alphabetically.
        """
        now = self.cache.clock()
        cutoff = now - timedelta(hours=window_hours)

        recent = [
            item for item in await self._all_items()
            if item.published_at is not None and item.published_at >= cutoff
        ]

        counts: Counter = Counter()
        best: dict[str, Relevance] = {}
        for item in recent:
            for keyword in extract_keywords(f"{item.title} {item.description}"):
                counts[keyword] += 1
                if keyword not in best or item.relevance.rank > best[keyword].rank:
                    best[keyword] = item.relevance

        ranked = sorted(
            counts.items(),
            key=lambda kv: (-kv[1], -best[kv[0]].rank, kv[0]),
        )

        topics = [
            TrendingTopic(keyword=keyword, count=count, relevance=best[keyword])
            for keyword, count in ranked[:max(limit, 0)]
        ]

        logger.debug(
            "trending_computed",
            window_hours=window_hours,
            items=len(recent),
            topics=len(topics),
        )
        return topics
