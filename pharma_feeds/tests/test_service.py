"""
End-to-end tests for FeedService over a mocked HTTP transport.
"""

import asyncio
from unittest.mock import patch

import httpx

from pharma_feeds.config import Settings
from pharma_feeds.models import SourceOutcome
from pharma_feeds.service import FeedService
from pharma_feeds.sources.base import FeedCategory
from pharma_feeds.sources.registry import SourceRegistry
from pharma_feeds.sources.rss import FeedFetcher


def make_service(make_source, rss_feed, rfc_date, clock, broken=("Regulatory Wire",)):
    sources = [
        make_source("Pharma Wire"),
        make_source("Regulatory Wire", category=FeedCategory.REGULATORY),
        make_source("Trial Wire", category=FeedCategory.CLINICAL_TRIALS),
    ]
    bodies = {
        "Pharma Wire": rss_feed([
            {"title": "Pfizer to acquire biotech", "pubDate": rfc_date(clock())},
            {"title": "Biosimilar launch planned", "pubDate": rfc_date(clock())},
        ]),
        "Regulatory Wire": rss_feed([
            {"title": "FDA warning letter", "pubDate": rfc_date(clock())},
        ]),
        "Trial Wire": rss_feed([
            {"title": "Phase 3 trial terminated", "description": "was recruiting",
             "pubDate": rfc_date(clock())},
        ]),
    }
    by_url = {s.url: s.name for s in sources}

    def handler(request):
        name = by_url[str(request.url)]
        if name in broken:
            return httpx.Response(500)
        return httpx.Response(200, text=bodies[name])

    fetcher = FeedFetcher(transport=httpx.MockTransport(handler))
    return FeedService(
        registry=SourceRegistry(sources),
        fetcher=fetcher,
        settings=Settings(),
        clock=clock,
    )


class TestFeedService:
    """Tests for FeedService operations."""

    def test_refresh_isolates_failures(self, make_source, rss_feed, rfc_date, clock):
        service = make_service(make_source, rss_feed, rfc_date, clock)

        result = asyncio.run(service.refresh_all())

        assert result.outcomes["Pharma Wire"] is SourceOutcome.SUCCESS
        assert result.outcomes["Trial Wire"] is SourceOutcome.SUCCESS
        assert result.outcomes["Regulatory Wire"] is SourceOutcome.EMPTY

        regulatory = asyncio.run(service.get_feeds_by_category(FeedCategory.REGULATORY))
        assert regulatory[0].items == ()
        assert regulatory[0].error == "HTTP 500"

        trials = asyncio.run(service.get_feeds_by_category(FeedCategory.CLINICAL_TRIALS))
        item = trials[0].items[0]
        assert item.extracted_info.type == "trial_terminated"
        assert item.extracted_info.severity.value == "high"

    def test_cold_cache_is_filled_on_demand(self, make_source, rss_feed, rfc_date, clock):
        service = make_service(make_source, rss_feed, rfc_date, clock, broken=())

        views = asyncio.run(service.get_all_feeds(limit=1))

        assert set(views) == set(FeedCategory)
        pharma = views[FeedCategory.PHARMACEUTICAL][0]
        assert len(pharma.items) == 1
        assert views[FeedCategory.PATENTS] == []
        assert service.has_working_feeds()

    def test_search_and_company_news(self, make_source, rss_feed, rfc_date, clock):
        service = make_service(make_source, rss_feed, rfc_date, clock)
        asyncio.run(service.refresh_all())

        results = asyncio.run(service.search("biosimilar"))
        assert [r.title for r in results] == ["Biosimilar launch planned"]

        news = asyncio.run(service.company_news("pfizer"))
        assert [r.title for r in news] == ["Pfizer to acquire biotech"]

    def test_trending_uses_settings_defaults(self, make_source, rss_feed, rfc_date, clock):
        service = make_service(make_source, rss_feed, rfc_date, clock)
        asyncio.run(service.refresh_all())

        topics = asyncio.run(service.trending())

        assert topics
        assert len(topics) <= service.settings.trending_limit

    def test_trending_explicit_zero_limit(self, make_source, rss_feed, rfc_date, clock):
        service = make_service(make_source, rss_feed, rfc_date, clock)
        asyncio.run(service.refresh_all())

        assert asyncio.run(service.trending(limit=0)) == []
        assert asyncio.run(service.search("pfizer", limit=0)) == []

    def test_empty_registry_is_kept(self, clock):
        service = FeedService(registry=SourceRegistry([]), settings=Settings(), clock=clock)

        assert len(service.registry) == 0
        assert service.get_feed_status() == {category: [] for category in FeedCategory}

    def test_feed_status(self, make_source, rss_feed, rfc_date, clock):
        service = make_service(make_source, rss_feed, rfc_date, clock)
        assert not service.has_working_feeds()

        before = service.get_feed_status()
        assert all(
            entry.status == "inactive" and entry.last_updated is None
            for entries in before.values() for entry in entries
        )

        asyncio.run(service.refresh_all())
        status = service.get_feed_status()

        pharma = status[FeedCategory.PHARMACEUTICAL][0]
        assert pharma.status == "active"
        assert pharma.item_count == 2
        assert pharma.last_updated == clock()

        regulatory = status[FeedCategory.REGULATORY][0]
        assert regulatory.status == "inactive"
        assert regulatory.error == "HTTP 500"
        assert regulatory.to_dict()["lastUpdated"] == clock().isoformat()

        assert service.has_working_feeds()

    def test_lifecycle(self, make_source, rss_feed, rfc_date, clock):
        """start() opens the shared client and starts the scheduler; stop() undoes both."""
        service = make_service(make_source, rss_feed, rfc_date, clock)

        async def scenario():
            with patch.object(service.scheduler, "start") as start, \
                    patch.object(service.scheduler, "stop") as stop:
                async with service:
                    assert service.fetcher._client is not None
                    start.assert_called_once()
                stop.assert_called_once()
            assert service.fetcher._client is None

        asyncio.run(scenario())
