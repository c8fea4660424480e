"""
Tests for the refresh pipeline.

Tests:
- Snapshot contents after a successful refresh
- Per-source failure isolation
- Fallback to a fresh prior snapshot
- Empty error snapshots when nothing can be served
- Overlapping cycles are skipped
"""

import asyncio
from datetime import timedelta

from pharma_feeds.cache import SnapshotCache
from pharma_feeds.errors import FetchError
from pharma_feeds.ingest import NO_ITEMS_MESSAGE, FeedIngestor
from pharma_feeds.models import SourceOutcome
from pharma_feeds.sources.base import FeedCategory
from pharma_feeds.sources.registry import SourceRegistry


class StubFetcher:
    """Returns canned markup or raises canned errors, keyed by source name."""

    def __init__(self, responses: dict):
        self.responses = responses
        self.calls = []

    async def fetch(self, source):
        self.calls.append(source.name)
        response = self.responses[source.name]
        if isinstance(response, Exception):
            raise response
        return response


def make_ingestor(sources, fetcher, clock):
    cache = SnapshotCache(ttl=timedelta(minutes=30), clock=clock)
    ingestor = FeedIngestor(SourceRegistry(sources), cache, fetcher=fetcher, max_concurrent=4, max_items=10)
    return ingestor, cache


class TestRefreshSource:
    """Tests for a single source's pipeline."""

    def test_success_caches_at_most_ten_titled_items(self, make_source, rss_feed, clock):
        source = make_source("Big Feed")
        entries = [{"title": f"Story {i}"} for i in range(15)]
        entries.insert(0, {"title": "No Title"})
        fetcher = StubFetcher({"Big Feed": rss_feed(entries)})
        ingestor, cache = make_ingestor([source], fetcher, clock)

        snapshot, outcome = asyncio.run(ingestor.refresh_source(source))

        assert outcome is SourceOutcome.SUCCESS
        assert 0 < len(snapshot.items) <= 10
        assert all(item.title and item.title != "No Title" for item in snapshot.items)
        assert snapshot.error is None
        assert snapshot.last_updated == clock()
        assert cache.get("Big Feed") is snapshot

    def test_items_carry_source_metadata(self, make_source, rss_feed, clock):
        source = make_source("Trials", category=FeedCategory.CLINICAL_TRIALS)
        fetcher = StubFetcher({"Trials": rss_feed([{"title": "Phase 3 trial terminated"}])})
        ingestor, _ = make_ingestor([source], fetcher, clock)

        snapshot, _ = asyncio.run(ingestor.refresh_source(source))

        item = snapshot.items[0]
        assert item.source == "Trials"
        assert item.category is FeedCategory.CLINICAL_TRIALS
        assert item.extracted_info.type == "trial_terminated"

    def test_fetch_failure_without_prior_snapshot(self, make_source, clock):
        source = make_source("Down Feed")
        fetcher = StubFetcher({"Down Feed": FetchError("Down Feed", "timeout after 15s")})
        ingestor, cache = make_ingestor([source], fetcher, clock)

        snapshot, outcome = asyncio.run(ingestor.refresh_source(source))

        assert outcome is SourceOutcome.EMPTY
        assert snapshot.items == ()
        assert snapshot.error == "Feed temporarily unavailable: timeout after 15s"
        assert cache.get("Down Feed") is snapshot

    def test_http_status_error_message(self, make_source, clock):
        source = make_source("Status Feed")
        fetcher = StubFetcher({"Status Feed": FetchError("Status Feed", "HTTP 503", status_code=503)})
        ingestor, _ = make_ingestor([source], fetcher, clock)

        snapshot, _ = asyncio.run(ingestor.refresh_source(source))

        assert snapshot.error == "HTTP 503"

    def test_no_valid_items(self, make_source, rss_feed, clock):
        source = make_source("Untitled Feed")
        fetcher = StubFetcher({"Untitled Feed": rss_feed([{"title": "No Title"}, {"description": "x"}])})
        ingestor, _ = make_ingestor([source], fetcher, clock)

        snapshot, outcome = asyncio.run(ingestor.refresh_source(source))

        assert outcome is SourceOutcome.EMPTY
        assert snapshot.error == NO_ITEMS_MESSAGE

    def test_unparseable_markup(self, make_source, clock):
        source = make_source("Broken Feed")
        fetcher = StubFetcher({"Broken Feed": "<html><body>Service unavailable</body></html>"})
        ingestor, _ = make_ingestor([source], fetcher, clock)

        snapshot, outcome = asyncio.run(ingestor.refresh_source(source))

        assert outcome is SourceOutcome.EMPTY
        assert snapshot.error == NO_ITEMS_MESSAGE

    def test_unexpected_exception_is_contained(self, make_source, clock):
        source = make_source("Buggy Feed")
        fetcher = StubFetcher({"Buggy Feed": RuntimeError("boom")})
        ingestor, _ = make_ingestor([source], fetcher, clock)

        snapshot, outcome = asyncio.run(ingestor.refresh_source(source))

        assert outcome is SourceOutcome.EMPTY
        assert "boom" in snapshot.error


class TestFallback:
    """Tests for serving the previous snapshot after a failed fetch."""

    def test_failure_keeps_fresh_prior_snapshot(self, make_source, rss_feed, clock):
        """The prior snapshot is served unchanged: same items, same timestamp, no error."""
        source = make_source("Flaky Feed")
        fetcher = StubFetcher({"Flaky Feed": rss_feed([{"title": "Good story"}])})
        ingestor, cache = make_ingestor([source], fetcher, clock)

        first, _ = asyncio.run(ingestor.refresh_source(source))

        clock.advance(minutes=10)
        fetcher.responses["Flaky Feed"] = FetchError("Flaky Feed", "HTTP 500", status_code=500)

        second, outcome = asyncio.run(ingestor.refresh_source(source))

        assert outcome is SourceOutcome.FALLBACK
        assert second is first
        assert second.items == first.items
        assert second.last_updated == first.last_updated
        assert second.error is None
        assert cache.get("Flaky Feed") is first

    def test_stale_prior_snapshot_is_not_reused(self, make_source, rss_feed, clock):
        source = make_source("Flaky Feed")
        fetcher = StubFetcher({"Flaky Feed": rss_feed([{"title": "Good story"}])})
        ingestor, cache = make_ingestor([source], fetcher, clock)

        asyncio.run(ingestor.refresh_source(source))

        clock.advance(minutes=31)
        fetcher.responses["Flaky Feed"] = FetchError("Flaky Feed", "HTTP 500", status_code=500)

        snapshot, outcome = asyncio.run(ingestor.refresh_source(source))

        assert outcome is SourceOutcome.EMPTY
        assert snapshot.items == ()
        assert snapshot.error == "HTTP 500"

    def test_degraded_prior_snapshot_is_not_reused(self, make_source, clock):
        source = make_source("Down Feed")
        fetcher = StubFetcher({"Down Feed": FetchError("Down Feed", "refused")})
        ingestor, _ = make_ingestor([source], fetcher, clock)

        first, _ = asyncio.run(ingestor.refresh_source(source))
        clock.advance(minutes=1)
        second, outcome = asyncio.run(ingestor.refresh_source(source))

        assert outcome is SourceOutcome.EMPTY
        assert second is not first
        assert second.last_updated == clock()


class TestRefreshAll:
    """Tests for full refresh cycles."""

    def test_failure_isolation(self, make_source, rss_feed, clock):
        """One failing source does not affect the others."""
        sources = [
            make_source("A"),
            make_source("B", category=FeedCategory.REGULATORY),
            make_source("C", category=FeedCategory.FINANCIAL),
        ]
        fetcher = StubFetcher({
            "A": rss_feed([{"title": "Story A"}]),
            "B": FetchError("B", "connection refused"),
            "C": rss_feed([{"title": "Story C"}]),
        })
        ingestor, cache = make_ingestor(sources, fetcher, clock)

        result = asyncio.run(ingestor.refresh_all())

        assert result.skipped is False
        assert result.succeeded == 2
        assert result.failed == 1
        assert result.outcomes == {
            "A": SourceOutcome.SUCCESS,
            "B": SourceOutcome.EMPTY,
            "C": SourceOutcome.SUCCESS,
        }
        assert cache.get("A").items[0].title == "Story A"
        assert cache.get("B").error == "Feed temporarily unavailable: connection refused"
        assert cache.get("C").items[0].title == "Story C"

    def test_every_source_fetched_once(self, make_source, rss_feed, clock):
        sources = [make_source(f"S{i}") for i in range(6)]
        fetcher = StubFetcher({s.name: rss_feed([{"title": "x"}]) for s in sources})
        ingestor, _ = make_ingestor(sources, fetcher, clock)

        asyncio.run(ingestor.refresh_all())

        assert sorted(fetcher.calls) == sorted(s.name for s in sources)

    def test_overlapping_cycle_is_skipped(self, make_source, rss_feed, clock):
        """A cycle requested while one is running returns immediately."""
        source = make_source("Slow Feed")
        started = asyncio.Event()
        release = asyncio.Event()

        class SlowFetcher:
            async def fetch(self, src):
                started.set()
                await release.wait()
                return rss_feed([{"title": "Eventually"}])

        ingestor, _ = make_ingestor([source], SlowFetcher(), clock)

        async def scenario():
            first = asyncio.create_task(ingestor.refresh_all())
            await started.wait()
            assert ingestor.is_running

            second = await ingestor.refresh_all()

            release.set()
            return await first, second

        first, second = asyncio.run(scenario())

        assert second.skipped is True
        assert second.outcomes == {}
        assert first.skipped is False
        assert first.succeeded == 1
        assert not ingestor.is_running
