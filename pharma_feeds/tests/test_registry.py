"""
Tests for the feed catalog.
"""

import pytest

from pharma_feeds.sources.base import FeedCategory, FeedSource
from pharma_feeds.sources.registry import SourceRegistry, get_source_registry


class TestFeedCategory:
    """Tests for FeedCategory.parse."""

    @pytest.mark.parametrize("value", [
        "clinicalTrials",
        "CLINICAL_TRIALS",
        "clinical_trials",
        FeedCategory.CLINICAL_TRIALS,
    ])
    def test_parse(self, value):
        assert FeedCategory.parse(value) is FeedCategory.CLINICAL_TRIALS

    def test_unknown(self):
        with pytest.raises(ValueError):
            FeedCategory.parse("gossip")


class TestDefaultRegistry:
    """Tests for the built-in catalog."""

    def test_counts_by_category(self):
        stats = SourceRegistry().get_stats()

        assert stats["total_sources"] == 16
        assert stats["by_category"] == {
            "pharmaceutical": 4,
            "patents": 3,
            "clinicalTrials": 3,
            "regulatory": 3,
            "financial": 3,
        }

    def test_names_are_unique(self):
        names = [s.name for s in SourceRegistry()]
        assert len(names) == len(set(names))

    def test_same_publisher_in_two_categories(self):
        """A publisher filed twice is two sources with one URL."""
        registry = SourceRegistry()
        pharma = registry.get_source("FiercePharma")
        finance = registry.get_source("FiercePharma Finance")

        assert pharma.url == finance.url
        assert pharma.category is FeedCategory.PHARMACEUTICAL
        assert finance.category is FeedCategory.FINANCIAL

    def test_every_source_is_https(self):
        assert all(s.url.startswith("https://") for s in SourceRegistry())

    def test_singleton(self):
        assert get_source_registry() is get_source_registry()


class TestCustomRegistry:
    """Tests for explicitly supplied catalogs."""

    def test_duplicate_names_rejected(self):
        source = FeedSource("Dup", "https://example.com/a", FeedCategory.PATENTS)
        with pytest.raises(ValueError):
            SourceRegistry([source, source])

    def test_list_sources_filters_by_category(self):
        registry = SourceRegistry([
            FeedSource("A", "https://example.com/a", FeedCategory.PATENTS),
            FeedSource("B", "https://example.com/b", FeedCategory.REGULATORY),
            FeedSource("C", "https://example.com/c", FeedCategory.PATENTS),
        ])

        assert [s.name for s in registry.list_sources("patents")] == ["A", "C"]
        assert [s.name for s in registry.list_sources()] == ["A", "B", "C"]
        assert registry.list_sources_by_category()[FeedCategory.FINANCIAL] == []
        assert registry.get_source("missing") is None

    def test_to_dict(self):
        source = FeedSource("A", "https://example.com/a", FeedCategory.CLINICAL_TRIALS, "desc")
        data = source.to_dict()
        assert data["category"] == "clinicalTrials"
        assert data["updateIntervalMs"] == 3_600_000
