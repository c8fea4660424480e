"""
Static catalog of pharmaceutical industry feeds, grouped by category.

Categories:
    pharmaceutical  - approvals, M&A, company news
    patents         - patent law, litigation, USPTO updates
    clinicalTrials  - trial announcements and results
    regulatory      - agency actions, compliance, guidance
    financial       - earnings, market moves, analyst ratings

Source names are unique across the whole registry; they key the snapshot
cache.
"""

from typing import Iterable, Optional

from .base import FeedCategory, FeedSource
from ..logging_conf import get_logger

logger = get_logger(__name__)

HOUR_MS = 3_600_000


class SourceRegistry:
    """
    Central catalog of feed sources.

    Built once at process start; sources are never mutated afterwards.
    """

    def __init__(self, sources: Optional[Iterable[FeedSource]] = None):
        """
        Initialize registry.

        Args:
            sources: Explicit catalog. When omitted the default feeds are used.
        """
        self._sources: list[FeedSource] = []
        self._by_name: dict[str, FeedSource] = {}

        if sources is None:
            self._setup_default_sources()
        else:
            for source in sources:
                self._add_source(source)

    def _add_source(self, source: FeedSource) -> None:
        if source.name in self._by_name:
            raise ValueError(f"Duplicate feed source name: {source.name!r}")
        self._sources.append(source)
        self._by_name[source.name] = source

    def _setup_default_sources(self) -> None:
        """Configure all default feeds by category."""

        # ==============================================================
        # PHARMACEUTICAL
        # ==============================================================

        self._add_source(FeedSource(
            name="FiercePharma",
            url="https://www.fiercepharma.com/rss/xml",
            category=FeedCategory.PHARMACEUTICAL,
            description="Drug approvals, M&A, company news",
            update_interval_ms=HOUR_MS,
            priority=3,
        ))
        self._add_source(FeedSource(
            name="FierceBiotech",
            url="https://www.fiercebiotech.com/rss/xml",
            category=FeedCategory.PHARMACEUTICAL,
            description="Biotech developments, clinical trials",
            update_interval_ms=HOUR_MS,
            priority=3,
        ))
        self._add_source(FeedSource(
            name="BioPharma Dive",
            url="https://www.biopharmadive.com/feeds/news/",
            category=FeedCategory.PHARMACEUTICAL,
            description="Industry insights and analysis",
            update_interval_ms=HOUR_MS,
            priority=2,
        ))
        self._add_source(FeedSource(
            name="Reuters Health",
            url="https://feeds.reuters.com/reuters/healthNews",
            category=FeedCategory.PHARMACEUTICAL,
            description="Health and pharmaceutical news",
            update_interval_ms=HOUR_MS // 2,
            priority=2,
        ))

        # ==============================================================
        # PATENTS
        # ==============================================================

        self._add_source(FeedSource(
            name="IPWatchdog",
            url="https://www.ipwatchdog.com/feed/",
            category=FeedCategory.PATENTS,
            description="Patent law, USPTO updates",
            update_interval_ms=2 * HOUR_MS,
            priority=2,
        ))
        self._add_source(FeedSource(
            name="Managing IP",
            url="https://www.managingip.com/rss",
            category=FeedCategory.PATENTS,
            description="Intellectual property news",
            update_interval_ms=2 * HOUR_MS,
        ))
        self._add_source(FeedSource(
            name="Patent Docs",
            url="https://patentdocs.typepad.com/patent_docs/atom.xml",
            category=FeedCategory.PATENTS,
            description="Patent litigation, IP strategy",
            update_interval_ms=2 * HOUR_MS,
        ))

        # ==============================================================
        # CLINICAL TRIALS
        # ==============================================================

        self._add_source(FeedSource(
            name="ClinicalTrials.gov",
            url="https://clinicaltrials.gov/ct2/results/rss.xml?rcv_d=14&lup_d=14&sel_rss=new14",
            category=FeedCategory.CLINICAL_TRIALS,
            description="New clinical trial announcements",
            update_interval_ms=HOUR_MS,
            priority=3,
        ))
        self._add_source(FeedSource(
            name="Nature Medicine",
            url="https://www.nature.com/nm.rss",
            category=FeedCategory.CLINICAL_TRIALS,
            description="Medical research breakthroughs",
            update_interval_ms=2 * HOUR_MS,
        ))
        self._add_source(FeedSource(
            name="Science Daily",
            url="https://www.sciencedaily.com/rss/health_medicine.xml",
            category=FeedCategory.CLINICAL_TRIALS,
            description="Medical research news",
            update_interval_ms=HOUR_MS,
        ))

        # ==============================================================
        # REGULATORY
        # ==============================================================

        self._add_source(FeedSource(
            name="FDA News (via Reuters)",
            url="https://feeds.reuters.com/reuters/governmentfilings",
            category=FeedCategory.REGULATORY,
            description="Government filings and regulatory news",
            update_interval_ms=HOUR_MS // 2,
            priority=3,
        ))
        self._add_source(FeedSource(
            name="Regulatory Focus",
            url="https://www.raps.org/news-and-articles/news-feed",
            category=FeedCategory.REGULATORY,
            description="Regulatory Affairs Professional Society updates",
            update_interval_ms=HOUR_MS,
            priority=2,
        ))
        self._add_source(FeedSource(
            name="Pharma Manufacturing",
            url="https://www.pharmamanufacturing.com/rss/",
            category=FeedCategory.REGULATORY,
            description="Manufacturing compliance and regulations",
            update_interval_ms=2 * HOUR_MS,
        ))

        # ==============================================================
        # FINANCIAL
        # The same publishers as above, filed separately so that each
        # category gets its own classification of the feed.
        # ==============================================================

        self._add_source(FeedSource(
            name="FiercePharma Finance",
            url="https://www.fiercepharma.com/rss/xml",
            category=FeedCategory.FINANCIAL,
            description="Pharmaceutical industry financial news",
            update_interval_ms=HOUR_MS,
            priority=2,
        ))
        self._add_source(FeedSource(
            name="FierceBiotech Finance",
            url="https://www.fiercebiotech.com/rss/xml",
            category=FeedCategory.FINANCIAL,
            description="Biotech industry news and analysis",
            update_interval_ms=HOUR_MS,
        ))
        self._add_source(FeedSource(
            name="BioPharma Dive Finance",
            url="https://www.biopharmadive.com/feeds/news/",
            category=FeedCategory.FINANCIAL,
            description="Pharmaceutical industry insights",
            update_interval_ms=HOUR_MS,
        ))

        logger.info(
            "source_registry_initialized",
            total_sources=len(self._sources),
            **{c.value: len(self.list_sources(c)) for c in FeedCategory},
        )

    @property
    def sources(self) -> list[FeedSource]:
        return list(self._sources)

    @property
    def categories(self) -> list[FeedCategory]:
        """Every category, in declaration order."""
        return list(FeedCategory)

    def get_source(self, name: str) -> Optional[FeedSource]:
        """Get a source by name."""
        return self._by_name.get(name)

    def list_sources(self, category: Optional[FeedCategory] = None) -> list[FeedSource]:
        """List sources, optionally filtered by category."""
        if category is None:
            return list(self._sources)
        category = FeedCategory.parse(category)
        return [s for s in self._sources if s.category == category]

    def list_sources_by_category(self) -> dict[FeedCategory, list[FeedSource]]:
        """Get sources organized by category."""
        result = {category: [] for category in FeedCategory}
        for source in self._sources:
            result[source.category].append(source)
        return result

    def get_stats(self) -> dict:
        """Get registry statistics."""
        return {
            "total_sources": len(self._sources),
            "by_category": {
                category.value: len(sources)
                for category, sources in self.list_sources_by_category().items()
            },
        }

    def __len__(self) -> int:
        return len(self._sources)

    def __iter__(self):
        return iter(self._sources)


# Singleton instance
_registry_instance: Optional[SourceRegistry] = None


def get_source_registry() -> SourceRegistry:
    """Get or create the default source registry instance."""
    global _registry_instance
    if _registry_instance is None:
        _registry_instance = SourceRegistry()
    return _registry_instance
