"""
Data model for classified feed content.

FeedItem is one classified news entry, FeedSnapshot the cached unit (one
per source), and the ExtractedInfo variants carry the per-category
classification output. Everything here is immutable once built; snapshots
are swapped wholesale, never edited.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import ClassVar, Optional, Union

from .sources.base import FeedCategory


class Relevance(str, Enum):
    """Coarse urgency tier attached to every item."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _RELEVANCE_RANK[self]


_RELEVANCE_RANK = {Relevance.LOW: 1, Relevance.MEDIUM: 2, Relevance.HIGH: 3}


class Severity(str, Enum):
    """Finer urgency gradient for clinical trial and regulatory news."""
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    def to_relevance(self) -> Relevance:
        if self in (Severity.HIGH, Severity.CRITICAL):
            return Relevance.HIGH
        return Relevance.MEDIUM


class MarketImpact(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


# ---------------------------------------------------------------------------
# Extracted info, one variant per category
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PharmaInfo:
    """Classification of pharmaceutical company news."""
    CATEGORY: ClassVar[FeedCategory] = FeedCategory.PHARMACEUTICAL

    type: str = "general"
    companies: tuple[str, ...] = ()
    drugs: tuple[str, ...] = ()
    regulatory: bool = False
    relevance: Relevance = Relevance.MEDIUM

    @property
    def category(self) -> FeedCategory:
        return self.CATEGORY

    def to_dict(self) -> dict:
        return {
            "category": self.CATEGORY.value,
            "type": self.type,
            "relevance": self.relevance.value,
            "companies": list(self.companies),
            "drugs": list(self.drugs),
            "regulatory": self.regulatory,
        }


@dataclass(frozen=True)
class PatentInfo:
    """Classification of patent and IP news."""
    CATEGORY: ClassVar[FeedCategory] = FeedCategory.PATENTS

    type: str = "general"
    patent_types: tuple[str, ...] = ()
    legal: bool = False
    relevance: Relevance = Relevance.MEDIUM

    @property
    def category(self) -> FeedCategory:
        return self.CATEGORY

    def to_dict(self) -> dict:
        return {
            "category": self.CATEGORY.value,
            "type": self.type,
            "relevance": self.relevance.value,
            "patentTypes": list(self.patent_types),
            "legal": self.legal,
        }


@dataclass(frozen=True)
class ClinicalTrialInfo:
    """Classification of clinical trial news."""
    CATEGORY: ClassVar[FeedCategory] = FeedCategory.CLINICAL_TRIALS

    type: str = "general"
    phases: tuple[str, ...] = ()
    conditions: tuple[str, ...] = ()
    companies: tuple[str, ...] = ()
    trial_status: str = "unknown"
    severity: Severity = Severity.MEDIUM
    relevance: Relevance = Relevance.MEDIUM

    @property
    def category(self) -> FeedCategory:
        return self.CATEGORY

    def to_dict(self) -> dict:
        return {
            "category": self.CATEGORY.value,
            "type": self.type,
            "relevance": self.relevance.value,
            "phases": list(self.phases),
            "conditions": list(self.conditions),
            "companies": list(self.companies),
            "trialStatus": self.trial_status,
            "severity": self.severity.value,
        }


@dataclass(frozen=True)
class RegulatoryInfo:
    """Classification of regulatory agency news."""
    CATEGORY: ClassVar[FeedCategory] = FeedCategory.REGULATORY

    type: str = "general"
    regulatory_agencies: tuple[str, ...] = ()
    compliance: bool = False
    companies: tuple[str, ...] = ()
    severity: Severity = Severity.MEDIUM
    relevance: Relevance = Relevance.MEDIUM

    @property
    def category(self) -> FeedCategory:
        return self.CATEGORY

    def to_dict(self) -> dict:
        return {
            "category": self.CATEGORY.value,
            "type": self.type,
            "relevance": self.relevance.value,
            "regulatoryAgencies": list(self.regulatory_agencies),
            "compliance": self.compliance,
            "companies": list(self.companies),
            "severity": self.severity.value,
        }


@dataclass(frozen=True)
class FinancialInfo:
    """Classification of market and earnings news."""
    CATEGORY: ClassVar[FeedCategory] = FeedCategory.FINANCIAL

    type: str = "general"
    market_impact: MarketImpact = MarketImpact.NEUTRAL
    relevance: Relevance = Relevance.MEDIUM

    @property
    def category(self) -> FeedCategory:
        return self.CATEGORY

    def to_dict(self) -> dict:
        return {
            "category": self.CATEGORY.value,
            "type": self.type,
            "relevance": self.relevance.value,
            "marketImpact": self.market_impact.value,
        }


ExtractedInfo = Union[PharmaInfo, PatentInfo, ClinicalTrialInfo, RegulatoryInfo, FinancialInfo]


# ---------------------------------------------------------------------------
# Items and snapshots
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FeedItem:
    """
    One classified news entry.

    ``published_at`` is None when the feed's date string could not be
    parsed; ``published_raw`` always keeps the original string.
    """
    title: str
    description: str
    link: str
    published_at: Optional[datetime]
    published_raw: str
    author: str
    category: FeedCategory
    source: str
    extracted_info: ExtractedInfo
    relevance: Relevance = Relevance.MEDIUM

    @property
    def search_text(self) -> str:
        return f"{self.title} {self.description}".lower()

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "title": self.title,
            "description": self.description,
            "link": self.link,
            "pubDate": self.published_at.isoformat() if self.published_at else self.published_raw,
            "author": self.author,
            "category": self.category.value,
            "source": self.source,
            "extractedInfo": self.extracted_info.to_dict(),
            "relevance": self.relevance.value,
        }

    def __str__(self) -> str:
        return f"[{self.relevance.value}:{self.category.value}] {self.source}: {self.title[:60]}"


@dataclass(frozen=True)
class FeedSnapshot:
    """
    The cached result of ingesting one feed at one point in time.

    ``error`` is set only on a degraded snapshot (no items could be served).
    """
    source: str
    category: FeedCategory
    description: str
    last_updated: datetime
    items: tuple[FeedItem, ...] = ()
    error: Optional[str] = None

    @property
    def is_degraded(self) -> bool:
        return self.error is not None

    def with_item_limit(self, limit: Optional[int]) -> "FeedSnapshot":
        """Copy of this snapshot with at most ``limit`` items."""
        if limit is None or len(self.items) <= limit:
            return self
        return replace(self, items=self.items[:max(limit, 0)])

    def to_dict(self) -> dict:
        data = {
            "source": self.source,
            "category": self.category.value,
            "description": self.description,
            "lastUpdated": self.last_updated.isoformat(),
            "items": [item.to_dict() for item in self.items],
        }
        if self.error is not None:
            data["error"] = self.error
        return data


# ---------------------------------------------------------------------------
# Query and status results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TrendingTopic:
    keyword: str
    count: int
    relevance: Relevance

    def to_dict(self) -> dict:
        return {
            "keyword": self.keyword,
            "count": self.count,
            "relevance": self.relevance.value,
        }


@dataclass(frozen=True)
class FeedStatus:
    """Operational view of one source's cache entry."""
    name: str
    url: str
    category: FeedCategory
    description: str
    last_updated: Optional[datetime]
    status: str
    item_count: int
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "url": self.url,
            "category": self.category.value,
            "description": self.description,
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else "Never",
            "status": self.status,
            "itemCount": self.item_count,
            "error": self.error,
        }


class SourceOutcome(str, Enum):
    """How one source fared in a refresh cycle."""
    SUCCESS = "success"
    FALLBACK = "fallback"
    EMPTY = "empty"


@dataclass
class RefreshResult:
    """Summary of one full refresh cycle."""
    started_at: datetime
    finished_at: Optional[datetime] = None
    outcomes: dict[str, SourceOutcome] = field(default_factory=dict)
    skipped: bool = False

    def _count(self, outcome: SourceOutcome) -> int:
        return sum(1 for o in self.outcomes.values() if o is outcome)

    @property
    def succeeded(self) -> int:
        return self._count(SourceOutcome.SUCCESS)

    @property
    def fallback(self) -> int:
        return self._count(SourceOutcome.FALLBACK)

    @property
    def failed(self) -> int:
        """Sources that fell back or ended empty."""
        return len(self.outcomes) - self.succeeded

    @property
    def empty(self) -> int:
        return self._count(SourceOutcome.EMPTY)

    def to_dict(self) -> dict:
        return {
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "skipped": self.skipped,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "fallback": self.fallback,
            "empty": self.empty,
            "outcomes": {name: o.value for name, o in self.outcomes.items()},
        }
