"""
Base types for feed sources.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class FeedCategory(str, Enum):
    """Editorial category a feed is filed under."""
    PHARMACEUTICAL = "pharmaceutical"
    PATENTS = "patents"
    CLINICAL_TRIALS = "clinicalTrials"
    REGULATORY = "regulatory"
    FINANCIAL = "financial"

    @classmethod
    def parse(cls, value: "str | FeedCategory") -> "FeedCategory":
        """
        Resolve a category from its value or member name.

        Accepts ``"clinicalTrials"``, ``"CLINICAL_TRIALS"`` and
        ``"clinical_trials"`` alike.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            pass
        key = value.strip().upper()
        if key in cls.__members__:
            return cls[key]
        raise ValueError(f"Unknown feed category: {value!r}")


@dataclass(frozen=True)
class FeedSource:
    """
    A catalog entry for one feed endpoint.

    ``update_interval_ms`` is informational; the refresh cadence is global.
    """
    name: str
    url: str
    category: FeedCategory
    description: str = ""
    update_interval_ms: int = 3_600_000
    priority: Optional[int] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "url": self.url,
            "category": self.category.value,
            "description": self.description,
            "updateIntervalMs": self.update_interval_ms,
            "priority": self.priority,
        }

    def __str__(self) -> str:
        return f"[{self.category.value}] {self.name} ({self.url[:50]})"
