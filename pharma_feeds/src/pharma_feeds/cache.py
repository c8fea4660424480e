"""
In-memory snapshot cache keyed by source name.

Holds the most recent snapshot per source. Snapshots are immutable and each
write replaces the whole entry, so a reader always sees either the previous
or the new snapshot, never a mix. There is no eviction besides overwrite and
nothing survives a restart.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .logging_conf import get_logger
from .models import FeedSnapshot

logger = get_logger(__name__)

DEFAULT_TTL = timedelta(minutes=30)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SnapshotCache:
    """
    Per-source snapshot store with a single freshness TTL.

    A snapshot is fresh while ``now - snapshot.last_updated < ttl``.
    """

    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        clock: Clock = utc_now,
    ):
        """
        Initialize cache.

        Args:
            ttl: How long a snapshot stays fresh after its ``last_updated``
            clock: Returns the current aware datetime (tests pin this)
        """
        self.ttl = ttl
        self.clock = clock
        self._entries: dict[str, FeedSnapshot] = {}

    def get(self, source_name: str) -> Optional[FeedSnapshot]:
        """Latest snapshot for a source, fresh or not."""
        return self._entries.get(source_name)

    def put(self, snapshot: FeedSnapshot) -> None:
        """Store a snapshot, replacing any previous one for the same source."""
        self._entries[snapshot.source] = snapshot
        logger.debug(
            "snapshot_cached",
            source=snapshot.source,
            items=len(snapshot.items),
            degraded=snapshot.is_degraded,
        )

    def is_fresh(self, snapshot: Optional[FeedSnapshot]) -> bool:
        if snapshot is None:
            return False
        return self.clock() - snapshot.last_updated < self.ttl

    def get_fresh(self, source_name: str) -> Optional[FeedSnapshot]:
        """Snapshot for a source if it is still within the TTL."""
        snapshot = self.get(source_name)
        return snapshot if self.is_fresh(snapshot) else None

    def get_fallback(self, source_name: str) -> Optional[FeedSnapshot]:
        """Fresh, non-degraded snapshot usable in place of a failed fetch."""
        snapshot = self.get_fresh(source_name)
        if snapshot is None or snapshot.is_degraded:
            return None
        return snapshot

    def names(self) -> list[str]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, source_name: str) -> bool:
        return source_name in self._entries

    def __len__(self) -> int:
        return len(self._entries)
