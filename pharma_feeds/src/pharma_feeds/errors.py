"""
Error taxonomy for feed ingestion.

Only FetchError ever reaches an operator, and only as the ``error`` string on
a degraded snapshot. ParseError and ClassificationSkip are recovered where
they are raised.
"""

from typing import Optional


class FeedError(Exception):
    """Base class for feed ingestion errors."""


class FetchError(FeedError):
    """
    A feed could not be retrieved.

    Covers timeouts, DNS/connection failures, redirect loops and non-2xx
    responses (``status_code`` is set for the latter).
    """

    def __init__(
        self,
        source: str,
        cause: str,
        status_code: Optional[int] = None,
    ):
        self.source = source
        self.cause = cause
        self.status_code = status_code
        super().__init__(f"{source}: {cause}")

    def snapshot_message(self) -> str:
        """Human-readable error carried by the degraded snapshot."""
        if self.status_code is not None:
            return f"HTTP {self.status_code}"
        return f"Feed temporarily unavailable: {self.cause}"


class ParseError(FeedError):
    """Feed markup could not be interpreted as RSS or Atom."""


class ClassificationSkip(FeedError):
    """An entry has no usable title and is dropped."""
