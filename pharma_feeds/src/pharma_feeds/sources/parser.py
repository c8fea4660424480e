"""
Feed markup parser.

Turns RSS 2.0 / Atom markup into a list of raw entries: flat ``str -> str``
mappings keyed by the vendor field name the value came from (``title``,
``description``, ``content:encoded``, ``pubDate``, ...). The classifier picks
the fields it needs from these.

Supported envelopes:
- ``<rss><channel><item>``   (RSS 2.0, also RDF-rooted RSS 1.0)
- ``<feed><entry>``          (Atom)
- ``<channel><item>``        (bare channel without the rss wrapper)

The parser never raises. Unrecognizable markup produces an empty list.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

import feedparser

from .base import FeedSource
from ..errors import ParseError
from ..logging_conf import get_logger

logger = get_logger(__name__)

MAX_ENTRIES = 10

RawEntry = dict[str, str]

# Keys that hold the text of a wrapped value, in lookup order
_TEXT_KEYS = ("value", "text", "#text", "_", "name", "href")

_ROOT_RE = re.compile(r"<(?![?!])\s*([A-Za-z_][\w:.\-]*)")


class Envelope(str, Enum):
    """Structural shape of a feed document."""
    RSS = "rss"
    ATOM = "atom"
    BARE_CHANNEL = "channel"
    UNKNOWN = "unknown"


class Shape(str, Enum):
    """How many values a parsed field holds."""
    SINGLE = "single"
    LIST = "list"
    ABSENT = "absent"


@dataclass(frozen=True)
class Shaped:
    """A field value tagged with its shape."""
    shape: Shape
    values: tuple = ()

    @property
    def first(self) -> Any:
        return self.values[0] if self.values else None


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, Mapping)):
        return len(value) == 0
    return False


def shape_of(value: Any) -> Shaped:
    """
    Classify a parsed value as single, list or absent.

    Lists are filtered of empty members; a list that ends up empty is absent.
    """
    if _is_empty(value):
        return Shaped(Shape.ABSENT)
    if isinstance(value, (list, tuple)):
        members = tuple(v for v in value if not _is_empty(v))
        if not members:
            return Shaped(Shape.ABSENT)
        return Shaped(Shape.LIST, members)
    return Shaped(Shape.SINGLE, (value,))


def unwrap_text(value: Any) -> str:
    """
    Reduce any parsed value to a plain string.

    Handles plain strings, ``{value: ...}``/``{text: ...}``/``{"_": ...}``
    style containers and lists of either (the first non-empty member wins).
    """
    shaped = shape_of(value)
    if shaped.shape is Shape.ABSENT:
        return ""

    for member in shaped.values:
        if isinstance(member, Mapping):
            for key in _TEXT_KEYS:
                if key in member:
                    text = unwrap_text(member[key])
                    if text:
                        return text
            continue
        if isinstance(member, str):
            return member.strip()
        return str(member).strip()

    return ""


def detect_envelope(markup: str, version: str = "") -> Envelope:
    """Identify the feed envelope from the document's root element."""
    match = _ROOT_RE.search(markup)
    if match:
        root = match.group(1).split(":")[-1].lower()
        if root in ("rss", "rdf"):
            return Envelope.RSS
        if root == "feed":
            return Envelope.ATOM
        if root == "channel":
            return Envelope.BARE_CHANNEL

    if version.startswith("atom"):
        return Envelope.ATOM
    if version.startswith("rss"):
        return Envelope.RSS
    return Envelope.UNKNOWN


def _load(markup: Any) -> tuple[Envelope, list]:
    """
    Run feedparser over the markup and return its entries.

    Raises:
        ParseError: when the markup is empty or no feed envelope is found.
    """
    if not isinstance(markup, str) or not markup.strip():
        raise ParseError("empty document")
    # feedparser treats non-markup strings as URLs or file paths
    if not markup.lstrip("\ufeff \t\r\n").startswith("<"):
        raise ParseError("document is not markup")

    try:
        parsed = feedparser.parse(markup)
    except Exception as e:
        raise ParseError(str(e)) from e

    envelope = detect_envelope(markup, parsed.get("version", "") or "")

    entries = shape_of(parsed.get("entries"))
    if envelope is Envelope.UNKNOWN and entries.shape is Shape.ABSENT:
        reason = str(parsed.get("bozo_exception") or "no feed envelope found")
        raise ParseError(reason)

    if entries.shape is Shape.SINGLE:
        return envelope, [entries.first]
    return envelope, list(entries.values)


def _normalize_entry(entry: Mapping, envelope: Envelope) -> RawEntry:
    """Flatten one feedparser entry into vendor-keyed plain strings."""
    raw: RawEntry = {}

    def put(key: str, value: Any) -> None:
        text = unwrap_text(value)
        if text:
            raw[key] = text

    put("title", entry.get("title") or entry.get("title_detail"))
    put("dc:title", entry.get("dc_title"))

    summary = entry.get("summary") or entry.get("summary_detail")
    if envelope is Envelope.ATOM:
        put("summary", summary)
    else:
        put("description", summary)
    put("content:encoded", entry.get("content"))

    link = entry.get("link")
    if _is_empty(link):
        link = entry.get("links")
    put("link", link)
    put("feedburner:origLink", entry.get("feedburner_origlink"))

    if envelope is Envelope.ATOM:
        put("published", entry.get("published"))
    else:
        put("pubDate", entry.get("published"))
    put("updated", entry.get("updated"))

    author = entry.get("author")
    if _is_empty(author):
        author = entry.get("author_detail") or entry.get("authors")
    put("author", author)
    put("dc:creator", entry.get("dc_creator"))

    return raw


def parse_feed(markup: Any, source: FeedSource, max_entries: int = MAX_ENTRIES) -> list[RawEntry]:
    """
    Parse feed markup into at most ``max_entries`` raw entries.

    Document order is preserved. Never raises.
    """
    try:
        envelope, entries = _load(markup)
    except ParseError as e:
        logger.warning("feed_parse_failed", source=source.name, error=str(e))
        return []

    raw_entries = []
    for entry in entries[:max_entries]:
        if not isinstance(entry, Mapping):
            continue
        raw_entries.append(_normalize_entry(entry, envelope))

    logger.debug(
        "feed_parsed",
        source=source.name,
        envelope=envelope.value,
        total_entries=len(entries),
        kept=len(raw_entries),
    )
    return raw_entries
