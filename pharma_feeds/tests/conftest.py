"""
Shared fixtures: a controllable clock, feed document builders and item
factories.
"""

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from typing import Optional
from xml.sax.saxutils import escape

import pytest

from pharma_feeds.config import clear_settings_cache
from pharma_feeds.models import FeedItem, PharmaInfo, Relevance
from pharma_feeds.sources.base import FeedCategory, FeedSource

FIXED_NOW = datetime(2024, 6, 3, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def _rss_item(entry: dict) -> str:
    parts = []
    for tag, value in entry.items():
        parts.append(f"<{tag}>{escape(value)}</{tag}>")
    return "<item>" + "".join(parts) + "</item>"


def build_rss(entries: list[dict], bare: bool = False) -> str:
    items = "".join(_rss_item(e) for e in entries)
    channel = f"<channel><title>Test Feed</title><link>https://example.com</link>{items}</channel>"
    if bare:
        return f'<?xml version="1.0"?>{channel}'
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0" xmlns:content="http://purl.org/rss/1.0/modules/content/" '
        'xmlns:dc="http://purl.org/dc/elements/1.1/">'
        f"{channel}</rss>"
    )


def build_atom(entries: list[dict]) -> str:
    body = []
    for e in entries:
        parts = [f"<title>{escape(e['title'])}</title>"]
        if "link" in e:
            parts.append(f'<link rel="alternate" href="{escape(e["link"])}"/>')
        if "summary" in e:
            parts.append(f"<summary>{escape(e['summary'])}</summary>")
        if "published" in e:
            parts.append(f"<published>{e['published']}</published>")
        if "author" in e:
            parts.append(f"<author><name>{escape(e['author'])}</name></author>")
        body.append("<entry>" + "".join(parts) + "</entry>")
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<feed xmlns="http://www.w3.org/2005/Atom">'
        "<title>Test Atom</title>"
        f"{''.join(body)}</feed>"
    )


def rfc822(dt: datetime) -> str:
    return format_datetime(dt, usegmt=True)


@pytest.fixture(autouse=True)
def fresh_settings():
    """Settings are re-read for every test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rss_feed():
    return build_rss


@pytest.fixture
def atom_feed():
    return build_atom


@pytest.fixture
def rfc_date():
    return rfc822


@pytest.fixture
def make_source():
    def factory(name: str = "Test Feed", category: FeedCategory = FeedCategory.PHARMACEUTICAL,
                url: Optional[str] = None) -> FeedSource:
        slug = name.lower().replace(" ", "-")
        return FeedSource(
            name=name,
            url=url or f"https://feeds.example.com/{slug}.xml",
            category=category,
            description=f"{name} description",
        )
    return factory


@pytest.fixture
def make_item():
    def factory(
        title: str,
        description: str = "",
        published_at: Optional[datetime] = FIXED_NOW,
        relevance: Relevance = Relevance.MEDIUM,
        category: FeedCategory = FeedCategory.PHARMACEUTICAL,
        source: str = "Test Feed",
    ) -> FeedItem:
        return FeedItem(
            title=title,
            description=description,
            link="https://example.com/item",
            published_at=published_at,
            published_raw=published_at.isoformat() if published_at else "",
            author="Reporter",
            category=category,
            source=source,
            extracted_info=PharmaInfo(relevance=relevance),
            relevance=relevance,
        )
    return factory
