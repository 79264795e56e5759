"""RSS/Atom feed helpers built on feedparser."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import feedparser

from .config import FetchSettings
from .http_client import HTTPClient, RequestStats
from .logging_config import get_logger
from .models import RawArticleRecord

logger = get_logger("rss")


class FeedParseError(RuntimeError):
    """Raised when a response cannot be parsed as a feed at all."""


async def fetch_feed(
    url: str,
    *,
    http_client: Optional[HTTPClient] = None,
    params: Optional[Dict[str, Any]] = None,
    stats: Optional[RequestStats] = None,
) -> feedparser.FeedParserDict:
    """Fetch and parse an RSS feed asynchronously."""
    client = http_client or HTTPClient()
    response = await client.get_async(url, params=params, stats=stats)
    return await parse_feed_text(response.text)


async def parse_feed_text(text: str) -> feedparser.FeedParserDict:
    """Parse RSS feed text asynchronously."""
    return await asyncio.to_thread(feedparser.parse, text)


def _entry_body(entry: Dict[str, Any]) -> Optional[str]:
    contents = entry.get("content") or []
    for content in contents:
        value = content.get("value")
        if value:
            return value
    return entry.get("summary") or entry.get("description")


def entries_to_records(
    feed: feedparser.FeedParserDict,
    source_url: str,
    *,
    max_articles: int = 25,
) -> List[RawArticleRecord]:
    """Map feed entries to raw article records.

    Entries without a link are dropped and repeated links within the same
    feed are collapsed to their first occurrence.
    """
    if feed.get("bozo") and not feed.get("entries"):
        error = feed.get("bozo_exception")
        raise FeedParseError(f"Unparseable feed at {source_url}: {error or 'no entries'}")

    source_name = feed.get("feed", {}).get("title") or urlparse(source_url).netloc or source_url

    records: List[RawArticleRecord] = []
    seen: set[str] = set()
    for entry in feed.get("entries", []):
        link = (entry.get("link") or "").strip()
        if not link or link in seen:
            continue
        seen.add(link)
        records.append(
            RawArticleRecord(
                url=link,
                title=entry.get("title"),
                source=source_name,
                content_html=_entry_body(entry),
                publish_date=entry.get("published") or entry.get("updated"),
                metadata={"feed_url": source_url},
            )
        )
        if len(records) >= max_articles:
            break

    return records


class RssSource:
    """Default ``fetch_source`` capability: download a feed and map its entries."""

    def __init__(
        self,
        settings: Optional[FetchSettings] = None,
        http_client: Optional[HTTPClient] = None,
    ) -> None:
        self.settings = settings or FetchSettings()
        self.http_client = http_client or HTTPClient(self.settings)

    async def __call__(self, url: str) -> List[RawArticleRecord]:
        stats = RequestStats()
        feed = await fetch_feed(url, http_client=self.http_client, stats=stats)
        records = entries_to_records(
            feed, url, max_articles=self.settings.max_articles_per_source
        )
        logger.debug(
            f"Parsed {len(records)} entries from {url} "
            f"({stats.http_requests} requests, {stats.retry_attempts} retries)"
        )
        return records
