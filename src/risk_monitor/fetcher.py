"""Source fetcher: retrieves article candidates from every configured source.

Sources are fetched concurrently, bounded by ``FetchSettings.max_in_flight``.
A failing source is recorded as a ``SourceFetchFailure`` and skipped; it never
aborts the fetch of its siblings.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import List, Optional, Sequence
from urllib.parse import urlparse

from .capabilities import FetchSource, invoke
from .config import FetchSettings
from .logging_config import get_logger
from .models import Article, RawArticleRecord, SourceFetchFailure
from .parser_utils import html_to_text, parse_publish_date
from .rss import RssSource

logger = get_logger("fetcher")


@dataclass
class SourceFetchResult:
    """Result of fetching a single source."""

    source_url: str
    articles: List[Article] = field(default_factory=list)
    failure: Optional[SourceFetchFailure] = None
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.failure is None


@dataclass
class FetchOutcome:
    """Flattened articles from all succeeding sources plus per-source results."""

    articles: List[Article] = field(default_factory=list)
    results: List[SourceFetchResult] = field(default_factory=list)

    @property
    def failures(self) -> List[SourceFetchFailure]:
        return [result.failure for result in self.results if result.failure is not None]

    @property
    def article_count(self) -> int:
        return len(self.articles)


def record_to_article(
    record: RawArticleRecord,
    *,
    source_url: str,
    fetched_at: datetime,
) -> Optional[Article]:
    """Normalise a raw record into an immutable Article, or None without a URL."""
    url = (record.url or "").strip()
    if not url:
        return None
    published_at = parse_publish_date(record.publish_date) or fetched_at
    body = html_to_text(record.content_html) or html_to_text(record.summary)
    return Article(
        title=(record.title or "").strip() or "Untitled",
        url=url,
        source=(record.source or "").strip() or urlparse(source_url).netloc or source_url,
        published_at=published_at,
        body=body,
    )


class SourceFetcher:
    """Fetches all sources through a ``fetch_source`` capability."""

    def __init__(
        self,
        fetch_source: Optional[FetchSource] = None,
        settings: Optional[FetchSettings] = None,
    ) -> None:
        self.settings = settings or FetchSettings()
        self.fetch_source = fetch_source or RssSource(self.settings)

    async def fetch_all(self, sources: Sequence[str]) -> FetchOutcome:
        """Fetch every source and return the union of their articles."""
        if not sources:
            logger.warning("No sources to fetch")
            return FetchOutcome()

        logger.info(
            f"Fetching {len(sources)} sources (max {self.settings.max_in_flight} in flight)"
        )
        semaphore = asyncio.Semaphore(self.settings.max_in_flight)
        results = await asyncio.gather(
            *(self._fetch_one(url, semaphore) for url in sources)
        )

        outcome = FetchOutcome(results=list(results))
        for result in results:
            outcome.articles.extend(result.articles)

        failures = outcome.failures
        logger.info(
            f"Fetch completed: {outcome.article_count} articles, "
            f"{len(sources) - len(failures)}/{len(sources)} sources succeeded"
        )
        for failure in failures:
            logger.warning(
                f"  - skipped {failure.source_url}: {failure.error_type} - {failure.message}"
            )
        return outcome

    async def _fetch_one(self, url: str, semaphore: asyncio.Semaphore) -> SourceFetchResult:
        async with semaphore:
            started = time.perf_counter()
            fetched_at = datetime.now(timezone.utc).replace(microsecond=0)
            try:
                raw_items = await invoke(self.fetch_source, url)
                articles = self._normalise(raw_items or [], url, fetched_at)
            except Exception as exc:
                logger.error(f"Fetch failed for {url}: {exc}")
                return SourceFetchResult(
                    source_url=url,
                    failure=SourceFetchFailure(
                        source_url=url,
                        error_type=type(exc).__name__,
                        message=str(exc) or type(exc).__name__,
                    ),
                    duration_seconds=time.perf_counter() - started,
                )

        duration = time.perf_counter() - started
        logger.info(f"Fetched {len(articles)} articles from {url} in {duration:.2f}s")
        return SourceFetchResult(source_url=url, articles=articles, duration_seconds=duration)

    def _normalise(self, items, source_url: str, fetched_at: datetime) -> List[Article]:
        articles: List[Article] = []
        for item in items:
            if isinstance(item, Article):
                # Prebuilt articles may carry naive or non-UTC timestamps
                published_at = parse_publish_date(item.published_at) or fetched_at
                articles.append(replace(item, published_at=published_at))
                continue
            if not isinstance(item, RawArticleRecord):
                raise TypeError(
                    f"fetch_source returned {type(item).__name__}; expected RawArticleRecord or Article"
                )
            article = record_to_article(item, source_url=source_url, fetched_at=fetched_at)
            if article is None:
                logger.debug(f"Dropping record without URL from {source_url}")
                continue
            articles.append(article)
        return articles
