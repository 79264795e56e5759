"""Data models for the risk monitor pipeline.

Articles, insights and reports are frozen dataclasses: once the pipeline hands
one back it is never mutated. ``RawArticleRecord`` is the only mutable shape,
used by source capabilities before an article is normalised.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union


class TriggerMode(str, Enum):
    """Why a scan runs; gates which notification channels fire."""

    MANUAL = "manual"
    DAILY = "daily"
    WEEKLY = "weekly"
    REALTIME = "realtime"

    @classmethod
    def parse(cls, value: Union[str, "TriggerMode"]) -> "TriggerMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(mode.value for mode in cls)
            raise ValueError(f"Unknown trigger mode {value!r}; expected one of: {allowed}") from None


class RiskLevel(str, Enum):
    """Risk level of a single insight."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @property
    def rank(self) -> int:
        return _RISK_RANKS[self]


_RISK_RANKS = {RiskLevel.LOW: 1, RiskLevel.MEDIUM: 2, RiskLevel.HIGH: 3}


class Severity(str, Enum):
    """Report-level aggregate risk classification."""

    NONE = "No significant risk"
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @property
    def rank(self) -> int:
        if self is Severity.NONE:
            return 0
        return RiskLevel(self.value).rank

    @classmethod
    def from_risk_level(cls, level: Optional[RiskLevel]) -> "Severity":
        if level is None:
            return cls.NONE
        return cls(level.value)


@dataclass
class RawArticleRecord:
    """Article candidate as returned by a source capability.

    Dates may still be strings in whatever format the source publishes; the
    fetcher normalises them when building an ``Article``.
    """

    url: str
    title: Optional[str] = None
    source: Optional[str] = None
    summary: Optional[str] = None
    content_html: Optional[str] = None
    publish_date: Optional[Union[str, datetime]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


def generate_article_id(url: str) -> str:
    """Stable identifier derived from the article URL."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]


@dataclass(frozen=True)
class Article:
    """A fetched news article. ``url`` is its identity within a scan."""

    title: str
    url: str
    source: str
    published_at: datetime
    body: str = ""

    @property
    def id(self) -> str:
        return generate_article_id(self.url)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "source": self.source,
            "publishedAt": self.published_at.isoformat(),
        }


@dataclass(frozen=True)
class Insight:
    """Scored, enriched representation of one relevant article."""

    article: Article
    risk_level: RiskLevel
    impact_summary: str
    key_quotes: Tuple[str, ...] = ()
    categories: Tuple[str, ...] = ()

    @property
    def id(self) -> str:
        return self.article.id

    @property
    def url(self) -> str:
        return self.article.url

    @property
    def published_at(self) -> datetime:
        return self.article.published_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "article": self.article.to_dict(),
            "riskLevel": self.risk_level.value,
            "impactSummary": self.impact_summary,
            "keyQuotes": list(self.key_quotes),
            "categories": list(self.categories),
        }


@dataclass(frozen=True)
class Report:
    """Aggregated result of one scan; ``generated_at`` is its identity."""

    trigger_mode: TriggerMode
    generated_at: datetime
    industry: str
    severity: Severity
    overview: str
    article_count: int = 0
    dominant_themes: Tuple[str, ...] = ()
    insights: Tuple[Insight, ...] = ()
    recommendations: Tuple[str, ...] = ()
    keyword_hits: Mapping[str, int] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        # Read-only view so callers cannot mutate the histogram after return
        object.__setattr__(self, "keyword_hits", MappingProxyType(dict(self.keyword_hits)))

    @property
    def id(self) -> str:
        return self.generated_at.isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "triggerMode": self.trigger_mode.value,
            "generatedAt": self.generated_at.isoformat(),
            "industry": self.industry,
            "severity": self.severity.value,
            "overview": self.overview,
            "articleCount": self.article_count,
            "dominantThemes": list(self.dominant_themes),
            "insights": [insight.to_dict() for insight in self.insights],
            "recommendations": list(self.recommendations),
            "keywordHits": dict(self.keyword_hits),
        }


class NotificationStatus(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class NotificationOutcome:
    """Outcome of one channel: sent, skipped (never attempted) or failed."""

    status: NotificationStatus
    error: Optional[str] = None
    reason: Optional[str] = None
    recipients: int = 0

    @classmethod
    def sent(cls, recipients: int = 0) -> "NotificationOutcome":
        return cls(status=NotificationStatus.SENT, recipients=recipients)

    @classmethod
    def skipped(cls, reason: str) -> "NotificationOutcome":
        return cls(status=NotificationStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, message: str, recipients: int = 0) -> "NotificationOutcome":
        return cls(status=NotificationStatus.FAILED, error=message, recipients=recipients)

    @property
    def success(self) -> bool:
        return self.status is NotificationStatus.SENT

    @property
    def attempted(self) -> bool:
        return self.status is not NotificationStatus.SKIPPED

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"status": self.status.value, "success": self.success}
        if self.error is not None:
            payload["error"] = self.error
        if self.reason is not None:
            payload["reason"] = self.reason
        return payload


@dataclass(frozen=True)
class NotificationResult:
    """Independent outcomes of both channels for one report."""

    email: NotificationOutcome
    messaging: NotificationOutcome

    @property
    def any_failed(self) -> bool:
        return self.email.status is NotificationStatus.FAILED or (
            self.messaging.status is NotificationStatus.FAILED
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"email": self.email.to_dict(), "messaging": self.messaging.to_dict()}


@dataclass(frozen=True)
class SourceFetchFailure:
    """A source that could not be fetched; recorded, never raised."""

    source_url: str
    error_type: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"source": self.source_url, "errorType": self.error_type, "message": self.message}


@dataclass(frozen=True)
class ScanResult:
    """Transient result of ``run_scan`` handed back to the caller."""

    report: Report
    notifications: NotificationResult
    article_count: int
    source_failures: Tuple[SourceFetchFailure, ...] = ()

    @property
    def has_failures(self) -> bool:
        return bool(self.source_failures) or self.notifications.any_failed

    def exit_code(self) -> int:
        return 2 if self.has_failures else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "report": self.report.to_dict(),
            "notifications": self.notifications.to_dict(),
            "meta": {
                "articleCount": self.article_count,
                "sourceFailures": [failure.to_dict() for failure in self.source_failures],
            },
        }
