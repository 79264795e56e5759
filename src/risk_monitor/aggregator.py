"""Aggregates scored insights into a single risk report.

Insights are deduplicated by article URL, ordered by risk and recency, and
reduced to a severity, dominant themes, recommendations and an overview. All
text is template-based so re-running on the same insights gives the same
report content.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from .logging_config import get_logger
from .models import Insight, Report, Severity, TriggerMode

logger = get_logger("aggregator")

DEFAULT_THEME_LIMIT = 5

RECOMMENDATION_TEMPLATES: Dict[Severity, Sequence[str]] = {
    Severity.HIGH: (
        "Escalate monitoring cadence to realtime alerts for {industry} until high-risk signals subside.",
        "Brief risk owners on {theme} exposure within 24 hours.",
    ),
    Severity.MEDIUM: (
        "Increase monitoring cadence to a daily digest for {industry}.",
        "Review contingency plans covering {theme}.",
    ),
    Severity.LOW: (
        "Maintain baseline monitoring cadence for {industry}.",
        "Track {theme} coverage for signs of escalation.",
    ),
    Severity.NONE: (
        "Maintain baseline monitoring cadence for {industry}.",
        "Review source and keyword coverage; no configured keyword produced a relevant signal.",
    ),
}

THEME_FOLLOW_UP = "Assess supplier and operational exposure to {theme}."
FOLLOW_UP_THEME_LIMIT = 3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReportAggregator:
    """Builds an immutable ``Report`` from scored insights."""

    def __init__(
        self,
        *,
        theme_limit: int = DEFAULT_THEME_LIMIT,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.theme_limit = theme_limit
        self.clock = clock or _utcnow

    def build_report(
        self,
        insights: Sequence[Insight],
        keyword_hits: Mapping[str, int],
        *,
        industry: str,
        trigger_mode: TriggerMode,
        article_count: int,
        keywords: Optional[Sequence[str]] = None,
        generated_at: Optional[datetime] = None,
    ) -> Report:
        """Reduce insights to a report. An empty sequence yields a neutral report."""
        retained = self.order(self.deduplicate(insights))
        severity = self.severity(retained)
        themes = self.dominant_themes(retained)

        hits: Dict[str, int] = {keyword: 0 for keyword in (keywords or ())}
        for keyword, count in keyword_hits.items():
            hits[keyword] = int(count)

        report = Report(
            trigger_mode=trigger_mode,
            generated_at=generated_at or self.clock(),
            industry=industry,
            severity=severity,
            overview=self.overview(industry, severity, article_count, len(retained), themes),
            article_count=article_count,
            dominant_themes=tuple(themes),
            insights=tuple(retained),
            recommendations=tuple(self.recommendations(industry, severity, themes)),
            keyword_hits=hits,
        )
        logger.info(
            f"Report built: severity={severity.value}, {len(retained)} insights "
            f"({len(insights) - len(retained)} duplicates dropped), themes={themes}"
        )
        return report

    def deduplicate(self, insights: Sequence[Insight]) -> List[Insight]:
        """Keep one insight per URL: highest risk, then most recent, then first seen."""
        best: Dict[str, Insight] = {}
        for insight in insights:
            current = best.get(insight.url)
            if current is None or self._beats(insight, current):
                best[insight.url] = insight
        return list(best.values())

    def order(self, insights: Sequence[Insight]) -> List[Insight]:
        """High before Medium before Low; newest first within a level."""
        return sorted(
            insights,
            key=lambda insight: (-insight.risk_level.rank, -insight.published_at.timestamp()),
        )

    def severity(self, insights: Sequence[Insight]) -> Severity:
        if not insights:
            return Severity.NONE
        top = max(insights, key=lambda insight: insight.risk_level.rank)
        return Severity.from_risk_level(top.risk_level)

    def dominant_themes(self, insights: Sequence[Insight]) -> List[str]:
        """Most frequent categories, ties broken alphabetically."""
        counts: Counter[str] = Counter()
        for insight in insights:
            counts.update(set(insight.categories))
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0].lower(), item[0]))
        return [theme for theme, _ in ranked[: self.theme_limit]]

    def recommendations(self, industry: str, severity: Severity, themes: Sequence[str]) -> List[str]:
        top_theme = themes[0] if themes else "emerging risks"
        recommendations = [
            template.format(industry=industry, theme=top_theme)
            for template in RECOMMENDATION_TEMPLATES[severity]
        ]
        if severity in (Severity.HIGH, Severity.MEDIUM):
            for theme in themes[1:FOLLOW_UP_THEME_LIMIT]:
                recommendations.append(THEME_FOLLOW_UP.format(theme=theme))
        return recommendations

    def overview(
        self,
        industry: str,
        severity: Severity,
        article_count: int,
        insight_count: int,
        themes: Sequence[str],
    ) -> str:
        if severity is Severity.NONE:
            return (
                f"No significant risk detected for {industry} across "
                f"{article_count} scanned articles."
            )
        top_theme = themes[0] if themes else "uncategorised signals"
        return (
            f"{industry} risk posture is {severity.value} based on {insight_count} relevant "
            f"signals from {article_count} scanned articles; top theme: {top_theme}."
        )

    def _beats(self, candidate: Insight, current: Insight) -> bool:
        if candidate.risk_level.rank != current.risk_level.rank:
            return candidate.risk_level.rank > current.risk_level.rank
        return candidate.published_at > current.published_at
