"""Tests for report aggregation."""

import dataclasses
from datetime import datetime, timedelta, timezone

import pytest

from src.risk_monitor.aggregator import ReportAggregator
from src.risk_monitor.models import Article, Insight, RiskLevel, Severity, TriggerMode

BASE_TIME = datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc)
GENERATED_AT = datetime(2024, 6, 2, 7, 0, tzinfo=timezone.utc)


def make_insight(url, level, *, hours=0, categories=("tariff",), title=None):
    article = Article(
        title=title or f"Story {url}",
        url=url,
        source="Auto Wire",
        published_at=BASE_TIME + timedelta(hours=hours),
    )
    return Insight(
        article=article,
        risk_level=level,
        impact_summary=f"{level.value} signal",
        categories=tuple(categories),
    )


@pytest.fixture
def aggregator():
    return ReportAggregator(clock=lambda: GENERATED_AT)


def build(aggregator, insights, hits=None, **kwargs):
    return aggregator.build_report(
        insights,
        hits or {},
        industry=kwargs.pop("industry", "Automobile"),
        trigger_mode=kwargs.pop("trigger_mode", TriggerMode.MANUAL),
        article_count=kwargs.pop("article_count", len(insights)),
        **kwargs,
    )


def test_empty_insights_produce_neutral_report(aggregator):
    report = build(aggregator, [], {"tariff": 0}, article_count=12, keywords=["tariff", "recall"])

    assert report.severity is Severity.NONE
    assert report.insights == ()
    assert report.dominant_themes == ()
    assert report.overview == "No significant risk detected for Automobile across 12 scanned articles."
    assert report.recommendations
    assert dict(report.keyword_hits) == {"tariff": 0, "recall": 0}
    assert report.generated_at == GENERATED_AT


def test_duplicate_urls_keep_highest_risk(aggregator):
    insights = [
        make_insight("https://n.example.com/a", RiskLevel.LOW, hours=5),
        make_insight("https://n.example.com/a", RiskLevel.HIGH, hours=1),
        make_insight("https://n.example.com/a", RiskLevel.MEDIUM, hours=9),
    ]

    report = build(aggregator, insights)

    assert len(report.insights) == 1
    assert report.insights[0].risk_level is RiskLevel.HIGH


def test_duplicate_urls_same_level_keep_most_recent(aggregator):
    insights = [
        make_insight("https://n.example.com/a", RiskLevel.MEDIUM, hours=1, title="older"),
        make_insight("https://n.example.com/a", RiskLevel.MEDIUM, hours=3, title="newer"),
    ]

    report = build(aggregator, insights)

    assert [insight.article.title for insight in report.insights] == ["newer"]


def test_insights_ordered_by_level_then_recency(aggregator):
    insights = [
        make_insight("https://n.example.com/low", RiskLevel.LOW, hours=10),
        make_insight("https://n.example.com/med-old", RiskLevel.MEDIUM, hours=1),
        make_insight("https://n.example.com/high", RiskLevel.HIGH, hours=0),
        make_insight("https://n.example.com/med-new", RiskLevel.MEDIUM, hours=4),
    ]

    report = build(aggregator, insights)

    assert [insight.url for insight in report.insights] == [
        "https://n.example.com/high",
        "https://n.example.com/med-new",
        "https://n.example.com/med-old",
        "https://n.example.com/low",
    ]
    assert report.severity is Severity.HIGH


def test_severity_follows_highest_level(aggregator):
    report = build(
        aggregator,
        [
            make_insight("https://n.example.com/1", RiskLevel.LOW),
            make_insight("https://n.example.com/2", RiskLevel.MEDIUM),
        ],
    )

    assert report.severity is Severity.MEDIUM
    assert report.overview.startswith("Automobile risk posture is Medium based on 2 relevant signals")


def test_dominant_themes_ties_break_alphabetically(aggregator):
    insights = [
        make_insight("https://n.example.com/1", RiskLevel.LOW, categories=("tariff", "strike")),
        make_insight("https://n.example.com/2", RiskLevel.LOW, categories=("recall", "strike")),
        make_insight("https://n.example.com/3", RiskLevel.LOW, categories=("tariff",)),
        make_insight("https://n.example.com/4", RiskLevel.LOW, categories=("Battery",)),
    ]

    report = build(aggregator, insights)

    assert report.dominant_themes == ("strike", "tariff", "Battery", "recall")


def test_theme_limit_applies():
    aggregator = ReportAggregator(theme_limit=2, clock=lambda: GENERATED_AT)
    insights = [
        make_insight("https://n.example.com/1", RiskLevel.LOW, categories=("a", "b", "c")),
    ]

    report = build(aggregator, insights)

    assert report.dominant_themes == ("a", "b")


def test_recommendations_reference_industry_and_themes(aggregator):
    insights = [
        make_insight("https://n.example.com/1", RiskLevel.HIGH, categories=("tariff", "recall")),
        make_insight("https://n.example.com/2", RiskLevel.MEDIUM, categories=("tariff", "strike")),
    ]

    report = build(aggregator, insights)

    assert report.recommendations[0].startswith("Escalate monitoring cadence to realtime alerts for Automobile")
    assert "tariff" in report.recommendations[1]
    assert "Assess supplier and operational exposure to recall." in report.recommendations
    assert "Assess supplier and operational exposure to strike." in report.recommendations


def test_keyword_hits_passed_through_and_zero_filled(aggregator):
    report = build(
        aggregator,
        [make_insight("https://n.example.com/1", RiskLevel.LOW)],
        {"tariff": 3},
        keywords=["tariff", "recall"],
    )

    assert dict(report.keyword_hits) == {"tariff": 3, "recall": 0}


def test_report_is_immutable(aggregator):
    report = build(aggregator, [make_insight("https://n.example.com/1", RiskLevel.LOW)], {"tariff": 1})

    with pytest.raises(dataclasses.FrozenInstanceError):
        report.severity = Severity.HIGH
    with pytest.raises(TypeError):
        report.keyword_hits["tariff"] = 5


def test_rebuilding_same_insights_is_idempotent(aggregator):
    insights = [
        make_insight("https://n.example.com/1", RiskLevel.MEDIUM, categories=("tariff",)),
        make_insight("https://n.example.com/2", RiskLevel.LOW, categories=("recall",)),
        make_insight("https://n.example.com/1", RiskLevel.LOW, categories=("tariff",)),
    ]

    first = build(aggregator, insights, {"tariff": 2, "recall": 1})
    second = build(aggregator, list(reversed(insights)), {"tariff": 2, "recall": 1})

    assert first.to_dict() == second.to_dict()


def test_report_to_dict_uses_api_keys(aggregator):
    report = build(aggregator, [make_insight("https://n.example.com/1", RiskLevel.HIGH)], trigger_mode=TriggerMode.DAILY)

    payload = report.to_dict()

    assert payload["triggerMode"] == "daily"
    assert payload["severity"] == "High"
    assert payload["generatedAt"] == GENERATED_AT.isoformat()
    assert payload["insights"][0]["riskLevel"] == "High"
    assert payload["insights"][0]["article"]["url"] == "https://n.example.com/1"


def test_report_is_hashable(aggregator):
    insights = [make_insight("https://n.example.com/1", RiskLevel.LOW)]
    first = build(aggregator, insights, {"tariff": 1})
    second = build(aggregator, insights, {"tariff": 1})

    assert hash(first) == hash(second)
    assert len({first, second}) == 1
