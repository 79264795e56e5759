"""Tests for keyword and risk scoring."""

from datetime import datetime, timezone

import pytest

from src.risk_monitor.config import ScoringPolicy
from src.risk_monitor.models import Article, RiskLevel
from src.risk_monitor.scoring import KeywordRiskScorer, ScoreOutcome, score_articles, term_pattern

PUBLISHED = datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc)


def make_article(title, body="", url=None, source="Auto Wire"):
    return Article(
        title=title,
        url=url or f"https://news.example.com/{abs(hash(title))}",
        source=source,
        published_at=PUBLISHED,
        body=body,
    )


@pytest.fixture
def scorer():
    return KeywordRiskScorer()


def test_tariff_headline_scores_medium(scorer):
    article = make_article("New tariff hits automakers")

    outcome = scorer.score(article, ["tariff"], "Automobile")

    assert outcome.relevant
    assert outcome.matched_keywords == ("tariff",)
    insight = outcome.insight
    assert insight.risk_level is RiskLevel.MEDIUM
    assert insight.categories == ("tariff",)
    assert insight.key_quotes == ("New tariff hits automakers",)
    assert "severity cues: regulation" in insight.impact_summary
    assert insight.impact_summary.endswith("Assessed medium risk for the Automobile industry.")


def test_multiple_signals_score_high(scorer):
    article = make_article(
        "Automobile maker announces recall as strike spreads",
        body="Regulators opened an investigation into the defect.",
    )

    outcome = scorer.score(article, ["recall", "strike"], "Automobile")

    assert outcome.insight.risk_level is RiskLevel.HIGH
    assert outcome.matched_keywords == ("recall", "strike")
    assert "with direct reference to Automobile" in outcome.insight.impact_summary


def test_body_only_match_without_cues_is_low(scorer):
    article = make_article("Market update", body="Analysts discussed EV pricing.")

    outcome = scorer.score(article, ["pricing"], "Automobile")

    assert outcome.insight.risk_level is RiskLevel.LOW
    assert outcome.insight.key_quotes == ("Analysts discussed EV pricing.",)


def test_high_points_without_signal_diversity_stay_medium():
    scorer = KeywordRiskScorer(ScoringPolicy(title_weight=5))
    article = make_article("Tariff imposed on imports")

    outcome = scorer.score(article, ["tariff"], "Automobile")

    assert outcome.insight.risk_level is RiskLevel.MEDIUM


def test_assign_risk_level_thresholds(scorer):
    assert scorer.assign_risk_level(9, 3) is RiskLevel.HIGH
    assert scorer.assign_risk_level(9, 2) is RiskLevel.MEDIUM
    assert scorer.assign_risk_level(3, 1) is RiskLevel.MEDIUM
    assert scorer.assign_risk_level(2, 5) is RiskLevel.LOW


def test_no_keyword_match_is_not_relevant(scorer):
    outcome = scorer.score(make_article("Dealer sales steady"), ["tariff"], "Automobile")

    assert outcome == ScoreOutcome()
    assert not outcome.relevant


def test_keyword_matches_whole_words_only(scorer):
    article = make_article("Central bank raises rates")

    assert not scorer.score(article, ["ban"], "Automobile").relevant


def test_keyword_matches_inflections():
    assert term_pattern("tariff").search("Steel tariffs rise")
    assert term_pattern("recall").search("Maker recalled 10,000 cars")
    assert term_pattern("supply chain").search("SUPPLY   CHAIN strain")
    assert not term_pattern("ban").search("banner ads")


def test_keywords_ordered_by_first_occurrence(scorer):
    article = make_article("Strike threatens output", body="A tariff dispute also looms.")

    outcome = scorer.score(article, ["tariff", "strike"], "Automobile")

    assert outcome.matched_keywords == ("strike", "tariff")


def test_quotes_are_capped_and_truncated(scorer):
    long_sentence = "The recall " + "affects many models " * 20 + "worldwide."
    body = " ".join(
        [
            "First recall notice went out.",
            "Unrelated sentence here.",
            "Second recall notice followed.",
            long_sentence,
            "Fourth recall notice is pending.",
        ]
    )
    article = make_article("Recall widens", body=body)

    quotes = scorer.extract_quotes(article, ["recall"])

    assert len(quotes) == 3
    assert quotes[0] == "First recall notice went out."
    assert quotes[1] == "Second recall notice followed."
    assert len(quotes[2]) <= 240
    assert quotes[2].endswith("…")


def test_mentions_industry_tolerates_small_spelling_variants(scorer):
    assert scorer.mentions_industry("automotve suppliers warn", "Automotive")
    assert not scorer.mentions_industry("Shipping costs rise", "Automobile")


def test_score_articles_zero_fills_histogram_in_keyword_order():
    articles = [
        make_article("New tariff hits automakers", url="https://n.example.com/1"),
        make_article("Recall follows tariff row", url="https://n.example.com/2"),
        make_article("Dealer sales steady", url="https://n.example.com/3"),
    ]

    result = score_articles(articles, ["tariff", "recall", "strike"], "Automobile")

    assert list(result.keyword_hits.items()) == [("tariff", 2), ("recall", 1), ("strike", 0)]
    assert len(result.insights) == 2
    assert result.excluded == 1
    assert result.errors == 0


def test_score_articles_counts_each_article_once_per_keyword():
    article = make_article("Tariff on tariff", body="More tariff news. Tariffs everywhere.")

    result = score_articles([article], ["tariff"], "Automobile")

    assert result.keyword_hits == {"tariff": 1}


def test_score_articles_with_many_workers_keeps_every_hit():
    articles = [make_article(f"Tariff update {i}", url=f"https://n.example.com/{i}") for i in range(40)]

    result = score_articles(articles, ["tariff"], "Automobile", max_workers=8)

    assert result.keyword_hits == {"tariff": 40}
    assert len(result.insights) == 40


def test_scorer_error_excludes_only_that_article():
    class FlakyScorer:
        def __init__(self):
            self.inner = KeywordRiskScorer()

        def score(self, article, keywords, industry):
            if "boom" in article.title:
                raise RuntimeError("model unavailable")
            return self.inner.score(article, keywords, industry)

    articles = [
        make_article("boom tariff", url="https://n.example.com/a"),
        make_article("Tariff talks stall", url="https://n.example.com/b"),
    ]

    result = score_articles(articles, ["tariff"], "Automobile", scorer=FlakyScorer())

    assert result.errors == 1
    assert [insight.url for insight in result.insights] == ["https://n.example.com/b"]
    assert result.keyword_hits == {"tariff": 1}


def test_score_articles_empty_input():
    result = score_articles([], ["tariff"], "Automobile")

    assert result.insights == []
    assert result.keyword_hits == {"tariff": 0}
