"""Keyword and risk scoring for fetched articles.

The scorer is a pluggable capability: anything with a ``score(article,
keywords, industry)`` method returning a ``ScoreOutcome`` can replace the
rule-based ``KeywordRiskScorer`` without touching aggregation or dispatch.
"""

from __future__ import annotations

import re
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Optional, Pattern, Protocol, Sequence, Tuple

from rapidfuzz import fuzz, process

from .config import ScoringPolicy
from .logging_config import get_logger
from .models import Article, Insight, RiskLevel
from .parser_utils import truncate

logger = get_logger("scoring")

_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
_WORD_RE = re.compile(r"\w+")
MIN_INDUSTRY_TOKEN_LENGTH = 3


@lru_cache(maxsize=1024)
def term_pattern(term: str) -> Pattern[str]:
    """Case-insensitive whole-word pattern for ``term``.

    Common inflections still match ("tariff" matches "tariffs", "recall"
    matches "recalled") while "ban" does not match "bank"; inner whitespace
    is flexible.
    """
    words = term.split()
    body = r"\s+".join(re.escape(word) for word in words)
    return re.compile(r"(?<!\w)" + body + r"(?:s|es|ed|ing)?(?!\w)", flags=re.IGNORECASE)


@dataclass(frozen=True)
class KeywordMatch:
    keyword: str
    position: int
    in_title: bool


@dataclass(frozen=True)
class ScoreOutcome:
    """Scorer output for one article.

    ``matched_keywords`` feeds the keyword histogram whether or not the
    article is retained; ``insight`` is None when the article is not relevant.
    """

    matched_keywords: Tuple[str, ...] = ()
    insight: Optional[Insight] = None

    @property
    def relevant(self) -> bool:
        return self.insight is not None


class RiskScorer(Protocol):
    """Contract for scorer implementations."""

    def score(self, article: Article, keywords: Sequence[str], industry: str) -> ScoreOutcome:
        ...


class KeywordRiskScorer:
    """Rule-based scorer driven by a ``ScoringPolicy``."""

    def __init__(self, policy: Optional[ScoringPolicy] = None) -> None:
        self.policy = policy or ScoringPolicy()

    def score(self, article: Article, keywords: Sequence[str], industry: str) -> ScoreOutcome:
        matches = self.find_keywords(article, keywords)
        matched = tuple(match.keyword for match in matches)
        if not matches:
            return ScoreOutcome(matched_keywords=())

        text = self._full_text(article)
        cue_groups = self.find_cue_groups(text)
        industry_hit = self.mentions_industry(text, industry)

        points = sum(
            self.policy.title_weight if match.in_title else self.policy.body_weight
            for match in matches
        )
        if industry_hit:
            points += self.policy.industry_bonus
        points += self.policy.cue_weight * len(cue_groups)
        signals = len(matches) + len(cue_groups)
        level = self.assign_risk_level(points, signals)

        insight = Insight(
            article=article,
            risk_level=level,
            impact_summary=self._impact_summary(article, matched, cue_groups, industry, industry_hit, level),
            key_quotes=tuple(self.extract_quotes(article, matched)),
            categories=matched,
        )
        logger.debug(
            f"Scored '{truncate(article.title, 60)}': {level.value} "
            f"(points={points}, signals={signals}, cues={list(cue_groups)})"
        )
        return ScoreOutcome(matched_keywords=matched, insight=insight)

    def find_keywords(self, article: Article, keywords: Sequence[str]) -> List[KeywordMatch]:
        """Return matched keywords ordered by first occurrence (title first, then body)."""
        title = article.title or ""
        offset = len(title) + 1
        matches: List[KeywordMatch] = []
        seen = set()
        for keyword in keywords:
            if not keyword or keyword in seen:
                continue
            pattern = term_pattern(keyword)
            found = pattern.search(title)
            if found:
                matches.append(KeywordMatch(keyword, found.start(), True))
                seen.add(keyword)
                continue
            found = pattern.search(article.body or "")
            if found:
                matches.append(KeywordMatch(keyword, offset + found.start(), False))
                seen.add(keyword)
        matches.sort(key=lambda match: match.position)
        return matches

    def find_cue_groups(self, text: str) -> Dict[str, str]:
        """Map each severity cue group present in ``text`` to its first matching term."""
        found: Dict[str, str] = {}
        for group, terms in self.policy.severity_cues.items():
            for term in terms:
                if term_pattern(term).search(text):
                    found[group] = term
                    break
        return found

    def mentions_industry(self, text: str, industry: str) -> bool:
        """True when the industry name, or a close variant of its words, appears."""
        if not industry:
            return False
        if term_pattern(industry).search(text):
            return True
        words = set(_WORD_RE.findall(text.lower()))
        if not words:
            return False
        for token in _WORD_RE.findall(industry.lower()):
            if len(token) < MIN_INDUSTRY_TOKEN_LENGTH:
                continue
            if process.extractOne(
                token,
                sorted(words),
                scorer=fuzz.ratio,
                score_cutoff=self.policy.industry_match_cutoff,
            ):
                return True
        return False

    def assign_risk_level(self, points: int, signals: int) -> RiskLevel:
        """Map points to a level; High without enough distinct signals stays Medium."""
        if points >= self.policy.high_threshold and signals >= self.policy.min_signals_for_high:
            return RiskLevel.HIGH
        if points >= self.policy.medium_threshold:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    def extract_quotes(self, article: Article, matched: Sequence[str]) -> List[str]:
        """Sentences containing a matched keyword, body first, then the title."""
        if self.policy.max_quotes == 0 or not matched:
            return []
        patterns = [term_pattern(keyword) for keyword in matched]
        quotes: List[str] = []
        candidates = _SENTENCE_SPLIT_RE.split(article.body or "") + [article.title or ""]
        for sentence in candidates:
            sentence = sentence.strip()
            if not sentence or not any(p.search(sentence) for p in patterns):
                continue
            quote = truncate(sentence, self.policy.max_quote_length)
            if quote in quotes:
                continue
            quotes.append(quote)
            if len(quotes) >= self.policy.max_quotes:
                break
        return quotes

    def _full_text(self, article: Article) -> str:
        return f"{article.title or ''}\n{article.body or ''}"

    def _impact_summary(
        self,
        article: Article,
        matched: Sequence[str],
        cue_groups: Dict[str, str],
        industry: str,
        industry_hit: bool,
        level: RiskLevel,
    ) -> str:
        parts = [f"{article.source} coverage matches {', '.join(matched)}"]
        if industry_hit:
            parts.append(f"with direct reference to {industry}")
        summary = " ".join(parts)
        if cue_groups:
            summary += f"; severity cues: {', '.join(cue_groups)}"
        return f"{summary}. Assessed {level.value.lower()} risk for the {industry} industry."


@dataclass
class ScoringResult:
    """Retained insights plus the zero-filled keyword histogram."""

    insights: List[Insight] = field(default_factory=list)
    keyword_hits: Dict[str, int] = field(default_factory=dict)
    excluded: int = 0
    errors: int = 0


def score_articles(
    articles: Sequence[Article],
    keywords: Sequence[str],
    industry: str,
    *,
    scorer: Optional[RiskScorer] = None,
    max_workers: int = 4,
) -> ScoringResult:
    """Score all articles in parallel and merge keyword hits once.

    Each worker returns its own outcome; the histogram is summed after the
    join, so no counter is shared between threads.
    """
    scorer = scorer or KeywordRiskScorer()
    hits: Counter[str] = Counter({keyword: 0 for keyword in keywords})
    result = ScoringResult()

    def score_one(article: Article) -> Optional[ScoreOutcome]:
        try:
            return scorer.score(article, keywords, industry)
        except Exception as exc:
            logger.error(f"Scoring failed for {article.url}: {exc}")
            return None

    if articles:
        with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(articles)))) as executor:
            outcomes = list(executor.map(score_one, articles))
    else:
        outcomes = []

    for outcome in outcomes:
        if outcome is None:
            result.errors += 1
            continue
        hits.update(keyword for keyword in outcome.matched_keywords if keyword in hits)
        if outcome.insight is not None:
            result.insights.append(outcome.insight)
        else:
            result.excluded += 1

    result.keyword_hits = {keyword: hits[keyword] for keyword in keywords}
    logger.info(
        f"Scored {len(articles)} articles: {len(result.insights)} relevant, "
        f"{result.excluded} excluded, {result.errors} errors"
    )
    return result
