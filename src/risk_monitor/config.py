"""Configuration loading and validation for the risk monitor.

A ``Configuration`` is an immutable value validated once, before a scan starts.
Scoring thresholds and fetch limits live in separate policy objects so they can
be tuned from the same YAML file without touching the pipeline.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import urlparse

import yaml

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_INDUSTRY_LENGTH = 2


class ConfigurationError(ValueError):
    """Raised when a configuration is rejected before any stage runs."""

    def __init__(self, problems: Union[str, List[str]]) -> None:
        self.problems = [problems] if isinstance(problems, str) else list(problems)
        super().__init__("Invalid configuration: " + "; ".join(self.problems))


def _unique_preserve_order(values: Iterable[Any], *, lower: bool = False) -> Tuple[str, ...]:
    """Trim, drop blanks and deduplicate while keeping first-seen order."""
    seen = set()
    result: List[str] = []
    for value in values:
        if value is None:
            continue
        text = str(value).strip()
        if lower:
            text = text.lower()
        if not text or text in seen:
            continue
        seen.add(text)
        result.append(text)
    return tuple(result)


def _as_list(value: Any, name: str, problems: List[str]) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    problems.append(f"{name} must be a list of strings")
    return []


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


@dataclass(frozen=True)
class Configuration:
    """Validated scan configuration supplied fresh to every scan."""

    industry: str
    sources: Tuple[str, ...]
    keywords: Tuple[str, ...]
    emails: Tuple[str, ...] = ()
    messaging_recipients: Tuple[str, ...] = ()
    enable_realtime_alerts: bool = True
    enable_daily_digest: bool = True
    enable_weekly_digest: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "industry", str(self.industry or "").strip())
        object.__setattr__(self, "sources", _unique_preserve_order(self.sources))
        object.__setattr__(self, "keywords", _unique_preserve_order(self.keywords))
        object.__setattr__(self, "emails", _unique_preserve_order(self.emails, lower=True))
        object.__setattr__(
            self, "messaging_recipients", _unique_preserve_order(self.messaging_recipients)
        )
        self.validate()

    def validate(self) -> None:
        problems: List[str] = []
        if len(self.industry) < MIN_INDUSTRY_LENGTH:
            problems.append(f"industry must be at least {MIN_INDUSTRY_LENGTH} characters")
        if not self.sources:
            problems.append("at least one source is required")
        for source in self.sources:
            if not _is_http_url(source):
                problems.append(f"source is not an http(s) URL: {source}")
        if not self.keywords:
            problems.append("at least one keyword is required")
        for email in self.emails:
            if not EMAIL_PATTERN.match(email):
                problems.append(f"invalid email address: {email}")
        if problems:
            raise ConfigurationError(problems)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Configuration":
        """Build a configuration from the scan request payload.

        Accepts the camelCase keys of the scan API as well as snake_case keys.
        Toggles default to enabled and recipient lists to empty.
        """
        if not isinstance(data, Mapping):
            raise ConfigurationError("configuration must be a mapping")

        def pick(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if key in data:
                    return data[key]
            return default

        problems: List[str] = []
        sources = _as_list(pick("sources"), "sources", problems)
        keywords = _as_list(pick("keywords"), "keywords", problems)
        emails = _as_list(pick("emails"), "emails", problems)
        recipients = _as_list(
            pick("messagingRecipients", "messaging_recipients", "whatsappNumbers", "whatsapp_numbers"),
            "messagingRecipients",
            problems,
        )
        toggles: Dict[str, bool] = {}
        for attr, keys in (
            ("enable_realtime_alerts", ("enableRealtimeAlerts", "enable_realtime_alerts")),
            ("enable_daily_digest", ("enableDailyDigest", "enable_daily_digest")),
            ("enable_weekly_digest", ("enableWeeklyDigest", "enable_weekly_digest")),
        ):
            value = pick(*keys, default=True)
            if not isinstance(value, bool):
                problems.append(f"{keys[0]} must be a boolean")
                value = True
            toggles[attr] = value
        if problems:
            raise ConfigurationError(problems)

        return cls(
            industry=pick("industry", default=""),
            sources=tuple(sources),
            keywords=tuple(keywords),
            emails=tuple(emails),
            messaging_recipients=tuple(recipients),
            **toggles,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "industry": self.industry,
            "sources": list(self.sources),
            "keywords": list(self.keywords),
            "emails": list(self.emails),
            "messagingRecipients": list(self.messaging_recipients),
            "enableRealtimeAlerts": self.enable_realtime_alerts,
            "enableDailyDigest": self.enable_daily_digest,
            "enableWeeklyDigest": self.enable_weekly_digest,
        }


DEFAULT_SEVERITY_CUES: Dict[str, Tuple[str, ...]] = {
    "disruption": (
        "disruption",
        "shortage",
        "strike",
        "shutdown",
        "outage",
        "halt",
        "delay",
        "bankruptcy",
        "layoff",
        "closure",
        "bottleneck",
    ),
    "regulation": (
        "regulation",
        "regulator",
        "tariff",
        "sanction",
        "ban",
        "embargo",
        "compliance",
        "investigation",
        "probe",
        "antitrust",
        "penalty",
    ),
    "safety": (
        "safety",
        "recall",
        "injury",
        "fatal",
        "crash",
        "fire",
        "explosion",
        "contamination",
        "defect",
        "hazard",
    ),
    "financial": (
        "loss",
        "downgrade",
        "default",
        "debt",
        "plunge",
        "slump",
        "profit warning",
    ),
    "legal": (
        "lawsuit",
        "litigation",
        "court",
        "settlement",
        "fraud",
    ),
}


@dataclass
class ScoringPolicy:
    """Weights and thresholds for the rule-based risk scorer.

    Points per article: each distinct keyword found in the title scores
    ``title_weight``, a keyword found only in the body scores ``body_weight``.
    Mentioning the industry adds ``industry_bonus`` and each distinct cue
    group hit adds ``cue_weight``. A level is reached when the total meets its
    threshold; High additionally needs ``min_signals_for_high`` distinct
    keywords plus cue groups, otherwise the article stays at Medium.
    """

    title_weight: int = 2
    body_weight: int = 1
    industry_bonus: int = 1
    cue_weight: int = 2
    medium_threshold: int = 3
    high_threshold: int = 7
    min_signals_for_high: int = 3
    max_quotes: int = 3
    max_quote_length: int = 240
    industry_match_cutoff: float = 85.0
    severity_cues: Dict[str, Tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_SEVERITY_CUES)
    )

    def __post_init__(self) -> None:
        if self.medium_threshold < 1 or self.high_threshold <= self.medium_threshold:
            raise ConfigurationError(
                "scoring thresholds must satisfy 1 <= medium_threshold < high_threshold"
            )
        if self.max_quotes < 0:
            raise ConfigurationError("scoring.max_quotes must not be negative")

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "ScoringPolicy":
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"unknown scoring settings: {', '.join(unknown)}")
        params = dict(data)
        if "severity_cues" in params:
            params["severity_cues"] = {
                str(group): tuple(str(term) for term in terms)
                for group, terms in (params["severity_cues"] or {}).items()
            }
        return cls(**params)


@dataclass
class FetchSettings:
    """Limits and HTTP behaviour for the source fetcher."""

    timeout_seconds: float = 20.0
    max_retries: int = 2
    retry_base_delay: float = 0.5
    retry_exponential_base: float = 2.0
    retry_max_delay: float = 8.0
    max_in_flight: int = 5
    max_articles_per_source: int = 25
    user_agent: str = "RiskMonitor/1.0"
    headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.max_in_flight < 1:
            raise ConfigurationError("fetch.max_in_flight must be at least 1")
        if self.max_retries < 0:
            raise ConfigurationError("fetch.max_retries must not be negative")

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "FetchSettings":
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"unknown fetch settings: {', '.join(unknown)}")
        return cls(**dict(data))


class MonitorConfig:
    """Loads a scan configuration plus scoring and fetch policy from YAML.

    Expected layout::

        industry: Automobile
        sources: [...]
        keywords: [...]
        scoring: {...}   # optional
        fetch: {...}     # optional
    """

    DEFAULT_CONFIG_PATH = Path("config/risk_monitor.yaml")

    def __init__(self, config_path: Optional[Union[Path, str]] = None) -> None:
        path = Path(config_path) if config_path else self.DEFAULT_CONFIG_PATH
        if not path.is_absolute():
            path = Path.cwd() / path
        self.config_path = path
        self._data = self._load_config()
        self.configuration = Configuration.from_dict(
            {k: v for k, v in self._data.items() if k not in ("scoring", "fetch")}
        )
        self.scoring = ScoringPolicy.from_dict(self._data.get("scoring"))
        self.fetch = FetchSettings.from_dict(self._data.get("fetch"))

    def _load_config(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            raise ConfigurationError(f"config file not found: {self.config_path}")
        with open(self.config_path, "r", encoding="utf-8") as handle:
            try:
                data = yaml.safe_load(handle) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(f"config file is not valid YAML: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError("config file must contain a mapping at the top level")
        return data


def load_configuration(path: Union[Path, str]) -> Configuration:
    """Load and validate only the scan configuration from a YAML file."""
    return MonitorConfig(path).configuration
