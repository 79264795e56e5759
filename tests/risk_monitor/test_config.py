"""Tests for configuration loading and validation."""

import dataclasses

import pytest

from src.risk_monitor.config import (
    Configuration,
    ConfigurationError,
    FetchSettings,
    MonitorConfig,
    ScoringPolicy,
    load_configuration,
)


def _payload(**overrides):
    data = {
        "industry": "Automobile",
        "sources": ["https://news.example.com/feed"],
        "keywords": ["tariff"],
    }
    data.update(overrides)
    return data


def test_from_dict_accepts_camel_case_payload():
    config = Configuration.from_dict(
        _payload(
            emails=["Risk@Example.com", "risk@example.com"],
            whatsappNumbers=["+15550001", "+15550001"],
            enableDailyDigest=False,
        )
    )

    assert config.industry == "Automobile"
    assert config.sources == ("https://news.example.com/feed",)
    assert config.emails == ("risk@example.com",)
    assert config.messaging_recipients == ("+15550001",)
    assert config.enable_realtime_alerts is True
    assert config.enable_daily_digest is False
    assert config.enable_weekly_digest is True


def test_collections_are_trimmed_and_deduplicated_in_order():
    config = Configuration.from_dict(
        _payload(
            sources=[" https://b.example.com/rss ", "https://a.example.com/rss", "https://b.example.com/rss"],
            keywords=["recall", " ", "tariff", "recall"],
        )
    )

    assert config.sources == ("https://b.example.com/rss", "https://a.example.com/rss")
    assert config.keywords == ("recall", "tariff")


def test_empty_sources_rejected():
    with pytest.raises(ConfigurationError) as exc_info:
        Configuration.from_dict(_payload(sources=[]))

    assert "at least one source is required" in exc_info.value.problems


def test_empty_keywords_rejected():
    with pytest.raises(ConfigurationError) as exc_info:
        Configuration.from_dict(_payload(keywords=["  "]))

    assert "at least one keyword is required" in exc_info.value.problems


def test_all_problems_reported_together():
    with pytest.raises(ConfigurationError) as exc_info:
        Configuration.from_dict(
            {"industry": "A", "sources": ["ftp://files.example.com"], "keywords": [], "emails": ["nope"]}
        )

    problems = exc_info.value.problems
    assert len(problems) == 4
    assert any("industry" in problem for problem in problems)
    assert any("ftp://files.example.com" in problem for problem in problems)
    assert any("nope" in problem for problem in problems)


def test_configuration_error_is_value_error():
    with pytest.raises(ValueError):
        Configuration(industry="Automobile", sources=(), keywords=("tariff",))


def test_toggle_must_be_boolean():
    with pytest.raises(ConfigurationError) as exc_info:
        Configuration.from_dict(_payload(enableRealtimeAlerts="yes"))

    assert exc_info.value.problems == ["enableRealtimeAlerts must be a boolean"]


def test_non_mapping_rejected():
    with pytest.raises(ConfigurationError):
        Configuration.from_dict(["https://news.example.com/feed"])


def test_configuration_is_immutable():
    config = Configuration.from_dict(_payload())

    with pytest.raises(dataclasses.FrozenInstanceError):
        config.industry = "Energy"


def test_to_dict_round_trips_through_from_dict():
    config = Configuration.from_dict(_payload(emails=["ops@example.com"], enableWeeklyDigest=False))

    assert Configuration.from_dict(config.to_dict()) == config


def test_scoring_policy_rejects_inverted_thresholds():
    with pytest.raises(ConfigurationError):
        ScoringPolicy(medium_threshold=5, high_threshold=5)


def test_scoring_policy_rejects_unknown_keys():
    with pytest.raises(ConfigurationError) as exc_info:
        ScoringPolicy.from_dict({"high_threshold": 9, "bogus": 1})

    assert "bogus" in str(exc_info.value)


def test_scoring_policy_custom_cues():
    policy = ScoringPolicy.from_dict({"severity_cues": {"labour": ["walkout", "strike"]}})

    assert policy.severity_cues == {"labour": ("walkout", "strike")}


def test_fetch_settings_validation():
    assert FetchSettings.from_dict(None) == FetchSettings()
    with pytest.raises(ConfigurationError):
        FetchSettings(max_in_flight=0)


def test_monitor_config_loads_yaml(tmp_path):
    path = tmp_path / "risk.yaml"
    path.write_text(
        "\n".join(
            [
                "industry: Automobile",
                "sources:",
                "  - https://news.example.com/feed",
                "keywords: [tariff, recall]",
                "enableWeeklyDigest: false",
                "scoring:",
                "  high_threshold: 9",
                "fetch:",
                "  max_in_flight: 2",
            ]
        ),
        encoding="utf-8",
    )

    monitor = MonitorConfig(path)

    assert monitor.configuration.keywords == ("tariff", "recall")
    assert monitor.configuration.enable_weekly_digest is False
    assert monitor.scoring.high_threshold == 9
    assert monitor.fetch.max_in_flight == 2
    assert load_configuration(path) == monitor.configuration


def test_monitor_config_missing_file(tmp_path):
    with pytest.raises(ConfigurationError) as exc_info:
        MonitorConfig(tmp_path / "missing.yaml")

    assert "not found" in str(exc_info.value)


def test_monitor_config_rejects_invalid_yaml(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("industry: [unclosed", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        MonitorConfig(path)


def test_monitor_config_rejects_non_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        MonitorConfig(path)
