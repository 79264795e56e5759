"""Renders risk reports for the notification channels.

Builds a template context from a ``Report`` and renders the email subject,
HTML and plaintext bodies, and a short messaging alert with Jinja2. Content
generation stays independent of how each channel delivers it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .models import Report, TriggerMode

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent.parent.parent / "templates" / "risk_monitor"

TRIGGER_LABELS = {
    TriggerMode.MANUAL: "Ad-hoc scan",
    TriggerMode.DAILY: "Daily digest",
    TriggerMode.WEEKLY: "Weekly digest",
    TriggerMode.REALTIME: "Realtime alert",
}


@dataclass
class RenderConfig:
    """Text settings for rendered reports."""

    subject_format: str = "[{severity}] {industry} risk report - {label} ({date})"
    max_alert_insights: int = 3

    @classmethod
    def from_env(cls) -> "RenderConfig":
        """Load configuration from environment variables."""
        return cls(
            subject_format=os.environ.get(
                "RISK_REPORT_SUBJECT_FORMAT",
                "[{severity}] {industry} risk report - {label} ({date})",
            ),
            max_alert_insights=int(os.environ.get("RISK_ALERT_MAX_INSIGHTS", "3")),
        )


class ReportRenderer:
    """Turns reports into channel-ready text."""

    def __init__(
        self,
        config: Optional[RenderConfig] = None,
        template_dir: Optional[Union[str, Path]] = None,
    ) -> None:
        self.config = config or RenderConfig()
        self.template_dir = Path(template_dir) if template_dir else DEFAULT_TEMPLATE_DIR
        self.jinja_env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def subject(self, report: Report) -> str:
        return self.config.subject_format.format(
            severity=report.severity.value,
            industry=report.industry,
            label=TRIGGER_LABELS[report.trigger_mode],
            date=report.generated_at.strftime("%Y-%m-%d"),
        )

    def build_context(self, report: Report) -> Dict[str, Any]:
        """Flatten a report into the template context."""
        insights = [
            {
                "title": insight.article.title,
                "url": insight.article.url,
                "source": insight.article.source,
                "published": insight.article.published_at.strftime("%Y-%m-%d %H:%M UTC"),
                "risk_level": insight.risk_level.value,
                "impact_summary": insight.impact_summary,
                "key_quotes": list(insight.key_quotes),
                "categories": list(insight.categories),
            }
            for insight in report.insights
        ]
        return {
            "subject": self.subject(report),
            "industry": report.industry,
            "severity": report.severity.value,
            "trigger_label": TRIGGER_LABELS[report.trigger_mode],
            "generated_at": report.generated_at.strftime("%Y-%m-%d %H:%M:%S UTC"),
            "overview": report.overview,
            "article_count": report.article_count,
            "dominant_themes": list(report.dominant_themes),
            "insights": insights,
            "alert_insights": insights[: self.config.max_alert_insights],
            "recommendations": list(report.recommendations),
            "keyword_hits": sorted(
                report.keyword_hits.items(), key=lambda item: (-item[1], item[0])
            ),
        }

    def render_html(self, report: Report) -> str:
        template = self.jinja_env.get_template("report.html")
        return template.render(**self.build_context(report))

    def render_text(self, report: Report) -> str:
        template = self.jinja_env.get_template("report.txt")
        return template.render(**self.build_context(report))

    def render_alert(self, report: Report) -> str:
        """Short plain message for messaging channels."""
        template = self.jinja_env.get_template("alert.txt")
        return template.render(**self.build_context(report)).strip()
