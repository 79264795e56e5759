"""Delivery adapters for the email and messaging channels.

Both senders raise ``ChannelDeliveryError`` on failure; the dispatcher turns
that into a failed outcome for the channel.
"""

from __future__ import annotations

import os
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List, Optional, Sequence

import httpx

from .config import FetchSettings
from .http_client import HTTPClient
from .logging_config import get_logger
from .models import Report
from .report_renderer import ReportRenderer

logger = get_logger("channels")


class ChannelDeliveryError(RuntimeError):
    """Raised by a channel transport when delivery fails."""


@dataclass
class ChannelSettings:
    """Transport settings for the delivery adapters."""

    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_starttls: bool = True
    email_from: Optional[str] = None
    messaging_webhook_url: Optional[str] = None
    messaging_token: Optional[str] = None

    @classmethod
    def from_env(cls) -> "ChannelSettings":
        """Load transport settings from environment variables."""
        return cls(
            smtp_host=os.environ.get("RISK_SMTP_HOST"),
            smtp_port=int(os.environ.get("RISK_SMTP_PORT", "587")),
            smtp_user=os.environ.get("RISK_SMTP_USER"),
            smtp_password=os.environ.get("RISK_SMTP_PASSWORD"),
            smtp_starttls=os.environ.get("RISK_SMTP_STARTTLS", "true").lower() != "false",
            email_from=os.environ.get("RISK_EMAIL_FROM"),
            messaging_webhook_url=os.environ.get("RISK_MESSAGING_WEBHOOK_URL"),
            messaging_token=os.environ.get("RISK_MESSAGING_TOKEN"),
        )


class SmtpEmailSender:
    """Sends the rendered report as a multipart html/text email over SMTP."""

    def __init__(self, settings: ChannelSettings, renderer: Optional[ReportRenderer] = None) -> None:
        self.settings = settings
        self.renderer = renderer or ReportRenderer()

    def build_message(self, recipients: Sequence[str], report: Report) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = self.settings.email_from or self.settings.smtp_user or ""
        msg["To"] = ", ".join(recipients)
        msg["Subject"] = self.renderer.subject(report)
        msg.attach(MIMEText(self.renderer.render_text(report), "plain", "utf-8"))
        msg.attach(MIMEText(self.renderer.render_html(report), "html", "utf-8"))
        return msg

    def __call__(self, recipients: Sequence[str], report: Report) -> None:
        if not self.settings.smtp_host:
            raise ChannelDeliveryError("SMTP host is not configured (RISK_SMTP_HOST)")
        if not (self.settings.email_from or self.settings.smtp_user):
            raise ChannelDeliveryError("sender address is not configured (RISK_EMAIL_FROM)")

        msg = self.build_message(recipients, report)
        try:
            with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=30) as server:
                if self.settings.smtp_starttls:
                    server.starttls()
                if self.settings.smtp_user and self.settings.smtp_password:
                    server.login(self.settings.smtp_user, self.settings.smtp_password)
                refused = server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise ChannelDeliveryError(f"SMTP delivery failed: {exc}") from exc

        if refused:
            raise ChannelDeliveryError(f"SMTP refused recipients: {', '.join(sorted(refused))}")
        logger.info(f"Email sent to {len(recipients)} recipients")


class WebhookMessagingSender:
    """Posts the alert text to a messaging gateway webhook, one request per recipient.

    Posts are sent once. A gateway may accept a request and still time out,
    so a retry could deliver the same alert twice.
    """

    def __init__(
        self,
        settings: ChannelSettings,
        renderer: Optional[ReportRenderer] = None,
        http_client: Optional[HTTPClient] = None,
    ) -> None:
        self.settings = settings
        self.renderer = renderer or ReportRenderer()
        self.http_client = http_client or HTTPClient(FetchSettings(max_retries=0))

    async def __call__(self, recipients: Sequence[str], report: Report) -> None:
        if not self.settings.messaging_webhook_url:
            raise ChannelDeliveryError("messaging webhook is not configured (RISK_MESSAGING_WEBHOOK_URL)")

        headers = {}
        if self.settings.messaging_token:
            headers["Authorization"] = f"Bearer {self.settings.messaging_token}"

        body = self.renderer.render_alert(report)
        failed: List[str] = []
        for recipient in recipients:
            try:
                await self.http_client.post_async(
                    self.settings.messaging_webhook_url,
                    json={"to": recipient, "body": body},
                    headers=headers,
                )
            except httpx.HTTPError as exc:
                logger.error(f"Messaging delivery to {recipient} failed: {exc}")
                failed.append(recipient)

        if failed:
            raise ChannelDeliveryError(
                f"messaging delivery failed for {len(failed)}/{len(recipients)} recipients: "
                f"{', '.join(failed)}"
            )
        logger.info(f"Messaging alert sent to {len(recipients)} recipients")
