"""Notification dispatcher: fans a report out to the email and messaging channels.

Each channel is decided and attempted independently. Both attempts run
concurrently and are both awaited; a failure on one channel is captured as
data and never prevents or rolls back the other.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence, Tuple

from .capabilities import ChannelSender, invoke
from .config import Configuration
from .logging_config import get_logger
from .models import NotificationOutcome, NotificationResult, Report, TriggerMode

logger = get_logger("notifications")

EMAIL_CHANNEL = "email"
MESSAGING_CHANNEL = "messaging"


def channel_enabled(channel: str, trigger_mode: TriggerMode, config: Configuration) -> Tuple[bool, str]:
    """Decide whether ``channel`` fires for ``trigger_mode``.

    Realtime and manual scans use the realtime toggle for both channels.
    Daily and weekly digests go to email only, gated by their own toggle.
    Returns the decision and a short reason for logging and skip outcomes.
    """
    if trigger_mode in (TriggerMode.REALTIME, TriggerMode.MANUAL):
        if config.enable_realtime_alerts:
            return True, f"realtime alerts enabled ({trigger_mode.value})"
        return False, f"realtime alerts disabled ({trigger_mode.value})"

    if channel != EMAIL_CHANNEL:
        return False, f"{channel} is not used for {trigger_mode.value} digests"

    if trigger_mode is TriggerMode.DAILY:
        enabled = config.enable_daily_digest
    else:
        enabled = config.enable_weekly_digest
    state = "enabled" if enabled else "disabled"
    return enabled, f"{trigger_mode.value} digest {state}"


class NotificationDispatcher:
    """Sends a report through every channel enabled for the trigger."""

    def __init__(
        self,
        send_email: Optional[ChannelSender] = None,
        send_messaging: Optional[ChannelSender] = None,
        *,
        dry_run: bool = False,
    ) -> None:
        self.send_email = send_email
        self.send_messaging = send_messaging
        self.dry_run = dry_run

    async def dispatch(
        self,
        report: Report,
        config: Configuration,
        trigger_mode: TriggerMode,
    ) -> NotificationResult:
        email, messaging = await asyncio.gather(
            self._deliver(EMAIL_CHANNEL, self.send_email, config.emails, report, config, trigger_mode),
            self._deliver(
                MESSAGING_CHANNEL,
                self.send_messaging,
                config.messaging_recipients,
                report,
                config,
                trigger_mode,
            ),
        )
        result = NotificationResult(email=email, messaging=messaging)
        logger.info(
            f"Dispatch completed: email={email.status.value}, messaging={messaging.status.value}"
        )
        return result

    async def _deliver(
        self,
        channel: str,
        sender: Optional[ChannelSender],
        recipients: Sequence[str],
        report: Report,
        config: Configuration,
        trigger_mode: TriggerMode,
    ) -> NotificationOutcome:
        enabled, reason = channel_enabled(channel, trigger_mode, config)
        if not enabled:
            logger.info(f"Skipping {channel}: {reason}")
            return NotificationOutcome.skipped(reason)
        if not recipients:
            logger.info(f"Skipping {channel}: no recipients configured")
            return NotificationOutcome.skipped("no recipients configured")
        if self.dry_run:
            logger.info(f"Dry run: would send {channel} to {len(recipients)} recipients")
            return NotificationOutcome.skipped("dry run")
        if sender is None:
            logger.error(f"No {channel} sender configured; cannot deliver report {report.id}")
            return NotificationOutcome.failed(f"no {channel} sender configured", len(recipients))

        try:
            delivered = await invoke(sender, list(recipients), report)
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.error(f"{channel} delivery failed: {message}")
            return NotificationOutcome.failed(message, len(recipients))

        if delivered is False:
            logger.error(f"{channel} sender reported failure")
            return NotificationOutcome.failed(f"{channel} sender reported failure", len(recipients))

        logger.info(f"{channel} delivered to {len(recipients)} recipients")
        return NotificationOutcome.sent(len(recipients))
