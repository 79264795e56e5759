"""Risk scan orchestrator and command line entry point.

A scan moves through a fixed sequence of stages::

    Idle -> Fetching -> Scoring -> Aggregating -> Dispatching -> Done

Only configuration problems abort a scan, and they do so before fetching
starts. Source, scoring and channel failures are captured in the returned
``ScanResult``.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from enum import Enum
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional, Union

from .aggregator import ReportAggregator
from .capabilities import ChannelSender, FetchSource, ReportSink, invoke
from .channels import ChannelSettings, SmtpEmailSender, WebhookMessagingSender
from .config import Configuration, ConfigurationError, FetchSettings, MonitorConfig, ScoringPolicy
from .fetcher import SourceFetcher
from .logging_config import get_logger, setup_logging
from .models import Report, ScanResult, TriggerMode
from .notifications import NotificationDispatcher
from .report_renderer import RenderConfig, ReportRenderer
from .report_store import JsonlReportStore
from .scoring import KeywordRiskScorer, RiskScorer, score_articles

logger = get_logger("scanner")

DEFAULT_PERSIST_TIMEOUT_SECONDS = 10.0


class ScanStage(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    SCORING = "scoring"
    AGGREGATING = "aggregating"
    DISPATCHING = "dispatching"
    DONE = "done"


def coerce_configuration(config: Union[Configuration, Mapping[str, Any]]) -> Configuration:
    """Accept a validated Configuration or a raw request payload."""
    if isinstance(config, Configuration):
        return config
    return Configuration.from_dict(config)


def coerce_trigger_mode(trigger_mode: Union[TriggerMode, str]) -> TriggerMode:
    try:
        return TriggerMode.parse(trigger_mode)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc


class ScanOrchestrator:
    """Runs fetch, score, aggregate and dispatch for one configuration at a time.

    The orchestrator holds only its collaborators; every scan gets its own
    configuration and produces its own immutable result, so one instance can
    serve repeated or concurrent scans.
    """

    def __init__(
        self,
        *,
        fetch_source: Optional[FetchSource] = None,
        scorer: Optional[RiskScorer] = None,
        email_sender: Optional[ChannelSender] = None,
        messaging_sender: Optional[ChannelSender] = None,
        persist_report: Optional[ReportSink] = None,
        fetch_settings: Optional[FetchSettings] = None,
        scoring_policy: Optional[ScoringPolicy] = None,
        aggregator: Optional[ReportAggregator] = None,
        scoring_workers: int = 4,
        dry_run: bool = False,
        stage_listener: Optional[Callable[[ScanStage], None]] = None,
        persist_timeout_seconds: float = DEFAULT_PERSIST_TIMEOUT_SECONDS,
    ) -> None:
        self.fetcher = SourceFetcher(fetch_source, fetch_settings)
        self.scorer = scorer or KeywordRiskScorer(scoring_policy)
        self.aggregator = aggregator or ReportAggregator()
        self.dispatcher = NotificationDispatcher(email_sender, messaging_sender, dry_run=dry_run)
        self.persist_report = None if dry_run else persist_report
        self.scoring_workers = scoring_workers
        self.stage_listener = stage_listener
        self.persist_timeout_seconds = persist_timeout_seconds

    def run_scan(
        self,
        config: Union[Configuration, Mapping[str, Any]],
        trigger_mode: Union[TriggerMode, str] = TriggerMode.MANUAL,
    ) -> ScanResult:
        """Blocking wrapper around :meth:`run_scan_async`."""
        return asyncio.run(self.run_scan_async(config, trigger_mode))

    async def run_scan_async(
        self,
        config: Union[Configuration, Mapping[str, Any]],
        trigger_mode: Union[TriggerMode, str] = TriggerMode.MANUAL,
    ) -> ScanResult:
        """Run one scan.

        Raises:
            ConfigurationError: if the configuration or trigger mode is invalid.
                Nothing is fetched in that case.
        """
        configuration = coerce_configuration(config)
        mode = coerce_trigger_mode(trigger_mode)
        self._enter(ScanStage.IDLE)
        logger.info(
            f"Starting {mode.value} scan for {configuration.industry}: "
            f"{len(configuration.sources)} sources, {len(configuration.keywords)} keywords"
        )

        self._enter(ScanStage.FETCHING)
        fetched = await self.fetcher.fetch_all(configuration.sources)

        self._enter(ScanStage.SCORING)
        scoring = await asyncio.to_thread(
            score_articles,
            fetched.articles,
            configuration.keywords,
            configuration.industry,
            scorer=self.scorer,
            max_workers=self.scoring_workers,
        )

        self._enter(ScanStage.AGGREGATING)
        report = self.aggregator.build_report(
            scoring.insights,
            scoring.keyword_hits,
            industry=configuration.industry,
            trigger_mode=mode,
            article_count=fetched.article_count,
            keywords=configuration.keywords,
        )

        self._enter(ScanStage.DISPATCHING)
        notifications = await self.dispatcher.dispatch(report, configuration, mode)

        result = ScanResult(
            report=report,
            notifications=notifications,
            article_count=fetched.article_count,
            source_failures=tuple(fetched.failures),
        )
        self._enter(ScanStage.DONE)
        logger.info(
            f"Scan finished: severity={report.severity.value}, "
            f"{len(report.insights)} insights from {result.article_count} articles, "
            f"{len(result.source_failures)} source failures"
        )

        await self._persist(report)
        return result

    async def _persist(self, report: Report) -> None:
        if self.persist_report is None:
            return
        try:
            await asyncio.wait_for(
                invoke(self.persist_report, report), timeout=self.persist_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.error(
                f"Persisting report {report.id} timed out after {self.persist_timeout_seconds}s"
            )
        except Exception as exc:
            logger.error(f"Failed to persist report {report.id}: {exc}")

    def _enter(self, stage: ScanStage) -> None:
        logger.debug(f"Stage: {stage.value}")
        if self.stage_listener is not None:
            self.stage_listener(stage)


def run_scan(
    config: Union[Configuration, Mapping[str, Any]],
    trigger_mode: Union[TriggerMode, str] = TriggerMode.MANUAL,
    **kwargs: Any,
) -> ScanResult:
    """Run a single scan; keyword arguments configure the ``ScanOrchestrator``."""
    return ScanOrchestrator(**kwargs).run_scan(config, trigger_mode)


def build_orchestrator(
    monitor_config: MonitorConfig,
    *,
    dry_run: bool = False,
    store_path: Optional[Path] = None,
) -> ScanOrchestrator:
    """Wire the production channel adapters and report store for the CLI."""
    channel_settings = ChannelSettings.from_env()
    renderer = ReportRenderer(RenderConfig.from_env())
    return ScanOrchestrator(
        email_sender=SmtpEmailSender(channel_settings, renderer),
        messaging_sender=WebhookMessagingSender(channel_settings, renderer),
        persist_report=JsonlReportStore(store_path),
        fetch_settings=monitor_config.fetch,
        scoring_policy=monitor_config.scoring,
        dry_run=dry_run,
    )


def list_reports(store: JsonlReportStore, limit: int, *, as_json: bool = False) -> int:
    """Show the ``limit`` most recent stored reports, newest first."""
    if limit < 1:
        logger.error(f"--list-reports needs a positive count, got {limit}")
        return 1

    reports = store.latest(limit)
    if as_json:
        print(json.dumps({"ok": True, "reports": reports}, indent=2, ensure_ascii=False))
        return 0

    if not reports:
        logger.info(f"No stored reports in {store.path}")
    for report in reports:
        logger.info(
            f"{report.get('generatedAt')} [{report.get('triggerMode')}] "
            f"{report.get('severity')}: {report.get('overview')}"
        )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for a single risk scan."""
    parser = argparse.ArgumentParser(
        description="Risk monitor scan - fetches sources, scores articles and dispatches the report"
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=MonitorConfig.DEFAULT_CONFIG_PATH,
        help="Path to YAML configuration (default: config/risk_monitor.yaml)",
    )

    parser.add_argument(
        "--trigger",
        choices=[mode.value for mode in TriggerMode],
        default=TriggerMode.MANUAL.value,
        help="Trigger mode for this scan (default: manual)",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Build the report without sending notifications or storing it",
    )

    parser.add_argument(
        "--store",
        type=Path,
        help="JSON Lines file for stored reports (default: data/risk_reports.jsonl)",
    )

    parser.add_argument(
        "--log-file",
        type=Path,
        help="Write logs to file",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Output the scan result as JSON",
    )

    parser.add_argument(
        "--list-reports",
        type=int,
        metavar="N",
        help="Print the N most recent stored reports instead of scanning",
    )

    args = parser.parse_args(argv)

    # Keep stdout for the JSON document
    logger = setup_logging(
        log_file=args.log_file,
        level=logging.DEBUG if args.verbose else None,
        console="stderr" if args.json else "stdout",
    )

    if args.list_reports is not None:
        return list_reports(JsonlReportStore(args.store), args.list_reports, as_json=args.json)

    try:
        monitor_config = MonitorConfig(args.config)
        orchestrator = build_orchestrator(
            monitor_config, dry_run=args.dry_run, store_path=args.store
        )
        result = orchestrator.run_scan(monitor_config.configuration, args.trigger)
    except ConfigurationError as e:
        logger.error(str(e))
        if args.json:
            print(json.dumps({"ok": False, "error": "configuration", "problems": e.problems}, indent=2))
        return 1
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        report = result.report
        logger.info(f"Severity: {report.severity.value}")
        logger.info(f"Overview: {report.overview}")
        logger.info(
            f"Notifications: email={result.notifications.email.status.value}, "
            f"messaging={result.notifications.messaging.status.value}"
        )
        if result.source_failures:
            logger.warning(
                f"Failed sources: {', '.join(f.source_url for f in result.source_failures)}"
            )

    return result.exit_code()


if __name__ == "__main__":
    sys.exit(main())
