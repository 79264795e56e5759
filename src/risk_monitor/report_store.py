"""Append-only JSON Lines store for finished reports."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from .logging_config import get_logger
from .models import Report

logger = get_logger("report_store")

DEFAULT_STORE_PATH = Path("data/risk_reports.jsonl")


class JsonlReportStore:
    """Persists each report as one JSON object per line.

    Usable directly as the ``persist_report`` capability.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        self.path = Path(path) if path else DEFAULT_STORE_PATH
        self._lock = threading.Lock()

    def __call__(self, report: Report) -> None:
        self.append(report)

    def append(self, report: Report) -> None:
        line = json.dumps(report.to_dict(), ensure_ascii=False, sort_keys=True)
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        logger.info(f"Stored report {report.id} in {self.path}")

    def iter_reports(self) -> Iterator[Dict[str, Any]]:
        """Yield stored reports oldest first; a missing file yields nothing."""
        if not self.path.exists():
            return
        with open(self.path, "r", encoding="utf-8") as handle:
            for line_number, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    yield json.loads(line)
                except json.JSONDecodeError as exc:
                    logger.warning(f"Skipping corrupt line {line_number} in {self.path}: {exc}")

    def latest(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Most recent reports, newest first."""
        reports = list(self.iter_reports())
        return list(reversed(reports))[:limit]
