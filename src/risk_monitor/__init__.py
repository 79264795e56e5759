"""Industry risk monitor package namespace."""

from importlib import import_module
from typing import Any

__all__ = [
    "Configuration",
    "ConfigurationError",
    "MonitorConfig",
    "TriggerMode",
    "Report",
    "ScanResult",
    "ScanOrchestrator",
    "run_scan",
    "KeywordRiskScorer",
    "ReportAggregator",
    "NotificationDispatcher",
    "ReportRenderer",
    "JsonlReportStore",
]


def __getattr__(name: str) -> Any:
    if name in ("Configuration", "ConfigurationError", "MonitorConfig"):
        module = import_module("src.risk_monitor.config")
        return getattr(module, name)
    elif name in ("TriggerMode", "Report", "ScanResult"):
        module = import_module("src.risk_monitor.models")
        return getattr(module, name)
    elif name in ("ScanOrchestrator", "run_scan"):
        module = import_module("src.risk_monitor.scanner")
        return getattr(module, name)
    elif name == "KeywordRiskScorer":
        module = import_module("src.risk_monitor.scoring")
        return getattr(module, name)
    elif name == "ReportAggregator":
        module = import_module("src.risk_monitor.aggregator")
        return getattr(module, name)
    elif name == "NotificationDispatcher":
        module = import_module("src.risk_monitor.notifications")
        return getattr(module, name)
    elif name == "ReportRenderer":
        module = import_module("src.risk_monitor.report_renderer")
        return getattr(module, name)
    elif name == "JsonlReportStore":
        module = import_module("src.risk_monitor.report_store")
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:
    return sorted(__all__)
