"""
Monitoring infrastructure for QuorumID.

This package provides:
- Ledger and HTTP metrics (counters, gauges, histograms)
- Structured logging with console or JSON output
- Flask request middleware

Usage:
    from monitoring import metrics, get_logger

    metrics.increment("ledger_operations_total", labels={"operation": "attest"})
    logger = get_logger(__name__)
"""

from monitoring.logging import LoggingContext, configure_logging, get_logger
from monitoring.metrics import MetricsCollector, metrics
from monitoring.middleware import setup_request_logging

__all__ = [
    "LoggingContext",
    "MetricsCollector",
    "configure_logging",
    "get_logger",
    "metrics",
    "setup_request_logging",
]
