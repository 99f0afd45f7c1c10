"""
Observability — Logging and metrics for snipstore.

Provides:
- Log records tagged with request id, operation and storage key
- Per-operation and slot-write metrics
"""

from snipstore.observability.logging import (
    ContextFilter,
    JSONFormatter,
    LogContext,
    ReadableFormatter,
    configure_logging,
    current_log_context,
    get_logger,
)
from snipstore.observability.metrics import (
    MetricsRegistry,
    OperationStats,
    WriteStats,
    get_metrics,
    reset_metrics,
)

__all__ = [
    # Logging
    "ContextFilter",
    "JSONFormatter",
    "LogContext",
    "ReadableFormatter",
    "configure_logging",
    "current_log_context",
    "get_logger",
    # Metrics
    "MetricsRegistry",
    "OperationStats",
    "WriteStats",
    "get_metrics",
    "reset_metrics",
]
