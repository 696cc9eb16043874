"""Observability - Metrics and logging."""

from .logger import LogContext, add_context, clear_all_context, clear_context, configure_logging
from .metrics import LoggerBackend, MetricsCollector, get_global_collector

__all__ = [
    "MetricsCollector",
    "LoggerBackend",
    "get_global_collector",
    "configure_logging",
    "add_context",
    "clear_context",
    "clear_all_context",
    "LogContext",
]
