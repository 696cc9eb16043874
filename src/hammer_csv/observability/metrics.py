"""Metrics collection for resolver and dispatch activity."""

from abc import ABC, abstractmethod
from collections import Counter, defaultdict
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class MetricsBackend(ABC):
    """Abstract base class for metrics backends."""

    @abstractmethod
    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        pass

    @abstractmethod
    def timing(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        pass


class LoggerBackend(MetricsBackend):
    """
    Simple in-memory metrics backend that aggregates stats for logging.
    """

    def __init__(self) -> None:
        self.counters: Counter[str] = Counter()
        self.timings: dict[str, list[float]] = defaultdict(list)

    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        """Increment a counter."""
        self.counters[self._format_key(name, tags)] += value

    def timing(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        """Record a timing."""
        self.timings[self._format_key(name, tags)].append(value)

    def _format_key(self, name: str, tags: dict[str, str] | None) -> str:
        if not tags:
            return name
        tag_str = ",".join(f"{k}={v}" for k, v in sorted(tags.items()))
        return f"{name}[{tag_str}]"

    def get_summary(self) -> dict[str, Any]:
        """Return a summary of collected metrics."""
        summary: dict[str, Any] = {"counters": dict(self.counters), "timings": {}}

        for name, values in self.timings.items():
            if values:
                summary["timings"][name] = {
                    "count": len(values),
                    "avg": sum(values) / len(values),
                    "min": min(values),
                    "max": max(values),
                }
        return summary


class MetricsCollector:
    """
    Central collector for application metrics.
    """

    def __init__(self, backend: str = "logger") -> None:
        self.backend: MetricsBackend

        if backend != "logger":
            logger.warning("Unknown metrics backend, defaulting to 'logger'", backend=backend)
        self.backend = LoggerBackend()

    def count_lookup(self, kind: str, outcome: str) -> None:
        """Record a resolver lookup outcome (hit, miss, not_found)."""
        self.backend.increment("resolver_lookup_total", tags={"kind": kind, "outcome": outcome})

    def count_row(self, status: str) -> None:
        """Record a dispatched row outcome (processed, skipped, failed)."""
        self.backend.increment("dispatch_row_total", tags={"status": status})

    def record_latency(self, name: str, duration_ms: float) -> None:
        """Record a latency sample in milliseconds."""
        self.backend.timing(f"{name}_duration_ms", duration_ms)

    def get_summary(self) -> dict[str, Any]:
        """Get summary from backend if supported."""
        if hasattr(self.backend, "get_summary"):
            return self.backend.get_summary()  # type: ignore
        return {}


_GLOBAL_COLLECTOR: MetricsCollector | None = None


def get_global_collector() -> MetricsCollector:
    """Get or create the global metrics collector."""
    global _GLOBAL_COLLECTOR
    if _GLOBAL_COLLECTOR is None:
        _GLOBAL_COLLECTOR = MetricsCollector()
    return _GLOBAL_COLLECTOR
