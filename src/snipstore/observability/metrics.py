"""
Metrics — Outcome counts for store operations and slot writes.

One registry per store (or the process-wide default). Mutations are
counted per operation name; slot writes track failures and latency so a
flaky backend shows up without reading the logs.
"""

from dataclasses import dataclass, field
from threading import Lock
from typing import Any


@dataclass
class OperationStats:
    """Attempts and failures of one store operation."""
    attempted: int = 0
    failed: int = 0

    @property
    def succeeded(self) -> int:
        return self.attempted - self.failed


@dataclass
class WriteStats:
    """Backend slot writes."""
    writes: int = 0
    failures: int = 0
    total_seconds: float = 0.0
    slowest_seconds: float = 0.0
    last_error: str | None = None

    @property
    def avg_seconds(self) -> float:
        if self.writes == 0:
            return 0.0
        return self.total_seconds / self.writes


@dataclass
class MetricsRegistry:
    """
    Registry for snippet store metrics.

    Usage:
        metrics = MetricsRegistry()
        store = SnippetStore(backend, metrics=metrics)
        store.add(fields)
        metrics.operation("add").attempted  # 1
    """
    operations: dict[str, OperationStats] = field(default_factory=dict)
    persistence: WriteStats = field(default_factory=WriteStats)
    imports_rejected: int = 0
    load_recoveries: int = 0
    snippets: int = 0
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    def record_operation(self, operation: str, ok: bool) -> None:
        """Count one attempt of ``operation`` and whether it succeeded."""
        with self._lock:
            stats = self.operations.setdefault(operation, OperationStats())
            stats.attempted += 1
            if not ok:
                stats.failed += 1

    def record_write(self, seconds: float, error: BaseException | None = None) -> None:
        """Count one slot write that took ``seconds`` and raised ``error`` if given."""
        with self._lock:
            self.persistence.writes += 1
            self.persistence.total_seconds += seconds
            self.persistence.slowest_seconds = max(self.persistence.slowest_seconds, seconds)
            if error is not None:
                self.persistence.failures += 1
                self.persistence.last_error = f"{type(error).__name__}: {error}"

    def record_import_rejected(self) -> None:
        with self._lock:
            self.imports_rejected += 1

    def record_load_recovery(self) -> None:
        """A slot (or a record in it) could not be loaded and was dropped."""
        with self._lock:
            self.load_recoveries += 1

    def set_snippets(self, count: int) -> None:
        with self._lock:
            self.snippets = count

    def operation(self, name: str) -> OperationStats:
        """Stats for ``name``; zeroes if it never ran."""
        with self._lock:
            stats = self.operations.get(name, OperationStats())
            return OperationStats(stats.attempted, stats.failed)

    def to_dict(self) -> dict[str, Any]:
        """Export all metrics as dict."""
        with self._lock:
            return {
                "operations": {
                    name: {
                        "attempted": stats.attempted,
                        "succeeded": stats.succeeded,
                        "failed": stats.failed,
                    }
                    for name, stats in sorted(self.operations.items())
                },
                "persistence": {
                    "writes": self.persistence.writes,
                    "failures": self.persistence.failures,
                    "avg_seconds": self.persistence.avg_seconds,
                    "slowest_seconds": self.persistence.slowest_seconds,
                    "last_error": self.persistence.last_error,
                },
                "imports_rejected": self.imports_rejected,
                "load_recoveries": self.load_recoveries,
                "snippets": self.snippets,
            }

    def reset(self) -> None:
        """Reset all metrics (for testing)."""
        with self._lock:
            self.operations.clear()
            self.persistence = WriteStats()
            self.imports_rejected = 0
            self.load_recoveries = 0
            self.snippets = 0


_metrics = MetricsRegistry()


def get_metrics() -> MetricsRegistry:
    """Get global metrics registry."""
    return _metrics


def reset_metrics() -> None:
    """Reset all metrics (for testing)."""
    _metrics.reset()
