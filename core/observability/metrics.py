"""
Metrics Collection for the Wholesale Storefront

Collects and exposes metrics for:
- Upstream ERP page fetches per resource (ok, failed, truncated runs)
- Aggregation timings (average, p95) per stage
- Order submissions (created, rejected, deduplicated)

Metrics are kept in-memory only; the service holds no persistent state.
"""

import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock
from typing import Dict, List, Optional, Any
import statistics


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class FetchMetrics:
    """Metrics for paginated ERP fetches."""
    pages_ok: int = 0
    pages_failed: int = 0
    truncated_runs: int = 0

    # By resource
    by_resource: Dict[str, Dict[str, int]] = field(
        default_factory=lambda: defaultdict(lambda: {"pages_ok": 0, "pages_failed": 0, "rows": 0, "truncated_runs": 0})
    )


@dataclass
class SubmissionMetrics:
    """Metrics for order submission."""
    created: int = 0
    rejected: int = 0
    deduplicated: int = 0


@dataclass
class TimingMetrics:
    """Processing time metrics."""
    max_samples: int = 1000

    by_stage: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))

    def add_sample(self, duration_ms: float, stage: str):
        """Add a timing sample."""
        self.by_stage[stage].append(duration_ms)
        if len(self.by_stage[stage]) > self.max_samples:
            self.by_stage[stage] = self.by_stage[stage][-self.max_samples:]

    def get_average(self, stage: str) -> float:
        samples = self.by_stage.get(stage, [])
        return statistics.mean(samples) if samples else 0.0

    def get_p95(self, stage: str) -> float:
        """Get 95th percentile processing time."""
        samples = self.by_stage.get(stage, [])
        if not samples:
            return 0.0
        sorted_samples = sorted(samples)
        idx = int(len(sorted_samples) * 0.95)
        return sorted_samples[min(idx, len(sorted_samples) - 1)]


# =============================================================================
# Metrics Collector (Singleton)
# =============================================================================

class MetricsCollector:
    """
    Thread-safe metrics collector for the storefront.

    Usage:
        metrics = MetricsCollector.instance()
        metrics.record_page_fetched("packages", rows=25)
        metrics.record_processing_time("menu", 120.5)
    """

    _instance: Optional["MetricsCollector"] = None
    _lock = Lock()

    def __init__(self):
        self.fetches = FetchMetrics()
        self.submissions = SubmissionMetrics()
        self.timings = TimingMetrics()
        self._lock = Lock()

    @classmethod
    def instance(cls) -> "MetricsCollector":
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    # =========================================================================
    # Fetch Metrics
    # =========================================================================

    def record_page_fetched(self, resource: str, rows: int):
        """Record a successful page fetch."""
        with self._lock:
            self.fetches.pages_ok += 1
            self.fetches.by_resource[resource]["pages_ok"] += 1
            self.fetches.by_resource[resource]["rows"] += rows

    def record_page_failed(self, resource: str):
        """Record a page fetch that returned a non-success status or errored."""
        with self._lock:
            self.fetches.pages_failed += 1
            self.fetches.by_resource[resource]["pages_failed"] += 1

    def record_truncated_run(self, resource: str):
        """Record a pagination run that stopped early after at least one good page."""
        with self._lock:
            self.fetches.truncated_runs += 1
            self.fetches.by_resource[resource]["truncated_runs"] += 1

    # =========================================================================
    # Submission Metrics
    # =========================================================================

    def record_order_created(self):
        with self._lock:
            self.submissions.created += 1

    def record_order_rejected(self):
        with self._lock:
            self.submissions.rejected += 1

    def record_order_deduplicated(self):
        with self._lock:
            self.submissions.deduplicated += 1

    # =========================================================================
    # Timing Metrics
    # =========================================================================

    def record_processing_time(self, stage: str, duration_ms: float):
        """Record a processing time sample."""
        with self._lock:
            self.timings.add_sample(duration_ms, stage)

    def get_timing_stats(self, stage: str) -> Dict[str, float]:
        """Get timing statistics for a stage."""
        with self._lock:
            return {
                "average_ms": self.timings.get_average(stage),
                "p95_ms": self.timings.get_p95(stage),
                "sample_count": len(self.timings.by_stage.get(stage, [])),
            }

    # =========================================================================
    # Summary
    # =========================================================================

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        with self._lock:
            return {
                "fetches": {
                    "pages_ok": self.fetches.pages_ok,
                    "pages_failed": self.fetches.pages_failed,
                    "truncated_runs": self.fetches.truncated_runs,
                    "by_resource": {k: dict(v) for k, v in self.fetches.by_resource.items()},
                },
                "orders": {
                    "created": self.submissions.created,
                    "rejected": self.submissions.rejected,
                    "deduplicated": self.submissions.deduplicated,
                },
                "timings": {
                    stage: {
                        "average_ms": self.timings.get_average(stage),
                        "p95_ms": self.timings.get_p95(stage),
                    }
                    for stage in self.timings.by_stage.keys()
                },
            }


# =============================================================================
# Module-level convenience functions
# =============================================================================

def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    return MetricsCollector.instance()


def record_processing_time(stage: str, duration_ms: float):
    """Record a processing time sample."""
    get_metrics().record_processing_time(stage, duration_ms)


@contextmanager
def timed(stage: str):
    """Time the enclosed block and record it under ``stage``."""
    started = time.perf_counter()
    try:
        yield
    finally:
        record_processing_time(stage, (time.perf_counter() - started) * 1000)
