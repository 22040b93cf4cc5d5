"""
Observability Module for the Wholesale Storefront

Provides:
- Structured logging with correlation IDs
- Metrics collection (upstream fetches, aggregation timings, order submissions)
"""

from core.observability.metrics import (
    MetricsCollector,
    get_metrics,
    record_processing_time,
    timed,
)

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    with_correlation,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "get_metrics",
    "record_processing_time",
    "timed",
    # Logging
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "with_correlation",
]
