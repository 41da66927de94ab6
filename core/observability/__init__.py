"""
Observability Module for the Order Integration Service

Provides:
- Structured logging with correlation IDs
- Metrics collection (saga runs, step outcomes, timings, invoice uploads)
"""

from core.observability.metrics import (
    MetricsCollector,
    get_metrics,
    record_saga_started,
    record_saga_completed,
    record_saga_failed,
    record_step,
    record_invoice_outcome,
)

from core.observability.logging import (
    get_logger,
    configure_logging,
    configure_logging_from_env,
    CorrelationContext,
    with_correlation,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "get_metrics",
    "record_saga_started",
    "record_saga_completed",
    "record_saga_failed",
    "record_step",
    "record_invoice_outcome",
    # Logging
    "get_logger",
    "configure_logging",
    "configure_logging_from_env",
    "CorrelationContext",
    "with_correlation",
]
