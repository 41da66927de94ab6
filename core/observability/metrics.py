"""
Metrics Collection for the Integration Sagas

Collects and exposes metrics for:
- Saga lifecycle (started, completed, failed) per saga type
- Step outcomes and timings (average, p95)
- Invoice uploads to the marketplace

Metrics live in memory; saga lifecycle events are also appended to the
metrics_snapshots table when METRICS_DB_PATH is set.
"""

import json
import logging
import os
import sqlite3
import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class SagaMetrics:
    """Metrics for saga runs."""
    started: int = 0
    completed: int = 0
    failed: int = 0
    in_progress: int = 0

    by_type: Dict[str, Dict[str, int]] = field(default_factory=lambda: defaultdict(lambda: {"started": 0, "completed": 0, "failed": 0}))


@dataclass
class StepMetrics:
    """Outcome counts per saga step."""
    by_step: Dict[str, Dict[str, int]] = field(default_factory=lambda: defaultdict(lambda: {"success": 0, "failed": 0}))


@dataclass
class TimingMetrics:
    """Processing time metrics."""
    samples: List[float] = field(default_factory=list)
    max_samples: int = 1000

    by_stage: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))

    def add_sample(self, duration_ms: float, stage: str = None):
        """Add a timing sample."""
        self.samples.append(duration_ms)
        if len(self.samples) > self.max_samples:
            self.samples = self.samples[-self.max_samples:]

        if stage:
            self.by_stage[stage].append(duration_ms)
            if len(self.by_stage[stage]) > self.max_samples:
                self.by_stage[stage] = self.by_stage[stage][-self.max_samples:]

    def get_average(self, stage: str = None) -> float:
        samples = self.by_stage.get(stage, []) if stage else self.samples
        return statistics.mean(samples) if samples else 0.0

    def get_p95(self, stage: str = None) -> float:
        samples = self.by_stage.get(stage, []) if stage else self.samples
        if not samples:
            return 0.0
        sorted_samples = sorted(samples)
        idx = int(len(sorted_samples) * 0.95)
        return sorted_samples[min(idx, len(sorted_samples) - 1)]


@dataclass
class InvoiceMetrics:
    uploaded: int = 0
    upload_failed: int = 0
    completed_without_upload: int = 0
    pending: int = 0


# =============================================================================
# Metrics Collector (Singleton)
# =============================================================================

class MetricsCollector:
    """
    Thread-safe metrics collector for the integration sagas.

    Usage:
        metrics = MetricsCollector.instance()
        metrics.record_saga_started("order_integration", process_id)
        metrics.record_step("order-submit", success=True, duration_ms=420)
    """

    _instance: Optional["MetricsCollector"] = None
    _lock = Lock()

    def __init__(self, db_path: Optional[Path] = None):
        self.sagas = SagaMetrics()
        self.steps = StepMetrics()
        self.timings = TimingMetrics()
        self.invoices = InvoiceMetrics()
        self._lock = Lock()

        env_path = os.getenv("METRICS_DB_PATH")
        self.db_path = db_path or (Path(env_path) if env_path else None)
        if self.db_path:
            self._init_db()

    @classmethod
    def instance(cls) -> "MetricsCollector":
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def _init_db(self):
        conn = sqlite3.connect(str(self.db_path))
        try:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS metrics_snapshots (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    metric_type TEXT NOT NULL,
                    metric_name TEXT NOT NULL,
                    metric_value REAL NOT NULL,
                    labels TEXT
                )
            """)
            conn.commit()
        finally:
            conn.close()

    # =========================================================================
    # Saga Metrics
    # =========================================================================

    def record_saga_started(self, saga_type: str, process_id: str):
        with self._lock:
            self.sagas.started += 1
            self.sagas.in_progress += 1
            self.sagas.by_type[saga_type]["started"] += 1

        self._persist_metric("saga", "started", 1, {"type": saga_type, "process_id": process_id})

    def record_saga_completed(self, saga_type: str, process_id: str, duration_ms: float = None):
        with self._lock:
            self.sagas.completed += 1
            self.sagas.in_progress = max(0, self.sagas.in_progress - 1)
            self.sagas.by_type[saga_type]["completed"] += 1

            if duration_ms:
                self.timings.add_sample(duration_ms, f"saga.{saga_type}")

        self._persist_metric("saga", "completed", 1, {"type": saga_type, "process_id": process_id})

    def record_saga_failed(self, saga_type: str, process_id: str, error: str = None):
        with self._lock:
            self.sagas.failed += 1
            self.sagas.in_progress = max(0, self.sagas.in_progress - 1)
            self.sagas.by_type[saga_type]["failed"] += 1

        self._persist_metric("saga", "failed", 1, {"type": saga_type, "process_id": process_id, "error": error})

    # =========================================================================
    # Step Metrics
    # =========================================================================

    def record_step(self, step: str, success: bool, duration_ms: float = None):
        """Record one saga step outcome."""
        with self._lock:
            self.steps.by_step[step]["success" if success else "failed"] += 1
            if duration_ms:
                self.timings.add_sample(duration_ms, f"step.{step}")

    def record_processing_time(self, stage: str, duration_ms: float):
        with self._lock:
            self.timings.add_sample(duration_ms, stage)

    def get_timing_stats(self, stage: str = None) -> Dict[str, float]:
        with self._lock:
            return {
                "average_ms": self.timings.get_average(stage),
                "p95_ms": self.timings.get_p95(stage),
                "sample_count": len(self.timings.by_stage.get(stage, []) if stage else self.timings.samples),
            }

    # =========================================================================
    # Invoice Metrics
    # =========================================================================

    def record_invoice_outcome(self, outcome: str):
        """outcome: uploaded | upload_failed | completed_without_upload | pending"""
        with self._lock:
            setattr(self.invoices, outcome, getattr(self.invoices, outcome) + 1)

    # =========================================================================
    # Summary
    # =========================================================================

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        with self._lock:
            return {
                "sagas": {
                    "started": self.sagas.started,
                    "completed": self.sagas.completed,
                    "failed": self.sagas.failed,
                    "in_progress": self.sagas.in_progress,
                    "by_type": {k: dict(v) for k, v in self.sagas.by_type.items()},
                },
                "steps": {k: dict(v) for k, v in self.steps.by_step.items()},
                "invoices": {
                    "uploaded": self.invoices.uploaded,
                    "upload_failed": self.invoices.upload_failed,
                    "completed_without_upload": self.invoices.completed_without_upload,
                    "pending": self.invoices.pending,
                },
                "timings": {
                    "overall": {
                        "average_ms": self.timings.get_average(),
                        "p95_ms": self.timings.get_p95(),
                    },
                    "by_stage": {
                        stage: {
                            "average_ms": self.timings.get_average(stage),
                            "p95_ms": self.timings.get_p95(stage),
                        }
                        for stage in self.timings.by_stage.keys()
                    },
                },
            }

    # =========================================================================
    # Persistence
    # =========================================================================

    def _persist_metric(self, metric_type: str, metric_name: str, value: float, labels: Dict = None):
        if not self.db_path:
            return
        try:
            conn = sqlite3.connect(str(self.db_path))
            try:
                conn.execute("""
                    INSERT INTO metrics_snapshots (timestamp, metric_type, metric_name, metric_value, labels)
                    VALUES (?, ?, ?, ?, ?)
                """, (
                    datetime.utcnow().isoformat(),
                    metric_type,
                    metric_name,
                    value,
                    json.dumps(labels) if labels else None,
                ))
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            # Metrics persistence never fails a saga
            logger.warning(f"Failed to persist metric {metric_type}.{metric_name}: {e}")


# =============================================================================
# Module-level convenience functions
# =============================================================================

def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    return MetricsCollector.instance()


def record_saga_started(saga_type: str, process_id: str):
    get_metrics().record_saga_started(saga_type, process_id)


def record_saga_completed(saga_type: str, process_id: str, duration_ms: float = None):
    get_metrics().record_saga_completed(saga_type, process_id, duration_ms)


def record_saga_failed(saga_type: str, process_id: str, error: str = None):
    get_metrics().record_saga_failed(saga_type, process_id, error)


def record_step(step: str, success: bool, duration_ms: float = None):
    get_metrics().record_step(step, success, duration_ms)


def record_invoice_outcome(outcome: str):
    get_metrics().record_invoice_outcome(outcome)
