"""
Temporal Wiring Tests

Checks the pieces that run without a Temporal server: worker registration,
retry policy, the invoice sync schedule and client configuration.
"""

import asyncio
import sys
from datetime import timedelta
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent / "scripts"))

from schedule_invoice_sync import SCHEDULE_ID, build_schedule
from temporal_client import get_temporal_client
from workers.worker import ACTIVITIES, WORKFLOWS
from workflows import InvoiceSyncWorkflow, OrderIntegrationWorkflow
from workflows.order_integration_workflow import NO_RETRY, TASK_QUEUE


class TestWorkerRegistration:
    def test_worker_runs_both_sagas(self):
        assert WORKFLOWS == [OrderIntegrationWorkflow, InvoiceSyncWorkflow]
        assert [a.__name__ for a in ACTIVITIES] == ["integrate_order", "sync_invoices"]

    def test_sagas_are_never_retried(self):
        assert NO_RETRY.maximum_attempts == 1


class TestInvoiceSyncSchedule:
    def test_interval(self):
        schedule = build_schedule(15)

        assert schedule.spec.intervals[0].every == timedelta(minutes=15)
        assert schedule.action.task_queue == TASK_QUEUE
        assert schedule.action.id == f"{SCHEDULE_ID}-run"


class TestTemporalClient:
    def test_remote_endpoint_requires_api_key(self, monkeypatch):
        monkeypatch.setenv("TEMPORAL_ENDPOINT", "acme.tmprl.cloud:7233")
        monkeypatch.delenv("TEMPORAL_API_KEY", raising=False)

        with pytest.raises(ValueError):
            asyncio.run(get_temporal_client())
