"""Invoice Sync Workflow

Runs the invoice sync saga over every submitted order (or one order).
Started on demand or by the schedule registered with
scripts/schedule_invoice_sync.py.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from temporalio import workflow
from temporalio.common import RetryPolicy

with workflow.unsafe.imports_passed_through():
    from activities.integration import sync_invoices, SyncInvoicesInput


# A batch walks the whole backlog one record at a time
SYNC_TIMEOUT = timedelta(minutes=30)


@dataclass
class InvoiceSyncInput:
    """Input for Invoice Sync Workflow.

    Attributes:
        order_id: Limit the sync to one order (optional)
        process_id: Step log id (defaults to the workflow id)
    """
    order_id: Optional[str] = None
    process_id: Optional[str] = None


@workflow.defn
class InvoiceSyncWorkflow:
    """Delivers staged ERP invoices to the marketplace."""

    @workflow.run
    async def run(self, input: InvoiceSyncInput) -> dict:
        process_id = input.process_id or workflow.info().workflow_id
        workflow.logger.info(f"Starting invoice sync {process_id}")

        result = await workflow.execute_activity(
            sync_invoices,
            SyncInvoicesInput(order_id=input.order_id, process_id=process_id),
            start_to_close_timeout=SYNC_TIMEOUT,
            retry_policy=RetryPolicy(maximum_attempts=1),
        )

        workflow.logger.info(
            f"Invoice sync finished: total={result['total_processed']} "
            f"completed={result['success_count']} errors={result['error_count']}"
        )
        return result
