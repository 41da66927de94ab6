"""Order Integration Workflow

Runs the order integration saga for one marketplace order as a single
activity. The saga is forward-only and not idempotent past the ERP
submission, so the activity gets exactly one attempt.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from temporalio import workflow
from temporalio.common import RetryPolicy

with workflow.unsafe.imports_passed_through():
    from activities.integration import integrate_order, IntegrateOrderInput


TASK_QUEUE = "order-integration"

# Nine sequential steps, each bounded by its own HTTP timeout
SAGA_TIMEOUT = timedelta(minutes=10)

NO_RETRY = RetryPolicy(maximum_attempts=1)


@dataclass
class OrderIntegrationInput:
    """Input for Order Integration Workflow.

    Attributes:
        account: Marketplace account name (e.g. psa)
        order_id: Marketplace order or pack id
        marketplace: Marketplace name
        process_id: Step log id (defaults to the workflow id)
    """
    account: str
    order_id: str
    marketplace: str = "Mercado Livre"
    process_id: Optional[str] = None


@workflow.defn
class OrderIntegrationWorkflow:
    """Integrates one marketplace order into the ERP."""

    @workflow.run
    async def run(self, input: OrderIntegrationInput) -> dict:
        """Execute the order integration saga.

        Returns:
            SagaResult as a dict (process_id, counts, results, logs)
        """
        process_id = input.process_id or workflow.info().workflow_id
        workflow.logger.info(f"Starting order integration for {input.account}/{input.order_id}")

        result = await workflow.execute_activity(
            integrate_order,
            IntegrateOrderInput(
                account=input.account,
                order_id=input.order_id,
                marketplace=input.marketplace,
                process_id=process_id,
            ),
            start_to_close_timeout=SAGA_TIMEOUT,
            retry_policy=NO_RETRY,
        )

        workflow.logger.info(
            f"Order integration finished for {input.order_id}: "
            f"success={result['success_count']} errors={result['error_count']}"
        )
        return result
