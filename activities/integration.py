"""Saga activities for the order integration service.

Each activity runs one in-process saga against the shared service container
and returns its SagaResult as a plain dict:

- integrate_order: marketplace order -> ERP (OrderIntegrationSaga)
- sync_invoices: ERP invoices -> marketplace (InvoiceSyncSaga)

The sagas never retry and report failures in their result, so the
activities only raise on bugs; the workflows run them with a single attempt.
"""

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from temporalio import activity

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.models.saga import IntegrationRequest, InvoiceSyncRequest
from core.observability import get_logger, with_correlation
from core.services import get_services
from integration import InvoiceSyncSaga, OrderIntegrationSaga

logger = get_logger(__name__)


# =============================================================================
# Activity Input Models
# =============================================================================

@dataclass
class IntegrateOrderInput:
    """Input for integrate_order activity.

    Attributes:
        account: Marketplace account name (e.g. psa)
        order_id: Marketplace order or pack id
        marketplace: Marketplace name
        process_id: Step log id; the workflow id when started by a workflow
    """
    account: str
    order_id: str
    marketplace: str = "Mercado Livre"
    process_id: Optional[str] = None


@dataclass
class SyncInvoicesInput:
    """Input for sync_invoices activity.

    Attributes:
        order_id: Limit the sync to one order (optional)
        process_id: Step log id
    """
    order_id: Optional[str] = None
    process_id: Optional[str] = None


# =============================================================================
# Activities
# =============================================================================

@activity.defn
async def integrate_order(input: IntegrateOrderInput) -> Dict[str, Any]:
    """Run the order integration saga for one order."""
    info = activity.info()
    with with_correlation(workflow_id=info.workflow_id, activity_name=info.activity_type):
        logger.info(f"Integrating order {input.order_id} for account {input.account}")
        request = IntegrationRequest(
            account=input.account,
            marketplace=input.marketplace,
            order_id=input.order_id,
            process_id=input.process_id,
        )
        result = await OrderIntegrationSaga(get_services()).run(request)
        return result.model_dump(mode="json")


@activity.defn
async def sync_invoices(input: SyncInvoicesInput) -> Dict[str, Any]:
    """Run the invoice sync saga over the pending ledger records."""
    info = activity.info()
    with with_correlation(workflow_id=info.workflow_id, activity_name=info.activity_type):
        logger.info(f"Syncing invoices{f' for order {input.order_id}' if input.order_id else ''}")
        request = InvoiceSyncRequest(order_id=input.order_id, process_id=input.process_id)
        result = await InvoiceSyncSaga(get_services()).run(request)
        return result.model_dump(mode="json")
