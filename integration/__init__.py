"""
Integration sagas.

- OrderIntegrationSaga: one marketplace order into the ERP
- InvoiceSyncSaga: ERP invoices of submitted orders back to the marketplace

Usage:
    from core.services import get_services
    from integration import OrderIntegrationSaga

    result = await OrderIntegrationSaga(get_services()).run(request)
"""

from integration.invoice_sync import InvoiceSyncSaga, RecordResult
from integration.order_saga import (
    OrderIntegrationSaga,
    STATUS_ALREADY_PROCESSED,
    STATUS_FAILED,
    STATUS_LEDGER_FAILURE,
    STATUS_SUCCESS,
)

__all__ = [
    "InvoiceSyncSaga",
    "RecordResult",
    "OrderIntegrationSaga",
    "STATUS_ALREADY_PROCESSED",
    "STATUS_FAILED",
    "STATUS_LEDGER_FAILURE",
    "STATUS_SUCCESS",
]
