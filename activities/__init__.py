"""Activity definitions module."""

from activities.integration import (
    integrate_order,
    sync_invoices,
    IntegrateOrderInput,
    SyncInvoicesInput,
)

__all__ = [
    "integrate_order",
    "sync_invoices",
    "IntegrateOrderInput",
    "SyncInvoicesInput",
]
