"""Workflow definitions module."""

from workflows.order_integration_workflow import (
    OrderIntegrationWorkflow,
    OrderIntegrationInput,
    TASK_QUEUE,
)
from workflows.invoice_sync_workflow import InvoiceSyncWorkflow, InvoiceSyncInput

__all__ = [
    "OrderIntegrationWorkflow",
    "OrderIntegrationInput",
    "InvoiceSyncWorkflow",
    "InvoiceSyncInput",
    "TASK_QUEUE",
]
