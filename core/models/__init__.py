"""Core data models shared by connectors, storage and the sagas."""

from core.models.ledger import LedgerRecord, LedgerStatus, StagedInvoice
from core.models.marketplace import (
    BillingDetails,
    BillingInfo,
    Item,
    Order,
    OrderItem,
    Pack,
    Shipment,
    normalize_id,
)
from core.models.erp import ERPEnvelope, ERPOrderAck, ERPToken
from core.models.saga import (
    IntegrationRequest,
    InvoiceSyncRequest,
    LogLevel,
    SagaResult,
    StepLogEntry,
)

__all__ = [
    # Ledger
    "LedgerRecord",
    "LedgerStatus",
    "StagedInvoice",
    # Marketplace
    "BillingDetails",
    "BillingInfo",
    "Item",
    "Order",
    "OrderItem",
    "Pack",
    "Shipment",
    "normalize_id",
    # ERP
    "ERPEnvelope",
    "ERPOrderAck",
    "ERPToken",
    # Saga
    "IntegrationRequest",
    "InvoiceSyncRequest",
    "LogLevel",
    "SagaResult",
    "StepLogEntry",
]
