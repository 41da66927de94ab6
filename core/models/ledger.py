"""Order ledger record.

One row per marketplace order. The row is the idempotency key (order_id is
UNIQUE in the store) and carries the order through its statuses:

    NEW -> SUBMITTED -> INVOICED_PENDING -> COMPLETED
"""

from __future__ import annotations

from enum import IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class LedgerStatus(IntEnum):
    NEW = 0
    SUBMITTED = 1
    INVOICED_PENDING = 2
    COMPLETED = 3


class LedgerRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    order_id: str
    account_token_id: str
    account_name: str
    marketplace_name: str
    shipping_id: Optional[str] = None
    shipping_mode: Optional[str] = None
    document_number: Optional[str] = None
    invoice_number: Optional[str] = None
    invoice_xml: Optional[str] = None
    status: LedgerStatus = LedgerStatus.NEW
    created_at: Optional[str] = None
    submitted_at: Optional[str] = None
    invoiced_at: Optional[str] = None
    updated_at: Optional[str] = None


class StagedInvoice(BaseModel):
    """Invoice staged by the ERP for a submitted order (reporting store row)."""
    model_config = ConfigDict(extra="ignore")

    control_number: str
    issue_date: Optional[str] = None
    order_map_id: str
    external_order_id: Optional[str] = None
    raw_document: str = ""
    status: Optional[str] = None
