"""Marketplace API models.

Only the fields the sagas read are declared; everything else in the
marketplace payloads is ignored. Ids arrive as JSON numbers or strings and
are normalized to plain decimal strings (no exponent, no ".0").
"""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


def normalize_id(value: Any) -> Any:
    """Render numeric ids as decimal strings without exponent or fraction.

    Booleans and non-finite floats are not ids; they normalize to None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return format(Decimal(repr(value)).quantize(Decimal(1)), "f")
    if isinstance(value, str):
        return value.strip()
    return str(value)


IdValue = Annotated[str, BeforeValidator(normalize_id)]


class MarketplaceBase(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# =============================================================================
# Orders and packs
# =============================================================================

class ItemRef(MarketplaceBase):
    id: IdValue
    title: Optional[str] = None


class OrderItem(MarketplaceBase):
    item: ItemRef
    quantity: int = 1
    unit_price: float = 0.0

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


class ShippingRef(MarketplaceBase):
    id: Optional[IdValue] = None


class Order(MarketplaceBase):
    """A marketplace order as returned by GET /orders/{id}."""
    id: IdValue
    date_created: Optional[str] = None
    order_items: List[OrderItem] = Field(default_factory=list)
    shipping: ShippingRef = Field(default_factory=ShippingRef)

    @property
    def total_amount(self) -> float:
        return sum(item.line_total for item in self.order_items)


class PackOrderRef(MarketplaceBase):
    id: IdValue


class Pack(MarketplaceBase):
    """A grouped shipment (GET /packs/{id}) listing its sub-orders."""
    id: Optional[IdValue] = None
    orders: List[PackOrderRef] = Field(default_factory=list)


# =============================================================================
# Items
# =============================================================================

class ItemAttribute(MarketplaceBase):
    id: Optional[str] = None
    name: Optional[str] = None
    value_name: Optional[str] = None


class Item(MarketplaceBase):
    id: IdValue
    attributes: List[ItemAttribute] = Field(default_factory=list)

    @property
    def part_number(self) -> str:
        """Manufacturer part number (MPN attribute), empty if absent."""
        for attribute in self.attributes:
            if attribute.name == "MPN" or attribute.id == "MPN":
                return attribute.value_name or ""
        return ""


# =============================================================================
# Billing info
# =============================================================================

FALLBACK_CUSTOMER_NAME = "CLIENTE ML"


class BillingDetails(MarketplaceBase):
    doc_type: Optional[str] = None
    doc_number: IdValue = ""
    additional_info: Any = None

    @property
    def info(self) -> Dict[str, str]:
        """additional_info as a flat dict; the API sends either a dict or [{name, value}]."""
        raw = self.additional_info
        if isinstance(raw, dict):
            return {str(k): v for k, v in raw.items() if isinstance(v, str)}
        if isinstance(raw, list):
            flattened = {}
            for entry in raw:
                if isinstance(entry, dict) and isinstance(entry.get("name"), str) and isinstance(entry.get("value"), str):
                    flattened[entry["name"]] = entry["value"]
            return flattened
        return {}

    @property
    def is_individual(self) -> bool:
        return self.doc_type == "CPF"

    @property
    def customer_name(self) -> str:
        info = self.info
        if self.is_individual:
            first = info.get("FIRST_NAME")
            if not first:
                return FALLBACK_CUSTOMER_NAME
            last = info.get("LAST_NAME")
            return (f"{first} {last}" if last else first).upper()
        business_name = info.get("BUSINESS_NAME")
        return business_name.upper() if business_name else FALLBACK_CUSTOMER_NAME


class BillingInfo(MarketplaceBase):
    """GET /orders/{id}/billing_info response."""
    billing_info: BillingDetails = Field(default_factory=BillingDetails)


# =============================================================================
# Shipments
# =============================================================================

class Shipment(MarketplaceBase):
    id: Optional[IdValue] = None
    status: str = ""
    substatus: Optional[str] = None
    logistic_type: Optional[str] = None
    buffering_date: Optional[str] = Field(default=None)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Shipment":
        """Parse a shipment, lifting lead_time.buffering.date when present."""
        buffering = ((data.get("lead_time") or {}).get("buffering") or {}).get("date")
        return cls.model_validate({**data, "buffering_date": buffering})

    @property
    def awaiting_invoice(self) -> bool:
        return self.status == "ready_to_ship" and self.substatus == "invoice_pending"

    @property
    def is_scheduled(self) -> bool:
        return self.status == "pending" and self.substatus == "buffered"
