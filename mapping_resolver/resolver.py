"""Resolve an order's line items to SKUs and the company/supplier to book them under.

Item lookups are independent reads, so they run concurrently. Items without
a mapping are skipped and reported back; the order fails only when nothing
resolves or when its company has no supplier code.
"""

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional

from core.config import AccountConfig
from core.errors import MappingNotFound, NoValidItems
from core.models.marketplace import Order, OrderItem
from connectors.erp.payloads import OrderLine
from mapping_resolver.supplier_codes import derive_company, lookup_supplier
from storage.mappings import MappingEntry


@dataclass(frozen=True)
class ResolvedItem:
    item_id: str
    sku: str
    unit_price: float
    quantity: int


@dataclass
class MappingResolution:
    """Outcome of resolving one order.

    Attributes:
        source_company: Company derived from the first line item
        company_code: Company the order is booked in (after the supplier table)
        supplier_code: Supplier code sent on every order line
        items: Resolved lines, in order
        misses: One MappingNotFound per item skipped for lack of a mapping
    """
    source_company: str
    company_code: str
    supplier_code: str
    part_number: str = ""
    items: List[ResolvedItem] = field(default_factory=list)
    misses: List[MappingNotFound] = field(default_factory=list)

    @property
    def unmapped_item_ids(self) -> List[str]:
        return [miss.item_id for miss in self.misses]

    def ensure_bookable(self, order_id: str) -> None:
        """Raise NoValidItems unless the order can be submitted to the ERP."""
        if not self.supplier_code:
            raise NoValidItems(
                f"Company {self.source_company} has no supplier code; order {order_id} can't be booked",
                step="mapping",
            )
        if not self.items:
            raise NoValidItems(f"No line item of order {order_id} has a mapping", step="mapping")

    def order_lines(self) -> List[OrderLine]:
        return [
            OrderLine(
                sku=item.sku,
                supplier_code=self.supplier_code,
                unit_price=item.unit_price,
                quantity=item.quantity,
            )
            for item in self.items
        ]


class MappingResolver:
    """Maps marketplace line items through an account's mapping table.

    Args:
        mapping_store: Object with lookup(schema, item_id) -> Optional[MappingEntry]
        marketplace: Client used to read the first item's part number
    """

    def __init__(self, mapping_store, marketplace):
        self.mapping_store = mapping_store
        self.marketplace = marketplace

    async def _lookup(self, schema: str, item_id: str) -> Optional[MappingEntry]:
        return await asyncio.to_thread(self.mapping_store.lookup, schema, item_id)

    async def resolve(self, order: Order, account: AccountConfig, token: str) -> MappingResolution:
        """Resolve every line item of an order.

        Unmapped items are reported, not raised; call
        MappingResolution.ensure_bookable() before using the result.

        Raises:
            NoValidItems: The order has no line items
            UpstreamUnavailable: Mapping store or item lookup failed
        """
        if not order.order_items:
            raise NoValidItems(f"Order {order.id} has no line items", step="mapping")

        schema = account.mapping_schema
        entries = await asyncio.gather(
            *(self._lookup(schema, line.item.id) for line in order.order_items)
        )

        first_line: OrderItem = order.order_items[0]
        first_entry = entries[0]
        part_number = (await self.marketplace.get_item(first_line.item.id, token)).part_number

        source_company = derive_company(first_entry.company_code if first_entry else None, part_number)
        assignment = lookup_supplier(source_company, mapped=first_entry is not None)

        resolution = MappingResolution(
            source_company=source_company,
            company_code=assignment.company_code if assignment else source_company,
            supplier_code=assignment.supplier_code if assignment else "",
            part_number=part_number,
        )

        for line, entry in zip(order.order_items, entries):
            if entry is None:
                resolution.misses.append(MappingNotFound.for_item(line.item.id, schema))
                continue
            resolution.items.append(
                ResolvedItem(
                    item_id=line.item.id,
                    sku=entry.sku,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                )
            )

        return resolution
