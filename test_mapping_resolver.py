"""
Mapping Resolver Tests

Line items -> SKUs, and the company/supplier an order is booked under.
"""

import asyncio

import pytest

from core.config import AccountRegistry
from core.errors import MappingNotFound, NoValidItems
from core.models.marketplace import Order
from mapping_resolver import MappingResolver, session_company
from mapping_resolver.supplier_codes import (
    ALIAS_COMPANY,
    FALLBACK_COMPANY,
    derive_company,
    lookup_supplier,
)
from storage.mappings import MappingEntry


class DictMappings:
    def __init__(self, entries):
        self.entries = entries

    def lookup(self, schema, item_id):
        return self.entries.get((schema, item_id))


def make_order(*lines):
    return Order.model_validate({
        "id": 2000012345678,
        "order_items": [
            {"item": {"id": item_id}, "quantity": qty, "unit_price": price}
            for item_id, qty, price in lines
        ],
        "shipping": {"id": 44001122},
    })


def resolve(services, mappings, order, account="psa"):
    resolver = MappingResolver(DictMappings(mappings), services.marketplace)
    return asyncio.run(resolver.resolve(order, AccountRegistry().get(account), "token"))


class TestSupplierCodes:
    @pytest.mark.parametrize("mapped,part_number,expected", [
        ("17", "PN-1", "17"),
        ("17", "LC-4455", ALIAS_COMPANY),
        (None, "LC-4455", ALIAS_COMPANY),
        (None, "PN-1", FALLBACK_COMPANY),
        ("", "PN-1", FALLBACK_COMPANY),
    ])
    def test_derive_company(self, mapped, part_number, expected):
        assert derive_company(mapped, part_number) == expected

    def test_remapped_company(self):
        assignment = lookup_supplier("44", mapped=True)
        assert (assignment.supplier_code, assignment.company_code) == ("13", "144")

    def test_alias_needs_mapping(self):
        assert lookup_supplier(ALIAS_COMPANY, mapped=True).supplier_code == "8"
        assert lookup_supplier(ALIAS_COMPANY, mapped=False) is None

    def test_unknown_company(self):
        assert lookup_supplier("999", mapped=True) is None

    def test_session_company(self):
        assert session_company(ALIAS_COMPANY) == "17"
        assert session_company("144") == "144"


class TestMappingResolver:
    def test_all_items_resolved(self, services):
        order = make_order(("MLB1", 2, 10.0), ("MLB2", 1, 5.5))
        mappings = {
            ("psa", "MLB1"): MappingEntry("MLB1", "SKU-1", "40"),
            ("psa", "MLB2"): MappingEntry("MLB2", "SKU-2", "40"),
        }

        resolution = resolve(services, mappings, order)

        assert resolution.company_code == "40"
        assert resolution.supplier_code == "1"
        assert [i.sku for i in resolution.items] == ["SKU-1", "SKU-2"]
        assert resolution.unmapped_item_ids == []
        lines = resolution.order_lines()
        assert lines[0].quantity == 2
        assert all(line.supplier_code == "1" for line in lines)

    def test_unmapped_items_reported(self, services):
        order = make_order(("MLB1", 1, 10.0), ("MLB2", 1, 5.5))
        mappings = {("psa", "MLB2"): MappingEntry("MLB2", "SKU-2", "40")}

        resolution = resolve(services, mappings, order)

        assert resolution.unmapped_item_ids == ["MLB1"]
        assert resolution.source_company == FALLBACK_COMPANY
        assert resolution.company_code == "17"
        resolution.ensure_bookable("2000012345678")

    def test_misses_carry_item_and_schema(self, services):
        order = make_order(("MLB1", 1, 10.0), ("MLB2", 1, 5.5))
        mappings = {("psa", "MLB2"): MappingEntry("MLB2", "SKU-2", "40")}

        resolution = resolve(services, mappings, order)

        [miss] = resolution.misses
        assert isinstance(miss, MappingNotFound)
        assert miss.item_id == "MLB1"
        assert miss.schema == AccountRegistry().get("psa").mapping_schema
        assert miss.step == "mapping"
        assert "MLB1" in str(miss)

    def test_nothing_mapped_is_not_bookable(self, services):
        resolution = resolve(services, {}, make_order(("MLB1", 1, 10.0)))

        with pytest.raises(NoValidItems):
            resolution.ensure_bookable("2000012345678")

    def test_company_without_supplier_is_not_bookable(self, services):
        order = make_order(("MLB1", 1, 10.0))
        mappings = {("psa", "MLB1"): MappingEntry("MLB1", "SKU-1", "999")}

        resolution = resolve(services, mappings, order)

        assert resolution.items
        with pytest.raises(NoValidItems):
            resolution.ensure_bookable("2000012345678")

    def test_part_number_from_first_item(self, services):
        services.marketplace.items["MLB1"] = "LC-77"
        order = make_order(("MLB1", 1, 10.0))
        mappings = {("psa", "MLB1"): MappingEntry("MLB1", "SKU-1", "40")}

        resolution = resolve(services, mappings, order)

        assert resolution.company_code == ALIAS_COMPANY
        assert services.marketplace.calls == ["item:MLB1"]

    def test_order_without_items(self, services):
        order = Order.model_validate({"id": 1, "order_items": [], "shipping": {"id": 2}})

        with pytest.raises(NoValidItems):
            resolve(services, {}, order)

    def test_account_schema_used(self, services):
        order = make_order(("MLB1", 1, 10.0))
        mappings = {("ford", "MLB1"): MappingEntry("MLB1", "SKU-F", "40")}

        assert resolve(services, mappings, order, account="ford").items[0].sku == "SKU-F"
        assert resolve(services, mappings, order, account="psa").items == []
