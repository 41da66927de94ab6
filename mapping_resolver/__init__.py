"""Mapping Resolver - marketplace line items to internal SKUs.

Resolution per order:
- Each line item is looked up in the account's mapping table (DePara)
- Unmapped items are skipped and reported
- The first line item decides the company (alias/fallback rules) and the
  supplier code every line is booked under

Usage:
    from mapping_resolver import MappingResolver

    resolver = MappingResolver(mapping_store, marketplace_client)
    resolution = await resolver.resolve(order, account, token)
    lines = resolution.order_lines()
"""

from mapping_resolver.resolver import MappingResolution, MappingResolver, ResolvedItem
from mapping_resolver.supplier_codes import (
    ALIAS_COMPANY,
    FALLBACK_COMPANY,
    SUPPLIER_CODES,
    SupplierAssignment,
    derive_company,
    lookup_supplier,
    session_company,
)

__all__ = [
    "MappingResolution",
    "MappingResolver",
    "ResolvedItem",
    "ALIAS_COMPANY",
    "FALLBACK_COMPANY",
    "SUPPLIER_CODES",
    "SupplierAssignment",
    "derive_company",
    "lookup_supplier",
    "session_company",
]
