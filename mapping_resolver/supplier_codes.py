"""Company -> supplier code table.

The ERP books each order in a company under a supplier code. Most companies
map directly; a few are booked in another company. Two pseudo companies
exist:

- ALIAS_COMPANY ("LUCIOS"): items whose part number contains the alias
  marker are booked here, and the ERP session for it is opened as company 17.
- FALLBACK_COMPANY ("OUTROS"): items without a company in their mapping.
"""

from dataclasses import dataclass
from typing import Dict, Optional

ALIAS_COMPANY = "LUCIOS"
ALIAS_PART_MARKER = "LC"
ALIAS_SESSION_COMPANY = "17"
FALLBACK_COMPANY = "OUTROS"


@dataclass(frozen=True)
class SupplierAssignment:
    supplier_code: str
    company_code: str


# company -> (supplier, company the order is booked in)
SUPPLIER_CODES: Dict[str, SupplierAssignment] = {
    "17": SupplierAssignment("7", "17"),
    "144": SupplierAssignment("13", "144"),
    "44": SupplierAssignment("13", "144"),
    "12": SupplierAssignment("12", "17"),
    "40": SupplierAssignment("1", "40"),
    "34": SupplierAssignment("9", "34"),
    "41": SupplierAssignment("11", "41"),
    "47": SupplierAssignment("17", "47"),
    "140": SupplierAssignment("1", "140"),
    FALLBACK_COMPANY: SupplierAssignment("8", "17"),
}

_ALIAS_ASSIGNMENT = SupplierAssignment("8", ALIAS_COMPANY)


def derive_company(mapped_company: Optional[str], part_number: str) -> str:
    """Company an item belongs to.

    The alias marker in the part number wins over the mapping; a missing
    mapping or empty company falls back to FALLBACK_COMPANY.
    """
    if ALIAS_PART_MARKER in (part_number or ""):
        return ALIAS_COMPANY
    if mapped_company:
        return mapped_company
    return FALLBACK_COMPANY


def lookup_supplier(company: str, mapped: bool) -> Optional[SupplierAssignment]:
    """Supplier assignment for a company, or None if it has none.

    The alias company only has a supplier when the item was mapped.
    """
    if company == ALIAS_COMPANY:
        return _ALIAS_ASSIGNMENT if mapped else None
    return SUPPLIER_CODES.get(company)


def session_company(company: str) -> str:
    """Company whose ERP credentials are used to book orders of `company`."""
    return ALIAS_SESSION_COMPANY if company == ALIAS_COMPANY else company
