"""Persistence: order ledger, item mappings and the ERP reporting store."""

from storage.ledger import LedgerStore
from storage.mappings import MappingEntry, MappingStore, table_for_schema
from storage.reporting import ReportingStore

__all__ = [
    "LedgerStore",
    "MappingEntry",
    "MappingStore",
    "table_for_schema",
    "ReportingStore",
]
